"""
Core модули BMC Inventory.

Содержит общие структуры для всех слоёв:
- models: ComponentRecord, DiscoveryResult, Snapshot, DeviceRecord
- exceptions: Иерархия ошибок обхода и reconcile
- context: RunContext и CancelToken
- credentials: Учётные данные BMC
- logging: Structured JSON/Human-readable логирование
"""

from .models import (
    ComponentKind,
    SnapshotPhase,
    LazyProperties,
    CommonProperties,
    ComponentRecord,
    DiscoveryResult,
    Snapshot,
    DeviceRecord,
    SNAPSHOT_KIND,
    DEVICE_KIND,
)
from .exceptions import (
    InventoryError,
    DiscoveryError,
    RedfishError,
    EmptyResultError,
    DecodeWarning,
    NormalizationError,
    PersistenceError,
    InvalidResourceError,
    InvalidPayloadError,
    OperationCancelledError,
    ConfigError,
    format_error_for_log,
    is_retryable,
)
from .context import (
    RunContext,
    CancelToken,
    get_current_context,
    set_current_context,
)
from .credentials import Credentials, CredentialsManager
from .logging import (
    get_logger,
    setup_logging,
    setup_logging_from_config,
    StructuredLogger,
    JSONFormatter,
    HumanFormatter,
    LogConfig,
    RotationType,
)
