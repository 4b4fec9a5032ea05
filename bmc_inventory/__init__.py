"""
BMC Inventory - обход Redfish и нормализация инвентаря серверов.

Модуль предоставляет:
- Обход Redfish API одного BMC (Systems → Processors/Memory)
- Нормализацию найденных компонентов в записи Device с parent/child связями
- Snapshot: отложенную обработку payload обхода через машину состояний
- Контроллер reconcile с очередью и повторами
- CLI и HTTP API

Примеры использования:
    # CLI
    python -m bmc_inventory discover 10.0.0.5 -o payload.json
    python -m bmc_inventory submit 10.0.0.5
    python -m bmc_inventory serve --port 8080

    # Python API
    from bmc_inventory import TopologyWalker, GraphNormalizer, InMemoryRecordStore

    result = TopologyWalker().discover("10.0.0.5", creds)
    report = GraphNormalizer(InMemoryRecordStore()).normalize(result)
"""

__version__ = "0.3.0"

from .core.models import ComponentKind, ComponentRecord, DiscoveryResult, Snapshot, SnapshotPhase
from .core.credentials import Credentials, CredentialsManager
from .discovery.walker import TopologyWalker
from .inventory.normalizer import GraphNormalizer
from .inventory.store import InMemoryRecordStore, FileRecordStore
from .reconcile.snapshot import SnapshotReconciler

__all__ = [
    "__version__",
    "ComponentKind",
    "ComponentRecord",
    "DiscoveryResult",
    "Snapshot",
    "SnapshotPhase",
    "Credentials",
    "CredentialsManager",
    "TopologyWalker",
    "GraphNormalizer",
    "InMemoryRecordStore",
    "FileRecordStore",
    "SnapshotReconciler",
]
