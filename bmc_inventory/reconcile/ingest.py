"""
Обработка payload snapshot: разбор + нормализация.

Шаг фазы Processing. Разбирает rawData как DiscoveryResult и пишет
граф в хранилище через GraphNormalizer.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..core.context import CancelToken
from ..core.exceptions import EmptyResultError
from ..core.logging import get_logger
from ..core.models import DiscoveryResult, Snapshot
from ..inventory.normalizer import GraphNormalizer, NormalizationReport

logger = get_logger(__name__)


@dataclass
class IngestResult:
    """Итог обработки одного snapshot."""
    summary: str
    log_lines: List[str] = field(default_factory=list)
    report: Optional[NormalizationReport] = None


class SnapshotIngestor:
    """
    Превращает rawData snapshot в записи Device.

    Example:
        ingestor = SnapshotIngestor(GraphNormalizer(store))
        outcome = ingestor.ingest(snapshot)
    """

    def __init__(self, normalizer: GraphNormalizer):
        self.normalizer = normalizer

    def ingest(self, snapshot: Snapshot, cancel: Optional[CancelToken] = None) -> IngestResult:
        """
        Raises:
            InvalidPayloadError: rawData не payload обхода
            EmptyResultError: В payload нет ни одной записи
            NormalizationError: Запись в хранилище не удалась
            OperationCancelledError: Отмена
        """
        result = DiscoveryResult.from_payload(snapshot.raw_payload)
        if not result.records:
            raise EmptyResultError(
                "Snapshot payload contains no devices",
                endpoint=result.endpoint or None,
            )

        log_lines = [
            f"Parsed {len(result.records)} devices from {result.endpoint or 'unknown endpoint'}."
        ]
        log_lines.extend(f"Discovery warning: {w}" for w in result.warnings)

        # externalKey = <endpoint>:<source_uri>: один BMC → одни и те же Device
        key_prefix = result.endpoint or snapshot.id
        report = self.normalizer.normalize(result, cancel=cancel, key_prefix=key_prefix)
        log_lines.extend(report.log_lines)

        logger.debug(f"{snapshot.id}: {report.summary()}", snapshot=snapshot.id)
        return IngestResult(summary=report.summary(), log_lines=log_lines, report=report)
