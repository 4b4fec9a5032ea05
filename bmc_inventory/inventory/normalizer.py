"""
Нормализация графа обхода в записи Device.

Два прохода по DiscoveryResult:
1. Корни (записи без родителя): create + update_status, индекс uid по source_uri
2. Вложенные: поиск uid родителя, parentID в status, create + update_status

Проход 1 полностью завершается до начала прохода 2, поэтому к моменту
создания CPU/DIMM uid их Node уже известен.

Пример использования:
    normalizer = GraphNormalizer(store)
    report = normalizer.normalize(result, key_prefix=result.endpoint)
    print(report.summary())
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.context import CancelToken, check_cancelled
from ..core.exceptions import NormalizationError
from ..core.logging import get_logger
from ..core.models import DEVICE_KIND, ComponentRecord, DiscoveryResult
from .store import EXTERNAL_KEY_FIELD, RecordStore

logger = get_logger(__name__)


@dataclass
class CreatedDevice:
    """Одна созданная запись Device."""
    kind: str
    name: str
    uid: str
    parent_id: str = ""


@dataclass
class NormalizationReport:
    """
    Итог нормализации.

    Attributes:
        created: Созданные записи (в порядке создания)
        skipped: source_uri вложенных записей без родителя
        log_lines: Строки для Snapshot.logs
    """
    created: List[CreatedDevice] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    log_lines: List[str] = field(default_factory=list)

    @property
    def roots(self) -> List[CreatedDevice]:
        return [d for d in self.created if not d.parent_id]

    @property
    def children(self) -> List[CreatedDevice]:
        return [d for d in self.created if d.parent_id]

    def summary(self) -> str:
        text = f"Created {len(self.roots)} parent and {len(self.children)} child devices"
        if self.skipped:
            text += f", skipped {len(self.skipped)}"
        return text + "."


class GraphNormalizer:
    """
    Записывает граф обхода в хранилище.

    Хранилище передаётся явно: нормализатор не знает, память это,
    файлы или удалённый API.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def normalize(
        self,
        result: DiscoveryResult,
        cancel: Optional[CancelToken] = None,
        key_prefix: str = "",
    ) -> NormalizationReport:
        """
        Создаёт записи Device: сначала корни, затем вложенные.

        Args:
            result: Результат обхода
            cancel: Сигнал отмены (проверяется перед каждой записью)
            key_prefix: Префикс externalKey (обычно адрес BMC). Пустой —
                без идемпотентного создания (каждый вызов создаёт новые записи).

        Returns:
            NormalizationReport

        Raises:
            NormalizationError: create/update_status не удался
            OperationCancelledError: Отмена
        """
        report = NormalizationReport()
        uri_to_uid: Dict[str, str] = {}

        # Проход 1: корни
        for record in result.roots():
            check_cancelled(cancel, "normalize")
            uid = self._post(record, key_prefix)
            uri_to_uid[record.source_uri] = uid
            report.created.append(CreatedDevice(record.kind.value, record.name, uid))
            report.log_lines.append(f"Created parent device {record.name} ({uid})")

        # Проход 2: вложенные
        for record in result.children():
            check_cancelled(cancel, "normalize")
            parent_uri = result.edges[record.source_uri]
            parent_uid = uri_to_uid.get(parent_uri)
            if not parent_uid:
                message = f"Failed to find parent UID for {parent_uri}. Skipping {record.source_uri}."
                logger.warning(message)
                report.skipped.append(record.source_uri)
                report.log_lines.append(message)
                continue

            record.parent_id = parent_uid
            uid = self._post(record, key_prefix)
            report.created.append(
                CreatedDevice(record.kind.value, record.name, uid, parent_uid)
            )
            report.log_lines.append(f"Created child device {record.name} ({uid}) under {parent_uid}")

        logger.info(
            f"Нормализация: создано {len(report.created)}, пропущено {len(report.skipped)}",
            endpoint=result.endpoint,
        )
        return report

    def _post(self, record: ComponentRecord, key_prefix: str) -> str:
        """create + update_status одной записи."""
        fields = {"name": record.name}
        if key_prefix:
            fields[EXTERNAL_KEY_FIELD] = f"{key_prefix}:{record.source_uri}"

        try:
            uid = self.store.create(DEVICE_KIND, fields)
        except Exception as e:
            raise NormalizationError(
                f"Create failed for {record.name}",
                source_uri=record.source_uri,
                kind=record.kind.value,
                cause=e,
            )
        logger.debug(f"-> Создан {record.name} (UID: {uid})")

        try:
            self.store.update_status(DEVICE_KIND, uid, record.to_status())
        except Exception as e:
            raise NormalizationError(
                f"UpdateStatus failed for {record.name}",
                source_uri=record.source_uri,
                kind=record.kind.value,
                cause=e,
            )
        return uid
