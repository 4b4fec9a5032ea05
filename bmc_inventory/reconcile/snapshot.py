"""
Машина состояний Snapshot.

Фазы:
    ""          → Pending    (save, requeue через requeue_delay)
    Pending     → Processing (save, продолжаем в том же вызове)
    Processing  → Complete | Error (ingest, save)
    Complete/Error → no-op, ни одной записи в хранилище

Каждый вызов заново читает snapshot из хранилища и ничего не держит
в памяти между вызовами. Повторный вызов на любой фазе безопасен.

Ошибки:
- PersistenceError: save не удался, фаза считается прежней, нужен retry
- InvalidResourceError: запись не Snapshot, retry бесполезен
- OperationCancelledError: отмена, фаза остаётся как сохранена
- ошибки обработки payload → фаза Error, исключение не выбрасывается

Пример использования:
    reconciler = SnapshotReconciler(store, SnapshotIngestor(GraphNormalizer(store)))
    result = reconciler.reconcile("ds-1a2b3c4d")
    if result.requeue_after:
        schedule(uid, result.requeue_after)
"""

from dataclasses import dataclass
from typing import Optional

from ..core.context import CancelToken, check_cancelled
from ..core.exceptions import (
    InventoryError,
    InvalidResourceError,
    OperationCancelledError,
    PersistenceError,
    format_error_for_log,
)
from ..core.logging import get_logger
from ..core.models import SNAPSHOT_KIND, Snapshot, SnapshotPhase
from ..inventory.store import RecordStore
from .ingest import SnapshotIngestor

logger = get_logger(__name__)

MESSAGE_QUEUED = "Snapshot queued for processing."
MESSAGE_STARTED = "Reconciliation started."
MESSAGE_COMPLETE = "Snapshot processed successfully."
MESSAGE_FAILED = "Snapshot processing failed"


@dataclass
class ReconcileResult:
    """Итог одного вызова reconcile."""
    requeue_after: Optional[float] = None
    phase: SnapshotPhase = SnapshotPhase.UNSET

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


class SnapshotReconciler:
    """
    Reconcile одного Snapshot по его uid.

    Не защищает от параллельного reconcile одного и того же uid:
    это обязанность вызывающего (SnapshotController).
    """

    def __init__(
        self,
        store: RecordStore,
        ingestor: SnapshotIngestor,
        requeue_delay: float = 1.0,
    ):
        self.store = store
        self.ingestor = ingestor
        self.requeue_delay = requeue_delay

    @property
    def kind(self) -> str:
        return SNAPSHOT_KIND

    def load(self, uid: str) -> Snapshot:
        """
        Читает snapshot из хранилища.

        Raises:
            InvalidResourceError: Записи нет или она не в форме Snapshot
        """
        data = self.store.load(SNAPSHOT_KIND, uid)
        if data is None:
            raise InvalidResourceError("Snapshot not found", uid=uid)
        return Snapshot.from_json(data, uid=uid)

    def _save(self, snapshot: Snapshot) -> None:
        try:
            self.store.save(SNAPSHOT_KIND, snapshot.id, snapshot.to_json())
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(
                f"Failed to update status to {snapshot.phase.value}",
                uid=snapshot.id,
                phase=snapshot.phase.value,
                cause=e,
            )

    def reconcile(self, uid: str, cancel: Optional[CancelToken] = None) -> ReconcileResult:
        """
        Один шаг машины состояний.

        Args:
            uid: ID snapshot
            cancel: Сигнал отмены

        Returns:
            ReconcileResult: requeue_after задан только после перехода в Pending

        Raises:
            PersistenceError: Запись фазы не удалась
            InvalidResourceError: Ресурс не Snapshot
            OperationCancelledError: Отмена
        """
        check_cancelled(cancel, f"reconcile {uid}")
        snapshot = self.load(uid)
        log = logger.bind(snapshot=uid)
        log.info(f"Reconcile snapshot {uid} (фаза: {snapshot.phase.value or '<unset>'})")

        if snapshot.phase.is_terminal:
            log.info(f"Snapshot {uid} уже обработан, пропуск")
            return ReconcileResult(phase=snapshot.phase)

        if snapshot.phase == SnapshotPhase.UNSET:
            # Создатель мог ещё не дописать ресурс: только отметка и повтор позже
            snapshot.phase = SnapshotPhase.PENDING
            snapshot.message = MESSAGE_QUEUED
            self._save(snapshot)
            log.info(f"Новый snapshot {uid}: Pending, повтор через {self.requeue_delay}s")
            return ReconcileResult(requeue_after=self.requeue_delay, phase=snapshot.phase)

        if snapshot.phase == SnapshotPhase.PENDING:
            snapshot.phase = SnapshotPhase.PROCESSING
            snapshot.message = MESSAGE_STARTED
            self._save(snapshot)

        return self._process(snapshot, cancel)

    def _process(self, snapshot: Snapshot, cancel: Optional[CancelToken]) -> ReconcileResult:
        """Фаза Processing: ingest и финальная фаза."""
        log = logger.bind(snapshot=snapshot.id, phase=snapshot.phase.value)

        try:
            outcome = self.ingestor.ingest(snapshot, cancel=cancel)
        except OperationCancelledError:
            log.warning(f"Обработка {snapshot.id} отменена, фаза не изменена")
            raise
        except InventoryError as e:
            log.error(f"Обработка {snapshot.id} не удалась: {format_error_for_log(e)}")
            snapshot.phase = SnapshotPhase.ERROR
            snapshot.message = f"{MESSAGE_FAILED}: {e.message}"
            snapshot.logs.append(f"Error: {format_error_for_log(e)}")
            self._save(snapshot)
            return ReconcileResult(phase=snapshot.phase)

        snapshot.logs.extend(outcome.log_lines)
        snapshot.logs.append(outcome.summary)
        snapshot.phase = SnapshotPhase.COMPLETE
        snapshot.message = MESSAGE_COMPLETE
        self._save(snapshot)

        log.info(f"Snapshot {snapshot.id} обработан: {outcome.summary}")
        return ReconcileResult(phase=snapshot.phase)
