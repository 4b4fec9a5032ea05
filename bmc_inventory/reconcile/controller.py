"""
SnapshotController - очередь reconcile с исключением по uid.

Гарантии:
- один uid никогда не обрабатывается двумя потоками одновременно
- uid уже в очереди не добавляется повторно
- trigger во время обработки помечает uid как dirty: после завершения
  он будет обработан ещё раз (один раз, сколько бы trigger не пришло)
- requeue_after из ReconcileResult → threading.Timer; пока таймер uid
  не сработал, trigger и dirty-проход для него не ставят uid в очередь
- stats.errors хранит последние max_errors ошибок
- retryable ошибки (PersistenceError, сетевые RedfishError) повторяются
  с экспоненциальной задержкой, не больше max_retries раз
- InvalidResourceError и прочие ошибки не повторяются

Usage:
    controller = SnapshotController(reconciler, workers=2)
    controller.start()
    controller.enqueue("ds-1a2b3c4d")
    controller.wait_idle(timeout=10)
    controller.stop()
"""

import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from ..core.context import CancelToken
from ..core.exceptions import (
    InvalidResourceError,
    OperationCancelledError,
    format_error_for_log,
    is_retryable,
)
from ..core.logging import get_logger
from .snapshot import ReconcileResult, SnapshotReconciler

logger = get_logger(__name__)

_STOP = object()

# Сколько последних ошибок держать в stats.errors
MAX_ERRORS = 100


@dataclass
class ControllerStats:
    """Счётчики контроллера."""
    reconciled: int = 0
    requeued: int = 0
    retried: int = 0
    failed: int = 0
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "reconciled": self.reconciled,
            "requeued": self.requeued,
            "retried": self.retried,
            "failed": self.failed,
            "errors": dict(self.errors),
        }


class SnapshotController:
    """
    Пул потоков, вызывающих SnapshotReconciler.reconcile.

    Attributes:
        reconciler: Машина состояний snapshot
        workers: Количество потоков
        max_retries: Максимум повторов для retryable ошибок
        retry_delay: Базовая задержка повтора (сек), удваивается на каждой попытке
        cancel: Общий токен отмены всех reconcile в работе
        max_errors: Сколько последних ошибок хранить в stats.errors
    """

    def __init__(
        self,
        reconciler: SnapshotReconciler,
        workers: int = 2,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        cancel: Optional[CancelToken] = None,
        max_errors: int = MAX_ERRORS,
    ):
        self.reconciler = reconciler
        self.workers = max(1, workers)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.cancel = cancel or CancelToken()
        self.max_errors = max(1, max_errors)
        self.stats = ControllerStats()

        self._queue: "queue.Queue" = queue.Queue()
        self._queued: Set[str] = set()
        self._running: Set[str] = set()
        self._dirty: Set[str] = set()
        self._attempts: Dict[str, int] = {}
        self._timers: Set[threading.Timer] = set()
        self._delayed: Set[str] = set()
        self._threads: List[threading.Thread] = []
        self._cond = threading.Condition()
        self._started = False

    # === Lifecycle ===

    def start(self) -> None:
        """Запускает потоки обработки."""
        with self._cond:
            if self._started:
                return
            self._started = True

        logger.info(f"Запуск контроллера snapshot ({self.workers} потоков)")
        for i in range(self.workers):
            thread = threading.Thread(
                target=self._worker,
                name=f"snapshot-worker-{i}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Отменяет reconcile в работе, таймеры и останавливает потоки."""
        logger.info("Остановка контроллера snapshot...")
        self.cancel.cancel()

        with self._cond:
            timers = list(self._timers)
            self._timers.clear()
            self._delayed.clear()
            self._cond.notify_all()
        for timer in timers:
            timer.cancel()

        for _ in self._threads:
            self._queue.put(_STOP)
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Контроллер snapshot остановлен")

    @property
    def stopped(self) -> bool:
        return self.cancel.cancelled

    # === Queue ===

    def enqueue(self, uid: str, delay: Optional[float] = None) -> None:
        """
        Ставит uid в очередь.

        Args:
            uid: ID snapshot
            delay: Отложить на delay секунд (через threading.Timer)
        """
        if self.stopped:
            return

        if delay:
            self._schedule(uid, delay)
            return

        with self._cond:
            # отложенный uid поставит в очередь его таймер
            if uid in self._delayed:
                return
            if uid in self._running:
                self._dirty.add(uid)
                return
            if uid in self._queued:
                return
            self._queued.add(uid)
            self._queue.put(uid)
            self._cond.notify_all()

    def _schedule(self, uid: str, delay: float) -> None:
        timer = threading.Timer(delay, self._fire, args=(uid,))
        timer.daemon = True
        timer.args = (uid, timer)
        with self._cond:
            if self.stopped or uid in self._delayed:
                return
            self._timers.add(timer)
            self._delayed.add(uid)
        timer.start()

    def _fire(self, uid: str, timer: threading.Timer) -> None:
        # Condition на RLock: enqueue под тем же локом, что и discard таймера
        with self._cond:
            self._timers.discard(timer)
            self._delayed.discard(uid)
            self.enqueue(uid)
            self._cond.notify_all()

    def is_idle(self) -> bool:
        """Нет задач в очереди, в работе и в таймерах."""
        with self._cond:
            return not (self._queued or self._running or self._timers)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Ждёт пока контроллер не опустеет.

        Returns:
            bool: True если дождались, False по таймауту
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._queued or self._running or self._timers:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    # === Worker ===

    def _worker(self) -> None:
        while True:
            uid = self._queue.get()
            if uid is _STOP:
                return

            with self._cond:
                self._queued.discard(uid)
                self._running.add(uid)

            try:
                self._reconcile_one(uid)
            finally:
                with self._cond:
                    self._running.discard(uid)
                    if uid in self._dirty:
                        self._dirty.discard(uid)
                        self.enqueue(uid)
                    self._cond.notify_all()

    def _reconcile_one(self, uid: str) -> None:
        log = logger.bind(snapshot=uid, operation="reconcile")
        try:
            result = self.reconciler.reconcile(uid, cancel=self.cancel)
        except OperationCancelledError:
            log.info(f"Reconcile {uid} отменён")
            return
        except InvalidResourceError as e:
            log.error(f"Snapshot {uid} не обрабатывается: {format_error_for_log(e)}")
            self._record_failure(uid, e)
            return
        except Exception as e:
            if is_retryable(e):
                self._retry(uid, e)
            else:
                log.exception(f"Reconcile {uid} завершился ошибкой: {format_error_for_log(e)}")
                self._record_failure(uid, e)
            return

        with self._cond:
            self._attempts.pop(uid, None)
            self.stats.reconciled += 1
            self.stats.errors.pop(uid, None)

        self._handle_result(uid, result)

    def _handle_result(self, uid: str, result: ReconcileResult) -> None:
        if result.requeue_after is not None:
            with self._cond:
                self.stats.requeued += 1
            self.enqueue(uid, delay=result.requeue_after or None)

    def _retry(self, uid: str, error: Exception) -> None:
        with self._cond:
            attempt = self._attempts.get(uid, 0) + 1
            self._attempts[uid] = attempt

        if attempt > self.max_retries:
            logger.error(
                f"Reconcile {uid}: исчерпано {self.max_retries} повторов: {format_error_for_log(error)}",
                snapshot=uid,
            )
            self._record_failure(uid, error)
            with self._cond:
                self._attempts.pop(uid, None)
            return

        delay = self.retry_delay * (2 ** (attempt - 1))
        logger.warning(
            f"Reconcile {uid}: {format_error_for_log(error)}, повтор {attempt}/{self.max_retries} через {delay}s",
            snapshot=uid,
        )
        with self._cond:
            self.stats.retried += 1
        self.enqueue(uid, delay=delay)

    def _record_failure(self, uid: str, error: Exception) -> None:
        with self._cond:
            self.stats.failed += 1
            self.stats.errors.pop(uid, None)
            self.stats.errors[uid] = format_error_for_log(error)
            while len(self.stats.errors) > self.max_errors:
                del self.stats.errors[next(iter(self.stats.errors))]


def reconcile_until_done(
    reconciler: SnapshotReconciler,
    uid: str,
    cancel: Optional[CancelToken] = None,
    max_steps: int = 10,
) -> ReconcileResult:
    """
    Синхронно прогоняет snapshot до терминальной фазы (для CLI).

    Между шагами ждёт requeue_after. Ошибки reconcile не перехватываются.
    """
    cancel = cancel or CancelToken()
    result = ReconcileResult()
    for _ in range(max_steps):
        result = reconciler.reconcile(uid, cancel=cancel)
        if result.requeue_after is None:
            return result
        if cancel.wait(result.requeue_after):
            raise OperationCancelledError(operation=f"reconcile {uid}")
    return result
