"""
Тесты SnapshotController и reconcile_until_done.
"""

import threading
import time
from unittest.mock import MagicMock

import pytest

from bmc_inventory.core.context import CancelToken
from bmc_inventory.core.exceptions import (
    InvalidResourceError,
    OperationCancelledError,
    PersistenceError,
)
from bmc_inventory.core.models import DEVICE_KIND, SNAPSHOT_KIND, Snapshot, SnapshotPhase
from bmc_inventory.inventory.normalizer import GraphNormalizer
from bmc_inventory.reconcile.controller import SnapshotController, reconcile_until_done
from bmc_inventory.reconcile.ingest import SnapshotIngestor
from bmc_inventory.reconcile.snapshot import ReconcileResult, SnapshotReconciler


@pytest.fixture
def fast_reconciler(memory_store):
    ingestor = SnapshotIngestor(GraphNormalizer(memory_store))
    return SnapshotReconciler(memory_store, ingestor, requeue_delay=0.01)


@pytest.fixture
def controller(fast_reconciler):
    controller = SnapshotController(fast_reconciler, workers=2, max_retries=2, retry_delay=0.01)
    controller.start()
    yield controller
    controller.stop(timeout=2)


def _save_snapshot(store, payload):
    snapshot = Snapshot.create(payload)
    store.save(SNAPSHOT_KIND, snapshot.id, snapshot.to_json())
    return snapshot.id


class TestSnapshotController:

    def test_end_to_end(self, controller, fast_reconciler, memory_store, discovery_result):
        uid = _save_snapshot(memory_store, discovery_result.to_payload())

        controller.enqueue(uid)

        assert controller.wait_idle(timeout=5)
        assert fast_reconciler.load(uid).phase == SnapshotPhase.COMPLETE
        assert len(memory_store.list(DEVICE_KIND)) == 3
        assert controller.stats.requeued == 1
        assert controller.stats.reconciled == 2

    def test_many_snapshots(self, controller, fast_reconciler, memory_store, discovery_result):
        uids = [_save_snapshot(memory_store, discovery_result.to_payload()) for _ in range(5)]

        for uid in uids:
            controller.enqueue(uid)

        assert controller.wait_idle(timeout=10)
        assert all(fast_reconciler.load(uid).phase == SnapshotPhase.COMPLETE for uid in uids)
        # один и тот же BMC → одни и те же Device
        assert len(memory_store.list(DEVICE_KIND)) == 3

    def test_duplicate_enqueue(self, controller, fast_reconciler, memory_store, discovery_result):
        uid = _save_snapshot(memory_store, discovery_result.to_payload())

        for _ in range(10):
            controller.enqueue(uid)

        assert controller.wait_idle(timeout=5)
        assert len(memory_store.list(DEVICE_KIND)) == 3

    def test_invalid_resource_not_retried(self, controller):
        controller.enqueue("ds-ffffffff")

        assert controller.wait_idle(timeout=5)
        assert controller.stats.failed == 1
        assert controller.stats.retried == 0
        assert "ds-ffffffff" in controller.stats.errors

    def test_enqueue_after_stop_ignored(self, fast_reconciler):
        controller = SnapshotController(fast_reconciler)
        controller.start()
        controller.stop(timeout=2)

        controller.enqueue("ds-00000001")
        assert controller.is_idle()
        assert controller.stopped


class TestRetries:

    def test_retryable_error_is_retried(self):
        reconciler = MagicMock()
        reconciler.reconcile.side_effect = [
            PersistenceError("write failed", uid="ds-1"),
            ReconcileResult(phase=SnapshotPhase.COMPLETE),
        ]
        controller = SnapshotController(reconciler, workers=1, max_retries=3, retry_delay=0.01)
        controller.start()
        try:
            controller.enqueue("ds-1")
            assert controller.wait_idle(timeout=5)
        finally:
            controller.stop(timeout=2)

        assert reconciler.reconcile.call_count == 2
        assert controller.stats.retried == 1
        assert controller.stats.failed == 0

    def test_retries_exhausted(self):
        reconciler = MagicMock()
        reconciler.reconcile.side_effect = PersistenceError("write failed", uid="ds-1")
        controller = SnapshotController(reconciler, workers=1, max_retries=2, retry_delay=0.01)
        controller.start()
        try:
            controller.enqueue("ds-1")
            assert controller.wait_idle(timeout=5)
        finally:
            controller.stop(timeout=2)

        # первая попытка + 2 повтора
        assert reconciler.reconcile.call_count == 3
        assert controller.stats.retried == 2
        assert controller.stats.failed == 1

    def test_unexpected_error_not_retried(self):
        reconciler = MagicMock()
        reconciler.reconcile.side_effect = RuntimeError("bug")
        controller = SnapshotController(reconciler, workers=1, retry_delay=0.01)
        controller.start()
        try:
            controller.enqueue("ds-1")
            assert controller.wait_idle(timeout=5)
        finally:
            controller.stop(timeout=2)

        assert reconciler.reconcile.call_count == 1
        assert controller.stats.failed == 1


class TestExclusion:

    def test_same_uid_never_concurrent(self):
        """Trigger во время обработки: второй проход после первого, не параллельно."""
        started = threading.Event()
        release = threading.Event()
        active = []
        max_active = []

        def slow_reconcile(uid, cancel=None):
            active.append(uid)
            max_active.append(len(active))
            started.set()
            release.wait(2)
            active.remove(uid)
            return ReconcileResult(phase=SnapshotPhase.COMPLETE)

        reconciler = MagicMock()
        reconciler.reconcile.side_effect = slow_reconcile
        controller = SnapshotController(reconciler, workers=4)
        controller.start()
        try:
            controller.enqueue("ds-1")
            assert started.wait(2)
            controller.enqueue("ds-1")
            controller.enqueue("ds-1")
            release.set()
            assert controller.wait_idle(timeout=5)
        finally:
            controller.stop(timeout=2)

        assert max(max_active) == 1
        # dirty-проход ровно один, сколько бы trigger не пришло
        assert reconciler.reconcile.call_count == 2

    def test_trigger_keeps_requeue_delay(self):
        """Trigger во время шага с requeue_after: следующий проход только по таймеру."""
        started = threading.Event()
        release = threading.Event()
        calls = []

        def reconcile(uid, cancel=None):
            calls.append(time.monotonic())
            if len(calls) == 1:
                started.set()
                release.wait(2)
                return ReconcileResult(phase=SnapshotPhase.PENDING, requeue_after=0.3)
            return ReconcileResult(phase=SnapshotPhase.COMPLETE)

        reconciler = MagicMock()
        reconciler.reconcile.side_effect = reconcile
        controller = SnapshotController(reconciler, workers=2)
        controller.start()
        try:
            controller.enqueue("ds-1")
            assert started.wait(2)
            controller.enqueue("ds-1")
            released_at = time.monotonic()
            release.set()

            time.sleep(0.1)
            assert reconciler.reconcile.call_count == 1
            # trigger пока ждёт таймер тоже не ускоряет проход
            controller.enqueue("ds-1")
            assert controller.wait_idle(timeout=5)
        finally:
            controller.stop(timeout=2)

        assert reconciler.reconcile.call_count == 2
        assert calls[1] - released_at >= 0.25


class TestErrorStats:

    def test_errors_are_capped(self):
        controller = SnapshotController(MagicMock(), max_errors=3)

        for i in range(5):
            controller._record_failure(f"ds-{i}", RuntimeError(f"bug {i}"))

        assert controller.stats.failed == 5
        assert list(controller.stats.errors) == ["ds-2", "ds-3", "ds-4"]

    def test_repeated_uid_moves_to_end(self):
        controller = SnapshotController(MagicMock(), max_errors=2)

        controller._record_failure("ds-1", RuntimeError("first"))
        controller._record_failure("ds-2", RuntimeError("bug"))
        controller._record_failure("ds-1", RuntimeError("second"))
        controller._record_failure("ds-3", RuntimeError("bug"))

        assert list(controller.stats.errors) == ["ds-1", "ds-3"]
        assert "second" in controller.stats.errors["ds-1"]


class TestReconcileUntilDone:

    def test_runs_to_terminal_phase(self, fast_reconciler, memory_store, discovery_result):
        uid = _save_snapshot(memory_store, discovery_result.to_payload())

        result = reconcile_until_done(fast_reconciler, uid)

        assert result.phase == SnapshotPhase.COMPLETE
        assert fast_reconciler.load(uid).phase == SnapshotPhase.COMPLETE

    def test_cancel_while_waiting(self, memory_store, discovery_result):
        reconciler = SnapshotReconciler(
            memory_store,
            SnapshotIngestor(GraphNormalizer(memory_store)),
            requeue_delay=30.0,
        )
        uid = _save_snapshot(memory_store, discovery_result.to_payload())
        cancel = CancelToken()
        threading.Timer(0.05, cancel.cancel).start()

        with pytest.raises(OperationCancelledError):
            reconcile_until_done(reconciler, uid, cancel=cancel)
        assert reconciler.load(uid).phase == SnapshotPhase.PENDING

    def test_errors_propagate(self, reconciler):
        with pytest.raises(InvalidResourceError):
            reconcile_until_done(reconciler, "ds-ffffffff")
