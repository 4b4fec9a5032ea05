"""Reconcile snapshot: обработка payload, машина состояний, контроллер."""

from .ingest import SnapshotIngestor, IngestResult
from .snapshot import SnapshotReconciler, ReconcileResult
from .controller import SnapshotController, ControllerStats, reconcile_until_done

__all__ = [
    "SnapshotIngestor",
    "IngestResult",
    "SnapshotReconciler",
    "ReconcileResult",
    "SnapshotController",
    "ControllerStats",
    "reconcile_until_done",
]
