"""Fixtures для API тестов.

Приложение собирается на InMemoryRecordStore с быстрым контроллером:
requeue_delay 10 мс, чтобы snapshot доходил до Complete за доли секунды.

Требует: pip install fastapi uvicorn httpx
"""

import pytest

pytest.importorskip("fastapi", reason="fastapi not installed, skipping API tests")

from fastapi.testclient import TestClient

from bmc_inventory.api.main import create_app
from bmc_inventory.inventory.normalizer import GraphNormalizer
from bmc_inventory.inventory.store import InMemoryRecordStore
from bmc_inventory.reconcile.controller import SnapshotController
from bmc_inventory.reconcile.ingest import SnapshotIngestor
from bmc_inventory.reconcile.snapshot import SnapshotReconciler
from bmc_inventory.services import InventoryService


@pytest.fixture
def service():
    store = InMemoryRecordStore()
    reconciler = SnapshotReconciler(
        store,
        SnapshotIngestor(GraphNormalizer(store)),
        requeue_delay=0.01,
    )
    controller = SnapshotController(reconciler, workers=2, retry_delay=0.01)
    return InventoryService(store, reconciler, controller)


@pytest.fixture
def client(service):
    """TestClient с запущенным lifespan (контроллер стартует и останавливается)."""
    with TestClient(create_app(service=service)) as test_client:
        yield test_client


@pytest.fixture
def sync_client():
    """Приложение без контроллера: reconcile только синхронно."""
    store = InMemoryRecordStore()
    reconciler = SnapshotReconciler(store, SnapshotIngestor(GraphNormalizer(store)))
    service = InventoryService(store, reconciler)
    with TestClient(create_app(service=service)) as test_client:
        yield test_client
