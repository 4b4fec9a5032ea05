"""
Pytest configuration и общие fixtures для тестов.

Предоставляет переиспользуемые fixtures:
- redfish_tree: Ответы Redfish API одного BMC (path → JSON)
- fake_session / make_walker: Обход без сети
- memory_store: InMemoryRecordStore
- reconciler: SnapshotReconciler поверх memory_store
- discovery_result: Готовый DiscoveryResult (1 Node + 2 CPU)
"""

import copy
import json
from typing import Any, Dict, List

import pytest

from bmc_inventory.core.credentials import Credentials
from bmc_inventory.core.models import ComponentKind, ComponentRecord, DiscoveryResult
from bmc_inventory.discovery.redfish import RedfishClient
from bmc_inventory.discovery.walker import TopologyWalker
from bmc_inventory.inventory.normalizer import GraphNormalizer
from bmc_inventory.inventory.store import InMemoryRecordStore
from bmc_inventory.reconcile.ingest import SnapshotIngestor
from bmc_inventory.reconcile.snapshot import SnapshotReconciler


REDFISH_TREE: Dict[str, Any] = {
    "/Systems": {
        "@odata.id": "/redfish/v1/Systems",
        "Members": [{"@odata.id": "/redfish/v1/Systems/1"}],
    },
    "/Systems/1": {
        "@odata.id": "/redfish/v1/Systems/1",
        "Manufacturer": "Dell Inc.",
        "Model": "PowerEdge R750",
        "PartNumber": "",
        "SerialNumber": "SYS-0001",
        "HostName": "node01",
        "PowerState": "On",
        "Processors": {"@odata.id": "/redfish/v1/Systems/1/Processors"},
        "Memory": {"@odata.id": "/redfish/v1/Systems/1/Memory"},
    },
    "/Systems/1/Processors": {
        "Members": [
            {"@odata.id": "/redfish/v1/Systems/1/Processors/1"},
            {"@odata.id": "/redfish/v1/Systems/1/Processors/2"},
        ],
    },
    "/Systems/1/Processors/1": {
        "Manufacturer": "Intel(R) Corporation",
        "Model": "Xeon Gold 6338",
        "PartNumber": "",
        "SerialNumber": "CPU-A",
        "Socket": "CPU.Socket.1",
        "TotalCores": 32,
        "TotalThreads": 64,
    },
    "/Systems/1/Processors/2": {
        "Manufacturer": "Intel(R) Corporation",
        "Model": "Xeon Gold 6338",
        "PartNumber": "",
        "SerialNumber": "CPU-B",
        "Socket": "CPU.Socket.2",
        "TotalCores": 32,
        "TotalThreads": 64,
    },
    "/Systems/1/Memory": {
        "Members": [{"@odata.id": "/redfish/v1/Systems/1/Memory/DIMM1"}],
    },
    "/Systems/1/Memory/DIMM1": {
        "Manufacturer": "Samsung",
        "Model": "",
        "PartNumber": "M393A4K40DB3-CWE",
        "SerialNumber": "DIMM-0001",
        "CapacityMiB": 32768,
        "DeviceLocator": "A1",
    },
}


class FakeResponse:
    """Минимальный ответ requests для RedfishClient."""

    def __init__(self, status_code: int, content: bytes = b""):
        self.status_code = status_code
        self.content = content


class FakeRedfishSession:
    """
    Подмена requests.Session: отвечает из словаря path → JSON.

    Значение в routes:
    - dict/list → 200 + JSON
    - bytes → 200 + сырое тело
    - int → пустой ответ с этим статусом
    - Exception → выбрасывается из get()
    Отсутствующий путь → 404.
    """

    def __init__(self, routes: Dict[str, Any]):
        self.routes = routes
        self.headers: Dict[str, str] = {}
        self.auth = None
        self.verify = True
        self.requested: List[str] = []
        self.closed = False

    def get(self, url: str, timeout=None):
        path = url.split("/redfish/v1", 1)[1]
        self.requested.append(path)
        value = self.routes.get(path)
        if value is None:
            return FakeResponse(404)
        if isinstance(value, Exception):
            raise value
        if isinstance(value, int):
            return FakeResponse(value)
        if isinstance(value, bytes):
            return FakeResponse(200, value)
        return FakeResponse(200, json.dumps(value).encode("utf-8"))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def redfish_tree() -> Dict[str, Any]:
    """Копия дерева Redfish (можно менять в тесте)."""
    return copy.deepcopy(REDFISH_TREE)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username="root", password="calvin")


@pytest.fixture
def make_session():
    """Фабрика FakeRedfishSession для своего набора ответов."""
    return FakeRedfishSession


@pytest.fixture
def fake_session(redfish_tree) -> FakeRedfishSession:
    return FakeRedfishSession(redfish_tree)


@pytest.fixture
def make_walker():
    """
    Фабрика TopologyWalker поверх FakeRedfishSession.

    Usage:
        walker = make_walker(session)
        result = walker.discover("10.0.0.5", credentials)
    """
    def _make(session: FakeRedfishSession) -> TopologyWalker:
        def factory(host, creds, **kwargs):
            return RedfishClient(host, creds, session=session, **kwargs)
        return TopologyWalker(client_factory=factory)
    return _make


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def reconciler(memory_store) -> SnapshotReconciler:
    ingestor = SnapshotIngestor(GraphNormalizer(memory_store))
    return SnapshotReconciler(memory_store, ingestor, requeue_delay=1.0)


@pytest.fixture
def discovery_result() -> DiscoveryResult:
    """1 система и 2 CPU в ней."""
    system = ComponentRecord(
        kind=ComponentKind.NODE,
        source_uri="/Systems/1",
        manufacturer="Dell Inc.",
        part_number="PowerEdge R750",
        serial_number="SYS-0001",
    )
    cpu1 = ComponentRecord(
        kind=ComponentKind.CPU,
        source_uri="/Systems/1/Processors/1",
        manufacturer="Intel(R) Corporation",
        part_number="Xeon Gold 6338",
        serial_number="CPU-A",
    )
    cpu2 = ComponentRecord(
        kind=ComponentKind.CPU,
        source_uri="/Systems/1/Processors/2",
        manufacturer="Intel(R) Corporation",
        part_number="Xeon Gold 6338",
        serial_number="CPU-B",
    )
    return DiscoveryResult(
        # Дочерние записи идут первыми: порядок в списке не важен
        records=[cpu1, system, cpu2],
        edges={
            "/Systems/1/Processors/1": "/Systems/1",
            "/Systems/1/Processors/2": "/Systems/1",
        },
        endpoint="10.0.0.5",
    )
