"""
Тесты HTTP API: health, snapshots, devices.
"""

import asyncio
import json
import time

import httpx

from bmc_inventory.api.main import create_app
from bmc_inventory.inventory.normalizer import GraphNormalizer
from bmc_inventory.inventory.store import InMemoryRecordStore
from bmc_inventory.reconcile.ingest import SnapshotIngestor
from bmc_inventory.reconcile.snapshot import SnapshotReconciler
from bmc_inventory.services import InventoryService


def _wait(service, timeout=5):
    assert service.controller.wait_idle(timeout=timeout)


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["storage"] == "InMemoryRecordStore"
        assert data["controller"]["reconciled"] == 0

    def test_root(self, client):
        assert client.get("/").json()["name"] == "BMC Inventory API"


class TestSnapshots:

    def test_create_and_process(self, client, service, discovery_result):
        payload = json.loads(discovery_result.to_payload())

        response = client.post("/api/snapshots", json={"rawData": payload, "name": "node01"})

        assert response.status_code == 202
        created = response.json()
        assert created["uid"].startswith("ds-")
        assert created["name"] == "node01"
        assert created["phase"] == ""
        assert "createdAt" in created

        _wait(service)
        snapshot = client.get(f"/api/snapshots/{created['uid']}").json()
        assert snapshot["phase"] == "Complete"
        assert snapshot["message"] == "Snapshot processed successfully."
        assert snapshot["logs"][-1] == "Created 1 parent and 2 child devices."

    def test_raw_data_as_string(self, client, service, discovery_result):
        raw = discovery_result.to_payload().decode("utf-8")

        uid = client.post("/api/snapshots", json={"rawData": raw}).json()["uid"]

        _wait(service)
        assert client.get(f"/api/snapshots/{uid}").json()["phase"] == "Complete"

    def test_invalid_payload_goes_error(self, client, service):
        uid = client.post("/api/snapshots", json={"rawData": "definitely not json"}).json()["uid"]

        _wait(service)
        snapshot = client.get(f"/api/snapshots/{uid}").json()
        assert snapshot["phase"] == "Error"
        assert snapshot["message"].startswith("Snapshot processing failed")

    def test_missing_raw_data(self, client):
        assert client.post("/api/snapshots", json={"name": "x"}).status_code == 422

    def test_list(self, client, service, discovery_result):
        payload = json.loads(discovery_result.to_payload())
        client.post("/api/snapshots", json={"rawData": payload})
        client.post("/api/snapshots", json={"rawData": payload})
        _wait(service)

        data = client.get("/api/snapshots").json()
        assert data["total"] == 2
        assert {s["phase"] for s in data["snapshots"]} == {"Complete"}

    def test_get_unknown(self, client):
        response = client.get("/api/snapshots/ds-ffffffff")

        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"

    def test_reconcile_complete_is_noop(self, client, service, discovery_result):
        payload = json.loads(discovery_result.to_payload())
        uid = client.post("/api/snapshots", json={"rawData": payload}).json()["uid"]
        _wait(service)
        writes = service.store.writes

        response = client.post(f"/api/snapshots/{uid}/reconcile")

        assert response.status_code == 202
        assert response.json() == {"uid": uid, "queued": True}
        _wait(service)
        assert service.store.writes == writes

    def test_reconcile_unknown(self, client):
        assert client.post("/api/snapshots/ds-ffffffff/reconcile").status_code == 404

    def test_reconcile_without_controller(self, sync_client, discovery_result):
        payload = json.loads(discovery_result.to_payload())
        uid = sync_client.post("/api/snapshots", json={"rawData": payload}).json()["uid"]

        response = sync_client.post(f"/api/snapshots/{uid}/reconcile")

        assert response.status_code == 503
        # без контроллера snapshot остаётся без фазы
        assert sync_client.get(f"/api/snapshots/{uid}").json()["phase"] == ""


class TestDevices:

    def test_list_and_filters(self, client, service, discovery_result):
        payload = json.loads(discovery_result.to_payload())
        client.post("/api/snapshots", json={"rawData": payload})
        _wait(service)

        devices = client.get("/api/devices").json()
        assert devices["total"] == 3

        node = client.get("/api/devices", params={"device_type": "Node"}).json()["devices"][0]
        assert node["name"] == "Node-SYS-0001"
        assert node["parentID"] == ""

        children = client.get("/api/devices", params={"parent_id": node["uid"]}).json()
        assert children["total"] == 2
        assert {d["deviceType"] for d in children["devices"]} == {"CPU"}

    def test_empty(self, client):
        assert client.get("/api/devices").json() == {"devices": [], "total": 0}


class SlowListStore(InMemoryRecordStore):
    """list() как у медленного удалённого хранилища."""

    delay = 0.4

    def list(self, kind):
        time.sleep(self.delay)
        return super().list(kind)


class TestConcurrency:
    """Вызовы хранилища не блокируют event loop."""

    def test_parallel_requests(self):
        store = SlowListStore()
        service = InventoryService(
            store, SnapshotReconciler(store, SnapshotIngestor(GraphNormalizer(store)))
        )
        app = create_app(service=service)
        # lifespan через ASGITransport не запускается
        app.state.service = service
        paths = ["/api/devices", "/api/devices", "/api/snapshots"]

        async def fetch_all():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                return await asyncio.gather(*(http.get(p) for p in paths))

        start = time.monotonic()
        responses = asyncio.run(fetch_all())
        elapsed = time.monotonic() - start

        assert [r.status_code for r in responses] == [200, 200, 200]
        # последовательно было бы 3 * delay
        assert elapsed < 2 * SlowListStore.delay
