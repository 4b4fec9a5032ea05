"""
Сборка компонентов из конфигурации и общие операции для CLI и API.

InventoryService связывает хранилище, машину состояний и (опционально)
контроллер. CLI использует его синхронно, HTTP API через контроллер.

Пример использования:
    config = load_config()
    service = InventoryService.from_config(config)
    snapshot = service.submit_payload(result.to_payload())
    service.reconcile(snapshot.id)
"""

from typing import Any, Dict, List, Optional

from .config import Config
from .core.context import CancelToken
from .core.exceptions import ConfigError, InvalidResourceError
from .core.logging import get_logger
from .core.models import DEVICE_KIND, SNAPSHOT_KIND, DeviceRecord, Snapshot
from .discovery.walker import TopologyWalker
from .inventory.api_client import InventoryApiClient
from .inventory.normalizer import GraphNormalizer
from .inventory.store import FileRecordStore, InMemoryRecordStore, RecordStore
from .reconcile.controller import SnapshotController, reconcile_until_done
from .reconcile.ingest import SnapshotIngestor
from .reconcile.snapshot import ReconcileResult, SnapshotReconciler

logger = get_logger(__name__)


def build_store(config: Config) -> RecordStore:
    """
    Создаёт хранилище по storage.backend.

    Raises:
        ConfigError: Неизвестный backend
    """
    backend = config.storage.backend
    if backend == "memory":
        return InMemoryRecordStore()
    if backend == "file":
        return FileRecordStore(config.storage.data_dir)
    if backend == "api":
        return InventoryApiClient(
            url=config.inventory_api.url,
            timeout=config.inventory_api.timeout,
        )
    raise ConfigError(f"Unknown storage backend: {backend}", key="storage.backend")


def build_walker(config: Config) -> TopologyWalker:
    return TopologyWalker(
        verify_ssl=config.redfish.verify_ssl,
        timeout=config.redfish.timeout,
        base_path=config.redfish.base_path,
    )


def build_reconciler(store: RecordStore, config: Config) -> SnapshotReconciler:
    ingestor = SnapshotIngestor(GraphNormalizer(store))
    return SnapshotReconciler(
        store,
        ingestor,
        requeue_delay=config.controller.requeue_delay,
    )


def build_controller(reconciler: SnapshotReconciler, config: Config) -> SnapshotController:
    return SnapshotController(
        reconciler,
        workers=config.controller.workers,
        max_retries=config.controller.max_retries,
        retry_delay=config.controller.retry_delay,
    )


class InventoryService:
    """
    Операции над snapshot и устройствами.

    Attributes:
        store: Хранилище записей
        reconciler: Машина состояний snapshot
        controller: Очередь reconcile (None для синхронного режима)
    """

    def __init__(
        self,
        store: RecordStore,
        reconciler: SnapshotReconciler,
        controller: Optional[SnapshotController] = None,
    ):
        self.store = store
        self.reconciler = reconciler
        self.controller = controller

    @classmethod
    def from_config(cls, config: Config, with_controller: bool = False) -> "InventoryService":
        store = build_store(config)
        reconciler = build_reconciler(store, config)
        controller = build_controller(reconciler, config) if with_controller else None
        return cls(store, reconciler, controller)

    def submit_payload(self, raw_payload: bytes, name: str = "") -> Snapshot:
        """
        Сохраняет новый snapshot без фазы и ставит в очередь (если есть контроллер).
        """
        snapshot = Snapshot.create(raw_payload, name=name)
        while self.store.load(SNAPSHOT_KIND, snapshot.id) is not None:
            snapshot = Snapshot.create(raw_payload, name=name)
        self.store.save(SNAPSHOT_KIND, snapshot.id, snapshot.to_json())
        logger.info(f"Snapshot {snapshot.id} создан ({len(raw_payload)} байт)", snapshot=snapshot.id)
        if self.controller is not None:
            self.controller.enqueue(snapshot.id)
        return snapshot

    def get_snapshot(self, uid: str) -> Snapshot:
        """
        Raises:
            InvalidResourceError: Нет такого snapshot
        """
        return self.reconciler.load(uid)

    def list_snapshots(self) -> List[Snapshot]:
        snapshots = []
        for item in self.store.list(SNAPSHOT_KIND):
            uid = (item.get("metadata") or {}).get("uid")
            try:
                snapshots.append(Snapshot.from_dict(item, uid=uid))
            except InvalidResourceError as e:
                logger.warning(f"Пропуск записи {uid}: {e}")
        snapshots.sort(key=lambda s: s.created_at)
        return snapshots

    def list_devices(self) -> List[DeviceRecord]:
        devices = [DeviceRecord.from_dict(item) for item in self.store.list(DEVICE_KIND)]
        devices.sort(key=lambda d: d.created_at)
        return devices

    def trigger(self, uid: str) -> None:
        """
        Ставит существующий snapshot в очередь контроллера.

        Raises:
            InvalidResourceError: Нет такого snapshot
        """
        self.get_snapshot(uid)
        if self.controller is None:
            raise RuntimeError("Controller is not configured")
        self.controller.enqueue(uid)

    def reconcile(self, uid: str, cancel: Optional[CancelToken] = None) -> ReconcileResult:
        """Синхронно доводит snapshot до терминальной фазы."""
        return reconcile_until_done(self.reconciler, uid, cancel=cancel)

    def stats(self) -> Dict[str, Any]:
        if self.controller is None:
            return {}
        return self.controller.stats.to_dict()
