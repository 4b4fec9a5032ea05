"""
Record Store - хранилище ресурсов inventory.

Использует Repository pattern: ядро (нормализатор, reconcile) работает
только через интерфейс RecordStore и не знает, где лежат данные.

Реализации:
- InMemoryRecordStore: словарь в памяти (тесты, одноразовый запуск)
- FileRecordStore: JSON файл на ресурс в <data_dir>/<kind>/
- InventoryApiClient: удалённый inventory API (см. api_client.py)

Форма ресурса одинакова для всех kind:
    {"metadata": {"uid", "name", "createdAt", "externalKey"?},
     "spec": {...},
     "status": {...}}

Идемпотентное создание: если в fields передан externalKey и запись
того же kind с таким ключом уже есть, create() возвращает её uid.
"""

import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core.exceptions import PersistenceError
from ..core.logging import get_logger
from ..core.models import (
    DEVICE_KIND,
    DEVICE_UID_PREFIX,
    SNAPSHOT_KIND,
    SNAPSHOT_UID_PREFIX,
    utcnow,
    new_uid,
)

logger = get_logger(__name__)

# kind → префикс uid для create()
UID_PREFIXES = {
    SNAPSHOT_KIND: SNAPSHOT_UID_PREFIX,
    DEVICE_KIND: DEVICE_UID_PREFIX,
}

EXTERNAL_KEY_FIELD = "externalKey"


def _build_resource(uid: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Новый ресурс из полей create()."""
    metadata = {
        "uid": uid,
        "name": fields.get("name") or uid,
        "createdAt": utcnow(),
    }
    if fields.get(EXTERNAL_KEY_FIELD):
        metadata[EXTERNAL_KEY_FIELD] = fields[EXTERNAL_KEY_FIELD]
    spec = {k: v for k, v in fields.items() if k not in ("name", EXTERNAL_KEY_FIELD)}
    return {"metadata": metadata, "spec": spec, "status": {}}


# =============================================================================
# Repository Interface
# =============================================================================

class RecordStore(ABC):
    """Абстрактное хранилище записей."""

    @abstractmethod
    def save(self, kind: str, uid: str, data: bytes) -> None:
        """Записывает ресурс целиком (перезапись)."""
        pass

    @abstractmethod
    def load(self, kind: str, uid: str) -> Optional[bytes]:
        """Читает сохранённый ресурс. None если записи нет."""
        pass

    @abstractmethod
    def create(self, kind: str, fields: Dict[str, Any]) -> str:
        """Создаёт запись, возвращает uid."""
        pass

    @abstractmethod
    def update_status(self, kind: str, uid: str, status: Dict[str, Any]) -> None:
        """Заменяет status записи."""
        pass

    @abstractmethod
    def list(self, kind: str) -> List[Dict[str, Any]]:
        """Все записи kind в виде словарей."""
        pass

    def load_json(self, kind: str, uid: str) -> Optional[Dict[str, Any]]:
        """load() + json.loads (битые записи → None)."""
        data = self.load(kind, uid)
        if data is None:
            return None
        try:
            return json.loads(data)
        except (ValueError, UnicodeDecodeError):
            logger.warning(f"{kind}/{uid}: сохранённая запись не JSON")
            return None

    def _find_by_external_key(self, kind: str, key: str) -> Optional[str]:
        for item in self.list(kind):
            metadata = item.get("metadata") or {}
            if metadata.get(EXTERNAL_KEY_FIELD) == key:
                return metadata.get("uid")
        return None


# =============================================================================
# In-Memory Implementation
# =============================================================================

class InMemoryRecordStore(RecordStore):
    """
    Хранилище в памяти.

    Потокобезопасно: контроллер вызывает reconcile из нескольких потоков.

    Example:
        store = InMemoryRecordStore()
        uid = store.create("Device", {"name": "CPU-123"})
        store.update_status("Device", uid, {"deviceType": "CPU"})
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, bytes]] = {}
        self._keys: Dict[str, Dict[str, str]] = {}
        self._lock = threading.RLock()
        # Счётчик записей (save/create/update_status) для проверок в тестах
        self.writes = 0

    def save(self, kind: str, uid: str, data: bytes) -> None:
        with self._lock:
            self._data.setdefault(kind, {})[uid] = bytes(data)
            self.writes += 1

    def load(self, kind: str, uid: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(kind, {}).get(uid)

    def create(self, kind: str, fields: Dict[str, Any]) -> str:
        with self._lock:
            key = fields.get(EXTERNAL_KEY_FIELD)
            if key:
                existing = self._keys.get(kind, {}).get(key)
                if existing:
                    logger.debug(f"{kind} {key}: уже существует ({existing})")
                    return existing

            uid = new_uid(UID_PREFIXES.get(kind, kind.lower()))
            while uid in self._data.get(kind, {}):
                uid = new_uid(UID_PREFIXES.get(kind, kind.lower()))
            resource = _build_resource(uid, fields)
            self._data.setdefault(kind, {})[uid] = json.dumps(resource).encode("utf-8")
            if key:
                self._keys.setdefault(kind, {})[key] = uid
            self.writes += 1
            return uid

    def update_status(self, kind: str, uid: str, status: Dict[str, Any]) -> None:
        with self._lock:
            resource = self.load_json(kind, uid)
            if resource is None:
                raise PersistenceError(f"{kind} not found", uid=uid)
            resource["status"] = dict(status)
            self._data[kind][uid] = json.dumps(resource).encode("utf-8")
            self.writes += 1

    def list(self, kind: str) -> List[Dict[str, Any]]:
        with self._lock:
            uids = list(self._data.get(kind, {}))
        items = []
        for uid in uids:
            resource = self.load_json(kind, uid)
            if resource is not None:
                items.append(resource)
        return items


# =============================================================================
# JSON File Implementation
# =============================================================================

class FileRecordStore(RecordStore):
    """
    Хранилище на JSON файлах: <data_dir>/<kind>/<uid>.json.

    Запись через временный файл + os.replace.
    """

    def __init__(self, data_dir: Union[str, Path] = "./data"):
        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()

    def _kind_dir(self, kind: str) -> Path:
        return self.data_dir / kind

    def _path(self, kind: str, uid: str) -> Path:
        return self._kind_dir(kind) / f"{uid}.json"

    def _write(self, kind: str, uid: str, data: bytes) -> None:
        path = self._path(kind, uid)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {kind}", uid=uid, cause=e)

    def save(self, kind: str, uid: str, data: bytes) -> None:
        with self._lock:
            self._write(kind, uid, data)

    def load(self, kind: str, uid: str) -> Optional[bytes]:
        path = self._path(kind, uid)
        if not path.exists():
            return None
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise PersistenceError(f"Failed to read {kind}", uid=uid, cause=e)

    def create(self, kind: str, fields: Dict[str, Any]) -> str:
        with self._lock:
            key = fields.get(EXTERNAL_KEY_FIELD)
            if key:
                existing = self._find_by_external_key(kind, key)
                if existing:
                    logger.debug(f"{kind} {key}: уже существует ({existing})")
                    return existing

            uid = new_uid(UID_PREFIXES.get(kind, kind.lower()))
            while self._path(kind, uid).exists():
                uid = new_uid(UID_PREFIXES.get(kind, kind.lower()))
            resource = _build_resource(uid, fields)
            self._write(kind, uid, json.dumps(resource, ensure_ascii=False, indent=2).encode("utf-8"))
            return uid

    def update_status(self, kind: str, uid: str, status: Dict[str, Any]) -> None:
        with self._lock:
            resource = self.load_json(kind, uid)
            if resource is None:
                raise PersistenceError(f"{kind} not found", uid=uid)
            resource["status"] = dict(status)
            self._write(kind, uid, json.dumps(resource, ensure_ascii=False, indent=2).encode("utf-8"))

    def list(self, kind: str) -> List[Dict[str, Any]]:
        kind_dir = self._kind_dir(kind)
        if not kind_dir.exists():
            return []
        items = []
        for path in sorted(kind_dir.glob("*.json")):
            resource = self.load_json(kind, path.stem)
            if resource is not None:
                items.append(resource)
        return items
