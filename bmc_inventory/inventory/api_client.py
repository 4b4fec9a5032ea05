"""
Клиент удалённого inventory API.

Реализует RecordStore поверх REST:
    POST /devices                      — создать Device ({"name", "externalKey"?})
    PUT  /devices/{uid}/status         — обновить status ({"status": {...}})
    GET  /devices                      — список Device
    GET  /discoverysnapshots/{uid}     — прочитать Snapshot
    PUT  /discoverysnapshots/{uid}     — создать или перезаписать Snapshot целиком
    GET  /discoverysnapshots           — список Snapshot

Любая сетевая ошибка или неожиданный статус → PersistenceError.

Пример использования:
    client = InventoryApiClient(url="http://inventory:8081")
    uid = client.create("Device", {"name": "CPU-123"})
    client.update_status("Device", uid, {"deviceType": "CPU"})
"""

from typing import Any, Dict, List, Optional, Union

import requests

from ..core.exceptions import PersistenceError
from ..core.logging import get_logger
from ..core.models import DEVICE_KIND, SNAPSHOT_KIND
from .store import RecordStore

logger = get_logger(__name__)

# kind → коллекция REST API
RESOURCE_PATHS = {
    DEVICE_KIND: "devices",
    SNAPSHOT_KIND: "discoverysnapshots",
}


class InventoryApiClient(RecordStore):
    """
    RecordStore поверх inventory REST API.

    Attributes:
        url: Базовый URL API (http://inventory:8081)
        timeout: Таймаут запроса
        verify_ssl: Проверять сертификат (bool или путь к CA bundle)
    """

    def __init__(
        self,
        url: str,
        timeout: int = 30,
        verify_ssl: Union[bool, str] = True,
        session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.verify_ssl = verify_ssl

        self._session = session or requests.Session()
        self._session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        self._session.verify = verify_ssl

    def _collection_url(self, kind: str) -> str:
        try:
            return f"{self.url}/{RESOURCE_PATHS[kind]}"
        except KeyError:
            raise PersistenceError(f"Unsupported resource kind: {kind}")

    def _request(
        self,
        method: str,
        url: str,
        uid: Optional[str] = None,
        expected: tuple = (200, 201, 204),
        **kwargs: Any,
    ) -> requests.Response:
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise PersistenceError(f"{method} {url} failed", uid=uid, cause=e)

        if resp.status_code not in expected:
            raise PersistenceError(
                f"{method} {url} returned status code {resp.status_code}",
                uid=uid,
            )
        return resp

    def _json(self, resp: requests.Response, uid: Optional[str] = None) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise PersistenceError(f"Invalid JSON from {resp.url}", uid=uid, cause=e)

    def save(self, kind: str, uid: str, data: bytes) -> None:
        url = f"{self._collection_url(kind)}/{uid}"
        self._request("PUT", url, uid=uid, data=data)
        logger.debug(f"PUT {url}")

    def load(self, kind: str, uid: str) -> Optional[bytes]:
        url = f"{self._collection_url(kind)}/{uid}"
        resp = self._request("GET", url, uid=uid, expected=(200, 404))
        if resp.status_code == 404:
            return None
        return resp.content

    def create(self, kind: str, fields: Dict[str, Any]) -> str:
        url = self._collection_url(kind)
        resp = self._request("POST", url, json=fields)
        data = self._json(resp)

        uid = None
        if isinstance(data, dict):
            metadata = data.get("metadata") or {}
            uid = metadata.get("uid") or data.get("uid")
        if not uid:
            raise PersistenceError(f"POST {url}: response has no uid")

        logger.debug(f"{kind} создан: {fields.get('name', '')} ({uid})")
        return uid

    def update_status(self, kind: str, uid: str, status: Dict[str, Any]) -> None:
        url = f"{self._collection_url(kind)}/{uid}/status"
        self._request("PUT", url, uid=uid, json={"status": status})

    def list(self, kind: str) -> List[Dict[str, Any]]:
        resp = self._request("GET", self._collection_url(kind))
        data = self._json(resp)
        if isinstance(data, dict):
            data = data.get("items") or []
        if not isinstance(data, list):
            raise PersistenceError(f"Unexpected list response for {kind}")
        return [item for item in data if isinstance(item, dict)]

    def close(self) -> None:
        self._session.close()
