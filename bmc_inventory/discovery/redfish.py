"""
HTTP клиент Redfish API одного BMC.

Только GET с HTTP Basic Auth, ответы в JSON.
По умолчанию проверка TLS выключена (self-signed сертификаты BMC),
при verify_ssl=False клиент пишет WARNING при создании.

Пример использования:
    with RedfishClient("10.0.0.5", creds) as client:
        systems = client.get_json("/Systems")
        for member in systems["Members"]:
            path = strip_prefix(member["@odata.id"])
"""

import json
from typing import Any, Dict, Optional, Union

import requests

from ..core.context import CancelToken, check_cancelled
from ..core.credentials import Credentials
from ..core.exceptions import RedfishError
from ..core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_PATH = "/redfish/v1"
DEFAULT_TIMEOUT = 30


def strip_prefix(odata_id: str, base_path: str = DEFAULT_BASE_PATH) -> str:
    """
    Убирает /redfish/v1 из @odata.id.

    Args:
        odata_id: Значение @odata.id ("/redfish/v1/Systems/1")
        base_path: Префикс API

    Returns:
        str: Путь относительно base ("/Systems/1")
    """
    if odata_id.startswith(base_path):
        odata_id = odata_id[len(base_path):]
    if not odata_id.startswith("/"):
        odata_id = "/" + odata_id
    return odata_id.rstrip("/") or "/"


class RedfishClient:
    """
    Клиент Redfish API.

    Attributes:
        host: IP или hostname BMC
        base_url: https://<host>/redfish/v1
        timeout: Таймаут одного запроса (сек)
        verify_ssl: Проверять сертификат (bool или путь к CA bundle)
    """

    def __init__(
        self,
        host: str,
        credentials: Credentials,
        verify_ssl: Union[bool, str] = False,
        timeout: int = DEFAULT_TIMEOUT,
        base_path: str = DEFAULT_BASE_PATH,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            host: IP/hostname BMC (можно со схемой: http://bmc-sim:8000)
            credentials: Логин/пароль для Basic Auth
            verify_ssl: True — проверять системный CA,
                        False — не проверять (по умолчанию для BMC),
                        "/path/to/ca.pem" — свой CA.
            timeout: Таймаут запроса
            base_path: Корень Redfish API
            session: Готовая requests.Session (для тестов)
        """
        self.host = host
        self.base_path = base_path.rstrip("/")
        if host.startswith(("http://", "https://")):
            self.base_url = host.rstrip("/") + self.base_path
        else:
            self.base_url = f"https://{host}{self.base_path}"
        self.timeout = timeout
        self.verify_ssl = verify_ssl

        self._session = session or requests.Session()
        self._session.auth = credentials.as_auth()
        self._session.headers.update({"Accept": "application/json"})
        self._session.verify = verify_ssl

        if verify_ssl is False:
            import urllib3
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            logger.warning(
                "Проверка TLS сертификата BMC отключена (self-signed)",
                endpoint=host,
            )

    def url_for(self, path: str) -> str:
        """Полный URL для пути относительно /redfish/v1."""
        return self.base_url + strip_prefix(path, self.base_path)

    def get(self, path: str, cancel: Optional[CancelToken] = None) -> bytes:
        """
        Аутентифицированный GET.

        Args:
            path: Путь относительно /redfish/v1 (или полный @odata.id)
            cancel: Сигнал отмены

        Returns:
            bytes: Тело ответа

        Raises:
            RedfishError: Сеть, таймаут, статус не 200
            OperationCancelledError: Запрошена отмена
        """
        check_cancelled(cancel, f"GET {path}")
        url = self.url_for(path)

        try:
            resp = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RedfishError(
                f"Redfish request failed for {url}",
                endpoint=self.host,
                path=path,
                cause=e,
            )

        if resp.status_code != 200:
            raise RedfishError(
                f"Redfish API returned status code {resp.status_code} for {url}",
                endpoint=self.host,
                path=path,
                status_code=resp.status_code,
            )

        logger.debug(f"GET {url}: {len(resp.content)} байт")
        return resp.content

    def get_json(self, path: str, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        """
        GET + разбор JSON объекта.

        Raises:
            RedfishError: Тело не JSON объект
        """
        body = self.get(path, cancel=cancel)
        try:
            data = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise RedfishError(
                f"Failed to decode JSON from {path}",
                endpoint=self.host,
                path=path,
                cause=e,
            )
        if not isinstance(data, dict):
            raise RedfishError(
                f"Expected JSON object from {path}, got {type(data).__name__}",
                endpoint=self.host,
                path=path,
            )
        return data

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "RedfishClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
