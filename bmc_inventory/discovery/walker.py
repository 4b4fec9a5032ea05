"""
Обход топологии Redfish одного BMC.

Иерархия ровно двухуровневая:
    /Systems                      (коллекция, корень обхода)
    └── /Systems/1                (Node)
        ├── /Systems/1/Processors (коллекция) → CPU
        └── /Systems/1/Memory     (коллекция) → DIMM

Политика ошибок:
- /Systems недоступен или не разбирается → DiscoveryError (весь обход)
- система, коллекция или отдельный компонент не получены → warning, ветка
  пропускается, обход продолжается
- ноль записей → EmptyResultError

Пример использования:
    walker = TopologyWalker(verify_ssl=False, timeout=30)
    result = walker.discover("10.0.0.5", creds)
    payload = result.to_payload()
"""

import warnings
from typing import Callable, List, Optional, Tuple, Union

from ..core.context import CancelToken
from ..core.credentials import Credentials
from ..core.exceptions import (
    DecodeWarning,
    DiscoveryError,
    EmptyResultError,
    InvalidPayloadError,
    RedfishError,
    format_error_for_log,
)
from ..core.logging import get_logger
from ..core.models import ComponentKind, ComponentRecord, DiscoveryResult
from .payloads import decode_collection, decode_component
from .redfish import DEFAULT_BASE_PATH, RedfishClient, strip_prefix

logger = get_logger(__name__)

SYSTEMS_PATH = "/Systems"

ClientFactory = Callable[..., RedfishClient]


class TopologyWalker:
    """
    Обходчик Redfish топологии.

    Не хранит состояния между вызовами discover(): на каждый вызов
    новый клиент и новый результат.

    Attributes:
        verify_ssl: Проверка TLS (по умолчанию выключена для BMC)
        timeout: Таймаут одного запроса
    """

    # Вложенные коллекции системы: атрибут SystemSpecific → тип компонента
    NESTED_COLLECTIONS: List[Tuple[str, ComponentKind]] = [
        ("processors", ComponentKind.CPU),
        ("memory", ComponentKind.DIMM),
    ]

    def __init__(
        self,
        verify_ssl: Union[bool, str] = False,
        timeout: int = 30,
        base_path: str = DEFAULT_BASE_PATH,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Args:
            verify_ssl: Проверять сертификат BMC
            timeout: Таймаут запроса (сек)
            base_path: Корень Redfish API
            client_factory: Фабрика RedfishClient (для тестов)
        """
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.base_path = base_path
        self._client_factory = client_factory or RedfishClient

    def discover(
        self,
        endpoint: str,
        credentials: Credentials,
        cancel: Optional[CancelToken] = None,
    ) -> DiscoveryResult:
        """
        Обходит BMC и возвращает плоский список компонентов с рёбрами.

        Args:
            endpoint: IP/hostname BMC
            credentials: Логин/пароль
            cancel: Сигнал отмены (проверяется перед каждым запросом)

        Returns:
            DiscoveryResult: Записи, рёбра child→parent, предупреждения

        Raises:
            DiscoveryError: /Systems недоступен или не разбирается
            EmptyResultError: Не найдено ни одного компонента
            OperationCancelledError: Обход отменён
        """
        result = DiscoveryResult(endpoint=endpoint)
        log = logger.bind(endpoint=endpoint, operation="discover")

        client = self._client_factory(
            endpoint,
            credentials,
            verify_ssl=self.verify_ssl,
            timeout=self.timeout,
            base_path=self.base_path,
        )
        with client:
            try:
                systems = decode_collection(client.get_json(SYSTEMS_PATH, cancel=cancel), SYSTEMS_PATH)
            except (RedfishError, InvalidPayloadError) as e:
                raise DiscoveryError(
                    "Failed to get Systems collection",
                    endpoint=endpoint,
                    cause=e,
                )

            log.info(f"Redfish: найдено систем: {len(systems.members)}")

            for member in systems.members:
                system_uri = strip_prefix(member.odata_id, client.base_path)
                self._walk_system(client, system_uri, result, cancel)

        if not result.records:
            raise EmptyResultError("Redfish discovery found no devices", endpoint=endpoint)

        log.info(
            f"Обход завершён: записей={len(result.records)}, "
            f"вложенных={len(result.edges)}, предупреждений={len(result.warnings)}"
        )
        return result

    def _warn(self, result: DiscoveryResult, message: str) -> None:
        """Некритичная проблема: в лог и в result.warnings."""
        logger.warning(message, endpoint=result.endpoint)
        result.warnings.append(message)
        warnings.warn(message, DecodeWarning, stacklevel=3)

    def _walk_system(
        self,
        client: RedfishClient,
        system_uri: str,
        result: DiscoveryResult,
        cancel: Optional[CancelToken],
    ) -> None:
        """Node + его вложенные коллекции."""
        try:
            decoded = decode_component(
                ComponentKind.NODE, client.get_json(system_uri, cancel=cancel), system_uri
            )
        except (RedfishError, InvalidPayloadError) as e:
            self._warn(result, f"Failed to get inventory for system {system_uri}: {format_error_for_log(e)}")
            return

        node = ComponentRecord.from_common(ComponentKind.NODE, decoded.common, system_uri)
        for key, value in decoded.specific_properties().items():
            node.properties.set(key, value)
        result.records.append(node)

        for attr, kind in self.NESTED_COLLECTIONS:
            link = getattr(decoded.specific, attr)
            if link is None or not link.odata_id:
                continue
            collection_uri = strip_prefix(link.odata_id, client.base_path)
            for record in self._walk_collection(client, collection_uri, kind, result, cancel):
                result.records.append(record)
                result.edges[record.source_uri] = system_uri

    def _walk_collection(
        self,
        client: RedfishClient,
        collection_uri: str,
        kind: ComponentKind,
        result: DiscoveryResult,
        cancel: Optional[CancelToken],
    ) -> List[ComponentRecord]:
        """Члены одной вложенной коллекции; битые пропускаются."""
        try:
            collection = decode_collection(client.get_json(collection_uri, cancel=cancel), collection_uri)
        except (RedfishError, InvalidPayloadError) as e:
            self._warn(
                result,
                f"Failed to retrieve {kind.value} inventory from {collection_uri}: {format_error_for_log(e)}",
            )
            return []

        records = []
        for member in collection.members:
            member_uri = strip_prefix(member.odata_id, client.base_path)
            try:
                decoded = decode_component(kind, client.get_json(member_uri, cancel=cancel), member_uri)
            except (RedfishError, InvalidPayloadError) as e:
                self._warn(result, f"Failed to decode component {member_uri}: {format_error_for_log(e)}")
                continue

            record = ComponentRecord.from_common(kind, decoded.common, member_uri)
            for key, value in decoded.specific_properties().items():
                record.properties.set(key, value)
            records.append(record)

        logger.debug(f"{collection_uri}: {kind.value} найдено {len(records)}", endpoint=result.endpoint)
        return records
