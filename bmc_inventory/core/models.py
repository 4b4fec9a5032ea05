"""
Data Models для BMC Inventory.

Типизированные dataclasses вместо Dict[str, Any]:
- ComponentRecord: один найденный компонент (Node, CPU, DIMM...)
- DiscoveryResult: результат одного обхода BMC (записи + рёбра child→parent)
- Snapshot: единица отложенной работы с фазой reconcile
- DeviceRecord: каноническая запись устройства в хранилище

Использование:
    from bmc_inventory.core.models import ComponentRecord, ComponentKind

    record = ComponentRecord(kind=ComponentKind.CPU, source_uri="/Systems/1/Processors/1")
    status = record.to_status()

    # Обратно из payload snapshot
    result = DiscoveryResult.from_payload(snapshot.raw_payload)
"""

import base64
import binascii
import json
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .exceptions import InvalidPayloadError, InvalidResourceError


class ComponentKind(str, Enum):
    """Тип компонента."""
    NODE = "Node"
    CPU = "CPU"
    DIMM = "DIMM"
    RACK = "Rack"
    GPU = "GPU"


class SnapshotPhase(str, Enum):
    """Фаза reconcile для Snapshot."""
    UNSET = ""
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETE = "Complete"
    ERROR = "Error"

    @property
    def is_terminal(self) -> bool:
        return self in (SnapshotPhase.COMPLETE, SnapshotPhase.ERROR)


# Ключ в properties с исходным Redfish путём
REDFISH_URI_PROPERTY = "redfish_uri"

SNAPSHOT_KIND = "DiscoverySnapshot"
DEVICE_KIND = "Device"

# Префиксы ID как в регистрации ресурсов inventory API
SNAPSHOT_UID_PREFIX = "ds"
DEVICE_UID_PREFIX = "dev"


def new_uid(prefix: str) -> str:
    """Генерирует ID вида ds-<32 hex>."""
    return f"{prefix}-{uuid.uuid4().hex}"


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class LazyProperties(Mapping):
    """
    Открытый набор свойств: ключ → JSON значение, декодируемое при чтении.

    Хранит сырой JSON текст по ключу. Неизвестная схема значения не мешает:
    декодируется только то, что реально читают.

    Example:
        props = LazyProperties({"redfish_uri": '"/Systems/1"'})
        props["redfish_uri"]        # "/Systems/1"
        props.raw("redfish_uri")    # '"/Systems/1"'
        props.set("cores", 32)
    """

    def __init__(self, raw: Optional[Dict[str, str]] = None):
        self._raw: Dict[str, str] = dict(raw or {})

    @classmethod
    def from_values(cls, values: Optional[Dict[str, Any]] = None) -> "LazyProperties":
        """Создаёт из уже декодированных значений."""
        props = cls()
        for key, value in (values or {}).items():
            props.set(key, value)
        return props

    def __getitem__(self, key: str) -> Any:
        return json.loads(self._raw[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self._raw)

    def __len__(self) -> int:
        return len(self._raw)

    def set(self, key: str, value: Any) -> None:
        self._raw[key] = json.dumps(value, ensure_ascii=False)

    def raw(self, key: str) -> str:
        """Сырой JSON текст значения."""
        return self._raw[key]

    def to_dict(self) -> Dict[str, Any]:
        """Декодирует все значения."""
        return {key: self[key] for key in self._raw}

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LazyProperties):
            return self._raw == other._raw
        return super().__eq__(other)

    def __repr__(self) -> str:
        return f"LazyProperties({self._raw})"


@dataclass
class CommonProperties:
    """
    Общий блок полей Redfish компонента.

    Attributes:
        manufacturer: Производитель
        model: Модель
        part_number: Part Number
        serial_number: Серийный номер
    """
    manufacturer: str = ""
    model: str = ""
    part_number: str = ""
    serial_number: str = ""


@dataclass
class ComponentRecord:
    """
    Один найденный физический или логический компонент.

    Attributes:
        kind: Тип компонента (Node, CPU, DIMM...)
        source_uri: Redfish путь без префикса /redfish/v1
        manufacturer: Производитель
        part_number: Part Number (или модель если part number пуст)
        serial_number: Серийный номер
        parent_id: ID родительской записи в хранилище (пусто для корней)
        properties: Дополнительные свойства (декодируются при чтении)
    """
    kind: ComponentKind
    source_uri: str = ""
    manufacturer: str = ""
    part_number: str = ""
    serial_number: str = ""
    parent_id: str = ""
    properties: LazyProperties = field(default_factory=LazyProperties)

    @classmethod
    def from_common(
        cls,
        kind: ComponentKind,
        common: CommonProperties,
        source_uri: str,
    ) -> "ComponentRecord":
        """Создаёт запись из общего блока Redfish полей."""
        record = cls(
            kind=kind,
            source_uri=source_uri,
            manufacturer=common.manufacturer or "",
            part_number=common.part_number or common.model or "",
            serial_number=common.serial_number or "",
        )
        record.properties.set(REDFISH_URI_PROPERTY, source_uri)
        return record

    @property
    def name(self) -> str:
        """Имя записи в хранилище: <kind>-<serial>."""
        return f"{self.kind.value}-{self.serial_number}"

    def to_status(self) -> Dict[str, Any]:
        """Поля status канонической записи Device."""
        status: Dict[str, Any] = {"deviceType": self.kind.value}
        if self.manufacturer:
            status["manufacturer"] = self.manufacturer
        if self.part_number:
            status["partNumber"] = self.part_number
        if self.serial_number:
            status["serialNumber"] = self.serial_number
        if self.parent_id:
            status["parentID"] = self.parent_id
        if len(self.properties):
            status["properties"] = self.properties.to_dict()
        return status

    def to_dict(self) -> Dict[str, Any]:
        """Формат записи внутри payload snapshot."""
        return {
            "kind": self.kind.value,
            "manufacturer": self.manufacturer,
            "partNumber": self.part_number,
            "serialNumber": self.serial_number,
            "sourceURI": self.source_uri,
            "parentID": self.parent_id,
            "properties": self.properties.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComponentRecord":
        """
        Создаёт запись из словаря payload.

        Raises:
            InvalidPayloadError: Неизвестный kind или нет sourceURI
        """
        try:
            kind = ComponentKind(data.get("kind") or data.get("deviceType"))
        except ValueError:
            raise InvalidPayloadError(
                f"Unknown component kind: {data.get('kind')!r}",
                details={"sourceURI": data.get("sourceURI")},
            )
        source_uri = data.get("sourceURI") or ""
        if not source_uri:
            raise InvalidPayloadError(f"Component {kind.value} has no sourceURI")

        properties = data.get("properties") or {}
        if not isinstance(properties, dict):
            raise InvalidPayloadError(f"Component {source_uri} has invalid properties")

        return cls(
            kind=kind,
            source_uri=source_uri,
            manufacturer=data.get("manufacturer") or "",
            part_number=data.get("partNumber") or "",
            serial_number=data.get("serialNumber") or "",
            parent_id=data.get("parentID") or "",
            properties=LazyProperties.from_values(properties),
        )


@dataclass
class DiscoveryResult:
    """
    Результат одного обхода BMC.

    Attributes:
        records: Все найденные компоненты (корни и вложенные)
        edges: child source_uri → parent source_uri
        warnings: Тексты некритичных проблем обхода
        endpoint: Хост BMC
    """
    records: List[ComponentRecord] = field(default_factory=list)
    edges: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    endpoint: str = ""

    def roots(self) -> List[ComponentRecord]:
        """Записи без родителя (их source_uri нет среди ключей edges)."""
        return [r for r in self.records if r.source_uri not in self.edges]

    def children(self) -> List[ComponentRecord]:
        return [r for r in self.records if r.source_uri in self.edges]

    def to_payload(self) -> bytes:
        """Сериализует в rawData для Snapshot."""
        data = {
            "endpoint": self.endpoint,
            "devices": [r.to_dict() for r in self.records],
            "edges": dict(self.edges),
            "warnings": list(self.warnings),
        }
        return json.dumps(data, ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_payload(cls, payload: bytes) -> "DiscoveryResult":
        """
        Разбирает rawData snapshot.

        Raises:
            InvalidPayloadError: Не JSON или не та структура
        """
        try:
            data = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as e:
            raise InvalidPayloadError(f"Snapshot payload is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise InvalidPayloadError("Snapshot payload must be a JSON object")

        devices = data.get("devices")
        edges = data.get("edges") or {}
        if not isinstance(devices, list):
            raise InvalidPayloadError("Snapshot payload has no 'devices' list")
        if not isinstance(edges, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in edges.items()
        ):
            raise InvalidPayloadError("Snapshot payload 'edges' must map strings to strings")

        records = []
        for item in devices:
            if not isinstance(item, dict):
                raise InvalidPayloadError("Snapshot payload device entry must be an object")
            records.append(ComponentRecord.from_dict(item))

        return cls(
            records=records,
            edges=dict(edges),
            warnings=[str(w) for w in data.get("warnings") or []],
            endpoint=data.get("endpoint") or "",
        )


@dataclass
class Snapshot:
    """
    Сырой payload обхода, ожидающий reconcile.

    Attributes:
        id: Неизменяемый ID (ds-<hex>)
        raw_payload: Сырые байты payload
        phase: Фаза reconcile
        message: Человекочитаемое описание состояния
        logs: Журнал прогресса (только добавление)
        name: Имя ресурса
        created_at: Время создания (ISO)
    """
    id: str
    raw_payload: bytes
    phase: SnapshotPhase = SnapshotPhase.UNSET
    message: str = ""
    logs: List[str] = field(default_factory=list)
    name: str = ""
    created_at: str = field(default_factory=utcnow)

    @classmethod
    def create(cls, raw_payload: bytes, name: str = "") -> "Snapshot":
        """Новый snapshot без фазы."""
        uid = new_uid(SNAPSHOT_UID_PREFIX)
        return cls(id=uid, raw_payload=raw_payload, name=name or uid)

    def to_dict(self) -> Dict[str, Any]:
        spec: Dict[str, Any] = {}
        try:
            spec["rawData"] = self.raw_payload.decode("utf-8")
        except UnicodeDecodeError:
            spec["rawDataBase64"] = base64.b64encode(self.raw_payload).decode("ascii")

        status: Dict[str, Any] = {"phase": self.phase.value}
        if self.message:
            status["message"] = self.message
        if self.logs:
            status["logs"] = list(self.logs)

        return {
            "metadata": {"uid": self.id, "name": self.name, "createdAt": self.created_at},
            "spec": spec,
            "status": status,
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Any, uid: Optional[str] = None) -> "Snapshot":
        """
        Восстанавливает snapshot из сохранённой формы.

        Raises:
            InvalidResourceError: Форма не совпадает с Snapshot
        """
        if not isinstance(data, dict):
            raise InvalidResourceError("Snapshot resource must be a JSON object", uid=uid)

        metadata = data.get("metadata")
        spec = data.get("spec")
        status = data.get("status") or {}
        if not isinstance(metadata, dict) or not isinstance(metadata.get("uid"), str):
            raise InvalidResourceError("Snapshot resource has no metadata.uid", uid=uid)
        if not isinstance(spec, dict) or not isinstance(status, dict):
            raise InvalidResourceError("Snapshot resource has invalid spec/status", uid=uid)

        if isinstance(spec.get("rawData"), str):
            raw_payload = spec["rawData"].encode("utf-8")
        elif isinstance(spec.get("rawDataBase64"), str):
            try:
                raw_payload = base64.b64decode(spec["rawDataBase64"], validate=True)
            except (binascii.Error, ValueError):
                raise InvalidResourceError("Snapshot spec.rawDataBase64 is not base64", uid=uid)
        else:
            raise InvalidResourceError("Snapshot resource has no spec.rawData", uid=uid)

        try:
            phase = SnapshotPhase(status.get("phase") or "")
        except ValueError:
            raise InvalidResourceError(
                f"Unknown snapshot phase: {status.get('phase')!r}", uid=uid
            )

        logs = status.get("logs") or []
        if not isinstance(logs, list):
            raise InvalidResourceError("Snapshot status.logs must be a list", uid=uid)

        return cls(
            id=metadata["uid"],
            raw_payload=raw_payload,
            phase=phase,
            message=status.get("message") or "",
            logs=[str(line) for line in logs],
            name=metadata.get("name") or metadata["uid"],
            created_at=metadata.get("createdAt") or "",
        )

    @classmethod
    def from_json(cls, data: bytes, uid: Optional[str] = None) -> "Snapshot":
        try:
            decoded = json.loads(data)
        except (ValueError, UnicodeDecodeError) as e:
            raise InvalidResourceError(f"Snapshot resource is not valid JSON: {e}", uid=uid)
        return cls.from_dict(decoded, uid=uid)


@dataclass
class DeviceRecord:
    """
    Каноническая запись устройства в хранилище.

    Attributes:
        uid: ID (dev-<hex>)
        name: Имя (<kind>-<serial>)
        status: Поля status (deviceType, partNumber, parentID...)
        external_key: Ключ идемпотентного создания (если был передан)
        created_at: Время создания (ISO)
    """
    uid: str
    name: str = ""
    status: Dict[str, Any] = field(default_factory=dict)
    external_key: str = ""
    created_at: str = field(default_factory=utcnow)

    @property
    def parent_id(self) -> str:
        return self.status.get("parentID", "")

    def to_dict(self) -> Dict[str, Any]:
        metadata = {"uid": self.uid, "name": self.name, "createdAt": self.created_at}
        if self.external_key:
            metadata["externalKey"] = self.external_key
        return {"metadata": metadata, "spec": {}, "status": dict(self.status)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceRecord":
        metadata = data.get("metadata") or {}
        return cls(
            uid=metadata.get("uid", ""),
            name=metadata.get("name", ""),
            status=dict(data.get("status") or {}),
            external_key=metadata.get("externalKey", ""),
            created_at=metadata.get("createdAt", ""),
        )
