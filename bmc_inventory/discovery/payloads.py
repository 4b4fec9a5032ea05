"""
Pydantic схемы Redfish ответов и декодирование компонентов.

Каждый компонент Redfish декодируется как пара {common, specific}:
- common: общий блок (Manufacturer, Model, PartNumber, SerialNumber)
- specific: поля конкретного типа (ядра CPU, объём DIMM...)

Тип выбирается явно по ComponentKind, который передаёт вызывающий код
(Processors → CPU, Memory → DIMM), а не по содержимому ответа.

Пример использования:
    decoded = decode_component(ComponentKind.CPU, processor_json)
    decoded.common.serial_number
    decoded.specific.total_cores
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.exceptions import InvalidPayloadError
from ..core.models import CommonProperties, ComponentKind


class RedfishModel(BaseModel):
    """База для Redfish схем: PascalCase алиасы, лишние поля игнорируются."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Link(RedfishModel):
    """Ссылка на ресурс ({"@odata.id": "/redfish/v1/..."})."""
    odata_id: str = Field(alias="@odata.id")


class RedfishCollection(RedfishModel):
    """Конверт коллекции: {"Members": [{"@odata.id": ...}, ...]}."""
    members: List[Link] = Field(alias="Members")


class CommonBlock(RedfishModel):
    """Общий блок полей любого компонента."""
    manufacturer: Optional[str] = Field(default=None, alias="Manufacturer")
    model: Optional[str] = Field(default=None, alias="Model")
    part_number: Optional[str] = Field(default=None, alias="PartNumber")
    serial_number: Optional[str] = Field(default=None, alias="SerialNumber")

    def to_common(self) -> CommonProperties:
        return CommonProperties(
            manufacturer=self.manufacturer or "",
            model=self.model or "",
            part_number=self.part_number or "",
            serial_number=self.serial_number or "",
        )


class SystemSpecific(RedfishModel):
    """ComputerSystem: ссылки на вложенные коллекции и пара полей узла."""
    processors: Optional[Link] = Field(default=None, alias="Processors")
    memory: Optional[Link] = Field(default=None, alias="Memory")
    host_name: Optional[str] = Field(default=None, alias="HostName")
    power_state: Optional[str] = Field(default=None, alias="PowerState")


class ProcessorSpecific(RedfishModel):
    """Processor."""
    socket: Optional[str] = Field(default=None, alias="Socket")
    processor_type: Optional[str] = Field(default=None, alias="ProcessorType")
    total_cores: Optional[int] = Field(default=None, alias="TotalCores")
    total_threads: Optional[int] = Field(default=None, alias="TotalThreads")
    max_speed_mhz: Optional[int] = Field(default=None, alias="MaxSpeedMHz")


class MemorySpecific(RedfishModel):
    """Memory (DIMM)."""
    device_locator: Optional[str] = Field(default=None, alias="DeviceLocator")
    capacity_mib: Optional[int] = Field(default=None, alias="CapacityMiB")
    memory_device_type: Optional[str] = Field(default=None, alias="MemoryDeviceType")
    operating_speed_mhz: Optional[int] = Field(default=None, alias="OperatingSpeedMhz")


class EmptySpecific(RedfishModel):
    """Тип без собственных полей."""
    pass


# Тип компонента → схема его собственных полей
SPECIFIC_SCHEMAS: Dict[ComponentKind, Type[RedfishModel]] = {
    ComponentKind.NODE: SystemSpecific,
    ComponentKind.CPU: ProcessorSpecific,
    ComponentKind.DIMM: MemorySpecific,
    ComponentKind.GPU: ProcessorSpecific,
    ComponentKind.RACK: EmptySpecific,
}


@dataclass
class DecodedComponent:
    """Результат декодирования: общий блок + поля типа."""
    kind: ComponentKind
    common: CommonProperties
    specific: RedfishModel

    def specific_properties(self) -> Dict[str, Any]:
        """Скалярные поля типа для ComponentRecord.properties."""
        data = self.specific.model_dump(exclude_none=True)
        return {k: v for k, v in data.items() if not isinstance(v, dict)}


def _format_validation_error(e: ValidationError) -> str:
    errors = e.errors()
    if not errors:
        return str(e)
    first = errors[0]
    loc = ".".join(str(x) for x in first.get("loc", []))
    return f"{loc}: {first.get('msg', 'invalid value')}"


def decode_collection(data: Any, path: str = "") -> RedfishCollection:
    """
    Декодирует конверт коллекции.

    Raises:
        InvalidPayloadError: Нет Members или элементы без @odata.id
    """
    try:
        return RedfishCollection.model_validate(data)
    except ValidationError as e:
        raise InvalidPayloadError(
            f"Invalid Redfish collection {path}: {_format_validation_error(e)}"
        )


def decode_component(kind: ComponentKind, data: Any, path: str = "") -> DecodedComponent:
    """
    Декодирует компонент заданного типа.

    Args:
        kind: Тип компонента (выбирает схему specific)
        data: JSON объект компонента
        path: Redfish путь (для сообщения об ошибке)

    Returns:
        DecodedComponent

    Raises:
        InvalidPayloadError: Общий блок или поля типа не разбираются
    """
    schema = SPECIFIC_SCHEMAS[kind]
    try:
        common = CommonBlock.model_validate(data)
        specific = schema.model_validate(data)
    except ValidationError as e:
        raise InvalidPayloadError(
            f"Invalid {kind.value} payload {path}: {_format_validation_error(e)}"
        )
    return DecodedComponent(kind=kind, common=common.to_common(), specific=specific)
