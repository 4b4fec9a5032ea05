"""Devices routes - канонические записи Device."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..schemas import DeviceListResponse, DeviceResponse
from .deps import get_service, run_in_executor
from ...services import InventoryService

router = APIRouter()


@router.get(
    "",
    response_model=DeviceListResponse,
    summary="Список устройств",
)
async def list_devices(
    parent_id: Optional[str] = None,
    device_type: Optional[str] = None,
    service: InventoryService = Depends(get_service),
):
    """
    Возвращает записи Device.

    Фильтры:
    - parent_id: только вложенные в указанную запись
    - device_type: Node, CPU, DIMM...
    """
    devices = await run_in_executor(service.list_devices)
    if parent_id:
        devices = [d for d in devices if d.parent_id == parent_id]
    if device_type:
        devices = [d for d in devices if d.status.get("deviceType") == device_type]
    return DeviceListResponse(
        devices=[DeviceResponse.from_record(d) for d in devices],
        total=len(devices),
    )
