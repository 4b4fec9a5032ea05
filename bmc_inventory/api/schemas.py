"""Pydantic schemas для HTTP API."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.models import DeviceRecord, Snapshot


class HealthResponse(BaseModel):
    """Ответ health check."""

    status: str = "ok"
    version: str
    uptime: float
    storage: str = ""
    controller: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    """Ответ с ошибкой."""

    success: bool = False
    error: str
    detail: Optional[str] = None


class SnapshotCreateRequest(BaseModel):
    """
    Новый snapshot.

    rawData — payload обхода: JSON объект или строка с JSON.
    """
    model_config = ConfigDict(populate_by_name=True)

    raw_data: Union[Dict[str, Any], str] = Field(alias="rawData")
    name: Optional[str] = None


class SnapshotResponse(BaseModel):
    """Состояние snapshot (без rawData)."""
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    name: str
    phase: str
    message: str = ""
    logs: List[str] = []
    created_at: str = Field(default="", alias="createdAt")
    size: int = 0

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "SnapshotResponse":
        return cls(
            uid=snapshot.id,
            name=snapshot.name,
            phase=snapshot.phase.value,
            message=snapshot.message,
            logs=list(snapshot.logs),
            created_at=snapshot.created_at,
            size=len(snapshot.raw_payload),
        )


class SnapshotListResponse(BaseModel):
    """Список snapshot."""
    snapshots: List[SnapshotResponse]
    total: int


class ReconcileResponse(BaseModel):
    """Ответ на запрос reconcile."""
    uid: str
    queued: bool = True


class DeviceResponse(BaseModel):
    """Каноническая запись Device."""
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    name: str
    device_type: str = Field(default="", alias="deviceType")
    parent_id: str = Field(default="", alias="parentID")
    status: Dict[str, Any] = {}

    @classmethod
    def from_record(cls, record: DeviceRecord) -> "DeviceResponse":
        return cls(
            uid=record.uid,
            name=record.name,
            device_type=record.status.get("deviceType", ""),
            parent_id=record.parent_id,
            status=record.status,
        )


class DeviceListResponse(BaseModel):
    """Список Device."""
    devices: List[DeviceResponse]
    total: int
