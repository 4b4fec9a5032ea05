"""
Snapshot routes - приём payload обхода и состояние reconcile.

Endpoints:
- POST /snapshots - создать snapshot из rawData и поставить в очередь
- GET /snapshots - список snapshot
- GET /snapshots/{uid} - состояние snapshot
- POST /snapshots/{uid}/reconcile - повторно поставить в очередь
"""

import json

from fastapi import APIRouter, Depends, HTTPException

from ..schemas import (
    ReconcileResponse,
    SnapshotCreateRequest,
    SnapshotListResponse,
    SnapshotResponse,
)
from .deps import get_service, run_in_executor
from ...services import InventoryService

router = APIRouter()


@router.post(
    "",
    response_model=SnapshotResponse,
    status_code=202,
    summary="Создать snapshot",
)
async def create_snapshot(
    body: SnapshotCreateRequest,
    service: InventoryService = Depends(get_service),
):
    """
    Сохраняет payload обхода как новый snapshot (фаза пустая).

    Обработка асинхронная: фаза меняется контроллером
    (Pending → Processing → Complete/Error).
    """
    if isinstance(body.raw_data, str):
        raw_payload = body.raw_data.encode("utf-8")
    else:
        raw_payload = json.dumps(body.raw_data, ensure_ascii=False).encode("utf-8")

    snapshot = await run_in_executor(service.submit_payload, raw_payload, body.name or "")
    return SnapshotResponse.from_snapshot(snapshot)


@router.get(
    "",
    response_model=SnapshotListResponse,
    summary="Список snapshot",
)
async def list_snapshots(service: InventoryService = Depends(get_service)):
    snapshots = await run_in_executor(service.list_snapshots)
    return SnapshotListResponse(
        snapshots=[SnapshotResponse.from_snapshot(s) for s in snapshots],
        total=len(snapshots),
    )


@router.get(
    "/{uid}",
    response_model=SnapshotResponse,
    summary="Получить snapshot",
)
async def get_snapshot(uid: str, service: InventoryService = Depends(get_service)):
    snapshot = await run_in_executor(service.get_snapshot, uid)
    return SnapshotResponse.from_snapshot(snapshot)


@router.post(
    "/{uid}/reconcile",
    response_model=ReconcileResponse,
    status_code=202,
    summary="Запустить reconcile",
)
async def reconcile_snapshot(uid: str, service: InventoryService = Depends(get_service)):
    """
    Ставит snapshot в очередь контроллера.

    Для snapshot в фазе Complete/Error это no-op на стороне reconcile.
    """
    if service.controller is None:
        raise HTTPException(status_code=503, detail="Reconcile controller is not running")
    await run_in_executor(service.trigger, uid)
    return ReconcileResponse(uid=uid)
