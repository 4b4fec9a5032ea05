"""
BMC Inventory Web API.

FastAPI приложение: приём snapshot обхода и просмотр устройств.
Контроллер reconcile запускается в lifespan приложения.

Запуск:
    python -m bmc_inventory serve --port 8080
    uvicorn bmc_inventory.api.main:app --host 0.0.0.0 --port 8080

Документация:
    http://localhost:8080/docs (Swagger UI)
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Config, load_config
from ..core.exceptions import (
    InvalidPayloadError,
    InvalidResourceError,
    InventoryError,
    format_error_for_log,
)
from ..core.logging import get_logger
from ..services import InventoryService
from .routes import devices_router, snapshots_router
from .routes.deps import run_in_executor
from .schemas import ErrorResponse, HealthResponse

logger = get_logger(__name__)


def create_app(
    service: Optional[InventoryService] = None,
    config: Optional[Config] = None,
) -> FastAPI:
    """
    Создаёт приложение.

    Args:
        service: Готовый InventoryService (тесты). Если None — собирается
            из конфигурации при старте.
        config: Конфигурация (если None — load_config())
    """
    start_time = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = service
        if svc is None:
            svc = InventoryService.from_config(config or load_config(), with_controller=True)
        app.state.service = svc
        if svc.controller is not None:
            svc.controller.start()
        logger.info(f"BMC Inventory API v{__version__} запущен")
        yield
        if svc.controller is not None:
            svc.controller.stop()
        logger.info("BMC Inventory API остановлен")

    app = FastAPI(
        title="BMC Inventory API",
        description="Приём Redfish snapshot и просмотр нормализованного инвентаря.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # =========================================================================
    # Exception handlers
    # =========================================================================

    @app.exception_handler(InvalidResourceError)
    async def invalid_resource_handler(request: Request, exc: InvalidResourceError):
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(error="Not Found", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(InvalidPayloadError)
    async def invalid_payload_handler(request: Request, exc: InvalidPayloadError):
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(error="Invalid Payload", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(InventoryError)
    async def inventory_error_handler(request: Request, exc: InventoryError):
        logger.error(f"{request.method} {request.url.path}: {format_error_for_log(exc)}")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error=exc.__class__.__name__, detail=str(exc)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Глобальный обработчик ошибок."""
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal Server Error",
                detail=str(exc),
            ).model_dump(),
        )

    # =========================================================================
    # Health check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="Health check",
    )
    async def health_check(request: Request):
        """Проверка состояния API."""
        svc: InventoryService = request.app.state.service
        stats = await run_in_executor(svc.stats)
        return HealthResponse(
            status="ok",
            version=__version__,
            uptime=time.time() - start_time,
            storage=svc.store.__class__.__name__,
            controller=stats,
        )

    @app.get("/", tags=["Health"])
    async def root():
        """Корневой endpoint."""
        return {
            "name": "BMC Inventory API",
            "version": __version__,
            "docs": "/docs",
        }

    # =========================================================================
    # Routes
    # =========================================================================

    app.include_router(snapshots_router, prefix="/api/snapshots", tags=["Snapshots"])
    app.include_router(devices_router, prefix="/api/devices", tags=["Devices"])

    return app


app = create_app()
