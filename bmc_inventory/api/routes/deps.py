"""Общие зависимости routes."""

import asyncio
from typing import Any, Callable

from fastapi import Request

from ...services import InventoryService


def get_service(request: Request) -> InventoryService:
    """InventoryService приложения (создаётся в lifespan)."""
    return request.app.state.service


async def run_in_executor(func: Callable[..., Any], *args: Any) -> Any:
    """Запускает синхронную функцию (хранилище, контроллер) в executor."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, func, *args)
