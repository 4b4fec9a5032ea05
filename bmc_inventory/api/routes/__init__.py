"""API Routes."""

from .snapshots import router as snapshots_router
from .devices import router as devices_router

__all__ = [
    "snapshots_router",
    "devices_router",
]
