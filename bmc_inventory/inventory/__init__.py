"""Хранилища записей и нормализация графа обхода."""

from .store import RecordStore, InMemoryRecordStore, FileRecordStore
from .api_client import InventoryApiClient
from .normalizer import GraphNormalizer, NormalizationReport, CreatedDevice

__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "FileRecordStore",
    "InventoryApiClient",
    "GraphNormalizer",
    "NormalizationReport",
    "CreatedDevice",
]
