"""Record store implementations."""

from ...config import settings
from ..interfaces import RecordStoreInterface
from .memory import InMemoryRecordStore
from .sqlite import SQLiteRecordStore


def create_record_store(backend: str = None) -> RecordStoreInterface:
    """Create the record store selected by configuration."""
    backend = backend or settings.record_store_backend
    if backend == "sqlite":
        return SQLiteRecordStore()
    return InMemoryRecordStore()


__all__ = [
    "InMemoryRecordStore",
    "SQLiteRecordStore",
    "create_record_store",
]
