"""Record store backends."""

from dedup_cache.core.config import Settings

from .base import RecordStore, aggregate_stats
from .memory import InMemoryRecordStore
from .sqlite import SQLiteRecordStore


def create_store(settings: Settings) -> RecordStore:
    """Build the backend named by ``settings.store_backend``."""
    if settings.store_backend == "memory":
        return InMemoryRecordStore(max_list_limit=settings.list_max_limit)
    return SQLiteRecordStore.open(settings.db_path, max_list_limit=settings.list_max_limit)


__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "SQLiteRecordStore",
    "aggregate_stats",
    "create_store",
]
