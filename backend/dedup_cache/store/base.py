"""Record store interface shared by every backend."""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Iterable

from dedup_cache.core.errors import NotFoundError
from dedup_cache.models.entities import ProcessingStatus, Record, StoreStats

DEFAULT_MAX_LIST_LIMIT = 100


def aggregate_stats(records: Iterable[Record], unique_fingerprints: int | None = None) -> StoreStats:
    """Derive counts from a snapshot of records; nothing is stored separately."""
    counts = {status.value: 0 for status in ProcessingStatus}
    total = 0
    for record in records:
        counts[record.status.value] += 1
        total += 1
    return StoreStats(
        total_records=total,
        unique_fingerprints=total if unique_fingerprints is None else unique_fingerprints,
        counts_by_status=counts,
    )


class RecordStore(abc.ABC):
    """Owns every record and the fingerprint index.

    Implementations must make ``insert`` atomic with the uniqueness check and
    must serialize ``claim`` and ``transition`` calls for the same record.
    """

    def __init__(self, max_list_limit: int = DEFAULT_MAX_LIST_LIMIT) -> None:
        self.max_list_limit = max_list_limit

    @abc.abstractmethod
    def insert(self, name: str, fingerprint: str, size: int, content_type: str) -> Record:
        """Create a pending record; raise ``ConflictError`` if the fingerprint exists."""

    @abc.abstractmethod
    def find_by_fingerprint(self, fingerprint: str) -> Record | None: ...

    @abc.abstractmethod
    def find_by_id(self, record_id: str) -> Record | None: ...

    @abc.abstractmethod
    def list(self, limit: int, offset: int = 0) -> list[Record]:
        """Newest-first page of records."""

    @abc.abstractmethod
    def claim(self, record_id: str) -> Record:
        """Move a record from ``pending`` to ``processing`` for exactly one caller.

        Raises ``StateConflictError`` when the record is in any other state,
        including ``processing``, and ``NotFoundError`` for unknown ids.
        """

    @abc.abstractmethod
    def transition(
        self,
        record_id: str,
        status: ProcessingStatus | str,
        chunk_count: int | None = None,
    ) -> Record | None:
        """Apply a lifecycle transition.

        Returns ``None`` when the request repeats the current state, so callers
        can tell a real change from an idempotent repeat. Raises
        ``NotFoundError`` for unknown ids.
        """

    @abc.abstractmethod
    def stats(self) -> StoreStats: ...

    @abc.abstractmethod
    def find_stale(self, status: ProcessingStatus, older_than: datetime) -> list[Record]:
        """Records sitting in ``status`` since before ``older_than``."""

    @abc.abstractmethod
    def count(self) -> int: ...

    def get(self, record_id: str) -> Record:
        record = self.find_by_id(record_id)
        if record is None:
            raise NotFoundError(record_id)
        return record

    def update_status(
        self,
        record_id: str,
        status: ProcessingStatus | str,
        chunk_count: int | None = None,
    ) -> Record:
        updated = self.transition(record_id, status, chunk_count)
        return updated if updated is not None else self.get(record_id)

    def close(self) -> None:
        return None

    def clamp_page(self, limit: int, offset: int) -> tuple[int, int]:
        return max(1, min(int(limit), self.max_list_limit)), max(0, int(offset))


__all__ = ["RecordStore", "aggregate_stats", "DEFAULT_MAX_LIST_LIMIT"]
