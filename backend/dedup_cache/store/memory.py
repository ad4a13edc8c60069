"""In-memory record store used by tests and demo deployments."""

from __future__ import annotations

import threading
from datetime import datetime

from dedup_cache.core.errors import ConflictError, NotFoundError, StateConflictError
from dedup_cache.core.logging import get_logger, log_context
from dedup_cache.models.entities import ProcessingStatus, Record, StoreStats
from dedup_cache.processing.lifecycle import apply_transition
from dedup_cache.store.base import DEFAULT_MAX_LIST_LIMIT, RecordStore, aggregate_stats
from dedup_cache.utils.ids import new_id
from dedup_cache.utils.time import utc_now

logger = get_logger(__name__)


class InMemoryRecordStore(RecordStore):
    """Dictionary-backed store; all records are lost when the process exits."""

    def __init__(self, max_list_limit: int = DEFAULT_MAX_LIST_LIMIT) -> None:
        super().__init__(max_list_limit=max_list_limit)
        self._lock = threading.Lock()
        self._records: dict[str, Record] = {}
        self._by_fingerprint: dict[str, str] = {}
        self._sequence: dict[str, int] = {}
        self._record_locks: dict[str, threading.Lock] = {}

    def insert(self, name: str, fingerprint: str, size: int, content_type: str) -> Record:
        if size < 0:
            raise ValueError("size must be non-negative")
        with self._lock:
            if fingerprint in self._by_fingerprint:
                raise ConflictError(fingerprint)
            now = utc_now()
            record = Record(
                id=new_id(),
                name=name,
                fingerprint=fingerprint,
                size=size,
                content_type=content_type,
                status=ProcessingStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            self._records[record.id] = record
            self._by_fingerprint[fingerprint] = record.id
            self._sequence[record.id] = len(self._sequence)
            self._record_locks[record.id] = threading.Lock()
        logger.info("Inserted file record %s", record.id, extra=log_context(fingerprint=fingerprint))
        return record

    def find_by_fingerprint(self, fingerprint: str) -> Record | None:
        with self._lock:
            record_id = self._by_fingerprint.get(fingerprint)
            return self._records.get(record_id) if record_id else None

    def find_by_id(self, record_id: str) -> Record | None:
        with self._lock:
            return self._records.get(record_id)

    def list(self, limit: int, offset: int = 0) -> list[Record]:
        limit, offset = self.clamp_page(limit, offset)
        with self._lock:
            ordered = sorted(
                self._records.values(),
                key=lambda record: (record.created_at, self._sequence[record.id]),
                reverse=True,
            )
        return ordered[offset : offset + limit]

    def claim(self, record_id: str) -> Record:
        with self._record_lock(record_id):
            with self._lock:
                current = self._records[record_id]
            if current.status is not ProcessingStatus.PENDING:
                raise StateConflictError(
                    record_id,
                    current.status.value,
                    ProcessingStatus.PROCESSING.value,
                    detail="record is not pending",
                )
            updated = apply_transition(current, ProcessingStatus.PROCESSING)
            with self._lock:
                self._records[record_id] = updated
        logger.info("Claimed file %s for processing", record_id)
        return updated

    def transition(
        self,
        record_id: str,
        status: ProcessingStatus | str,
        chunk_count: int | None = None,
    ) -> Record | None:
        with self._record_lock(record_id):
            with self._lock:
                current = self._records[record_id]
            updated = apply_transition(current, status, chunk_count)
            if updated is None:
                return None
            with self._lock:
                self._records[record_id] = updated
        logger.info("Updated file %s status to %s", record_id, updated.status.value)
        return updated

    def _record_lock(self, record_id: str) -> threading.Lock:
        with self._lock:
            record_lock = self._record_locks.get(record_id)
        if record_lock is None:
            raise NotFoundError(record_id)
        return record_lock

    def stats(self) -> StoreStats:
        with self._lock:
            records = list(self._records.values())
            unique = len(self._by_fingerprint)
        return aggregate_stats(records, unique_fingerprints=unique)

    def find_stale(self, status: ProcessingStatus, older_than: datetime) -> list[Record]:
        with self._lock:
            return [
                record
                for record in self._records.values()
                if record.status is status and record.updated_at < older_than
            ]

    def count(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = ["InMemoryRecordStore"]
