"""SQLite-backed record store."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from dedup_cache.core.errors import ConflictError, NotFoundError, StateConflictError
from dedup_cache.core.logging import get_logger, log_context
from dedup_cache.db.sqlite import SQLiteDatabase
from dedup_cache.models.entities import ProcessingStatus, Record, StoreStats
from dedup_cache.processing.lifecycle import apply_transition
from dedup_cache.store.base import DEFAULT_MAX_LIST_LIMIT, RecordStore, aggregate_stats
from dedup_cache.utils.ids import new_id
from dedup_cache.utils.time import from_ms, to_ms, utc_now

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS files (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  fingerprint TEXT NOT NULL,
  size INTEGER NOT NULL CHECK (size >= 0),
  content_type TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'pending'
    CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
  chunk_count INTEGER CHECK (chunk_count IS NULL OR chunk_count >= 1),
  created_at INTEGER NOT NULL,
  updated_at INTEGER NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_files_fingerprint ON files (fingerprint);
CREATE INDEX IF NOT EXISTS idx_files_created_at ON files (created_at DESC);
CREATE INDEX IF NOT EXISTS idx_files_status_updated ON files (status, updated_at);
"""

_COLUMNS = "id, name, fingerprint, size, content_type, status, chunk_count, created_at, updated_at"


class SQLiteRecordStore(RecordStore):
    """Durable store; the unique index on ``fingerprint`` is the final authority."""

    def __init__(self, database: SQLiteDatabase, max_list_limit: int = DEFAULT_MAX_LIST_LIMIT) -> None:
        super().__init__(max_list_limit=max_list_limit)
        self.db = database
        self.db.ensure_schema(SCHEMA_SQL)

    @classmethod
    def open(cls, db_path: Path, max_list_limit: int = DEFAULT_MAX_LIST_LIMIT) -> "SQLiteRecordStore":
        return cls(SQLiteDatabase(db_path), max_list_limit=max_list_limit)

    def insert(self, name: str, fingerprint: str, size: int, content_type: str) -> Record:
        if size < 0:
            raise ValueError("size must be non-negative")
        now_ms = to_ms(utc_now())
        record = Record(
            id=new_id(),
            name=name,
            fingerprint=fingerprint,
            size=size,
            content_type=content_type,
            status=ProcessingStatus.PENDING,
            created_at=from_ms(now_ms),
            updated_at=from_ms(now_ms),
        )
        try:
            with self.db.transaction() as cursor:
                cursor.execute(
                    f"INSERT INTO files ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        record.id,
                        name,
                        fingerprint,
                        size,
                        content_type,
                        record.status.value,
                        None,
                        now_ms,
                        now_ms,
                    ],
                )
        except sqlite3.IntegrityError as exc:
            if "fingerprint" not in str(exc):
                raise
            raise ConflictError(fingerprint) from exc
        logger.info("Inserted file record %s", record.id, extra=log_context(fingerprint=fingerprint))
        return record

    def find_by_fingerprint(self, fingerprint: str) -> Record | None:
        row = self.db.query_one(f"SELECT {_COLUMNS} FROM files WHERE fingerprint = ?", [fingerprint])
        return _row_to_record(row) if row else None

    def find_by_id(self, record_id: str) -> Record | None:
        row = self.db.query_one(f"SELECT {_COLUMNS} FROM files WHERE id = ?", [record_id])
        return _row_to_record(row) if row else None

    def list(self, limit: int, offset: int = 0) -> list[Record]:
        limit, offset = self.clamp_page(limit, offset)
        rows = self.db.query(
            f"SELECT {_COLUMNS} FROM files ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            [limit, offset],
        )
        return [_row_to_record(row) for row in rows]

    def claim(self, record_id: str) -> Record:
        now_ms = to_ms(utc_now())
        with self.db.transaction() as cursor:
            cursor.execute(
                "UPDATE files SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                [
                    ProcessingStatus.PROCESSING.value,
                    now_ms,
                    record_id,
                    ProcessingStatus.PENDING.value,
                ],
            )
            claimed = cursor.rowcount
        if not claimed:
            current = self.get(record_id)
            raise StateConflictError(
                record_id,
                current.status.value,
                ProcessingStatus.PROCESSING.value,
                detail="record is not pending",
            )
        logger.info("Claimed file %s for processing", record_id)
        return self.get(record_id)

    def transition(
        self,
        record_id: str,
        status: ProcessingStatus | str,
        chunk_count: int | None = None,
    ) -> Record | None:
        # The connection lock serializes transitions across all records.
        with self.db.lock:
            current = self.find_by_id(record_id)
            if current is None:
                raise NotFoundError(record_id)
            updated = apply_transition(current, status, chunk_count, now=from_ms(to_ms(utc_now())))
            if updated is None:
                return None
            with self.db.transaction() as cursor:
                cursor.execute(
                    "UPDATE files SET status = ?, chunk_count = ?, updated_at = ? WHERE id = ? AND status = ?",
                    [
                        updated.status.value,
                        updated.chunk_count,
                        to_ms(updated.updated_at),
                        record_id,
                        current.status.value,
                    ],
                )
                changed = cursor.rowcount
        if not changed:
            # Another process moved the record between our read and write.
            latest = self.get(record_id)
            raise StateConflictError(record_id, latest.status.value, updated.status.value)
        logger.info("Updated file %s status to %s", record_id, updated.status.value)
        return updated

    def stats(self) -> StoreStats:
        rows = self.db.query("SELECT status, COUNT(*) AS count FROM files GROUP BY status")
        stats = aggregate_stats([])
        for row in rows:
            stats.counts_by_status[row["status"]] = int(row["count"])
        unique_row = self.db.query_one("SELECT COUNT(DISTINCT fingerprint) AS count FROM files")
        stats.total_records = sum(stats.counts_by_status.values())
        stats.unique_fingerprints = int(unique_row["count"]) if unique_row else 0
        return stats

    def find_stale(self, status: ProcessingStatus, older_than: datetime) -> list[Record]:
        rows = self.db.query(
            f"SELECT {_COLUMNS} FROM files WHERE status = ? AND updated_at < ? ORDER BY updated_at",
            [ProcessingStatus(status).value, to_ms(older_than)],
        )
        return [_row_to_record(row) for row in rows]

    def count(self) -> int:
        row = self.db.query_one("SELECT COUNT(*) AS count FROM files")
        return int(row["count"]) if row else 0

    def close(self) -> None:
        self.db.close()


def _row_to_record(row: sqlite3.Row) -> Record:
    return Record(
        id=row["id"],
        name=row["name"],
        fingerprint=row["fingerprint"],
        size=int(row["size"]),
        content_type=row["content_type"],
        status=ProcessingStatus(row["status"]),
        chunk_count=row["chunk_count"],
        created_at=from_ms(row["created_at"]),
        updated_at=from_ms(row["updated_at"]),
    )


__all__ = ["SQLiteRecordStore", "SCHEMA_SQL"]
