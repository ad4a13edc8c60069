"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


@dataclass(frozen=True, slots=True)
class Record:
    """Snapshot of one unique file. Only the record store produces new ones."""

    id: str
    name: str
    fingerprint: str
    size: int
    content_type: str
    status: ProcessingStatus
    created_at: datetime
    updated_at: datetime
    chunk_count: int | None = None


@dataclass(slots=True)
class StoreStats:
    total_records: int
    unique_fingerprints: int
    counts_by_status: dict[str, int] = field(default_factory=dict)

    @property
    def duplicates_saved(self) -> int:
        return self.total_records - self.unique_fingerprints


@dataclass(frozen=True, slots=True)
class IngestResult:
    record: Record
    is_duplicate: bool


__all__ = ["ProcessingStatus", "Record", "StoreStats", "IngestResult"]
