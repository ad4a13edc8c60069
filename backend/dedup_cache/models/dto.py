"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from dedup_cache.models.entities import Record, StoreStats
from dedup_cache.utils.text import format_size


class RecordResponse(BaseModel):
    id: str
    name: str
    fingerprint: str
    size: int
    size_formatted: str
    content_type: str
    status: Literal["pending", "processing", "completed", "failed"]
    chunk_count: int | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: Record) -> "RecordResponse":
        return cls(
            id=record.id,
            name=record.name,
            fingerprint=record.fingerprint,
            size=record.size,
            size_formatted=format_size(record.size),
            content_type=record.content_type,
            status=record.status.value,
            chunk_count=record.chunk_count,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class UploadResponse(BaseModel):
    duplicate: bool
    message: str
    record: RecordResponse


class CheckDuplicateResponse(BaseModel):
    duplicate: bool
    message: str | None = None
    record: RecordResponse | None = None


class StatsPayload(BaseModel):
    total_records: int
    unique_fingerprints: int
    duplicates_saved: int
    counts_by_status: dict[str, int]

    @classmethod
    def from_stats(cls, stats: StoreStats) -> "StatsPayload":
        return cls(
            total_records=stats.total_records,
            unique_fingerprints=stats.unique_fingerprints,
            duplicates_saved=stats.duplicates_saved,
            counts_by_status=dict(stats.counts_by_status),
        )


class StatsResponse(StatsPayload):
    timestamp: datetime


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class FileListResponse(BaseModel):
    records: list[RecordResponse]
    pagination: Pagination
    stats: StatsPayload


class ErrorResponse(BaseModel):
    error: str
    reason: str | None = Field(default=None, description="Machine readable validation reason")


__all__ = [
    "RecordResponse",
    "UploadResponse",
    "CheckDuplicateResponse",
    "StatsPayload",
    "StatsResponse",
    "Pagination",
    "FileListResponse",
    "ErrorResponse",
]
