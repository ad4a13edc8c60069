"""File listing routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from dedup_cache.api.dependencies import get_coordinator
from dedup_cache.ingest.coordinator import IngestCoordinator
from dedup_cache.models.dto import FileListResponse, Pagination, RecordResponse, StatsPayload

router = APIRouter()


@router.get("", response_model=FileListResponse, summary="List files, newest first")
def list_files(
    limit: int | None = Query(default=None, description="Page size; clamped to the configured maximum"),
    offset: int = Query(default=0, description="Records to skip; negative values count as 0"),
    coordinator: IngestCoordinator = Depends(get_coordinator),
) -> FileListResponse:
    page = coordinator.list_records(limit=limit, offset=offset)
    stats = coordinator.stats()
    return FileListResponse(
        records=[RecordResponse.from_record(record) for record in page.records],
        pagination=Pagination(
            limit=page.limit,
            offset=page.offset,
            total=page.total,
            has_more=page.has_more,
        ),
        stats=StatsPayload.from_stats(stats),
    )


@router.get("/{record_id}", response_model=RecordResponse, summary="Fetch one file record")
def get_file(record_id: str, coordinator: IngestCoordinator = Depends(get_coordinator)) -> RecordResponse:
    return RecordResponse.from_record(coordinator.get(record_id))


__all__ = ["router"]
