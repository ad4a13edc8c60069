"""Upload and duplicate-check routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from dedup_cache.api.dependencies import get_coordinator
from dedup_cache.ingest.coordinator import IngestCoordinator
from dedup_cache.models.dto import CheckDuplicateResponse, RecordResponse, UploadResponse

router = APIRouter()


@router.post("/upload", response_model=UploadResponse, summary="Upload a file and detect duplicates")
def upload_file(
    file: UploadFile = File(...),
    coordinator: IngestCoordinator = Depends(get_coordinator),
) -> UploadResponse:
    result = coordinator.ingest(file.filename or "upload", file.file, file.content_type)
    if result.is_duplicate:
        message = "File already exists in the system"
    else:
        message = "File uploaded successfully and processing started"
    return UploadResponse(
        duplicate=result.is_duplicate,
        message=message,
        record=RecordResponse.from_record(result.record),
    )


@router.get(
    "/check-duplicate/{fingerprint}",
    response_model=CheckDuplicateResponse,
    summary="Check whether content with this SHA-256 hash was seen",
)
def check_duplicate(
    fingerprint: str,
    coordinator: IngestCoordinator = Depends(get_coordinator),
) -> CheckDuplicateResponse:
    record = coordinator.check(fingerprint)
    if record is None:
        return CheckDuplicateResponse(duplicate=False, message="No file found with this hash")
    return CheckDuplicateResponse(duplicate=True, record=RecordResponse.from_record(record))


__all__ = ["router"]
