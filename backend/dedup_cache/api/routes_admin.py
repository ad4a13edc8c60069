"""Administrative routes for Dedup Cache."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dedup_cache.api.dependencies import get_coordinator
from dedup_cache.core.metrics import metrics_response
from dedup_cache.ingest.coordinator import IngestCoordinator
from dedup_cache.models.dto import StatsPayload, StatsResponse
from dedup_cache.utils.time import utc_now

router = APIRouter()


@router.get("/stats", response_model=StatsResponse, summary="Record counts by processing status")
def get_stats(coordinator: IngestCoordinator = Depends(get_coordinator)) -> StatsResponse:
    payload = StatsPayload.from_stats(coordinator.stats())
    return StatsResponse(**payload.model_dump(), timestamp=utc_now())


@router.get("/metrics", summary="Prometheus metrics")
def get_metrics():
    return metrics_response()


__all__ = ["router"]
