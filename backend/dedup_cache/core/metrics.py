"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "ddc_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

INGEST_TOTAL = Counter(
    "ddc_ingest_total",
    "Ingest attempts by outcome",
    labelnames=("outcome",),
    registry=REGISTRY,
)

PROCESSING_TOTAL = Counter(
    "ddc_processing_total",
    "Processing jobs by terminal status",
    labelnames=("status",),
    registry=REGISTRY,
)

PROCESSING_DURATION = Histogram(
    "ddc_processing_duration_seconds",
    "Processing job duration",
    registry=REGISTRY,
)

RECORDS = Gauge(
    "ddc_records",
    "Number of stored records by processing status",
    labelnames=("status",),
    registry=REGISTRY,
)


def record_counts(counts_by_status: dict[str, int]) -> None:
    for status, count in counts_by_status.items():
        RECORDS.labels(status=status).set(count)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "INGEST_TOTAL",
    "PROCESSING_TOTAL",
    "PROCESSING_DURATION",
    "RECORDS",
    "record_counts",
    "metrics_response",
]
