"""Processing job collaborators."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol

from dedup_cache.core.logging import get_logger, log_context

logger = get_logger(__name__)

# Roughly 1000 characters per chunk at ~1.5 characters per byte.
BYTES_PER_CHUNK = 667


@dataclass(frozen=True, slots=True)
class JobOutcome:
    success: bool
    chunk_count: int = 0
    detail: str | None = None


class ProcessingJob(Protocol):
    """Downstream work for a newly stored file (extraction, chunking, embedding)."""

    def run(self, record_id: str, name: str, size: int) -> JobOutcome: ...


class SimulatedProcessingJob:
    """Stand-in for the extraction pipeline.

    Sleeps in proportion to the file size (0.1s to 2s) and reports one chunk
    per ``BYTES_PER_CHUNK`` bytes, never fewer than one.
    """

    def __init__(self, simulate_delay: bool = True) -> None:
        self.simulate_delay = simulate_delay

    def run(self, record_id: str, name: str, size: int) -> JobOutcome:
        started = time.monotonic()
        if self.simulate_delay:
            time.sleep(min(max(size / 10000, 100), 2000) / 1000)
        chunk_count = max(1, size // BYTES_PER_CHUNK)
        logger.info(
            "Processed %s: %s chunks in %.0fms",
            name,
            chunk_count,
            (time.monotonic() - started) * 1000,
            extra=log_context(record_id=record_id),
        )
        return JobOutcome(success=True, chunk_count=chunk_count)


__all__ = ["JobOutcome", "ProcessingJob", "SimulatedProcessingJob", "BYTES_PER_CHUNK"]
