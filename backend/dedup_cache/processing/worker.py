"""Supervised execution of processing jobs."""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from dedup_cache.core.errors import DedupCacheError, ProcessingFailure, StateConflictError
from dedup_cache.core.logging import get_logger, log_context
from dedup_cache.core.metrics import PROCESSING_DURATION, PROCESSING_TOTAL
from dedup_cache.models.entities import ProcessingStatus, Record
from dedup_cache.processing.jobs import ProcessingJob
from dedup_cache.store.base import RecordStore
from dedup_cache.utils.time import utc_now

logger = get_logger(__name__)


class ProcessingWorker:
    """Run processing jobs on a bounded thread pool.

    Every job that starts ends in ``completed`` or ``failed``: exceptions and
    unsuccessful outcomes are retried up to ``max_attempts`` times and then
    recorded as ``failed``.
    """

    def __init__(
        self,
        store: RecordStore,
        job: ProcessingJob,
        max_workers: int = 4,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.job = job
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ddc-worker")

    def submit(self, record: Record) -> Future:
        logger.info("Queued processing for %s", record.name, extra=log_context(record_id=record.id))
        return self._executor.submit(self._run_safely, record.id, record.name, record.size)

    def resubmit_pending(self) -> int:
        """Queue records a previous process stored but never started."""
        pending = self.store.find_stale(ProcessingStatus.PENDING, utc_now())
        for record in pending:
            self.submit(record)
        if pending:
            logger.info("Resubmitted %s pending records", len(pending))
        return len(pending)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def process(self, record_id: str, name: str, size: int) -> ProcessingStatus | None:
        """Drive one record through the lifecycle; returns the status recorded."""
        try:
            self.store.claim(record_id)
        except StateConflictError as exc:
            logger.warning("Skipping processing: %s", exc, extra=log_context(record_id=record_id))
            return None

        started = time.monotonic()
        try:
            chunk_count = self._run_with_retries(record_id, name, size)
        except ProcessingFailure as exc:
            logger.warning("%s", exc, extra=log_context(record_id=record_id))
            return self._finish(record_id, ProcessingStatus.FAILED, None, started)
        return self._finish(record_id, ProcessingStatus.COMPLETED, chunk_count, started)

    # Internal helpers -------------------------------------------------

    def _run_safely(self, record_id: str, name: str, size: int) -> ProcessingStatus | None:
        try:
            return self.process(record_id, name, size)
        except Exception:
            logger.exception("Processing crashed", extra=log_context(record_id=record_id))
            try:
                if self.store.transition(record_id, ProcessingStatus.FAILED) is not None:
                    PROCESSING_TOTAL.labels(status=ProcessingStatus.FAILED.value).inc()
            except DedupCacheError:
                logger.exception("Could not mark record failed", extra=log_context(record_id=record_id))
                return None
            return ProcessingStatus.FAILED

    def _run_with_retries(self, record_id: str, name: str, size: int) -> int:
        detail = "no attempts made"
        for attempt in range(1, self.max_attempts + 1):
            try:
                outcome = self.job.run(record_id, name, size)
            except Exception as exc:
                detail = f"attempt {attempt}: {exc}"
                logger.warning("Processing attempt %s raised", attempt, exc_info=True, extra=log_context(record_id=record_id))
            else:
                if outcome.success:
                    if outcome.chunk_count < 1:
                        raise ProcessingFailure(record_id, "job produced no chunks")
                    return outcome.chunk_count
                detail = f"attempt {attempt}: {outcome.detail or 'job reported failure'}"
            if attempt < self.max_attempts:
                self._sleep(self.retry_backoff_seconds * attempt)
        raise ProcessingFailure(record_id, detail)

    def _finish(
        self,
        record_id: str,
        status: ProcessingStatus,
        chunk_count: int | None,
        started: float,
    ) -> ProcessingStatus | None:
        PROCESSING_DURATION.observe(time.monotonic() - started)
        try:
            updated = self.store.transition(record_id, status, chunk_count)
        except StateConflictError as exc:
            # Typically the watchdog already timed the record out.
            logger.error("Late processing report rejected: %s", exc, extra=log_context(record_id=record_id))
            return None
        if updated is not None:
            PROCESSING_TOTAL.labels(status=status.value).inc()
        return status


__all__ = ["ProcessingWorker"]
