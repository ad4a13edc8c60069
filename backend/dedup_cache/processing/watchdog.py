"""Background sweep that fails records stuck in ``processing``."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable

from dedup_cache.core.errors import StateConflictError
from dedup_cache.core.logging import get_logger, log_context
from dedup_cache.core.metrics import PROCESSING_TOTAL
from dedup_cache.models.entities import ProcessingStatus
from dedup_cache.store.base import RecordStore
from dedup_cache.utils.time import utc_now

logger = get_logger(__name__)


class ProcessingWatchdog:
    def __init__(
        self,
        store: RecordStore,
        timeout_seconds: float,
        interval_seconds: float,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.timeout = timedelta(seconds=timeout_seconds)
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def sweep(self, now: datetime | None = None) -> list[str]:
        """Fail every record whose job has been running longer than the timeout."""
        cutoff = (now or self._clock()) - self.timeout
        failed: list[str] = []
        for record in self.store.find_stale(ProcessingStatus.PROCESSING, cutoff):
            try:
                updated = self.store.transition(record.id, ProcessingStatus.FAILED)
            except StateConflictError:
                logger.info("Record finished before timeout applied", extra=log_context(record_id=record.id))
                continue
            if updated is None:
                continue
            PROCESSING_TOTAL.labels(status=ProcessingStatus.FAILED.value).inc()
            logger.warning(
                "Timed out processing %s after %ss",
                record.name,
                self.timeout.total_seconds(),
                extra=log_context(record_id=record.id),
            )
            failed.append(record.id)
        return failed

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._loop, name="ddc-watchdog", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            if self._thread is None:
                return
            self._stop.set()
            self._thread.join(timeout=5)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.sweep()
            except Exception:
                logger.exception("Watchdog sweep failed")


__all__ = ["ProcessingWatchdog"]
