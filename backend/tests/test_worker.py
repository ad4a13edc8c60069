"""Tests for supervised processing and the stale-record watchdog."""

from __future__ import annotations

import time
from datetime import timedelta

import pytest

from dedup_cache.core.metrics import REGISTRY
from dedup_cache.models.entities import ProcessingStatus
from dedup_cache.processing.jobs import BYTES_PER_CHUNK, JobOutcome, SimulatedProcessingJob
from dedup_cache.processing.watchdog import ProcessingWatchdog
from dedup_cache.processing.worker import ProcessingWorker
from dedup_cache.store import InMemoryRecordStore
from dedup_cache.utils.time import utc_now


class ScriptedJob:
    """Replays a list of outcomes; exceptions in the list are raised."""

    def __init__(self, *steps) -> None:
        self.steps = list(steps)
        self.calls = 0

    def run(self, record_id: str, name: str, size: int) -> JobOutcome:
        self.calls += 1
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def record(store: InMemoryRecordStore):
    return store.insert("report.pdf", "a" * 64, 4096, "application/pdf")


def _worker(store, job, **kwargs) -> tuple[ProcessingWorker, list[float]]:
    sleeps: list[float] = []
    worker = ProcessingWorker(store, job, max_workers=2, sleep=sleeps.append, **kwargs)
    return worker, sleeps


def test_success_records_chunk_count(store, record) -> None:
    worker, _ = _worker(store, ScriptedJob(JobOutcome(success=True, chunk_count=5)))
    assert worker.process(record.id, record.name, record.size) is ProcessingStatus.COMPLETED
    stored = store.get(record.id)
    assert stored.status is ProcessingStatus.COMPLETED
    assert stored.chunk_count == 5
    worker.shutdown()


def test_exceptions_are_retried_then_recorded_as_failed(store, record) -> None:
    job = ScriptedJob(RuntimeError("boom"), RuntimeError("boom"), RuntimeError("boom"))
    worker, sleeps = _worker(store, job, max_attempts=3, retry_backoff_seconds=0.5)

    assert worker.process(record.id, record.name, record.size) is ProcessingStatus.FAILED
    assert job.calls == 3
    assert sleeps == [0.5, 1.0]
    stored = store.get(record.id)
    assert stored.status is ProcessingStatus.FAILED
    assert stored.chunk_count is None
    worker.shutdown()


def test_transient_failure_recovers(store, record) -> None:
    job = ScriptedJob(JobOutcome(success=False, detail="extractor busy"), JobOutcome(success=True, chunk_count=2))
    worker, sleeps = _worker(store, job, max_attempts=3, retry_backoff_seconds=0.1)

    assert worker.process(record.id, record.name, record.size) is ProcessingStatus.COMPLETED
    assert job.calls == 2
    assert sleeps == [0.1]
    assert store.get(record.id).chunk_count == 2
    worker.shutdown()


def test_zero_chunks_fail_without_retry(store, record) -> None:
    job = ScriptedJob(JobOutcome(success=True, chunk_count=0), JobOutcome(success=True, chunk_count=3))
    worker, _ = _worker(store, job, max_attempts=3)

    assert worker.process(record.id, record.name, record.size) is ProcessingStatus.FAILED
    assert job.calls == 1
    assert store.get(record.id).status is ProcessingStatus.FAILED
    worker.shutdown()


def test_submit_runs_in_background(store, record) -> None:
    worker, _ = _worker(store, SimulatedProcessingJob(simulate_delay=False))
    future = worker.submit(record)
    assert future.result(timeout=5) is ProcessingStatus.COMPLETED
    assert store.get(record.id).chunk_count == max(1, record.size // BYTES_PER_CHUNK)
    worker.shutdown()


def test_unexpected_error_still_ends_failed(store, record) -> None:
    class MalformedOutcomeJob:
        def run(self, record_id, name, size):
            return JobOutcome(success=True, chunk_count=None)  # type: ignore[arg-type]

    worker, _ = _worker(store, MalformedOutcomeJob(), max_attempts=1)
    future = worker.submit(record)
    assert future.result(timeout=5) is ProcessingStatus.FAILED
    assert store.get(record.id).status is ProcessingStatus.FAILED
    worker.shutdown()


def test_late_report_after_timeout_is_rejected(store, record) -> None:
    watchdog = ProcessingWatchdog(store, timeout_seconds=60, interval_seconds=60)

    class SlowJob:
        def run(self, record_id, name, size):
            watchdog.sweep(now=utc_now() + timedelta(minutes=5))
            return JobOutcome(success=True, chunk_count=4)

    worker, _ = _worker(store, SlowJob())
    assert worker.process(record.id, record.name, record.size) is None
    stored = store.get(record.id)
    assert stored.status is ProcessingStatus.FAILED
    assert stored.chunk_count is None
    worker.shutdown()


def test_already_terminal_record_is_not_reprocessed(store, record) -> None:
    store.update_status(record.id, ProcessingStatus.FAILED)
    job = ScriptedJob(JobOutcome(success=True, chunk_count=1))
    worker, _ = _worker(store, job)
    assert worker.process(record.id, record.name, record.size) is None
    assert job.calls == 0
    worker.shutdown()


def test_record_already_processing_is_not_run_again(store, record) -> None:
    store.claim(record.id)
    job = ScriptedJob(JobOutcome(success=True, chunk_count=1))
    worker, _ = _worker(store, job)
    assert worker.process(record.id, record.name, record.size) is None
    assert job.calls == 0
    assert store.get(record.id).status is ProcessingStatus.PROCESSING
    worker.shutdown()


def _failed_total() -> float:
    return REGISTRY.get_sample_value("ddc_processing_total", {"status": "failed"}) or 0.0


def test_failure_after_timeout_is_counted_once(store, record) -> None:
    watchdog = ProcessingWatchdog(store, timeout_seconds=60, interval_seconds=60)

    class TimedOutJob:
        def run(self, record_id, name, size):
            watchdog.sweep(now=utc_now() + timedelta(minutes=5))
            return JobOutcome(success=False, detail="extractor gave up")

    before = _failed_total()
    worker, _ = _worker(store, TimedOutJob(), max_attempts=1)
    assert worker.process(record.id, record.name, record.size) is ProcessingStatus.FAILED
    assert store.get(record.id).status is ProcessingStatus.FAILED
    assert _failed_total() - before == 1
    worker.shutdown()


def test_resubmit_pending_queues_leftovers(store, record) -> None:
    store.update_status(store.insert("other.txt", "b" * 64, 10, "text/plain").id, ProcessingStatus.FAILED)
    worker, _ = _worker(store, SimulatedProcessingJob(simulate_delay=False))
    assert worker.resubmit_pending() == 1
    worker.shutdown(wait=True)
    assert store.get(record.id).status is ProcessingStatus.COMPLETED


def test_watchdog_fails_only_stale_processing(store, record) -> None:
    fresh_pending = store.insert("queued.txt", "c" * 64, 10, "text/plain")
    store.update_status(record.id, ProcessingStatus.PROCESSING)
    watchdog = ProcessingWatchdog(store, timeout_seconds=30, interval_seconds=60)

    assert watchdog.sweep() == []
    assert watchdog.sweep(now=utc_now() + timedelta(seconds=31)) == [record.id]
    assert store.get(record.id).status is ProcessingStatus.FAILED
    assert store.get(fresh_pending.id).status is ProcessingStatus.PENDING
    assert watchdog.sweep(now=utc_now() + timedelta(hours=1)) == []


def test_watchdog_thread_sweeps_periodically(store, record) -> None:
    store.update_status(record.id, ProcessingStatus.PROCESSING)
    watchdog = ProcessingWatchdog(store, timeout_seconds=0.01, interval_seconds=0.02)
    watchdog.start()
    try:
        deadline = time.monotonic() + 5
        while store.get(record.id).status is not ProcessingStatus.FAILED and time.monotonic() < deadline:
            time.sleep(0.02)
    finally:
        watchdog.stop()
    assert store.get(record.id).status is ProcessingStatus.FAILED
