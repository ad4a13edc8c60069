"""Ingest orchestration: hash, look up or insert, hand off new files."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Union

from dedup_cache.core.errors import ConflictError, ValidationError, ValidationReason
from dedup_cache.core.logging import get_logger, log_context
from dedup_cache.core.metrics import INGEST_TOTAL, record_counts
from dedup_cache.ingest.fingerprint import Fingerprinter, fingerprint_bytes, iter_stream, normalize_fingerprint
from dedup_cache.models.entities import IngestResult, Record, StoreStats
from dedup_cache.processing.worker import ProcessingWorker
from dedup_cache.store.base import RecordStore
from dedup_cache.utils.text import format_size

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

Content = Union[bytes, bytearray, memoryview, BinaryIO]


@dataclass(slots=True)
class RecordPage:
    records: list[Record]
    limit: int
    offset: int
    total: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total


class IngestCoordinator:
    """Entry point for uploads and the read-only queries over the store."""

    def __init__(
        self,
        store: RecordStore,
        worker: ProcessingWorker | None,
        max_upload_bytes: int,
        default_list_limit: int = 50,
    ) -> None:
        self.store = store
        self.worker = worker
        self.max_upload_bytes = max_upload_bytes
        self.default_list_limit = default_list_limit

    def ingest(self, name: str, content: Content, content_type: str | None = None) -> IngestResult:
        try:
            fingerprint, size = self._fingerprint(content)
        except ValidationError as exc:
            INGEST_TOTAL.labels(outcome="rejected").inc()
            logger.info("Rejected upload %s: %s", name, exc.message)
            raise

        existing = self.store.find_by_fingerprint(fingerprint)
        if existing is not None:
            return self._duplicate(existing)

        try:
            record = self.store.insert(
                name=name,
                fingerprint=fingerprint,
                size=size,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
            )
        except ConflictError:
            # A concurrent upload of the same bytes won the insert.
            winner = self.store.find_by_fingerprint(fingerprint)
            if winner is None:
                raise
            return self._duplicate(winner)

        INGEST_TOTAL.labels(outcome="new").inc()
        logger.info(
            "Stored new file %s (%s)",
            name,
            format_size(size),
            extra=log_context(record_id=record.id, fingerprint=fingerprint),
        )
        if self.worker is not None:
            try:
                self.worker.submit(record)
            except RuntimeError:
                # Executor is shutting down; the record stays pending and is
                # resubmitted on the next start.
                logger.exception("Could not queue processing", extra=log_context(record_id=record.id))
        return IngestResult(record=record, is_duplicate=False)

    def check(self, fingerprint: str) -> Record | None:
        return self.store.find_by_fingerprint(normalize_fingerprint(fingerprint))

    def get(self, record_id: str) -> Record:
        return self.store.get(record_id)

    def list_records(self, limit: int | None = None, offset: int = 0) -> RecordPage:
        limit, offset = self.store.clamp_page(self.default_list_limit if limit is None else limit, offset)
        records = self.store.list(limit, offset)
        return RecordPage(records=records, limit=limit, offset=offset, total=self.store.count())

    def stats(self) -> StoreStats:
        stats = self.store.stats()
        record_counts(stats.counts_by_status)
        return stats

    # Internal helpers -------------------------------------------------

    def _duplicate(self, record: Record) -> IngestResult:
        INGEST_TOTAL.labels(outcome="duplicate").inc()
        logger.info("Duplicate of %s detected", record.name, extra=log_context(record_id=record.id))
        return IngestResult(record=record, is_duplicate=True)

    def _fingerprint(self, content: Content) -> tuple[str, int]:
        if isinstance(content, (bytes, bytearray, memoryview)):
            data = bytes(content)
            self._check_size(len(data))
            return fingerprint_bytes(data), len(data)

        hasher = Fingerprinter()
        for chunk in iter_stream(content):
            hasher.update(chunk)
            if hasher.size > self.max_upload_bytes:
                self._check_size(hasher.size)
        self._check_size(hasher.size)
        return hasher.hexdigest(), hasher.size

    def _check_size(self, size: int) -> None:
        if size == 0:
            raise ValidationError(ValidationReason.EMPTY_CONTENT, "File is empty")
        if size > self.max_upload_bytes:
            raise ValidationError(
                ValidationReason.TOO_LARGE,
                f"File size ({format_size(size)}) exceeds maximum allowed size "
                f"({format_size(self.max_upload_bytes)})",
            )


__all__ = ["IngestCoordinator", "RecordPage", "DEFAULT_CONTENT_TYPE"]
