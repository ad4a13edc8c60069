"""Error taxonomy for the deduplication core."""

from __future__ import annotations

from enum import Enum


class DedupCacheError(Exception):
    """Base class for all Dedup Cache errors."""


class ValidationReason(str, Enum):
    EMPTY_CONTENT = "empty_content"
    TOO_LARGE = "too_large"
    INVALID_FINGERPRINT = "invalid_fingerprint"


class ValidationError(DedupCacheError):
    """Input rejected before any hashing or storage took place."""

    def __init__(self, reason: ValidationReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class InvalidFingerprintError(ValidationError):
    def __init__(self, value: str) -> None:
        super().__init__(
            ValidationReason.INVALID_FINGERPRINT,
            "Invalid hash format. Expected 64-character hexadecimal string.",
        )
        self.value = value


class ConflictError(DedupCacheError):
    """A record with the same fingerprint already exists."""

    def __init__(self, fingerprint: str) -> None:
        super().__init__(f"File with hash {fingerprint} already exists")
        self.fingerprint = fingerprint


class NotFoundError(DedupCacheError):
    def __init__(self, record_id: str) -> None:
        super().__init__(f"File {record_id} not found")
        self.record_id = record_id


class StateConflictError(DedupCacheError):
    """A status transition contradicts the state already recorded."""

    def __init__(self, record_id: str, current: str, requested: str, detail: str | None = None) -> None:
        message = f"File {record_id}: cannot move from {current} to {requested}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.record_id = record_id
        self.current = current
        self.requested = requested


class ProcessingFailure(DedupCacheError):
    """Failure reported by, or raised from, a processing job."""

    def __init__(self, record_id: str, detail: str) -> None:
        super().__init__(f"Processing failed for {record_id}: {detail}")
        self.record_id = record_id
        self.detail = detail


__all__ = [
    "DedupCacheError",
    "ValidationReason",
    "ValidationError",
    "InvalidFingerprintError",
    "ConflictError",
    "NotFoundError",
    "StateConflictError",
    "ProcessingFailure",
]
