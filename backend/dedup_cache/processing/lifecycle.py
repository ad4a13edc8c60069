"""Processing status transitions for a single record."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from dedup_cache.core.errors import StateConflictError
from dedup_cache.models.entities import ProcessingStatus, Record
from dedup_cache.utils.time import utc_now

ALLOWED_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.PROCESSING, ProcessingStatus.FAILED}),
    ProcessingStatus.PROCESSING: frozenset({ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}),
    ProcessingStatus.COMPLETED: frozenset(),
    ProcessingStatus.FAILED: frozenset(),
}


def validate_chunk_count(status: ProcessingStatus, chunk_count: int | None) -> None:
    if status is ProcessingStatus.COMPLETED:
        if chunk_count is None or chunk_count < 1:
            raise ValueError("completed requires chunk_count >= 1; report zero chunks as failed")
    elif chunk_count is not None:
        raise ValueError(f"chunk_count is only accepted with completed, not {status.value}")


def apply_transition(
    record: Record,
    status: ProcessingStatus | str,
    chunk_count: int | None = None,
    now: datetime | None = None,
) -> Record | None:
    """Return the record after moving it to ``status``.

    Returns ``None`` when the request repeats the current state with the same
    payload. Raises ``StateConflictError`` for backwards moves or for a second,
    different outcome after a terminal state.
    """
    target = ProcessingStatus(status)
    validate_chunk_count(target, chunk_count)

    current = record.status
    if target is current:
        if record.chunk_count == chunk_count:
            return None
        raise StateConflictError(
            record.id,
            current.value,
            target.value,
            detail=f"chunk_count already {record.chunk_count}, got {chunk_count}",
        )
    if target not in ALLOWED_TRANSITIONS[current]:
        raise StateConflictError(record.id, current.value, target.value)

    return replace(
        record,
        status=target,
        chunk_count=chunk_count if target is ProcessingStatus.COMPLETED else record.chunk_count,
        updated_at=now or utc_now(),
    )


__all__ = ["ALLOWED_TRANSITIONS", "apply_transition", "validate_chunk_count"]
