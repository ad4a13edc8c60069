"""ID helpers."""

from __future__ import annotations

import uuid

RECORD_PREFIX = "file"


def new_id(prefix: str | None = RECORD_PREFIX) -> str:
    """Random UUID4 hex, ``file_``-prefixed unless another prefix is given."""
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base
