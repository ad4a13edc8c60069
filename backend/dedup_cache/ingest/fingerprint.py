"""Content fingerprinting.

Fingerprints are lowercase hex SHA-256 digests. Streams are hashed in fixed
size chunks so memory use does not depend on the size of the upload.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import BinaryIO, Iterable

from dedup_cache.core.errors import InvalidFingerprintError

ALGORITHM = "sha256"
DIGEST_LENGTH = 64
DEFAULT_CHUNK_SIZE = 64 * 1024

_FINGERPRINT_RE = re.compile(rf"^[0-9a-f]{{{DIGEST_LENGTH}}}$")


class Fingerprinter:
    """Incremental hasher that also tracks how many bytes it has seen."""

    def __init__(self) -> None:
        self._hash = hashlib.new(ALGORITHM)
        self._size = 0

    @property
    def size(self) -> int:
        return self._size

    def update(self, chunk: bytes) -> None:
        self._hash.update(chunk)
        self._size += len(chunk)

    def hexdigest(self) -> str:
        return self._hash.hexdigest()


def fingerprint_bytes(data: bytes) -> str:
    """Return hex digest for bytes input."""
    return hashlib.new(ALGORITHM, data).hexdigest()


def fingerprint_chunks(chunks: Iterable[bytes]) -> str:
    hasher = Fingerprinter()
    for chunk in chunks:
        hasher.update(chunk)
    return hasher.hexdigest()


def iter_stream(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterable[bytes]:
    """Yield sequential chunks from a binary stream until EOF."""
    return iter(lambda: stream.read(chunk_size), b"")


def fingerprint_stream(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> tuple[str, int]:
    """Hash a binary stream, returning ``(digest, bytes_read)``.

    Read errors from the stream propagate unchanged.
    """
    hasher = Fingerprinter()
    for chunk in iter_stream(stream, chunk_size):
        hasher.update(chunk)
    return hasher.hexdigest(), hasher.size


def fingerprint_file(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Return hex digest for file contents."""
    with path.open("rb") as fh:
        digest, _ = fingerprint_stream(fh, chunk_size)
    return digest


def normalize_fingerprint(value: str) -> str:
    """Lowercase and validate a client-supplied fingerprint."""
    candidate = (value or "").strip().lower()
    if not _FINGERPRINT_RE.match(candidate):
        raise InvalidFingerprintError(value)
    return candidate


__all__ = [
    "ALGORITHM",
    "DIGEST_LENGTH",
    "Fingerprinter",
    "fingerprint_bytes",
    "fingerprint_chunks",
    "fingerprint_stream",
    "fingerprint_file",
    "iter_stream",
    "normalize_fingerprint",
]
