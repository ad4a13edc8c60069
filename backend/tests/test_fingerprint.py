"""Tests for content fingerprinting."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from dedup_cache.core.errors import InvalidFingerprintError, ValidationReason
from dedup_cache.ingest.fingerprint import (
    Fingerprinter,
    fingerprint_bytes,
    fingerprint_chunks,
    fingerprint_file,
    fingerprint_stream,
    normalize_fingerprint,
)

HELLO_SHA256 = "dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f"
EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

VECTORS = [b"", b"a", b"b", b"ab", b"ba", b"a\x00", b"Hello, World!", b"Hello, World!!", b"x" * 70_000]


def test_known_digests(hello_bytes: bytes) -> None:
    assert fingerprint_bytes(hello_bytes) == HELLO_SHA256
    assert fingerprint_bytes(b"") == EMPTY_SHA256


def test_digest_is_lowercase_hex_of_fixed_width() -> None:
    for vector in VECTORS:
        digest = fingerprint_bytes(vector)
        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)


def test_equal_bytes_hash_equal_and_distinct_vectors_differ() -> None:
    digests = [fingerprint_bytes(vector) for vector in VECTORS]
    assert [fingerprint_bytes(bytes(vector)) for vector in VECTORS] == digests
    assert len(set(digests)) == len(VECTORS)


def test_stream_matches_one_shot_hash_for_any_chunk_size() -> None:
    payload = bytes(range(256)) * 1000
    expected = fingerprint_bytes(payload)
    for chunk_size in (1, 7, 4096, 1 << 20):
        digest, size = fingerprint_stream(io.BytesIO(payload), chunk_size=chunk_size)
        assert digest == expected
        assert size == len(payload)


def test_incremental_hasher_tracks_size() -> None:
    hasher = Fingerprinter()
    hasher.update(b"Hello, ")
    hasher.update(b"World!")
    assert hasher.size == 13
    assert hasher.hexdigest() == HELLO_SHA256
    assert fingerprint_chunks([b"Hel", b"lo, World", b"!"]) == HELLO_SHA256


def test_fingerprint_file(tmp_path: Path, hello_bytes: bytes) -> None:
    path = tmp_path / "hello.txt"
    path.write_bytes(hello_bytes)
    assert fingerprint_file(path, chunk_size=4) == HELLO_SHA256


def test_read_failure_propagates() -> None:
    class BrokenStream(io.RawIOBase):
        def __init__(self) -> None:
            self.calls = 0

        def read(self, size: int = -1) -> bytes:
            self.calls += 1
            if self.calls > 1:
                raise OSError("connection reset")
            return b"partial"

    with pytest.raises(OSError, match="connection reset"):
        fingerprint_stream(BrokenStream())


def test_normalize_fingerprint_accepts_uppercase() -> None:
    assert normalize_fingerprint(f"  {HELLO_SHA256.upper()} ") == HELLO_SHA256


@pytest.mark.parametrize("value", ["", "abc", HELLO_SHA256[:-1], HELLO_SHA256 + "0", "g" * 64])
def test_normalize_fingerprint_rejects_malformed(value: str) -> None:
    with pytest.raises(InvalidFingerprintError) as excinfo:
        normalize_fingerprint(value)
    assert excinfo.value.reason is ValidationReason.INVALID_FINGERPRINT
