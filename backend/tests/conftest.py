"""Test fixtures for Dedup Cache."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset cached settings and environment between tests."""
    monkeypatch.setenv("DDC_DB_PATH", str(tmp_path / "files.db"))
    monkeypatch.delenv("DDC_CONFIG", raising=False)

    from dedup_cache.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    from dedup_cache.store import InMemoryRecordStore, SQLiteRecordStore

    if request.param == "memory":
        backend = InMemoryRecordStore(max_list_limit=100)
    else:
        backend = SQLiteRecordStore.open(tmp_path / "store.db", max_list_limit=100)
    yield backend
    backend.close()


@pytest.fixture
def make_fingerprint():
    from dedup_cache.ingest.fingerprint import fingerprint_bytes

    def _make(seed: str) -> str:
        return fingerprint_bytes(seed.encode("utf-8"))

    return _make


@pytest.fixture(scope="session")
def hello_bytes() -> bytes:
    return b"Hello, World!"
