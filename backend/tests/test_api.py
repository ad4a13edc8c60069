"""API integration tests."""

from __future__ import annotations

import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from dedup_cache.app import create_app
from dedup_cache.core.config import Settings
from dedup_cache.ingest.fingerprint import fingerprint_bytes

HELLO_SHA256 = "dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f"


def _settings(**overrides) -> Settings:
    values = {
        "store_backend": "memory",
        "simulate_processing_delay": False,
        "max_upload_bytes": 100,
        "list_default_limit": 2,
        "list_max_limit": 3,
        "log_json": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def client() -> TestClient:
    with TestClient(create_app(settings=_settings())) as test_client:
        yield test_client


def _upload(client: TestClient, name: str, content: bytes, content_type: str = "text/plain"):
    return client.post("/upload", files={"file": (name, content, content_type)})


def _wait_for_status(client: TestClient, record_id: str, status: str) -> dict:
    deadline = time.monotonic() + 5
    while True:
        payload = client.get(f"/files/{record_id}").json()
        if payload["status"] == status or time.monotonic() > deadline:
            return payload
        time.sleep(0.02)


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "store": "memory"}


def test_upload_then_duplicate(client: TestClient, hello_bytes: bytes) -> None:
    first = _upload(client, "hello.txt", hello_bytes)
    assert first.status_code == 200
    body = first.json()
    assert body["duplicate"] is False
    assert body["record"]["status"] == "pending"
    assert body["record"]["fingerprint"] == HELLO_SHA256
    assert body["record"]["size"] == 13
    assert body["record"]["size_formatted"] == "13 B"
    assert body["record"]["content_type"] == "text/plain"

    second = _upload(client, "again.txt", hello_bytes)
    assert second.status_code == 200
    assert second.json()["duplicate"] is True
    assert second.json()["record"]["id"] == body["record"]["id"]
    assert second.json()["message"] == "File already exists in the system"

    completed = _wait_for_status(client, body["record"]["id"], "completed")
    assert completed["status"] == "completed"
    assert completed["chunk_count"] == 1


def test_empty_upload_is_rejected(client: TestClient) -> None:
    resp = _upload(client, "empty.txt", b"")
    assert resp.status_code == 400
    assert resp.json()["reason"] == "empty_content"
    assert client.get("/stats").json()["total_records"] == 0


def test_oversized_upload_is_rejected(client: TestClient) -> None:
    resp = _upload(client, "big.bin", b"x" * 101, "application/octet-stream")
    assert resp.status_code == 400
    assert resp.json()["reason"] == "too_large"


def test_check_duplicate(client: TestClient, hello_bytes: bytes) -> None:
    missing = client.get(f"/check-duplicate/{HELLO_SHA256}")
    assert missing.status_code == 200
    assert missing.json()["duplicate"] is False
    assert missing.json()["record"] is None

    record_id = _upload(client, "hello.txt", hello_bytes).json()["record"]["id"]
    found = client.get(f"/check-duplicate/{HELLO_SHA256.upper()}")
    assert found.json()["duplicate"] is True
    assert found.json()["record"]["id"] == record_id

    invalid = client.get("/check-duplicate/not-a-hash")
    assert invalid.status_code == 400
    assert invalid.json()["reason"] == "invalid_fingerprint"


def test_list_files_paginates(client: TestClient) -> None:
    for index in range(4):
        _upload(client, f"file{index}.txt", f"body {index}".encode())

    page = client.get("/files").json()
    assert [item["name"] for item in page["records"]] == ["file3.txt", "file2.txt"]
    assert page["pagination"] == {"limit": 2, "offset": 0, "total": 4, "has_more": True}
    assert page["stats"]["total_records"] == 4
    assert sum(page["stats"]["counts_by_status"].values()) == 4

    clamped = client.get("/files", params={"limit": 500, "offset": -3}).json()
    assert clamped["pagination"]["limit"] == 3
    assert clamped["pagination"]["offset"] == 0
    assert len(clamped["records"]) == 3

    smallest = client.get("/files", params={"limit": 0}).json()
    assert smallest["pagination"]["limit"] == 1
    assert len(smallest["records"]) == 1


def test_unknown_file_is_404(client: TestClient) -> None:
    resp = client.get("/files/file_missing")
    assert resp.status_code == 404
    assert "file_missing" in resp.json()["error"]


def test_stats_and_metrics(client: TestClient, hello_bytes: bytes) -> None:
    _upload(client, "hello.txt", hello_bytes)
    _upload(client, "hello.txt", hello_bytes)

    stats = client.get("/stats").json()
    assert stats["total_records"] == 1
    assert stats["unique_fingerprints"] == 1
    assert stats["duplicates_saved"] == 0
    assert set(stats["counts_by_status"]) == {"pending", "processing", "completed", "failed"}
    assert "timestamp" in stats

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "ddc_ingest_total" in metrics.text


def test_sqlite_records_survive_restart(tmp_path: Path) -> None:
    settings = _settings(store_backend="sqlite", db_path=tmp_path / "api.db")
    content = b"persist me"
    with TestClient(create_app(settings=settings)) as first:
        record_id = _upload(first, "keep.txt", content).json()["record"]["id"]
        _wait_for_status(first, record_id, "completed")

    with TestClient(create_app(settings=settings)) as second:
        found = second.get(f"/check-duplicate/{fingerprint_bytes(content)}").json()
        assert found["duplicate"] is True
        assert found["record"]["id"] == record_id
        assert found["record"]["status"] == "completed"
