"""Tests for the HTTP API.

Uses FastAPI's TestClient against an app built around an already initialized
storage adapter backed by a temporary SQLite file.
"""

from __future__ import annotations

import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from activity_tracker.app import create_app
from activity_tracker.database import PrimaryStore, get_sync_session
from activity_tracker.models import Activity
from activity_tracker.storage import StorageAdapter

from conftest import HOUR_MS, NOW_MS

JUNE = {"startDate": "2025-06-01T00:00:00Z", "endDate": "2025-06-30T23:59:59Z"}


def _adapter(url: str, **kwargs) -> StorageAdapter:
    return StorageAdapter(
        database_url=url, backoff_base=0.001, backoff_cap=0.01, drain_timeout=2.0, **kwargs
    )


@pytest.fixture()
def storage(tmp_path: Path, database_url: str):
    adapter = _adapter(database_url)
    adapter.init(tmp_path / "fallback")
    yield adapter
    adapter.disconnect()


@pytest.fixture()
def seeded(storage, make_record):
    records = [
        make_record(timestamp=NOW_MS - 3 * HOUR_MS, duration=1000, project="/a", language="go"),
        make_record(timestamp=NOW_MS - 2 * HOUR_MS, duration=2000, project="/b"),
        make_record(timestamp=NOW_MS - HOUR_MS, duration=3000, project="/a",
                    computer_id="desktop"),
    ]
    for record in records:
        storage.write(record).result(timeout=5)
    return records


@pytest.fixture()
def client(storage) -> TestClient:
    return TestClient(create_app(storage=storage))


@pytest.fixture()
def fallback_client(tmp_path: Path, unreachable_url: str):
    adapter = _adapter(unreachable_url)
    adapter.init(tmp_path / "fallback")
    yield TestClient(create_app(storage=adapter))
    adapter.disconnect()


class TestReport:
    def test_report_with_statistics_and_meta(self, client, seeded) -> None:
        resp = client.get("/report", params=JUNE)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert [a["duration"] for a in body["data"]] == [3000, 2000, 1000]
        assert body["statistics"]["totalDuration"] == 6000
        assert body["statistics"]["count"] == 3
        assert body["meta"]["total"] == 3
        assert body["meta"]["startDate"] == "2025-06-01T00:00:00+00:00"
        assert body["meta"]["filters"]["projects"] == []

    def test_list_filters_accept_both_spellings(self, client, seeded) -> None:
        resp = client.get("/report", params={**JUNE, "projects": "/a"})
        assert [a["duration"] for a in resp.json()["data"]] == [3000, 1000]

        resp = client.get("/report", params={**JUNE, "projects[]": "/a", "computers[]": "desktop"})
        body = resp.json()
        assert [a["duration"] for a in body["data"]] == [3000]
        assert body["meta"]["filters"]["computers"] == ["desktop"]

    def test_limit_and_offset(self, client, seeded) -> None:
        resp = client.get("/report", params={**JUNE, "limit": 1, "offset": 1})
        body = resp.json()
        assert [a["duration"] for a in body["data"]] == [2000]
        # Statistics ignore pagination
        assert body["statistics"]["count"] == 3

    def test_malformed_date_is_bad_request(self, client) -> None:
        resp = client.get("/report", params={"startDate": "last tuesday"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_reversed_range_is_bad_request(self, client) -> None:
        resp = client.get(
            "/report", params={"startDate": "2025-06-30", "endDate": "2025-06-01"}
        )
        assert resp.status_code == 400

    def test_negative_limit_is_bad_request(self, client) -> None:
        resp = client.get("/report", params={**JUNE, "limit": -1})
        assert resp.status_code == 400


class TestStatistics:
    def test_timeline_grouped_by_hour(self, client, seeded) -> None:
        resp = client.get("/statistics", params={**JUNE, "groupBy": "hour"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["statistics"]["totalDuration"] == 6000
        assert [p["period"] for p in body["timeline"]] == [
            "2025-06-15 09:00:00",
            "2025-06-15 10:00:00",
            "2025-06-15 11:00:00",
        ]

    def test_default_grouping_is_day(self, client, seeded) -> None:
        body = client.get("/statistics", params=JUNE).json()
        assert body["timeline"] == [{"period": "2025-06-15", "duration": 6000, "count": 3}]


class TestFilters:
    def test_distinct_values(self, client, seeded) -> None:
        body = client.get("/filters").json()
        assert body == {
            "success": True,
            "filters": {
                "projects": ["/a", "/b"],
                "languages": ["go", "python"],
                "computers": ["desktop", "laptop"],
            },
        }


class TestFallbackBackend:
    @pytest.mark.parametrize("path", ["/report", "/statistics", "/filters"])
    def test_reads_unavailable(self, fallback_client, path) -> None:
        resp = fallback_client.get(path)
        assert resp.status_code == 503
        assert resp.json()["success"] is False

    def test_writes_still_accepted(self, fallback_client, make_record) -> None:
        resp = fallback_client.post("/activities", json={"timestamp": NOW_MS, "duration": 10})
        assert resp.status_code == 202
        assert fallback_client.get("/status").json()["backend"] == "fallback"


class TestPostActivity:
    def test_queued_write_is_stored(self, client, storage, database_url) -> None:
        resp = client.post(
            "/activities",
            json={
                "kind": "code",
                "timestamp": NOW_MS,
                "duration": 1500,
                "language": "rust",
                "computerId": "laptop",
                "vcsType": "git",
            },
        )
        assert resp.status_code == 202
        assert resp.json() == {"success": True, "queued": True}

        storage.disconnect()
        store = PrimaryStore(database_url)
        store.initialize()
        try:
            with get_sync_session(store.engine) as session:
                row = session.scalars(select(Activity)).one()
                assert (row.kind, row.language, row.vcs_type) == (2, "rust", "git")
                assert row.computer_id == "laptop"
        finally:
            store.disconnect()

    def test_invalid_record_is_bad_request(self, client, storage) -> None:
        resp = client.post("/activities", json={"timestamp": NOW_MS, "duration": -5})
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert storage.queue_depth == 0

    def test_oversized_duration_does_not_block_later_writes(self, client, storage) -> None:
        resp = client.post(
            "/activities", json={"timestamp": NOW_MS, "duration": 3_000_000_000}
        )
        assert resp.status_code == 400
        assert "out of range" in resp.json()["error"]

        resp = client.post("/activities", json={"timestamp": NOW_MS, "duration": 10})
        assert resp.status_code == 202

        deadline = time.monotonic() + 5
        while storage.queue_stats()["committed"] < 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert storage.queue_stats()["committed"] == 1
        assert storage.queue_stats()["failed_attempts"] == 0

    def test_uninitialized_storage_is_unavailable(self, database_url, make_record) -> None:
        client = TestClient(create_app(storage=_adapter(database_url)))
        resp = client.post("/activities", json={"timestamp": NOW_MS, "duration": 10})
        assert resp.status_code == 503

    def test_writes_counted_in_status(self, client, seeded) -> None:
        body = client.get("/status").json()
        assert body["backend"] == "primary"
        assert body["queueDepth"] == 0
        assert body["stats"]["committed"] == 3
