"""Shared fixtures for the activity tracker test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from activity_tracker.database import PrimaryStore

# 2025-06-15 12:00:00 UTC
NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)
HOUR_MS = 3_600_000


@pytest.fixture()
def database_url(tmp_path: Path) -> str:
    store_dir = tmp_path / "store"
    store_dir.mkdir()
    return f"sqlite:///{store_dir / 'activities.db'}"


@pytest.fixture()
def unreachable_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'missing' / 'dir' / 'activities.db'}"


@pytest.fixture()
def primary_store(database_url: str):
    store = PrimaryStore(database_url)
    store.initialize()
    yield store
    store.disconnect()


@pytest.fixture()
def make_record() -> Callable[..., dict[str, Any]]:
    """Factory for normalized records with overridable fields."""

    def _make(**overrides: Any) -> dict[str, Any]:
        record = {
            "kind": 2,
            "timestamp": NOW_MS - HOUR_MS,
            "duration": 5000,
            "language": "python",
            "file": "/work/app/main.py",
            "project": "/work/app",
            "computer_id": "laptop",
            "vcs_type": "",
            "vcs_repo": "",
            "vcs_branch": "",
            "line": 0,
            "char": 0,
        }
        record.update(overrides)
        return record

    return _make
