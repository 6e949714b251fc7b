"""Shared test fixtures for csvcal tests.

This module provides common fixtures used across all test modules:
- Storage isolation with temporary directories
- A ready EventStore backed by that storage
- Sample events and series templates

Usage:
    def test_something(store):
        # store saves into a temporary directory that is removed after the test
        ...
"""

from datetime import date, datetime
from pathlib import Path

import pytest

from csvcal import Config, CsvEventStorage, EventStore, SeriesRequest


# ─────────────────────────────────────────────────────────────────────────────
# Storage Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    """Create a temporary storage directory.

    Returns:
        Path to temporary data directory
    """
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


@pytest.fixture
def storage(storage_dir: Path) -> CsvEventStorage:
    """CSV storage writing into the temporary directory."""
    return CsvEventStorage(storage_dir)


@pytest.fixture
def store(storage: CsvEventStorage) -> EventStore:
    """Empty event store on temporary storage."""
    event_store = EventStore(storage, Config())
    event_store.load()
    return event_store


# ─────────────────────────────────────────────────────────────────────────────
# Event Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def weekly_request() -> SeriesRequest:
    """Three weekly one-hour occurrences starting Monday 2025-01-06 10:00."""
    return SeriesRequest(
        title="Standup",
        description="Team sync",
        start=datetime(2025, 1, 6, 10, 0),
        end=datetime(2025, 1, 6, 11, 0),
        interval="1w",
        count=3,
    )


@pytest.fixture
def daily_until_request() -> SeriesRequest:
    """Daily 30-minute series ending (inclusive) on 2025-03-05."""
    return SeriesRequest(
        title="Walk",
        description="",
        start=datetime(2025, 3, 1, 7, 0),
        end=datetime(2025, 3, 1, 7, 30),
        interval="1d",
        end_date=date(2025, 3, 5),
    )
