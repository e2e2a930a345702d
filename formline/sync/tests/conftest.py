"""Shared fixtures for sync tests: in-memory storage, fake Strava client, fast options."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from formline.config_loader import RateLimitConfig, SyncOptions
from formline.dates import utc_now
from formline.models.activities import ActivityRecord
from formline.models.connections import FtpHistoryEntry, ServiceConnection
from formline.storage.memory import InMemoryStorage
from formline.strava.auth import StravaTokenService
from formline.strava.fetcher import ActivityFetcher

UTC = timezone.utc


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def ride_payload(activity_id: int, start: datetime, moving_time: int = 3600) -> dict[str, Any]:
    return {
        "id": activity_id,
        "name": f"Ride {activity_id}",
        "distance": 40000.0,
        "moving_time": moving_time,
        "elapsed_time": moving_time + 300,
        "total_elevation_gain": 250.0,
        "type": "Ride",
        "sport_type": "Ride",
        "start_date": start.isoformat(),
        "average_speed": 11.1,
        "max_speed": 16.0,
        "average_watts": 240.0,
        "max_watts": 700.0,
        "average_heartrate": 150.0,
        "max_heartrate": 180.0,
    }


def watts_stream(watts: float, seconds: int = 3600) -> dict[str, Any]:
    return {"watts": {"data": [watts] * seconds, "series_type": "time"}}


def connect(storage: InMemoryStorage, user_id: str, account_id: str) -> None:
    storage.add_connection(
        ServiceConnection(
            user_id=user_id,
            provider="strava",
            provider_account_id=account_id,
            access_token=f"token-{user_id}",
            refresh_token="refresh",
            expires_at=utc_now() + timedelta(days=1),
        )
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def options() -> SyncOptions:
    return SyncOptions(
        concurrency_limit=2, batch_size=100, retry_attempts=2, retry_base_delay_seconds=0.5
    )


@pytest.fixture
def strava_client() -> MagicMock:
    """Strava client whose endpoints are AsyncMocks configured per test."""
    client = MagicMock()
    client.list_activities = AsyncMock(return_value=[])
    client.get_activity = AsyncMock()
    client.get_streams = AsyncMock(return_value=watts_stream(250.0))
    client.exchange_token = AsyncMock()
    return client


@pytest.fixture
def fetcher(storage, strava_client, sleep) -> ActivityFetcher:
    tokens = StravaTokenService(storage, strava_client, "client-id", "client-secret")
    return ActivityFetcher(
        strava_client, tokens, RateLimitConfig(requests_per_batch=10, batch_delay_seconds=3.0), sleep
    )


@pytest.fixture
def make_ride():
    return ride_payload


@pytest.fixture
def make_stream():
    return watts_stream


@pytest.fixture
def add_connection(storage):
    return lambda user_id, account_id: connect(storage, user_id, account_id)


@pytest.fixture
def add_ftp(storage):
    def _add(user_id: str, ftp: int, effective_from: datetime) -> None:
        storage.add_ftp_entry(FtpHistoryEntry(user_id=user_id, ftp=ftp, effective_from=effective_from))

    return _add


@pytest.fixture
def add_activity(storage):
    """Store an activity directly (bypassing Strava) with a given training load."""

    def _add(user_id: str, source_id: str, start: datetime, training_load: int | None) -> None:
        storage.activities[("strava", source_id)] = ActivityRecord(
            source_id=source_id,
            user_id=user_id,
            name=f"Stored {source_id}",
            start_date=start,
            elapsed_time=3600,
            moving_time=3600,
            training_load=training_load,
        )

    return _add
