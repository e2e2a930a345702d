"""Shared fixtures and mock Strava payloads."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from formline.strava.auth import TokenProvider


def strava_activity(activity_id: int, **overrides: Any) -> dict[str, Any]:
    """A /athlete/activities item as Strava returns it."""
    payload = {
        "id": activity_id,
        "name": f"Ride {activity_id}",
        "distance": 42000.0,
        "moving_time": 3600,
        "elapsed_time": 3900,
        "total_elevation_gain": 350.0,
        "type": "Ride",
        "sport_type": "Ride",
        "start_date": "2024-05-01T07:30:00Z",
        "average_speed": 11.7,
        "max_speed": 17.2,
        "average_cadence": 88.6,
        "average_watts": 212.7,
        "weighted_average_watts": 225.0,
        "max_watts": 812.0,
        "kilojoules": 765.7,
        "average_heartrate": 145.4,
        "max_heartrate": 178.0,
        "kudos_count": 3,
    }
    payload.update(overrides)
    return payload


def stream_payload(watts: list[float | None]) -> dict[str, Any]:
    """A /activities/{id}/streams response with key_by_type=true."""
    return {
        "time": {"data": list(range(len(watts))), "series_type": "distance",
                 "original_size": len(watts), "resolution": "high"},
        "watts": {"data": watts, "series_type": "distance",
                  "original_size": len(watts), "resolution": "high"},
    }


class StaticTokens(TokenProvider):
    """Token provider that hands out a fixed token per user."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def get_valid_token(self, user_id: str) -> str:
        self.calls.append(user_id)
        return f"token-{user_id}"


@pytest.fixture
def tokens() -> StaticTokens:
    return StaticTokens()


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """Mock httpx.AsyncClient returning an empty 200 JSON body."""
    client = MagicMock()
    response = MagicMock()
    response.status_code = 200
    response.json = MagicMock(return_value={})
    client.get = AsyncMock(return_value=response)
    client.post = AsyncMock(return_value=response)
    return client


@pytest.fixture
def make_activity():
    return strava_activity


@pytest.fixture
def make_streams():
    return stream_payload
