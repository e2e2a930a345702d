"""Pydantic models for Strava API payloads.

Only the fields Formline stores are declared; everything else in the
payload is ignored.  A payload that fails validation is rejected on its
own (``pydantic.ValidationError``) so callers can skip that one record.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, RootModel

from formline.models.activities import STRAVA_SOURCE, ActivityRecord

# Strava activity types that carry cycling power
RIDE_TYPES: frozenset[str] = frozenset(
    {
        "Ride",
        "VirtualRide",
        "EBikeRide",
        "EMountainBikeRide",
        "GravelRide",
        "MountainBikeRide",
        "Velomobile",
        "Handcycle",
    }
)

# Channels requested from /activities/{id}/streams
STREAM_KEYS: tuple[str, ...] = ("time", "watts", "heartrate", "cadence")


def _floor(value: float | None) -> int | None:
    return math.floor(value) if value else None


class StravaActivity(BaseModel):
    """Summary activity as returned by /athlete/activities and /activities/{id}."""

    model_config = ConfigDict(extra="ignore")

    id: int = Field(description="Unique Strava activity ID")
    name: str
    distance: float = Field(description="Meters")
    moving_time: int = Field(description="Seconds")
    elapsed_time: int = Field(description="Seconds")
    total_elevation_gain: float
    type: str = Field(description="General type (e.g. Ride, Run)")
    sport_type: str | None = Field(default=None, description="Specific type (e.g. GravelRide)")
    start_date: datetime = Field(description="UTC start")
    average_speed: float = Field(description="m/s")
    max_speed: float = Field(description="m/s")
    average_cadence: float | None = None
    average_watts: float | None = None
    weighted_average_watts: float | None = None
    max_watts: float | None = None
    kilojoules: float | None = None
    average_heartrate: float | None = None
    max_heartrate: float | None = None

    @property
    def is_ride(self) -> bool:
        return self.type in RIDE_TYPES or (self.sport_type or "") in RIDE_TYPES

    def to_record(self, user_id: str | None = None) -> ActivityRecord:
        """Map to the local activity model (derived metrics left unset)."""
        return ActivityRecord(
            source=STRAVA_SOURCE,
            source_id=str(self.id),
            user_id=user_id,
            name=self.name,
            start_date=self.start_date,
            elapsed_time=self.elapsed_time,
            moving_time=self.moving_time,
            distance=self.distance,
            elevation_gain=self.total_elevation_gain,
            average_watts=_floor(self.average_watts),
            max_watts=_floor(self.max_watts),
            average_hr=_floor(self.average_heartrate),
            max_hr=_floor(self.max_heartrate),
            average_cadence=_floor(self.average_cadence),
            average_speed=self.average_speed,
            max_speed=self.max_speed,
            kilojoules=self.kilojoules,
        )


class StravaStream(BaseModel):
    """One stream channel (e.g. watts)."""

    model_config = ConfigDict(extra="ignore")

    data: list[float | None]
    series_type: str = "time"
    original_size: int = 0
    resolution: str = "high"


class StravaStreamSet(RootModel[dict[str, StravaStream]]):
    """Streams keyed by channel name (``key_by_type=true``)."""

    def channel(self, name: str) -> list[float | None] | None:
        stream = self.root.get(name)
        return stream.data if stream else None


class StravaTokenResponse(BaseModel):
    """Response of POST /oauth/token for both grant types."""

    model_config = ConfigDict(extra="ignore")

    token_type: str = "Bearer"
    access_token: str
    refresh_token: str
    expires_at: int
    athlete: dict | None = None


class StravaWebhookEvent(BaseModel):
    """Push subscription event."""

    object_type: Literal["activity", "athlete"]
    object_id: int = Field(gt=0)
    aspect_type: Literal["create", "update", "delete"]
    updates: dict[str, str] | None = None
    owner_id: int = Field(gt=0)
    subscription_id: int = Field(gt=0)
    event_time: int = Field(gt=0)
