"""Pydantic models for locally stored activities."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from formline.dates import to_utc
from formline.models.base import FormlineBase

STRAVA_SOURCE = "strava"


class ActivityRecord(FormlineBase):
    """One activity as persisted locally.

    ``(source_id, source)`` is the reconciliation key.  Derived fields
    (``normalized_power``, ``training_load``, ``calories``) are filled in by
    the activity sync before the record is written.
    """

    source_id: str = Field(max_length=30)
    source: str = Field(default=STRAVA_SOURCE, max_length=100)
    user_id: str | None = None
    name: str
    start_date: datetime
    elapsed_time: int
    moving_time: int
    distance: float | None = None
    elevation_gain: float | None = None
    average_watts: int | None = None
    max_watts: int | None = None
    normalized_power: int | None = None
    training_load: int | None = None
    average_hr: int | None = None
    max_hr: int | None = None
    average_cadence: int | None = None
    average_speed: float | None = None
    max_speed: float | None = None
    kilojoules: float | None = None
    calories: int | None = None

    @field_validator("start_date")
    @classmethod
    def _normalize_start_date(cls, value: datetime) -> datetime:
        return to_utc(value)


class ActivityLoad(FormlineBase):
    """The two fields the fitness sync reads back from stored activities."""

    start_date: datetime
    training_load: float | None = None
