"""Pydantic models for the daily training-load series."""

from __future__ import annotations

from datetime import date

from formline.models.base import FormlineBase


class DailyTrainingMetrics(FormlineBase):
    """One row of the daily series, unique on ``(user_id, date)``."""

    user_id: str
    date: date
    fitness: float
    fatigue: float
    form: float
    acwr: float | None = None


class DailyFitnessSummary(FormlineBase):
    """Dashboard headline numbers with week-over-week change in percent."""

    fitness: int
    fitness_change: float
    fatigue: int
    fatigue_change: float
    form: int
    form_change: float
    acwr: float
