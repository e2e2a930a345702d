"""Dashboard training-load endpoints."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter

from formline.dates import utc_now
from formline.dependencies import CurrentUserId, StorageDep
from formline.metrics.dashboard import daily_fitness_summary
from formline.models.fitness import DailyFitnessSummary

router = APIRouter(prefix="/fitness", tags=["fitness"])

# Current week plus the week before it
_LOOKBACK_DAYS = 13


@router.get("/daily", response_model=DailyFitnessSummary)
async def get_daily_fitness(user_id: CurrentUserId, storage: StorageDep) -> DailyFitnessSummary:
    """Today's fitness, fatigue, form and ACWR with week-over-week change."""
    today = utc_now().date()
    rows = await storage.find_metrics_since(user_id, today - timedelta(days=_LOOKBACK_DAYS))
    return daily_fitness_summary(rows, today)
