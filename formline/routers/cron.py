"""Scheduled job endpoints.

Called by the platform scheduler with ``Authorization: Bearer <CRON_SECRET>``.
Responses use a fixed envelope::

    {"status": "success", "message": ..., "data": {...}}
    {"status": "error",   "message": ..., "error": "..."}
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from formline.dates import end_of_day, parse_yyyymmdd, start_of_day, utc_now
from formline.dependencies import ActivitySync, FitnessSync, verify_cron
from formline.models.sync import DateRange, ServiceResult

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron)])
logger = logging.getLogger("formline.cron")

# Days ahead of today the daily fitness job projects the decay
_DAILY_SYNC_DAYS_AHEAD = 7


def parse_date_range(after_date: str, before_date: str | None) -> DateRange:
    """Build a sync window from ``YYYY-MM-DD`` query values.

    ``before_date`` defaults to today (UTC) and always extends to the end of
    its day.

    Raises:
        HTTPException(422): On a malformed date or a start after the end.
    """
    try:
        start = parse_yyyymmdd(after_date)
        end = parse_yyyymmdd(before_date) if before_date else utc_now().date()
        return DateRange(start_date=start_of_day(start), end_date=end_of_day(end))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _respond(result: ServiceResult, job: str, dry_run: bool) -> Any:
    if not result.success:
        logger.error("[%s] Failed: %s", job, result.error)
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "message": f"Failed to sync {job}",
                "error": result.error or "Unknown error",
            },
        )

    data = result.data.model_dump() if result.data is not None else None
    if data is not None and result.details:
        data["failures"] = [f.model_dump() for f in result.details]
    return {
        "status": "success",
        "message": f"{job.capitalize()} synced successfully{' (dry run)' if dry_run else ''}",
        "data": data,
    }


@router.post("/sync-activities")
async def sync_activities(
    service: ActivitySync,
    after_date: str = Query(..., description="YYYY-MM-DD, inclusive"),
    before_date: str | None = Query(None, description="YYYY-MM-DD, inclusive; defaults to today"),
    dry_run: bool = False,
) -> Any:
    """Sync every connected user's Strava rides in the window."""
    date_range = parse_date_range(after_date, before_date)
    result = await service.sync_activities(date_range, dry_run)
    return _respond(result, "activities", dry_run)


@router.post("/sync-fitness")
async def sync_fitness(
    service: FitnessSync,
    after_date: str = Query(..., description="YYYY-MM-DD, inclusive"),
    before_date: str | None = Query(None, description="YYYY-MM-DD, inclusive; defaults to today"),
    dry_run: bool = False,
) -> Any:
    """Recompute the daily training-load series in the window."""
    date_range = parse_date_range(after_date, before_date)
    result = await service.sync_fitness(date_range, dry_run)
    return _respond(result, "fitness", dry_run)


@router.get("/daily-fitness-sync")
async def daily_fitness_sync(service: FitnessSync) -> Any:
    """Recompute yesterday through a week ahead so rest days keep decaying."""
    today = utc_now().date()
    date_range = DateRange(
        start_date=start_of_day(today - timedelta(days=1)),
        end_date=end_of_day(today + timedelta(days=_DAILY_SYNC_DAYS_AHEAD)),
    )
    logger.info("[daily-fitness-sync] Job started for %s", date_range.start_date.date())
    result = await service.sync_fitness(date_range)
    return _respond(result, "fitness", dry_run=False)
