"""Strava activity synchronization.

For every user with a Strava connection:

1. Page through their rides in the requested window.
2. Look up which of them are already stored.
3. Fetch power streams in rate-limited batches and derive NP, TSS (with the
   FTP in effect on the ride date) and calories.
4. Create new activities (skip-duplicates) and overwrite existing ones, or
   only count what would change in a dry run.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Sequence

from formline.config_loader import SyncOptions
from formline.metrics.ftp import ftp_for_date
from formline.metrics.power import calories, normalized_power, training_stress_score
from formline.models.activities import STRAVA_SOURCE, ActivityRecord
from formline.models.connections import FtpHistoryEntry
from formline.models.sync import DateRange, ServiceResult, SyncSummary
from formline.storage.base import Storage
from formline.strava.fetcher import ActivityFetcher
from formline.strava.schemas import StravaActivity, StravaStreamSet
from formline.sync.orchestrator import SyncOrchestrator, TargetStats
from formline.sync.reconciler import apply, partition
from formline.sync.retry import Sleep

logger = logging.getLogger("formline.sync.activities")


def _round(value: float | None) -> int | None:
    return math.floor(value + 0.5) if value else None


def build_activity_record(
    user_id: str,
    activity: StravaActivity,
    streams: StravaStreamSet | None,
    ftp_history: Sequence[FtpHistoryEntry],
) -> ActivityRecord:
    """Map a Strava ride to a local record with derived power metrics.

    NP comes from the watts stream; TSS needs both NP and an FTP effective
    on the ride's start date; calories use moving time and average power.
    """
    record = activity.to_record(user_id)

    watts = streams.channel("watts") if streams else None
    np = normalized_power(watts) if watts else None

    ftp = ftp_for_date(record.start_date, ftp_history)
    tss = training_stress_score(np, record.moving_time, ftp) if np and ftp else None

    kcal = None
    if record.moving_time > 0 and record.average_watts:
        kcal = calories(record.moving_time, record.average_watts)

    return record.model_copy(
        update={
            "normalized_power": _round(np),
            "training_load": _round(tss),
            "calories": kcal,
        }
    )


class ActivitySyncOrchestrator(SyncOrchestrator):
    """Sync rides from Strava for every connected user.

    Usage::

        orchestrator = ActivitySyncOrchestrator(storage, fetcher, config.activities)
        result = await orchestrator.run(DateRange(start_date=...), dry_run=True)
    """

    name = "activities"

    def __init__(
        self,
        storage: Storage,
        fetcher: ActivityFetcher,
        options: SyncOptions,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(storage, options, sleep)
        self._fetcher = fetcher

    async def discover_targets(self, date_range: DateRange) -> list[str]:
        connections = await self._storage.find_active_connections(STRAVA_SOURCE)
        # One target per user even if they linked several Strava accounts
        return list(dict.fromkeys(c.user_id for c in connections))

    async def sync_target(
        self,
        user_id: str,
        date_range: DateRange,
        dry_run: bool,
        options: SyncOptions,
    ) -> TargetStats:
        started = time.perf_counter()
        activities = await self._fetcher.list_activities(
            user_id, date_range.start_date, date_range.end, options.batch_size
        )
        stats = TargetStats(items=len(activities))
        if not activities:
            logger.info("User %s: no activities found", user_id)
            return stats

        source_ids = [str(a.id) for a in activities]
        existing = await self._storage.find_activities_by_source_ids(source_ids, STRAVA_SOURCE)
        ftp_history = await self._storage.find_ftp_history(user_id)

        size = options.batch_size
        chunks = [activities[i:i + size] for i in range(0, len(activities), size)]
        for index, chunk in enumerate(chunks):
            logger.debug("User %s: processing activity batch %d/%d", user_id, index + 1, len(chunks))
            fetched = await self._fetcher.get_streams(user_id, [a.id for a in chunk])
            # A failed stream request must not overwrite stored power metrics
            failed = set(fetched.failed_ids)
            if failed:
                logger.warning(
                    "User %s: skipping %d activities whose streams failed to load: %s",
                    user_id,
                    len(failed),
                    ", ".join(fetched.failed_ids),
                )
                stats.skipped += len(failed)
            records = [
                build_activity_record(user_id, a, fetched.streams.get(str(a.id)), ftp_history)
                for a in chunk
                if str(a.id) not in failed
            ]
            reconciliation = partition(records, existing)

            if dry_run:
                stats.created += len(reconciliation.to_create)
                stats.updated += len(reconciliation.to_update)
            else:
                applied = await apply(reconciliation, self._storage, STRAVA_SOURCE)
                stats.created += applied.created
                stats.updated += applied.updated

        logger.info(
            "User %s completed in %.2fs (%s: %d, %s: %d, total: %d)",
            user_id,
            time.perf_counter() - started,
            "would create" if dry_run else "created",
            stats.created,
            "would update" if dry_run else "updated",
            stats.updated,
            stats.items,
        )
        return stats


class ActivitySyncService:
    """Public activity sync operations."""

    def __init__(self, storage: Storage, fetcher: ActivityFetcher, options: SyncOptions) -> None:
        self._storage = storage
        self._fetcher = fetcher
        self._orchestrator = ActivitySyncOrchestrator(storage, fetcher, options)

    async def sync_activities(
        self,
        date_range: DateRange,
        dry_run: bool = False,
        options: SyncOptions | None = None,
    ) -> ServiceResult[SyncSummary]:
        """Sync all connected users' rides in ``date_range``."""
        return await self._orchestrator.run(date_range, dry_run, options)

    async def sync_activity(self, user_id: str, source_id: str) -> ServiceResult[ActivityRecord]:
        """Fetch, process and store a single activity, overwriting any stored copy.

        Non-ride activities are ignored and reported with code ``NOT_A_RIDE``.
        """
        try:
            activity = await self._fetcher.get_activity(user_id, source_id)
            if not activity.is_ride:
                logger.info("Activity %s is a %s, skipping", source_id, activity.type)
                return ServiceResult.fail(f"Activity {source_id} is not a ride", code="NOT_A_RIDE")

            streams = await self._fetcher.get_stream(user_id, source_id)
            ftp_history = await self._storage.find_ftp_history(user_id)
            record = build_activity_record(user_id, activity, streams, ftp_history)
            await self._storage.create_activity(record)
        except Exception as exc:
            logger.error("Failed to sync activity %s for user %s: %s", source_id, user_id, exc)
            return ServiceResult.fail(f"Failed to sync activity {source_id}", code="SYNC_FAILED")

        logger.info("Synced activity %s for user %s", source_id, user_id)
        return ServiceResult.ok(record)
