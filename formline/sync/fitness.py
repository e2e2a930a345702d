"""Daily fitness (CTL / ATL / TSB) recomputation.

For every user with training history:

1. Seed the model from the latest stored row before the range start, or
   from an all-zero state anchored the day before the range.
2. Sum stored activity training loads per day and step the model through
   every calendar day in the range.
3. Diff the series against stored rows by date and write creates and
   updates in batches; each update batch is a single transaction.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from formline.config_loader import SyncOptions
from formline.metrics.training_load import (
    DEFAULT_CONSTANTS,
    TrainingLoad,
    TrainingLoadConstants,
    build_continuous_metrics,
    seed_day,
    zero_state,
)
from formline.models.fitness import DailyTrainingMetrics
from formline.models.sync import DateRange, ServiceResult, SyncSummary
from formline.storage.base import Storage
from formline.sync.orchestrator import SyncOrchestrator, TargetStats
from formline.sync.retry import Sleep

logger = logging.getLogger("formline.sync.fitness")

# Days logged at each end of a computed series
_SAMPLE_SIZE = 3


def to_row(user_id: str, state: TrainingLoad) -> DailyTrainingMetrics:
    return DailyTrainingMetrics(
        user_id=user_id,
        date=state.day,
        fitness=state.ctl,
        fatigue=state.atl,
        form=state.tsb,
        acwr=state.acwr,
    )


def _sample(series: list[TrainingLoad]) -> list[TrainingLoad]:
    if len(series) <= _SAMPLE_SIZE * 2:
        return series
    return series[:_SAMPLE_SIZE] + series[-_SAMPLE_SIZE:]


class FitnessSyncOrchestrator(SyncOrchestrator):
    """Recompute the daily training-load series for every active user.

    ``options.batch_size`` is the number of metric rows per write batch.
    """

    name = "fitness"

    def __init__(
        self,
        storage: Storage,
        options: SyncOptions,
        constants: TrainingLoadConstants = DEFAULT_CONSTANTS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(storage, options, sleep)
        self._constants = constants

    async def discover_targets(self, date_range: DateRange) -> list[str]:
        return await self._storage.find_users_with_training_history()

    async def _seed(self, user_id: str, start: date) -> TrainingLoad:
        previous = await self._storage.find_latest_metric_before(user_id, start)
        if previous is None:
            return zero_state(seed_day(start))
        logger.info("User %s: seeding from metrics of %s", user_id, previous.date.isoformat())
        return TrainingLoad(
            ctl=previous.fitness, atl=previous.fatigue, tsb=previous.form, day=previous.date
        )

    async def sync_target(
        self,
        user_id: str,
        date_range: DateRange,
        dry_run: bool,
        options: SyncOptions,
    ) -> TargetStats:
        start, end = date_range.start_date, date_range.end
        first_day, last_day = start.date(), end.date()

        loads = await self._storage.find_activity_loads(user_id, start, end)
        logger.info("User %s: found %d activities in range", user_id, len(loads))

        initial = await self._seed(user_id, first_day)
        series = build_continuous_metrics(
            ((a.start_date, a.training_load) for a in loads),
            start,
            end,
            initial,
            self._constants,
        )

        for state in _sample(series):
            logger.info(
                "User %s metric (%s): fitness %.2f | fatigue %.2f | form %.2f | ACWR %s",
                user_id,
                state.day.isoformat(),
                state.ctl,
                state.atl,
                state.tsb,
                f"{state.acwr:.2f}" if state.acwr is not None else "N/A",
            )

        existing = {
            row.date for row in await self._storage.find_metrics_in_range(user_id, first_day, last_day)
        }
        rows = [to_row(user_id, state) for state in series]
        to_update = [row for row in rows if row.date in existing]
        to_create = [row for row in rows if row.date not in existing]
        stats = TargetStats(items=len(rows))

        if dry_run:
            stats.created, stats.updated = len(to_create), len(to_update)
            logger.info(
                "User %s: dry run, would create %d and update %d metrics",
                user_id, stats.created, stats.updated,
            )
            return stats

        logger.info(
            "User %s: updating %d metrics, creating %d metrics",
            user_id, len(to_update), len(to_create),
        )
        size = options.batch_size
        for i in range(0, len(to_update), size):
            stats.updated += await self._storage.update_metrics(to_update[i:i + size])
        for i in range(0, len(to_create), size):
            stats.created += await self._storage.create_metrics(to_create[i:i + size])
        return stats


class FitnessSyncService:
    """Public fitness sync operations."""

    def __init__(
        self,
        storage: Storage,
        options: SyncOptions,
        constants: TrainingLoadConstants = DEFAULT_CONSTANTS,
    ) -> None:
        self._orchestrator = FitnessSyncOrchestrator(storage, options, constants)

    async def sync_fitness(
        self,
        date_range: DateRange,
        dry_run: bool = False,
        options: SyncOptions | None = None,
    ) -> ServiceResult[SyncSummary]:
        """Recompute every active user's series over ``date_range``."""
        return await self._orchestrator.run(date_range, dry_run, options)
