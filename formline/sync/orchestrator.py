"""Shared run loop for the activity and fitness sync jobs.

A run:

1. Discovers its targets (users) once.  A failure here fails the run.
2. Syncs every target on a bounded worker pool, each with retry/backoff.
3. Aggregates the settled outcomes into a ``SyncSummary``.

A target that exhausts its retries is reported in the result details; it
never aborts the run or its siblings.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from formline.config_loader import SyncOptions
from formline.models.sync import DateRange, ServiceResult, SyncSummary, TargetFailure
from formline.storage.base import Storage
from formline.sync.pool import JobOutcome, WorkerPool
from formline.sync.retry import Failed, Outcome, Sleep, Succeeded, with_retry

logger = logging.getLogger("formline.sync.orchestrator")


@dataclass
class TargetStats:
    """What one target contributed to the run."""

    items: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0


def success_rate(succeeded: int, total: int) -> int:
    """Percentage of succeeded targets, rounded half up; 100 with no targets."""
    if total == 0:
        return 100
    return math.floor(succeeded / total * 100 + 0.5)


class SyncOrchestrator(ABC):
    """Base class for per-user sync jobs.

    Subclasses implement ``discover_targets`` and ``sync_target``.
    """

    name = "sync"

    def __init__(
        self,
        storage: Storage,
        options: SyncOptions,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            storage: Persistent store.
            options: Default tuning; ``run`` accepts per-call overrides.
            sleep:   Awaitable used for retry backoff.
        """
        self._storage = storage
        self._options = options
        self._sleep = sleep

    @abstractmethod
    async def discover_targets(self, date_range: DateRange) -> list[str]:
        """Return the user ids to sync in this run."""

    @abstractmethod
    async def sync_target(
        self,
        target: str,
        date_range: DateRange,
        dry_run: bool,
        options: SyncOptions,
    ) -> TargetStats:
        """Sync one user.  Any exception triggers a retry."""

    async def run(
        self,
        date_range: DateRange,
        dry_run: bool = False,
        options: SyncOptions | None = None,
    ) -> ServiceResult[SyncSummary]:
        """Execute a full run.

        Args:
            date_range: Window to sync.
            dry_run:    Perform every read and computation but no writes.
            options:    Overrides the constructor defaults for this run.

        Returns:
            ``ServiceResult.ok(summary, details=failures)``, or
            ``ServiceResult.fail`` if targets could not be discovered.
        """
        opts = options or self._options
        started = time.perf_counter()
        logger.info(
            "[%s] Starting sync for %s to %s (%s)",
            self.name,
            date_range.start_date.isoformat(),
            date_range.end_date.isoformat() if date_range.end_date else "now",
            "DRY RUN" if dry_run else "LIVE",
        )

        try:
            targets = await self.discover_targets(date_range)
        except Exception as exc:
            elapsed = time.perf_counter() - started
            logger.error("[%s] Fatal error after %.2fs: %s", self.name, elapsed, exc)
            return ServiceResult.fail(f"Failed to sync {self.name}: {exc}", code="SETUP_FAILED")

        if not targets:
            logger.info("[%s] No targets found, nothing to sync", self.name)
        else:
            logger.info("[%s] Found %d target(s) to process", self.name, len(targets))

        async def run_target(target: str) -> Outcome[TargetStats]:
            return await with_retry(
                lambda: self.sync_target(target, date_range, dry_run, opts),
                opts.retry_attempts,
                opts.retry_base_delay_seconds,
                label=f"[{self.name}] user {target}",
                sleep=self._sleep,
            )

        outcomes = await WorkerPool(opts.concurrency_limit).run_all(targets, run_target)
        summary, failures = self.aggregate(outcomes, dry_run)
        summary.elapsed_seconds = time.perf_counter() - started

        logger.info(
            "[%s] Sync completed in %.2fs: targets %d/%d (%d%% success), "
            "items %d, created %d, updated %d, retries %d%s",
            self.name,
            summary.elapsed_seconds,
            summary.succeeded,
            summary.total_targets,
            summary.success_rate,
            summary.total_items,
            summary.created,
            summary.updated,
            summary.retries,
            " (DRY RUN, no data modified)" if dry_run else "",
        )
        return ServiceResult.ok(summary, details=failures)

    @staticmethod
    def aggregate(
        outcomes: Sequence[JobOutcome[str, Outcome[TargetStats]]],
        dry_run: bool = False,
    ) -> tuple[SyncSummary, list[TargetFailure]]:
        """Fold settled per-target outcomes into run statistics."""
        summary = SyncSummary(total_targets=len(outcomes), dry_run=dry_run)
        failures: list[TargetFailure] = []

        for outcome in outcomes:
            result = outcome.value
            if not outcome.ok:
                # The retry wrapper itself raised
                summary.failed += 1
                failures.append(
                    TargetFailure(target=str(outcome.key), error=str(outcome.error), attempts=0)
                )
            elif isinstance(result, Succeeded):
                summary.succeeded += 1
                summary.retries += result.attempts - 1
                summary.total_items += result.value.items
                summary.created += result.value.created
                summary.updated += result.value.updated
                summary.skipped += result.value.skipped
            elif isinstance(result, Failed):
                summary.failed += 1
                summary.retries += result.attempts - 1
                failures.append(
                    TargetFailure(
                        target=str(outcome.key), error=str(result.error), attempts=result.attempts
                    )
                )

        summary.success_rate = success_rate(summary.succeeded, summary.total_targets)
        return summary, failures
