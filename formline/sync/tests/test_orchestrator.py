"""Tests for the shared orchestrator run loop and aggregation."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from formline.config_loader import SyncOptions
from formline.models.sync import DateRange
from formline.sync.orchestrator import SyncOrchestrator, TargetStats, success_rate

RANGE = DateRange(
    start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    end_date=datetime(2024, 1, 31, tzinfo=timezone.utc),
)


class ScriptedOrchestrator(SyncOrchestrator):
    """Targets fail a scripted number of times before succeeding."""

    name = "scripted"

    def __init__(self, storage, options, sleep, failures: dict[str, int], discover_error=None):
        super().__init__(storage, options, sleep)
        self.failures = failures
        self.discover_error = discover_error
        self.calls: dict[str, int] = {}
        self.dry_runs: list[bool] = []

    async def discover_targets(self, date_range):
        if self.discover_error:
            raise self.discover_error
        return list(self.failures)

    async def sync_target(self, target, date_range, dry_run, options):
        self.calls[target] = self.calls.get(target, 0) + 1
        self.dry_runs.append(dry_run)
        if self.calls[target] <= self.failures[target]:
            raise RuntimeError(f"{target} unavailable")
        return TargetStats(items=3, created=2, updated=1)


class TestSyncOrchestrator:
    @pytest.mark.asyncio
    async def test_summary_counts_successes_failures_and_retries(self, storage, sleep) -> None:
        options = SyncOptions(concurrency_limit=2, retry_attempts=3, retry_base_delay_seconds=1.0)
        orchestrator = ScriptedOrchestrator(
            storage, options, sleep, failures={"u1": 0, "u2": 1, "u3": 5}
        )

        result = await orchestrator.run(RANGE)

        assert result.success
        summary = result.data
        assert summary.total_targets == 3
        assert summary.succeeded == 2
        assert summary.failed == 1
        # u2 retried once, u3 twice
        assert summary.retries == 3
        assert summary.total_items == 6
        assert summary.created == 4
        assert summary.updated == 2
        assert summary.success_rate == 67
        assert summary.elapsed_seconds >= 0
        assert [(f.target, f.attempts) for f in result.details] == [("u3", 3)]
        assert result.details[0].error == "u3 unavailable"
        assert orchestrator.calls == {"u1": 1, "u2": 2, "u3": 3}

    @pytest.mark.asyncio
    async def test_no_targets_is_full_success(self, storage, sleep, options) -> None:
        result = await ScriptedOrchestrator(storage, options, sleep, failures={}).run(RANGE)

        assert result.success
        assert result.data.total_targets == 0
        assert result.data.success_rate == 100

    @pytest.mark.asyncio
    async def test_discovery_failure_fails_the_run(self, storage, sleep, options) -> None:
        orchestrator = ScriptedOrchestrator(
            storage, options, sleep, failures={}, discover_error=ConnectionError("db down")
        )

        result = await orchestrator.run(RANGE)

        assert not result.success
        assert result.code == "SETUP_FAILED"
        assert "db down" in result.error
        assert result.data is None

    @pytest.mark.asyncio
    async def test_dry_run_flag_and_per_call_options(self, storage, sleep, options) -> None:
        orchestrator = ScriptedOrchestrator(storage, options, sleep, failures={"u1": 1})

        result = await orchestrator.run(
            RANGE, dry_run=True, options=options.with_overrides(retry_attempts=1)
        )

        assert result.data.dry_run
        assert result.data.failed == 1
        assert orchestrator.dry_runs == [True]
        assert sleep.delays == []


class TestSuccessRate:
    @pytest.mark.parametrize(
        "succeeded,total,expected",
        [(0, 0, 100), (1, 2, 50), (2, 3, 67), (1, 3, 33), (1, 8, 13), (0, 4, 0)],
    )
    def test_rounding(self, succeeded, total, expected) -> None:
        assert success_rate(succeeded, total) == expected
