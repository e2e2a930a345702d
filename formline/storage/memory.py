"""In-memory storage backend.

Used for local development when no ``DATABASE_URL`` is configured, and by
the test suite.  Data lives in plain dicts for the lifetime of the process;
a single-instance deployment is assumed.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import date, datetime
from typing import Iterable, Sequence

from formline.dates import to_utc, utc_now
from formline.models.activities import ActivityLoad, ActivityRecord
from formline.models.connections import FtpHistoryEntry, ServiceConnection
from formline.models.fitness import DailyTrainingMetrics
from formline.storage.base import Storage


class InMemoryStorage(Storage):
    """Dict-backed ``Storage`` keyed the way the database constrains rows."""

    def __init__(self) -> None:
        # (source, source_id) -> activity
        self.activities: dict[tuple[str, str], ActivityRecord] = {}
        # (user_id, date) -> metrics row
        self.metrics: dict[tuple[str, date], DailyTrainingMetrics] = {}
        # (provider, provider_account_id) -> connection
        self.connections: dict[tuple[str, str], ServiceConnection] = {}
        self.ftp_history: dict[str, list[FtpHistoryEntry]] = defaultdict(list)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Seeding helpers (not part of the Storage interface)
    # ------------------------------------------------------------------

    def add_connection(self, connection: ServiceConnection) -> None:
        self.connections[(connection.provider, connection.provider_account_id)] = connection

    def add_ftp_entry(self, entry: FtpHistoryEntry) -> None:
        self.ftp_history[entry.user_id].append(entry)

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    async def find_activities_by_source_ids(
        self, source_ids: Iterable[str], source: str
    ) -> set[str]:
        return {sid for sid in source_ids if (source, sid) in self.activities}

    async def create_activities(self, activities: Sequence[ActivityRecord]) -> int:
        created = 0
        async with self._lock:
            for activity in activities:
                key = (activity.source, activity.source_id)
                if key in self.activities:
                    continue
                self.activities[key] = activity
                created += 1
        return created

    async def create_activity(self, activity: ActivityRecord) -> ActivityRecord:
        async with self._lock:
            self.activities[(activity.source, activity.source_id)] = activity
        return activity

    async def update_activity_by_source_id(self, activity: ActivityRecord, source: str) -> bool:
        key = (source, activity.source_id)
        async with self._lock:
            if key not in self.activities:
                return False
            self.activities[key] = activity
        return True

    async def delete_activity_by_source_id(self, source_id: str, source: str) -> bool:
        async with self._lock:
            return self.activities.pop((source, source_id), None) is not None

    async def find_activity_loads(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[ActivityLoad]:
        start_utc, end_utc = to_utc(start), to_utc(end)
        loads = [
            ActivityLoad(start_date=a.start_date, training_load=a.training_load)
            for a in self.activities.values()
            if a.user_id == user_id and start_utc <= a.start_date <= end_utc
        ]
        return sorted(loads, key=lambda load: load.start_date)

    async def find_users_with_training_history(self) -> list[str]:
        with_activities = {a.user_id for a in self.activities.values() if a.user_id}
        return sorted(with_activities | {user_id for user_id, _ in self.metrics})

    # ------------------------------------------------------------------
    # FTP history
    # ------------------------------------------------------------------

    async def find_ftp_history(self, user_id: str) -> list[FtpHistoryEntry]:
        return list(self.ftp_history.get(user_id, []))

    # ------------------------------------------------------------------
    # Daily training metrics
    # ------------------------------------------------------------------

    async def find_metrics_in_range(
        self, user_id: str, start: date, end: date
    ) -> list[DailyTrainingMetrics]:
        rows = [
            m for (uid, day), m in self.metrics.items()
            if uid == user_id and start <= day <= end
        ]
        return sorted(rows, key=lambda m: m.date)

    async def find_latest_metric_before(
        self, user_id: str, day: date
    ) -> DailyTrainingMetrics | None:
        earlier = [m for (uid, d), m in self.metrics.items() if uid == user_id and d < day]
        return max(earlier, key=lambda m: m.date, default=None)

    async def find_metrics_since(self, user_id: str, day: date) -> list[DailyTrainingMetrics]:
        rows = [m for (uid, d), m in self.metrics.items() if uid == user_id and d >= day]
        return sorted(rows, key=lambda m: m.date)

    async def upsert_metric(self, metric: DailyTrainingMetrics) -> None:
        async with self._lock:
            self.metrics[(metric.user_id, metric.date)] = metric

    async def create_metrics(self, metrics: Sequence[DailyTrainingMetrics]) -> int:
        created = 0
        async with self._lock:
            for metric in metrics:
                key = (metric.user_id, metric.date)
                if key in self.metrics:
                    continue
                self.metrics[key] = metric
                created += 1
        return created

    async def update_metrics(self, metrics: Sequence[DailyTrainingMetrics]) -> int:
        # Holding the lock for the whole batch makes it all-or-nothing to readers
        async with self._lock:
            for metric in metrics:
                self.metrics[(metric.user_id, metric.date)] = metric
        return len(metrics)

    # ------------------------------------------------------------------
    # Service connections
    # ------------------------------------------------------------------

    async def find_active_connections(self, provider: str) -> list[ServiceConnection]:
        return [
            c for (p, _), c in self.connections.items()
            if p == provider and c.access_token
        ]

    async def find_connection_for_user(
        self, user_id: str, provider: str
    ) -> ServiceConnection | None:
        for (p, _), connection in self.connections.items():
            if p == provider and connection.user_id == user_id:
                return connection
        return None

    async def find_connection_by_account(
        self, provider: str, account_id: str
    ) -> ServiceConnection | None:
        return self.connections.get((provider, account_id))

    async def update_connection_tokens(self, connection: ServiceConnection) -> None:
        async with self._lock:
            self.connections[(connection.provider, connection.provider_account_id)] = (
                connection.model_copy(update={"updated_at": utc_now()})
            )

    async def delete_connection(self, provider: str, account_id: str) -> bool:
        async with self._lock:
            return self.connections.pop((provider, account_id), None) is not None
