"""Storage interface used by the sync pipeline and the API.

Backends implement find/create/update by key for activities, FTP history,
daily training metrics and service connections.  All datetimes are UTC.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Iterable, Sequence

from formline.models.activities import ActivityLoad, ActivityRecord
from formline.models.connections import FtpHistoryEntry, ServiceConnection
from formline.models.fitness import DailyTrainingMetrics


class Storage(ABC):
    """Abstract persistent store."""

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_activities_by_source_ids(
        self, source_ids: Iterable[str], source: str
    ) -> set[str]:
        """Return the subset of ``source_ids`` already stored for ``source``."""

    @abstractmethod
    async def create_activities(self, activities: Sequence[ActivityRecord]) -> int:
        """Bulk insert, silently skipping records whose key already exists.

        Returns:
            Number of rows actually inserted.
        """

    @abstractmethod
    async def create_activity(self, activity: ActivityRecord) -> ActivityRecord: ...

    @abstractmethod
    async def update_activity_by_source_id(self, activity: ActivityRecord, source: str) -> bool:
        """Overwrite the stored activity with the same key; False if absent."""

    @abstractmethod
    async def delete_activity_by_source_id(self, source_id: str, source: str) -> bool: ...

    @abstractmethod
    async def find_activity_loads(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[ActivityLoad]:
        """Start dates and training loads of a user's activities in ``[start, end]``."""

    @abstractmethod
    async def find_users_with_training_history(self) -> list[str]:
        """Ids of users with a stored activity or at least one daily metrics row."""

    # ------------------------------------------------------------------
    # FTP history
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_ftp_history(self, user_id: str) -> list[FtpHistoryEntry]: ...

    # ------------------------------------------------------------------
    # Daily training metrics
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_metrics_in_range(
        self, user_id: str, start: date, end: date
    ) -> list[DailyTrainingMetrics]:
        """Rows with ``start <= date <= end``, ascending by date."""

    @abstractmethod
    async def find_latest_metric_before(
        self, user_id: str, day: date
    ) -> DailyTrainingMetrics | None:
        """The most recent row strictly before ``day``."""

    @abstractmethod
    async def find_metrics_since(self, user_id: str, day: date) -> list[DailyTrainingMetrics]:
        """Rows with ``date >= day``, ascending by date."""

    @abstractmethod
    async def upsert_metric(self, metric: DailyTrainingMetrics) -> None:
        """Insert or overwrite the row for ``(user_id, date)``."""

    @abstractmethod
    async def create_metrics(self, metrics: Sequence[DailyTrainingMetrics]) -> int:
        """Bulk insert, skipping existing ``(user_id, date)`` rows."""

    @abstractmethod
    async def update_metrics(self, metrics: Sequence[DailyTrainingMetrics]) -> int:
        """Overwrite existing rows as one transaction."""

    # ------------------------------------------------------------------
    # Service connections
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_active_connections(self, provider: str) -> list[ServiceConnection]: ...

    @abstractmethod
    async def find_connection_for_user(
        self, user_id: str, provider: str
    ) -> ServiceConnection | None: ...

    @abstractmethod
    async def find_connection_by_account(
        self, provider: str, account_id: str
    ) -> ServiceConnection | None: ...

    @abstractmethod
    async def update_connection_tokens(self, connection: ServiceConnection) -> None: ...

    @abstractmethod
    async def delete_connection(self, provider: str, account_id: str) -> bool: ...
