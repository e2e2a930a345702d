"""Postgres storage backend on asyncpg.

Expected tables (unique constraints in brackets)::

    activities               [source, source_id]
    ftp_history
    daily_training_metrics   [user_id, date]
    service_connections      [provider, provider_account_id]

Bulk inserts are a single ``INSERT ... SELECT * FROM unnest(...)
ON CONFLICT DO NOTHING`` statement, so concurrent or repeated runs never
duplicate rows.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncGenerator, Iterable, Sequence

import asyncpg

from formline.config import Settings, get_settings
from formline.models.activities import ActivityLoad, ActivityRecord
from formline.models.connections import FtpHistoryEntry, ServiceConnection
from formline.models.fitness import DailyTrainingMetrics
from formline.storage.base import Storage

logger = logging.getLogger("formline.db")

# Module-level connection pool, initialized once at app startup
_pool: asyncpg.Pool | None = None

# Column -> Postgres array element type, used to cast unnest() parameters
ACTIVITY_COLUMN_TYPES = {
    "source_id": "text",
    "source": "text",
    "user_id": "text",
    "name": "text",
    "start_date": "timestamptz",
    "elapsed_time": "int4",
    "moving_time": "int4",
    "distance": "float8",
    "elevation_gain": "float8",
    "average_watts": "int4",
    "max_watts": "int4",
    "normalized_power": "int4",
    "training_load": "int4",
    "average_hr": "int4",
    "max_hr": "int4",
    "average_cadence": "int4",
    "average_speed": "float8",
    "max_speed": "float8",
    "kilojoules": "float8",
    "calories": "int4",
}
METRIC_COLUMN_TYPES = {
    "user_id": "text",
    "date": "date",
    "fitness": "float8",
    "fatigue": "float8",
    "form": "float8",
    "acwr": "float8",
}
ACTIVITY_COLUMNS = list(ACTIVITY_COLUMN_TYPES)
METRIC_COLUMNS = list(METRIC_COLUMN_TYPES)


async def init_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Create the asyncpg connection pool. Call once at app startup."""
    global _pool
    s = settings or get_settings()
    _pool = await asyncpg.create_pool(
        s.database_url,
        min_size=s.db_pool_min_size,
        max_size=s.db_pool_max_size,
        command_timeout=30,
    )
    logger.info(
        "Database pool initialized (min=%d, max=%d)", s.db_pool_min_size, s.db_pool_max_size
    )
    return _pool


async def close_pool() -> None:
    """Drain the pool. Call at app shutdown."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool not initialized, call init_pool() first")
    return _pool


@asynccontextmanager
async def get_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a pooled connection wrapped in a transaction."""
    pool = get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


def build_upsert_query(
    table: str,
    columns: list[str],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
) -> str:
    """Build a PostgreSQL INSERT ... ON CONFLICT query.

    Args:
        table:            Target table name.
        columns:          All columns to insert.
        conflict_columns: Columns that define the UNIQUE constraint.
        update_columns:   Columns to update on conflict (defaults to non-key
                          columns).  Pass ``[]`` for ``DO NOTHING``.

    Returns:
        Parameterized SQL string.
    """
    if update_columns is None:
        update_columns = [c for c in columns if c not in conflict_columns]

    placeholders = ", ".join(f"${i + 1}" for i in range(len(columns)))
    col_list = ", ".join(columns)
    conflict_target = ", ".join(conflict_columns)

    if update_columns:
        update_set = ", ".join(f"{col} = EXCLUDED.{col}" for col in update_columns)
        update_set += ", updated_at = NOW()"
        do_clause = f"DO UPDATE SET {update_set}"
    else:
        do_clause = "DO NOTHING"

    return (
        f"INSERT INTO {table} ({col_list}) "
        f"VALUES ({placeholders}) "
        f"ON CONFLICT ({conflict_target}) {do_clause}"
    )

def build_bulk_insert_query(
    table: str, column_types: dict[str, str], conflict_columns: list[str]
) -> str:
    """Build a single-statement multi-row INSERT that skips duplicates.

    Each parameter is an array holding one column's values for every row,
    zipped back into rows by ``unnest``.

    Args:
        table:            Target table name.
        column_types:     Column name -> Postgres element type, in insert order.
        conflict_columns: Columns that define the UNIQUE constraint.
    """
    col_list = ", ".join(column_types)
    arrays = ", ".join(
        f"${i + 1}::{pg_type}[]" for i, pg_type in enumerate(column_types.values())
    )
    conflict_target = ", ".join(conflict_columns)
    return (
        f"INSERT INTO {table} ({col_list}) "
        f"SELECT * FROM unnest({arrays}) "
        f"ON CONFLICT ({conflict_target}) DO NOTHING"
    )


def _row_values(model: Any, columns: list[str]) -> tuple:
    return tuple(getattr(model, column) for column in columns)


def _column_arrays(models: Sequence[Any], columns: list[str]) -> list[list]:
    return [[getattr(model, column) for model in models] for column in columns]


def _inserted(status: str) -> int:
    # asyncpg returns e.g. "INSERT 0 1"
    return int(status.rsplit(" ", 1)[-1])


class PostgresStorage(Storage):
    """``Storage`` over the module-level asyncpg pool."""

    _insert_activities = build_bulk_insert_query(
        "activities", ACTIVITY_COLUMN_TYPES, ["source", "source_id"]
    )
    _upsert_activity = build_upsert_query("activities", ACTIVITY_COLUMNS, ["source", "source_id"])
    _insert_metrics = build_bulk_insert_query(
        "daily_training_metrics", METRIC_COLUMN_TYPES, ["user_id", "date"]
    )
    _upsert_metric = build_upsert_query(
        "daily_training_metrics", METRIC_COLUMNS, ["user_id", "date"]
    )

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    async def find_activities_by_source_ids(
        self, source_ids: Iterable[str], source: str
    ) -> set[str]:
        ids = list(source_ids)
        if not ids:
            return set()
        async with get_connection() as conn:
            rows = await conn.fetch(
                "SELECT source_id FROM activities WHERE source = $1 AND source_id = ANY($2::text[])",
                source,
                ids,
            )
        return {row["source_id"] for row in rows}

    async def create_activities(self, activities: Sequence[ActivityRecord]) -> int:
        if not activities:
            return 0
        async with get_connection() as conn:
            status = await conn.execute(
                self._insert_activities, *_column_arrays(activities, ACTIVITY_COLUMNS)
            )
        return _inserted(status)

    async def create_activity(self, activity: ActivityRecord) -> ActivityRecord:
        async with get_connection() as conn:
            await conn.execute(self._upsert_activity, *_row_values(activity, ACTIVITY_COLUMNS))
        return activity

    async def update_activity_by_source_id(self, activity: ActivityRecord, source: str) -> bool:
        columns = [c for c in ACTIVITY_COLUMNS if c not in ("source_id", "source")]
        assignments = ", ".join(f"{c} = ${i + 3}" for i, c in enumerate(columns))
        async with get_connection() as conn:
            status = await conn.execute(
                f"UPDATE activities SET {assignments}, updated_at = NOW() "
                f"WHERE source = $1 AND source_id = $2",
                source,
                activity.source_id,
                *_row_values(activity, columns),
            )
        return status != "UPDATE 0"

    async def delete_activity_by_source_id(self, source_id: str, source: str) -> bool:
        async with get_connection() as conn:
            status = await conn.execute(
                "DELETE FROM activities WHERE source = $1 AND source_id = $2",
                source,
                source_id,
            )
        return status != "DELETE 0"

    async def find_activity_loads(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[ActivityLoad]:
        async with get_connection() as conn:
            rows = await conn.fetch(
                "SELECT start_date, training_load FROM activities "
                "WHERE user_id = $1 AND start_date >= $2 AND start_date <= $3 "
                "ORDER BY start_date",
                user_id,
                start,
                end,
            )
        return [ActivityLoad.model_validate(dict(row)) for row in rows]

    async def find_users_with_training_history(self) -> list[str]:
        async with get_connection() as conn:
            rows = await conn.fetch(
                "SELECT user_id FROM activities WHERE user_id IS NOT NULL "
                "UNION SELECT user_id FROM daily_training_metrics "
                "ORDER BY user_id"
            )
        return [row["user_id"] for row in rows]

    # ------------------------------------------------------------------
    # FTP history
    # ------------------------------------------------------------------

    async def find_ftp_history(self, user_id: str) -> list[FtpHistoryEntry]:
        async with get_connection() as conn:
            rows = await conn.fetch(
                "SELECT user_id, ftp, effective_from FROM ftp_history "
                "WHERE user_id = $1 ORDER BY effective_from DESC",
                user_id,
            )
        return [FtpHistoryEntry.model_validate(dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Daily training metrics
    # ------------------------------------------------------------------

    async def find_metrics_in_range(
        self, user_id: str, start: date, end: date
    ) -> list[DailyTrainingMetrics]:
        async with get_connection() as conn:
            rows = await conn.fetch(
                "SELECT user_id, date, fitness, fatigue, form, acwr FROM daily_training_metrics "
                "WHERE user_id = $1 AND date >= $2 AND date <= $3 ORDER BY date",
                user_id,
                start,
                end,
            )
        return [DailyTrainingMetrics.model_validate(dict(row)) for row in rows]

    async def find_latest_metric_before(
        self, user_id: str, day: date
    ) -> DailyTrainingMetrics | None:
        async with get_connection() as conn:
            row = await conn.fetchrow(
                "SELECT user_id, date, fitness, fatigue, form, acwr FROM daily_training_metrics "
                "WHERE user_id = $1 AND date < $2 ORDER BY date DESC LIMIT 1",
                user_id,
                day,
            )
        return DailyTrainingMetrics.model_validate(dict(row)) if row else None

    async def find_metrics_since(self, user_id: str, day: date) -> list[DailyTrainingMetrics]:
        async with get_connection() as conn:
            rows = await conn.fetch(
                "SELECT user_id, date, fitness, fatigue, form, acwr FROM daily_training_metrics "
                "WHERE user_id = $1 AND date >= $2 ORDER BY date",
                user_id,
                day,
            )
        return [DailyTrainingMetrics.model_validate(dict(row)) for row in rows]

    async def upsert_metric(self, metric: DailyTrainingMetrics) -> None:
        async with get_connection() as conn:
            await conn.execute(self._upsert_metric, *_row_values(metric, METRIC_COLUMNS))

    async def create_metrics(self, metrics: Sequence[DailyTrainingMetrics]) -> int:
        if not metrics:
            return 0
        async with get_connection() as conn:
            status = await conn.execute(
                self._insert_metrics, *_column_arrays(metrics, METRIC_COLUMNS)
            )
        return _inserted(status)

    async def update_metrics(self, metrics: Sequence[DailyTrainingMetrics]) -> int:
        if not metrics:
            return 0
        # One transaction for the whole batch (get_connection opens it)
        async with get_connection() as conn:
            await conn.executemany(
                self._upsert_metric, [_row_values(m, METRIC_COLUMNS) for m in metrics]
            )
        return len(metrics)

    # ------------------------------------------------------------------
    # Service connections
    # ------------------------------------------------------------------

    _connection_select = (
        "SELECT user_id, provider, provider_account_id, access_token, refresh_token, "
        "expires_at, created_at, updated_at FROM service_connections"
    )

    async def find_active_connections(self, provider: str) -> list[ServiceConnection]:
        async with get_connection() as conn:
            rows = await conn.fetch(
                f"{self._connection_select} WHERE provider = $1 AND access_token IS NOT NULL",
                provider,
            )
        return [ServiceConnection.model_validate(dict(row)) for row in rows]

    async def find_connection_for_user(
        self, user_id: str, provider: str
    ) -> ServiceConnection | None:
        async with get_connection() as conn:
            row = await conn.fetchrow(
                f"{self._connection_select} WHERE user_id = $1 AND provider = $2 LIMIT 1",
                user_id,
                provider,
            )
        return ServiceConnection.model_validate(dict(row)) if row else None

    async def find_connection_by_account(
        self, provider: str, account_id: str
    ) -> ServiceConnection | None:
        async with get_connection() as conn:
            row = await conn.fetchrow(
                f"{self._connection_select} WHERE provider = $1 AND provider_account_id = $2",
                provider,
                account_id,
            )
        return ServiceConnection.model_validate(dict(row)) if row else None

    async def update_connection_tokens(self, connection: ServiceConnection) -> None:
        async with get_connection() as conn:
            await conn.execute(
                "UPDATE service_connections "
                "SET access_token = $3, refresh_token = $4, expires_at = $5, updated_at = NOW() "
                "WHERE provider = $1 AND provider_account_id = $2",
                connection.provider,
                connection.provider_account_id,
                connection.access_token,
                connection.refresh_token,
                connection.expires_at,
            )

    async def delete_connection(self, provider: str, account_id: str) -> bool:
        async with get_connection() as conn:
            status = await conn.execute(
                "DELETE FROM service_connections WHERE provider = $1 AND provider_account_id = $2",
                provider,
                account_id,
            )
        return status != "DELETE 0"
