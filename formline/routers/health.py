"""Health check endpoint, public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from formline.dependencies import AppSettings, StorageDep
from formline.storage.postgres import PostgresStorage, get_pool

router = APIRouter(tags=["system"])
logger = logging.getLogger("formline.health")


@router.get("/health")
async def health_check(storage: StorageDep, settings: AppSettings) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    With the Postgres backend it also performs a lightweight DB check.
    """
    backend = "postgres" if isinstance(storage, PostgresStorage) else "memory"
    db_ok = True
    if backend == "postgres":
        try:
            pool = get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except Exception as exc:
            db_ok = False
            logger.warning("Health check DB probe failed: %s", exc)

    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "storage": backend,
        "database": "connected" if db_ok else "unreachable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
