"""Formline API, FastAPI application entry point.

Run locally:
    uvicorn formline.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from formline.config import Settings, get_settings
from formline.config_loader import get_sync_config
from formline.routers import cron, fitness, health, strava_webhook
from formline.storage.base import Storage
from formline.storage.memory import InMemoryStorage
from formline.storage.postgres import PostgresStorage, close_pool, init_pool

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("formline")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info("Starting Formline API v%s [%s]", settings.app_version, settings.environment)
    # Fail fast on a broken sync_config.yaml
    get_sync_config()

    uses_postgres = isinstance(app.state.storage, PostgresStorage)
    if uses_postgres:
        await init_pool(settings)
    else:
        logger.warning("DATABASE_URL not set, using in-memory storage")
    yield
    if uses_postgres:
        await close_pool()
    logger.info("Formline API shut down")


# ---------- App factory ----------

def create_app(settings: Settings | None = None, storage: Storage | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Formline API",
        description="Strava activity sync and daily fitness / fatigue / form tracking.",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.storage = storage or (
        PostgresStorage() if settings.database_url else InMemoryStorage()
    )

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(strava_webhook.router, prefix=v1_prefix)
    app.include_router(cron.router, prefix=v1_prefix)
    app.include_router(fitness.router, prefix=v1_prefix)

    return app


app = create_app()
