"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from formline.config import Settings, get_settings
from formline.config_loader import get_sync_config
from formline.storage.base import Storage
from formline.strava.auth import StravaTokenService
from formline.strava.client import StravaClient
from formline.strava.fetcher import ActivityFetcher
from formline.sync.activities import ActivitySyncService
from formline.sync.fitness import FitnessSyncService

AppSettings = Annotated[Settings, Depends(get_settings)]


def get_storage(request: Request) -> Storage:
    """The storage backend attached to the app by ``create_app``."""
    return request.app.state.storage


StorageDep = Annotated[Storage, Depends(get_storage)]


def get_activity_sync_service(storage: StorageDep, settings: AppSettings) -> ActivitySyncService:
    config = get_sync_config()
    client = StravaClient(timeout=settings.strava_timeout_seconds)
    tokens = StravaTokenService(
        storage, client, settings.strava_client_id, settings.strava_client_secret
    )
    fetcher = ActivityFetcher(client, tokens, config.rate_limit)
    return ActivitySyncService(storage, fetcher, config.activities)


def get_fitness_sync_service(storage: StorageDep) -> FitnessSyncService:
    config = get_sync_config()
    return FitnessSyncService(storage, config.fitness, config.training_load)


ActivitySync = Annotated[ActivitySyncService, Depends(get_activity_sync_service)]
FitnessSync = Annotated[FitnessSyncService, Depends(get_fitness_sync_service)]


async def verify_cron(
    settings: AppSettings,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``.

    An unset secret rejects every request.
    """
    expected = f"Bearer {settings.cron_secret}"
    if not settings.cron_secret or not authorization or not hmac.compare_digest(
        authorization, expected
    ):
        raise HTTPException(status_code=401, detail="Invalid or missing authorization token")


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """The authenticated user's id.

    Session handling lives in the gateway in front of this API, which
    forwards the resolved user as ``X-User-Id``.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
