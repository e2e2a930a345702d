"""Shared fixtures for API tests: app over in-memory storage with fake sync services."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from formline.config import Settings, get_settings
from formline.dates import utc_now
from formline.dependencies import get_activity_sync_service, get_fitness_sync_service
from formline.main import create_app
from formline.models.connections import ServiceConnection
from formline.models.sync import ServiceResult, SyncSummary
from formline.storage.memory import InMemoryStorage

CRON_SECRET = "cron-s3cret"
VERIFY_TOKEN = "strava-verify"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        cron_secret=CRON_SECRET,
        strava_webhook_verify_token=VERIFY_TOKEN,
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    storage = InMemoryStorage()
    storage.add_connection(
        ServiceConnection(
            user_id="u1",
            provider="strava",
            provider_account_id="134815",
            access_token="token",
            refresh_token="refresh",
            expires_at=utc_now() + timedelta(hours=6),
        )
    )
    return storage


@pytest.fixture
def activity_sync() -> MagicMock:
    service = MagicMock()
    service.sync_activities = AsyncMock(return_value=ServiceResult.ok(SyncSummary()))
    service.sync_activity = AsyncMock(return_value=ServiceResult.ok(None))
    return service


@pytest.fixture
def fitness_sync() -> MagicMock:
    service = MagicMock()
    service.sync_fitness = AsyncMock(return_value=ServiceResult.ok(SyncSummary()))
    return service


@pytest.fixture
def client(settings, storage, activity_sync, fitness_sync) -> TestClient:
    app = create_app(settings=settings, storage=storage)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_activity_sync_service] = lambda: activity_sync
    app.dependency_overrides[get_fitness_sync_service] = lambda: fitness_sync
    return TestClient(app)


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}
