"""Tests for the Strava push subscription endpoint."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import BackgroundTasks

from formline.models.activities import ActivityRecord
from formline.models.sync import ServiceResult
from formline.routers.strava_webhook import receive_event

WEBHOOK = "/api/v1/strava/webhook"


def _event(**overrides) -> dict:
    event = {
        "object_type": "activity",
        "object_id": 1360128428,
        "aspect_type": "create",
        "owner_id": 134815,
        "subscription_id": 120475,
        "event_time": 1516126040,
    }
    event.update(overrides)
    return event


class TestSubscriptionValidation:
    def test_challenge_echoed(self, client, settings) -> None:
        response = client.get(
            WEBHOOK,
            params={
                "hub.mode": "subscribe",
                "hub.challenge": "15f7d1a91c1f40f8a748fd134752feb3",
                "hub.verify_token": settings.strava_webhook_verify_token,
            },
        )

        assert response.status_code == 200
        assert response.json() == {"hub.challenge": "15f7d1a91c1f40f8a748fd134752feb3"}

    def test_wrong_verify_token(self, client) -> None:
        response = client.get(
            WEBHOOK,
            params={"hub.mode": "subscribe", "hub.challenge": "abc", "hub.verify_token": "guess"},
        )
        assert response.status_code == 403

    def test_missing_parameters(self, client, settings) -> None:
        response = client.get(
            WEBHOOK,
            params={"hub.challenge": "abc", "hub.verify_token": settings.strava_webhook_verify_token},
        )
        assert response.status_code == 400


class TestEvents:
    def test_create_syncs_activity_for_owner(self, client, activity_sync) -> None:
        response = client.post(WEBHOOK, json=_event())

        assert response.status_code == 200
        assert response.json() == "EVENT_RECEIVED"
        activity_sync.sync_activity.assert_awaited_once_with("u1", "1360128428")

    def test_update_syncs_activity(self, client, activity_sync) -> None:
        response = client.post(
            WEBHOOK, json=_event(aspect_type="update", updates={"title": "Morning Ride"})
        )

        assert response.status_code == 200
        activity_sync.sync_activity.assert_awaited_once_with("u1", "1360128428")

    def test_sync_failure_still_acknowledged(self, client, activity_sync) -> None:
        activity_sync.sync_activity.return_value = ServiceResult.fail(
            "Activity 1360128428 is not a ride", code="NOT_A_RIDE"
        )

        response = client.post(WEBHOOK, json=_event())

        assert response.status_code == 200
        assert response.json() == "EVENT_RECEIVED"

    def test_delete_removes_activity(self, client, storage, activity_sync) -> None:
        storage.activities[("strava", "1360128428")] = ActivityRecord(
            source_id="1360128428",
            user_id="u1",
            name="Lunch Ride",
            start_date=datetime(2024, 5, 1, tzinfo=timezone.utc),
            elapsed_time=3600,
            moving_time=3500,
        )

        response = client.post(WEBHOOK, json=_event(aspect_type="delete"))

        assert response.status_code == 200
        assert ("strava", "1360128428") not in storage.activities
        activity_sync.sync_activity.assert_not_awaited()

    def test_delete_of_unknown_activity_acknowledged(self, client) -> None:
        response = client.post(WEBHOOK, json=_event(aspect_type="delete", object_id=99))
        assert response.status_code == 200

    def test_deauthorization_removes_connection(self, client, storage, activity_sync) -> None:
        response = client.post(
            WEBHOOK,
            json=_event(
                object_type="athlete",
                object_id=134815,
                aspect_type="update",
                updates={"authorized": "false"},
            ),
        )

        assert response.status_code == 200
        assert ("strava", "134815") not in storage.connections
        activity_sync.sync_activity.assert_not_awaited()

    def test_unknown_owner_rejected(self, client, activity_sync) -> None:
        response = client.post(WEBHOOK, json=_event(owner_id=555))

        assert response.status_code == 400
        activity_sync.sync_activity.assert_not_awaited()

    def test_malformed_event_rejected(self, client) -> None:
        response = client.post(WEBHOOK, json={"object_type": "club", "object_id": 1})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_sync_deferred_until_after_response(self, storage, activity_sync) -> None:
        request = MagicMock()
        request.json = AsyncMock(return_value=_event())
        background_tasks = BackgroundTasks()

        response = await receive_event(request, storage, activity_sync, background_tasks)

        assert response.status_code == 200
        activity_sync.sync_activity.assert_not_awaited()
        assert len(background_tasks.tasks) == 1

        await background_tasks()

        activity_sync.sync_activity.assert_awaited_once_with("u1", "1360128428")
