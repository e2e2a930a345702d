"""Strava push subscription endpoint.

``GET`` answers the one-off subscription validation handshake; ``POST``
receives activity and athlete events.  Strava retries an event that is not
acknowledged with 200 within two seconds, so activity syncs run as
background tasks after the response and their errors are only logged.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from formline.dependencies import ActivitySync, AppSettings, StorageDep
from formline.models.activities import STRAVA_SOURCE
from formline.strava.schemas import StravaWebhookEvent
from formline.sync.activities import ActivitySyncService

router = APIRouter(prefix="/strava", tags=["strava"])
logger = logging.getLogger("formline.strava.webhook")


@router.get("/webhook")
async def validate_subscription(
    settings: AppSettings,
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
) -> Any:
    """Echo ``hub.challenge`` when the verify token matches."""
    if hub_mode != "subscribe" or not hub_challenge or not hub_verify_token:
        logger.error("Invalid subscription validation request: mode=%s", hub_mode)
        raise HTTPException(status_code=400, detail="Invalid subscription validation request")

    expected = settings.strava_webhook_verify_token
    if not expected or hub_verify_token != expected:
        logger.error("Strava webhook validation failed: token verification error")
        raise HTTPException(status_code=403, detail="Forbidden")

    logger.info("Strava webhook validation successful")
    return {"hub.challenge": hub_challenge}


@router.post("/webhook")
async def receive_event(
    request: Request,
    storage: StorageDep,
    sync: ActivitySync,
    background_tasks: BackgroundTasks,
) -> Any:
    """Handle one push event.

    - ``updates.authorized == "false"``: the athlete revoked access, drop the connection
    - activity create / update: fetch and store the activity after responding
    - activity delete: remove the stored activity
    """
    try:
        event = StravaWebhookEvent.model_validate(await request.json())
    except (ValidationError, ValueError) as exc:
        logger.error("Invalid Strava webhook event: %s", exc)
        raise HTTPException(status_code=400, detail="Invalid Strava webhook event") from exc

    logger.info(
        "Strava webhook event: type=%s id=%s action=%s owner=%s",
        event.object_type, event.object_id, event.aspect_type, event.owner_id,
    )

    if event.updates and event.updates.get("authorized") == "false":
        account_id = str(event.object_id)
        logger.info("Deauthorization for Strava account %s, removing connection", account_id)
        if not await storage.delete_connection(STRAVA_SOURCE, account_id):
            logger.warning("No Strava connection for account %s to remove", account_id)

    if event.object_type != "activity":
        return JSONResponse("EVENT_RECEIVED")

    activity_id = str(event.object_id)

    if event.aspect_type == "delete":
        if await storage.delete_activity_by_source_id(activity_id, STRAVA_SOURCE):
            logger.info("Deleted Strava activity %s", activity_id)
        else:
            logger.warning("No activity with source id %s, nothing to delete", activity_id)
        return JSONResponse("EVENT_RECEIVED")

    connection = await storage.find_connection_by_account(STRAVA_SOURCE, str(event.owner_id))
    if connection is None:
        logger.error("No Strava connection for account %s, skipping sync", event.owner_id)
        raise HTTPException(status_code=400, detail="Connection not found")

    background_tasks.add_task(
        _sync_activity, sync=sync, user_id=connection.user_id, activity_id=activity_id
    )
    return JSONResponse("EVENT_RECEIVED")


async def _sync_activity(sync: ActivitySyncService, user_id: str, activity_id: str) -> None:
    result = await sync.sync_activity(user_id, activity_id)
    if result.success:
        logger.info("Processed Strava activity %s for user %s", activity_id, user_id)
    else:
        logger.error("Strava activity %s not stored: %s", activity_id, result.error)
