"""Rate-limited activity and stream fetching for one user.

Strava allows roughly 100 requests per 15 minutes per application.  Stream
requests are issued in small concurrent batches with a fixed pause between
batches.  The limit is enforced per call: two users being fetched at the
same time pace themselves independently, so the application-wide request
rate is not capped here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Sequence

from pydantic import ValidationError

from formline.config_loader import RateLimitConfig
from formline.dates import to_unix
from formline.strava.auth import TokenProvider
from formline.strava.client import StravaClient, StravaNotFoundError
from formline.strava.schemas import StravaActivity, StravaStreamSet

logger = logging.getLogger("formline.strava.fetcher")

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class StreamFetchResult:
    """Outcome of a batched stream fetch.

    Attributes:
        success_count: Ids fetched without error (including not-found → None).
        failure_count: Ids whose request failed for any other reason.
        failed_ids:    The failing ids, in request order.
        streams:       id → stream set, or None when missing or failed.
    """

    success_count: int = 0
    failure_count: int = 0
    failed_ids: list[str] = field(default_factory=list)
    streams: dict[str, StravaStreamSet | None] = field(default_factory=dict)


class ActivityFetcher:
    """Fetch a user's Strava activities and their power/heart-rate streams.

    Usage::

        fetcher = ActivityFetcher(client, token_service, config.rate_limit)
        rides = await fetcher.list_activities(user_id, after, before, page_size=100)
        result = await fetcher.get_streams(user_id, [a.id for a in rides])
    """

    def __init__(
        self,
        client: StravaClient,
        tokens: TokenProvider,
        rate_limit: RateLimitConfig,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client:     Strava HTTP client.
            tokens:     Supplies a valid access token per user.
            rate_limit: Batch size and inter-batch delay for stream requests.
            sleep:      Awaitable used for the inter-batch delay.
        """
        self._client = client
        self._tokens = tokens
        self._rate_limit = rate_limit
        self._sleep = sleep

    async def list_activities(
        self,
        user_id: str,
        after: datetime,
        before: datetime,
        page_size: int,
    ) -> list[StravaActivity]:
        """Page through the activity list and keep rides only.

        Pages are requested in order starting at 1 until a page is empty or
        shorter than ``page_size``.  A malformed activity payload is skipped
        and logged; the rest of the page is kept.

        Args:
            user_id:   Internal user id.
            after:     Range start.
            before:    Range end.
            page_size: Activities per page.

        Returns:
            Validated ride-type activities in provider order.
        """
        token = await self._tokens.get_valid_token(user_id)
        rides: list[StravaActivity] = []
        page = 1

        while True:
            raw_page = await self._client.list_activities(
                token,
                after=to_unix(after),
                before=to_unix(before),
                page=page,
                per_page=page_size,
            )
            if not raw_page:
                break

            for raw in raw_page:
                try:
                    activity = StravaActivity.model_validate(raw)
                except ValidationError as exc:
                    logger.warning(
                        "User %s: skipping malformed activity %s: %s",
                        user_id, raw.get("id") if isinstance(raw, dict) else "?", exc,
                    )
                    continue
                if activity.is_ride:
                    rides.append(activity)

            if len(raw_page) < page_size:
                break
            page += 1

        logger.info("User %s: fetched %d rides over %d page(s)", user_id, len(rides), page)
        return rides

    async def get_activity(self, user_id: str, activity_id: int | str) -> StravaActivity:
        token = await self._tokens.get_valid_token(user_id)
        raw = await self._client.get_activity(token, activity_id)
        return StravaActivity.model_validate(raw)

    async def get_stream(self, user_id: str, activity_id: int | str) -> StravaStreamSet | None:
        """Fetch one activity's streams; None if Strava has none for it."""
        token = await self._tokens.get_valid_token(user_id)
        return await self._fetch_stream(token, activity_id)

    async def get_streams(
        self, user_id: str, activity_ids: Sequence[int | str]
    ) -> StreamFetchResult:
        """Fetch streams for many activities in rate-limited batches.

        Ids inside one batch are requested concurrently; consecutive batches
        are separated by ``rate_limit.batch_delay_seconds``.  A failing id
        never aborts its batch.

        Args:
            user_id:      Internal user id.
            activity_ids: Strava activity ids.

        Returns:
            StreamFetchResult with per-id outcome.
        """
        result = StreamFetchResult()
        if not activity_ids:
            return result

        token = await self._tokens.get_valid_token(user_id)
        size = self._rate_limit.requests_per_batch
        batches = [activity_ids[i:i + size] for i in range(0, len(activity_ids), size)]

        for index, batch in enumerate(batches):
            if index > 0:
                await self._sleep(self._rate_limit.batch_delay_seconds)

            outcomes = await asyncio.gather(
                *(self._fetch_stream(token, activity_id) for activity_id in batch),
                return_exceptions=True,
            )

            for activity_id, outcome in zip(batch, outcomes):
                key = str(activity_id)
                if isinstance(outcome, Exception):
                    logger.warning(
                        "User %s: stream fetch failed for activity %s: %s",
                        user_id, key, outcome,
                    )
                    result.failure_count += 1
                    result.failed_ids.append(key)
                    result.streams[key] = None
                else:
                    result.success_count += 1
                    result.streams[key] = outcome

            logger.debug(
                "User %s: stream batch %d/%d done", user_id, index + 1, len(batches)
            )

        if result.failure_count:
            logger.warning(
                "User %s: %d/%d stream requests failed",
                user_id, result.failure_count, len(activity_ids),
            )
        return result

    async def _fetch_stream(self, token: str, activity_id: int | str) -> StravaStreamSet | None:
        try:
            raw = await self._client.get_streams(token, activity_id)
        except StravaNotFoundError:
            logger.info("No streams on Strava for activity %s", activity_id)
            return None
        return StravaStreamSet.model_validate(raw)
