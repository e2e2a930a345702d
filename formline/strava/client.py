"""Strava API v3 HTTP client.

Thin async wrapper over the endpoints Formline consumes:

    GET  /athlete/activities          - Paginated activity list (after/before epoch)
    GET  /activities/{id}             - Single activity
    GET  /activities/{id}/streams     - Sample streams keyed by channel
    POST /oauth/token                 - Authorization-code and refresh-token grants

Every non-2xx response is raised as ``StravaApiError``; 404 is raised as
the ``StravaNotFoundError`` subclass so callers can treat a missing
resource as an expected outcome.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from formline.strava.schemas import STREAM_KEYS

logger = logging.getLogger("formline.strava.client")

STRAVA_API_BASE = "https://www.strava.com/api/v3"
STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"


class StravaApiError(Exception):
    """Non-2xx response from the Strava API."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Strava API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class StravaNotFoundError(StravaApiError):
    """The requested resource does not exist (HTTP 404)."""


class StravaClient:
    """Async Strava API client.

    The access token is passed per call so one client can serve every user
    in a sync run.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        base_url: str = STRAVA_API_BASE,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            timeout:     Per-request timeout in seconds.
            base_url:    API root, overridable for tests.
            http_client: Optional pre-configured httpx client (for testing or
                         connection reuse).
        """
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def list_activities(
        self,
        access_token: str,
        *,
        after: int,
        before: int,
        page: int,
        per_page: int,
    ) -> list[dict[str, Any]]:
        """Fetch one page of the authenticated athlete's activities.

        Args:
            access_token: Bearer token for the athlete.
            after:        Epoch seconds; only activities starting after this.
            before:       Epoch seconds; only activities starting before this.
            page:         1-based page number.
            per_page:     Page size.

        Returns:
            Raw activity dicts for this page (possibly empty).
        """
        return await self._get(
            "/athlete/activities",
            {"after": after, "before": before, "page": page, "per_page": per_page},
            access_token,
        )

    async def get_activity(self, access_token: str, activity_id: int | str) -> dict[str, Any]:
        return await self._get(f"/activities/{activity_id}", {}, access_token)

    async def get_streams(
        self,
        access_token: str,
        activity_id: int | str,
        keys: Iterable[str] = STREAM_KEYS,
    ) -> dict[str, Any]:
        """Fetch sample streams for an activity, keyed by channel name.

        Raises:
            StravaNotFoundError: If the activity has no streams (deleted,
                                 manual entry, or trainer file without data).
        """
        return await self._get(
            f"/activities/{activity_id}/streams",
            {"keys": ",".join(keys), "key_by_type": "true"},
            access_token,
        )

    async def exchange_token(
        self,
        client_id: str,
        client_secret: str,
        grant_type: str,
        **payload: str,
    ) -> dict[str, Any]:
        """POST to the OAuth token endpoint.

        Args:
            client_id:     Strava application client ID.
            client_secret: Strava application client secret.
            grant_type:    'authorization_code' or 'refresh_token'.
            **payload:     ``code=...`` or ``refresh_token=...``.

        Returns:
            Token response JSON.
        """
        data = {
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": grant_type,
            **payload,
        }
        if self._http_client:
            response = await self._http_client.post(STRAVA_TOKEN_URL, data=data)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(STRAVA_TOKEN_URL, data=data)
        return self._handle(response)

    # ------------------------------------------------------------------
    # Private HTTP helpers
    # ------------------------------------------------------------------

    def _build_headers(self, access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def _get(self, path: str, params: dict, access_token: str) -> Any:
        """Make an authenticated GET request.

        Raises:
            StravaNotFoundError: On 404.
            StravaApiError:      On any other non-2xx response.
        """
        url = f"{self._base_url}{path}"
        headers = self._build_headers(access_token)

        if self._http_client:
            response = await self._http_client.get(url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, params=params, headers=headers)

        return self._handle(response)

    @staticmethod
    def _handle(response: httpx.Response) -> Any:
        if response.status_code == 404:
            raise StravaNotFoundError(404, "Resource Not Found")
        if response.status_code >= 400:
            raise StravaApiError(response.status_code, response.text)
        return response.json()
