"""Access-token capability for Strava.

The sync pipeline only needs "a valid access token for this user".  The
connections subsystem owns the OAuth connect flow; this module keeps stored
tokens fresh by refreshing them shortly before they expire.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from formline.dates import from_unix
from formline.models.activities import STRAVA_SOURCE
from formline.models.connections import ServiceConnection
from formline.strava.schemas import StravaTokenResponse

if TYPE_CHECKING:
    from formline.storage.base import Storage
    from formline.strava.client import StravaClient

logger = logging.getLogger("formline.strava.auth")

# Refresh this many seconds before the provider-reported expiry
TOKEN_REFRESH_BUFFER_SECONDS = 300


class ConnectionNotFoundError(LookupError):
    """The user has no connection to the provider."""


class TokenRefreshError(RuntimeError):
    """A stored connection cannot be refreshed."""


class TokenProvider(ABC):
    """Yields a usable access token for a user."""

    @abstractmethod
    async def get_valid_token(self, user_id: str) -> str:
        """Return a non-expired access token.

        Raises:
            ConnectionNotFoundError: If the user has no connection.
        """


class StravaTokenService(TokenProvider):
    """Refresh-on-read token provider backed by stored Strava connections."""

    def __init__(
        self,
        storage: "Storage",
        client: "StravaClient",
        client_id: str,
        client_secret: str,
        buffer_seconds: int = TOKEN_REFRESH_BUFFER_SECONDS,
    ) -> None:
        self._storage = storage
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._buffer_seconds = buffer_seconds

    async def get_valid_token(self, user_id: str) -> str:
        connection = await self._storage.find_connection_for_user(user_id, STRAVA_SOURCE)
        if connection is None:
            raise ConnectionNotFoundError(f"No Strava connection found for user {user_id}")

        if connection.needs_token_refresh(self._buffer_seconds):
            connection = await self.refresh(connection)
        return connection.access_token or ""

    async def refresh(self, connection: ServiceConnection) -> ServiceConnection:
        """Exchange the refresh token and persist the rotated token pair.

        Args:
            connection: The stored connection.

        Returns:
            The updated connection.

        Raises:
            TokenRefreshError: If the connection has no refresh token.
        """
        if not connection.refresh_token:
            raise TokenRefreshError(
                f"No refresh token for Strava account {connection.provider_account_id}"
            )

        logger.info("Refreshing Strava token for user %s", connection.user_id)
        raw = await self._client.exchange_token(
            self._client_id,
            self._client_secret,
            "refresh_token",
            refresh_token=connection.refresh_token,
        )
        tokens = StravaTokenResponse.model_validate(raw)

        updated = connection.model_copy(
            update={
                "access_token": tokens.access_token,
                "refresh_token": tokens.refresh_token,
                "expires_at": from_unix(tokens.expires_at),
            }
        )
        await self._storage.update_connection_tokens(updated)
        return updated
