"""Pydantic models for provider connections and FTP history."""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import Field

from formline.dates import to_utc, utc_now
from formline.models.base import FormlineBase, TimestampMixin


class ServiceConnection(FormlineBase, TimestampMixin):
    """A user's OAuth connection to an external provider.

    Unique on ``(provider, provider_account_id)``.
    """

    user_id: str
    provider: str = Field(max_length=50)
    provider_account_id: str
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def needs_token_refresh(self, buffer_seconds: int = 300) -> bool:
        """Return True if the access token is missing or expires within buffer_seconds."""
        if not self.access_token or self.expires_at is None:
            return True
        remaining = to_utc(self.expires_at) - utc_now()
        return remaining <= timedelta(seconds=buffer_seconds)


class FtpHistoryEntry(FormlineBase):
    """An FTP value effective from a given instant onwards."""

    user_id: str
    ftp: int = Field(gt=0)
    effective_from: datetime
