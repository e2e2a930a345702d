"""FTP history lookup."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from formline.dates import to_utc
from formline.models.connections import FtpHistoryEntry


def ftp_for_date(when: datetime | date, history: Iterable[FtpHistoryEntry]) -> int | None:
    """Return the FTP effective at ``when``.

    History is a step function: the entry with the latest ``effective_from``
    not after ``when`` wins.  None if every entry is newer (or there is no
    history at all).
    """
    moment = to_utc(when)
    for entry in sorted(history, key=lambda e: to_utc(e.effective_from), reverse=True):
        if to_utc(entry.effective_from) <= moment:
            return entry.ftp
    return None
