"""UTC date helpers.

Every calendar-day key in Formline is a UTC date.  Naive datetimes are
treated as UTC; aware datetimes are converted to UTC before the date is
taken.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime | date) -> datetime:
    """Return ``value`` as a timezone-aware UTC datetime.

    A bare ``date`` becomes midnight UTC of that day.
    """
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_date(value: datetime | date) -> date:
    """Return the UTC calendar day of ``value``."""
    if not isinstance(value, datetime):
        return value
    return to_utc(value).date()


def start_of_day(value: datetime | date) -> datetime:
    return datetime.combine(utc_date(value), time.min, tzinfo=timezone.utc)


def end_of_day(value: datetime | date) -> datetime:
    """Last instant of the UTC calendar day of ``value``."""
    return datetime.combine(utc_date(value), time.max, tzinfo=timezone.utc)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def to_unix(value: datetime | date) -> int:
    return int(to_utc(value).timestamp())


def from_unix(timestamp: int | float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def parse_yyyymmdd(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If the string is not a valid ISO calendar date.
    """
    if len(value) != 10:
        raise ValueError(f"Date must be in YYYY-MM-DD format, got {value!r}")
    return date.fromisoformat(value)
