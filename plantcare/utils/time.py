"""Timestamp helpers for the care engine.

Care timestamps are always timezone-aware UTC. Stored records carry ISO 8601
strings; older exports used a trailing ``Z`` and sometimes no offset at all,
both of which are read as UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_now(*, timespec: str | None = None) -> str:
    """Current UTC time as ISO 8601, optionally truncated (``timespec="seconds"``)."""
    now = utc_now()
    return now.isoformat(timespec=timespec) if timespec else now.isoformat()


def ensure_utc(dt: datetime) -> datetime:
    """Naive values are taken to be UTC; aware values are converted to it."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime | None) -> str | None:
    return None if dt is None else ensure_utc(dt).isoformat()


def minute_floor(dt: datetime) -> datetime:
    """UTC ``dt`` with seconds dropped; derived views are keyed per minute."""
    return ensure_utc(dt).replace(second=0, microsecond=0)


def coerce_datetime(value: Any) -> datetime | None:
    """Parse a stored or user-supplied timestamp into aware UTC.

    Accepts datetimes and ISO 8601 strings (``Z`` suffix allowed). Returns
    None for anything unparseable so callers decide how to report it.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def coerce_date(value: Any) -> date | None:
    """Calendar day of a date, datetime or ISO string (datetimes via UTC)."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            parsed = coerce_datetime(value)
            return parsed.date() if parsed else None
    return None
