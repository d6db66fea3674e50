"""
Care Clock
==========
Pure date arithmetic for care scheduling. Every other component derives due
dates and day counts from these functions instead of doing its own math.

All inputs are normalized to UTC, where a calendar day is always 24 hours,
so calendar-day addition and elapsed-day addition agree.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from plantcare.domain.exceptions import ValidationError
from plantcare.domain.plant import validate_frequency
from plantcare.utils.time import ensure_utc


def _as_utc(value: datetime, name: str) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError(f"{name} must be a datetime", detail={name: value})
    return ensure_utc(value)


def compute_next_due(last_event_at: datetime | None, frequency_days: int, now: datetime) -> datetime:
    """Return when the next care action of this cadence falls due.

    A plant that was never cared for is due immediately (``now``). Otherwise
    the due date is ``last_event_at`` plus ``frequency_days`` calendar days,
    independent of ``now``.
    """
    validate_frequency(frequency_days)
    now = _as_utc(now, "now")
    if last_event_at is None:
        return now
    return _as_utc(last_event_at, "last_event_at") + timedelta(days=frequency_days)


def days_until_due(due_at: datetime, now: datetime) -> int:
    """Signed whole days from ``now`` until ``due_at`` (floored).

    Negative values count days overdue. Not clamped; see :func:`clamp_for_display`.
    """
    return (_as_utc(due_at, "due_at") - _as_utc(now, "now")).days


def days_since(event_at: datetime, now: datetime) -> int:
    """Whole days elapsed between ``event_at`` and ``now`` (floored)."""
    return (_as_utc(now, "now") - _as_utc(event_at, "event_at")).days


def clamp_for_display(days: int) -> int:
    """Remaining-days figure for UI labels: overdue plants show 0."""
    return max(0, days)
