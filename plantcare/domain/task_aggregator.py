"""
Task Aggregator
===============
Buckets a plant collection for the task list:

- ``overdue_or_due_today_watering``: stored ``next_check`` is today or earlier
- ``overdue_feeding``: never fed, or fed longer ago than the staleness bound
- ``upcoming_checks``: ``next_check`` after today and within the horizon

Next-check comparisons are by calendar date against ``now``. Buckets are
exclusive per (plant, axis), not per plant.

The feeding bucket uses the system-wide staleness bound
(``CareDefaults.FEEDING_STALENESS_DAYS``), which means "feeding overdue".
The per-plant ``feeding_frequency_days`` means "feeding due" and drives
``classify``/``next_check``/the calendar. The two are never substituted for
one another.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable

from plantcare.constants import CareDefaults
from plantcare.domain.exceptions import ValidationError
from plantcare.domain.plant import Plant
from plantcare.utils.time import ensure_utc


@dataclass
class TaskBuckets:
    """Task-list buckets; each list keeps input order."""

    overdue_or_due_today_watering: list[Plant] = field(default_factory=list)
    overdue_feeding: list[Plant] = field(default_factory=list)
    upcoming_checks: list[Plant] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overdue_or_due_today_watering": [p.id for p in self.overdue_or_due_today_watering],
            "overdue_feeding": [p.id for p in self.overdue_feeding],
            "upcoming_checks": [p.id for p in self.upcoming_checks],
        }


def is_feeding_overdue(plant: Plant, now: datetime, staleness_days: int = CareDefaults.FEEDING_STALENESS_DAYS) -> bool:
    if plant.last_fed is None:
        return True
    return ensure_utc(now) - plant.last_fed > timedelta(days=staleness_days)


def build(
    plants: Iterable[Plant],
    now: datetime,
    upcoming_horizon_days: int = CareDefaults.UPCOMING_HORIZON_DAYS,
    feeding_staleness_days: int = CareDefaults.FEEDING_STALENESS_DAYS,
) -> TaskBuckets:
    if isinstance(upcoming_horizon_days, bool) or not isinstance(upcoming_horizon_days, int) or upcoming_horizon_days < 0:
        raise ValidationError(
            "upcoming_horizon_days must be a non-negative integer",
            detail={"upcoming_horizon_days": upcoming_horizon_days},
        )
    if isinstance(feeding_staleness_days, bool) or not isinstance(feeding_staleness_days, int) or feeding_staleness_days <= 0:
        raise ValidationError(
            "feeding_staleness_days must be a positive integer",
            detail={"feeding_staleness_days": feeding_staleness_days},
        )

    today = ensure_utc(now).date()
    horizon_end = today + timedelta(days=upcoming_horizon_days)
    buckets = TaskBuckets()

    for plant in plants:
        if plant.next_check is not None:
            check_day = plant.next_check.date()
            if check_day <= today:
                buckets.overdue_or_due_today_watering.append(plant)
            elif check_day <= horizon_end:
                buckets.upcoming_checks.append(plant)

        if is_feeding_overdue(plant, now, feeding_staleness_days):
            buckets.overdue_feeding.append(plant)

    return buckets
