"""
Schedule Projector
==================
Places each plant's single next watering and feeding due date onto calendar
days. Only the next occurrence is shown: once it passes without a new care
event the plant drops off later days until its due date is recomputed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from plantcare.domain.exceptions import ValidationError
from plantcare.domain.plant import Plant
from plantcare.domain.status_classifier import next_due
from plantcare.enums.common import CareKind
from plantcare.utils.time import coerce_date, utc_now


@dataclass
class DaySchedule:
    """Plants due for care on one calendar day, in input order."""

    watering_due: list[str] = field(default_factory=list)
    feeding_due: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.watering_due and not self.feeding_due

    def to_dict(self) -> dict[str, Any]:
        return {"watering_due": list(self.watering_due), "feeding_due": list(self.feeding_due)}


def _as_date(value: date | datetime | str, name: str) -> date:
    parsed = coerce_date(value)
    if parsed is None:
        raise ValidationError(f"{name} must be a date", detail={name: value})
    return parsed


def project_range(
    plants: Iterable[Plant],
    start_date: date | datetime | str,
    end_date: date | datetime | str,
    now: datetime | None = None,
) -> dict[date, DaySchedule]:
    """Map every day in ``[start_date, end_date]`` to the plants due that day.

    Each plant contributes at most one watering and one feeding entry to the
    whole range. Due dates outside the range are dropped.
    """
    start = _as_date(start_date, "start_date")
    end = _as_date(end_date, "end_date")
    if start > end:
        raise ValidationError(
            "start_date must not be after end_date",
            detail={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
    now = now or utc_now()

    schedule: dict[date, DaySchedule] = {}
    day = start
    while day <= end:
        schedule[day] = DaySchedule()
        day += timedelta(days=1)

    for plant in plants:
        water_day = next_due(CareKind.WATERING, plant, now).date()
        if water_day in schedule:
            schedule[water_day].watering_due.append(plant.id)

        feed_day = next_due(CareKind.FEEDING, plant, now).date()
        if feed_day in schedule:
            schedule[feed_day].feeding_due.append(plant.id)

    return schedule


def events_on(plants: Iterable[Plant], day: date | datetime | str, now: datetime | None = None) -> DaySchedule:
    """Care due on a single calendar day."""
    target = _as_date(day, "day")
    return project_range(plants, target, target, now)[target]


def schedule_to_dict(schedule: dict[date, DaySchedule]) -> dict[str, dict[str, Any]]:
    """JSON-friendly form keyed by ISO date."""
    return {day.isoformat(): entry.to_dict() for day, entry in schedule.items()}
