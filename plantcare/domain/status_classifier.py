"""
Status Classifier
=================
Classifies a plant's watering and feeding urgency at a given moment and owns
the ``next_check`` derivation. ``now`` is always authoritative: results are
recomputed from stored care timestamps, never read back from a cached field.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Mapping

from plantcare.constants import CareDefaults
from plantcare.domain.care_clock import compute_next_due, days_since, days_until_due
from plantcare.domain.exceptions import InconsistentStateError
from plantcare.domain.plant import Plant
from plantcare.enums.common import CareKind, CareState, UrgencyBucket
from plantcare.utils.time import ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CareStatus:
    """Per-kind classification of one plant."""

    watering: CareState
    feeding: CareState
    watering_days_until: int
    feeding_days_until: int

    @property
    def any_due(self) -> bool:
        return CareState.DUE in (self.watering, self.feeding)

    def to_dict(self) -> dict:
        return {
            "watering": self.watering.value,
            "feeding": self.feeding.value,
            "watering_days_until": self.watering_days_until,
            "feeding_days_until": self.feeding_days_until,
        }


def is_due(kind: CareKind, plant: Plant, now: datetime) -> bool:
    """True iff ``kind`` was never logged or its cadence has fully elapsed."""
    kind = CareKind(kind)
    last = plant.last_event_at(kind)
    if last is None:
        return True
    return days_since(last, now) >= plant.frequency_for(kind)


def next_due(kind: CareKind, plant: Plant, now: datetime) -> datetime:
    kind = CareKind(kind)
    return compute_next_due(plant.last_event_at(kind), plant.frequency_for(kind), now)


def classify(plant: Plant, now: datetime) -> CareStatus:
    water_state = CareState.DUE if is_due(CareKind.WATERING, plant, now) else CareState.OK
    feed_state = CareState.DUE if is_due(CareKind.FEEDING, plant, now) else CareState.OK
    return CareStatus(
        watering=water_state,
        feeding=feed_state,
        watering_days_until=days_until_due(next_due(CareKind.WATERING, plant, now), now),
        feeding_days_until=days_until_due(next_due(CareKind.FEEDING, plant, now), now),
    )


def next_check_for(
    plant: Plant,
    now: datetime,
    overrides: Mapping[CareKind, datetime] | None = None,
) -> datetime:
    """Earliest upcoming watering/feeding due date for ``plant``.

    ``overrides`` carries the timestamp of an event being recorded right now,
    taking precedence over the plant's stored value for that kind. Kinds with
    no timestamp at all are ignored; when neither kind has one, the plant gets
    a check-in ``NEXT_CHECK_SAFETY_DAYS`` from ``now``.

    This is the only place ``Plant.next_check`` is derived.
    """
    overrides = {CareKind(k): v for k, v in (overrides or {}).items()}
    candidates: list[datetime] = []
    for kind in CareKind:
        last = overrides.get(kind) or plant.last_event_at(kind)
        if last is not None:
            candidates.append(compute_next_due(last, plant.frequency_for(kind), now))

    if not candidates:
        return ensure_utc(now) + timedelta(days=CareDefaults.NEXT_CHECK_SAFETY_DAYS)
    return min(candidates)


def verify_next_check(plant: Plant) -> None:
    """Raise InconsistentStateError if ``next_check`` predates the care timestamp it derives from.

    The source is the kind whose due date ``next_check_for`` would pick, not
    simply the oldest timestamp on the plant.
    """
    if plant.next_check is None:
        return
    stamped = [kind for kind in CareKind if plant.last_event_at(kind) is not None]
    if not stamped:
        return
    source_kind = min(
        stamped,
        key=lambda kind: compute_next_due(plant.last_event_at(kind), plant.frequency_for(kind), plant.next_check),
    )
    source = plant.last_event_at(source_kind)
    if plant.next_check < source:
        logger.error(
            "Plant %s next_check %s precedes %s timestamp %s",
            plant.id,
            plant.next_check.isoformat(),
            source_kind.value,
            source.isoformat(),
        )
        raise InconsistentStateError(
            f"next_check for plant {plant.id} precedes the care timestamp it was derived from",
            detail={
                "plant_id": plant.id,
                "next_check": plant.next_check.isoformat(),
                "kind": source_kind.value,
                "source": source.isoformat(),
            },
        )


def urgency_for(plant: Plant, now: datetime, horizon_days: int = CareDefaults.UPCOMING_HORIZON_DAYS) -> UrgencyBucket:
    """Overall urgency bucket from the earliest per-kind due date."""
    today = ensure_utc(now).date()
    due_day = min(next_due(kind, plant, now) for kind in CareKind).date()
    if due_day < today:
        return UrgencyBucket.OVERDUE
    if due_day == today:
        return UrgencyBucket.DUE_TODAY
    if (due_day - today).days <= horizon_days:
        return UrgencyBucket.UPCOMING
    return UrgencyBucket.OK


def rank_by_urgency(plants: Iterable[Plant], now: datetime) -> list[Plant]:
    """Most overdue first; ties keep input order."""

    def _severity(plant: Plant) -> int:
        return min(days_until_due(next_due(kind, plant, now), now) for kind in CareKind)

    return sorted(plants, key=_severity)
