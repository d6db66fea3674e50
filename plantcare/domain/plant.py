"""
Plant Domain Entities
=====================
Plant and CareEvent entities plus their mapping to persisted records.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from plantcare.constants import CareDefaults
from plantcare.domain.exceptions import ValidationError
from plantcare.enums.common import CareKind, PlantStatus
from plantcare.schemas.records import CareEventRecord, PlantRecord
from plantcare.utils.time import ensure_utc, utc_now


def new_identifier() -> str:
    """Allocate a collision-proof identifier."""
    return uuid.uuid4().hex


def validate_frequency(value: Any, field_name: str = "frequency_days") -> int:
    """Return ``value`` if it is a positive integer, else raise ValidationError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be a positive integer", detail={field_name: value})
    if value <= 0:
        raise ValidationError(f"{field_name} must be a positive integer", detail={field_name: value})
    return value


def _validation_detail(exc: PydanticValidationError) -> dict[str, Any]:
    return {"errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]}


@dataclass(slots=True)
class Plant:
    """A cared-for plant. Care timestamps change only through appended CareEvents."""

    id: str
    name: str
    location: str = ""
    common_name: str | None = None
    latin_name: str | None = None
    notes: str | None = None
    last_watered: datetime | None = None
    last_fed: datetime | None = None
    watering_frequency_days: int = CareDefaults.WATERING_FREQUENCY_DAYS
    feeding_frequency_days: int = CareDefaults.FEEDING_FREQUENCY_DAYS
    next_check: datetime | None = None
    status: PlantStatus = PlantStatus.HEALTHY
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValidationError("name is required", detail={"name": self.name})
        if self.location is None:
            self.location = ""
        if isinstance(self.status, str) and not isinstance(self.status, PlantStatus):
            try:
                self.status = PlantStatus(self.status.strip().lower())
            except ValueError as exc:
                raise ValidationError(f"unknown plant status: {self.status!r}") from exc
        validate_frequency(self.watering_frequency_days, "watering_frequency_days")
        validate_frequency(self.feeding_frequency_days, "feeding_frequency_days")
        for name in ("last_watered", "last_fed", "next_check", "created_at", "updated_at"):
            value = getattr(self, name)
            if value is not None:
                if not isinstance(value, datetime):
                    raise ValidationError(f"{name} must be a datetime", detail={name: value})
                setattr(self, name, ensure_utc(value))

    def last_event_at(self, kind: CareKind) -> datetime | None:
        """Timestamp of the latest care action of ``kind``."""
        return self.last_watered if CareKind(kind) is CareKind.WATERING else self.last_fed

    def frequency_for(self, kind: CareKind) -> int:
        """Configured cadence in days for ``kind``."""
        if CareKind(kind) is CareKind.WATERING:
            return self.watering_frequency_days
        return self.feeding_frequency_days

    def with_care(self, kind: CareKind, occurred_at: datetime) -> Plant:
        """Copy with the care timestamp for ``kind`` set to ``occurred_at``."""
        if CareKind(kind) is CareKind.WATERING:
            return replace(self, last_watered=occurred_at)
        return replace(self, last_fed=occurred_at)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Plant:
        """Build a Plant from a persisted record, validating its shape."""
        try:
            parsed = PlantRecord.model_validate(dict(record))
        except PydanticValidationError as exc:
            raise ValidationError("Malformed plant record", detail=_validation_detail(exc)) from exc
        return cls(
            id=parsed.id,
            name=parsed.name,
            location=parsed.location,
            common_name=parsed.common_name,
            latin_name=parsed.latin_name,
            notes=parsed.notes,
            last_watered=parsed.last_watered,
            last_fed=parsed.last_fed,
            watering_frequency_days=parsed.watering_frequency_days,
            feeding_frequency_days=parsed.feeding_frequency_days,
            next_check=parsed.next_check,
            status=parsed.status,
            created_at=parsed.created_at,
            updated_at=parsed.updated_at,
        )

    def to_record(self) -> dict[str, Any]:
        """Persisted JSON shape (camelCase keys, ISO timestamps)."""
        return PlantRecord(
            id=self.id,
            name=self.name,
            location=self.location,
            common_name=self.common_name,
            latin_name=self.latin_name,
            notes=self.notes,
            last_watered=self.last_watered,
            last_fed=self.last_fed,
            watering_frequency_days=self.watering_frequency_days,
            feeding_frequency_days=self.feeding_frequency_days,
            next_check=self.next_check,
            status=self.status,
            created_at=self.created_at,
            updated_at=self.updated_at,
        ).to_record()


@dataclass(frozen=True, slots=True)
class CareEvent:
    """Immutable record of one watering or feeding action."""

    plant_id: str
    kind: CareKind
    occurred_at: datetime
    amount: float | None = None
    notes: str | None = None
    id: str = field(default_factory=new_identifier)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not isinstance(self.occurred_at, datetime):
            raise ValidationError("occurred_at must be a datetime", detail={"occurred_at": self.occurred_at})
        try:
            kind = CareKind(self.kind)
        except ValueError as exc:
            raise ValidationError(f"unknown care kind: {self.kind!r}") from exc
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "occurred_at", ensure_utc(self.occurred_at))
        object.__setattr__(self, "created_at", ensure_utc(self.created_at))
        if self.amount is not None and self.amount < 0:
            raise ValidationError("amount must not be negative", detail={"amount": self.amount})

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> CareEvent:
        try:
            parsed = CareEventRecord.model_validate(dict(record))
        except PydanticValidationError as exc:
            raise ValidationError("Malformed care event record", detail=_validation_detail(exc)) from exc
        return cls(
            id=parsed.id,
            plant_id=parsed.plant_id,
            kind=parsed.kind,
            occurred_at=parsed.occurred_at,
            amount=parsed.amount,
            notes=parsed.notes,
            created_at=parsed.created_at or parsed.occurred_at,
        )

    def to_record(self) -> dict[str, Any]:
        return CareEventRecord(
            id=self.id,
            plant_id=self.plant_id,
            kind=self.kind,
            occurred_at=self.occurred_at,
            amount=self.amount,
            notes=self.notes,
            created_at=self.created_at,
        ).to_record()
