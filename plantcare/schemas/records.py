"""
Record Schemas
==============

Persisted shapes of Plant and CareEvent records. Both backends store JSON
arrays of these records with camelCase keys; every record crossing the
storage boundary is validated here first.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from plantcare.constants import CareDefaults
from plantcare.enums.common import CareKind, PlantStatus
from plantcare.utils.time import coerce_datetime, ensure_utc


def _coerce_identifier(v: Any) -> Any:
    """Older exports used integer ids; store them as strings."""
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return str(v)
    return v


def _coerce_timestamp(v: Any) -> Any:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return ensure_utc(v)
    if isinstance(v, str):
        parsed = coerce_datetime(v)
        if parsed is None:
            raise ValueError(f"malformed timestamp: {v!r}")
        return parsed
    raise ValueError(f"unsupported timestamp type: {type(v).__name__}")


class _RecordModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=False,
    )

    def to_record(self) -> dict[str, Any]:
        """Dump to the persisted JSON shape (camelCase keys, ISO timestamps)."""
        return self.model_dump(mode="json", by_alias=True)


class PlantRecord(_RecordModel):
    """Persisted Plant record."""

    id: str = Field(..., min_length=1, description="Stable plant identifier")
    name: str = Field(..., min_length=1, description="Display name")
    common_name: str | None = Field(default=None, description="Common/species name")
    latin_name: str | None = Field(default=None, description="Botanical name")
    location: str = Field(default="", description="Location tag")
    notes: str | None = Field(default=None)
    last_watered: datetime | None = Field(default=None)
    last_fed: datetime | None = Field(default=None)
    watering_frequency_days: int = Field(default=CareDefaults.WATERING_FREQUENCY_DAYS, gt=0, strict=True)
    feeding_frequency_days: int = Field(default=CareDefaults.FEEDING_FREQUENCY_DAYS, gt=0, strict=True)
    next_check: datetime | None = Field(default=None)
    status: PlantStatus = Field(default=PlantStatus.HEALTHY)
    created_at: datetime | None = Field(default=None)
    updated_at: datetime | None = Field(default=None)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_identifier(v)

    @field_validator("last_watered", "last_fed", "next_check", "created_at", "updated_at", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        """Accept ISO strings (``Z`` suffix allowed); naive values are UTC."""
        return _coerce_timestamp(v)

    @field_validator("watering_frequency_days", "feeding_frequency_days", mode="before")
    @classmethod
    def default_missing_frequency(cls, v, info):
        # Legacy records stored null for "use the default cadence"
        if v is None:
            if info.field_name == "watering_frequency_days":
                return CareDefaults.WATERING_FREQUENCY_DAYS
            return CareDefaults.FEEDING_FREQUENCY_DAYS
        return v

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if v is None:
            return PlantStatus.HEALTHY
        if isinstance(v, str):
            return PlantStatus(v.strip().lower())
        return v


class CareEventRecord(_RecordModel):
    """Persisted CareEvent record (append-only)."""

    id: str = Field(..., min_length=1)
    plant_id: str = Field(..., min_length=1)
    kind: CareKind
    occurred_at: datetime
    amount: float | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None)
    created_at: datetime | None = Field(default=None)

    @field_validator("id", "plant_id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_identifier(v)

    @field_validator("occurred_at", "created_at", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        return _coerce_timestamp(v)

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        if isinstance(v, str):
            return CareKind(v.strip().lower())
        return v


class ExportSettings(_RecordModel):
    """Default cadences carried in an export bundle."""

    default_watering_freq: int = Field(default=CareDefaults.WATERING_FREQUENCY_DAYS, gt=0)
    default_feeding_freq: int = Field(default=CareDefaults.FEEDING_FREQUENCY_DAYS, gt=0)


class ExportBundle(_RecordModel):
    """Full backup of one device's data, as produced by ``PlantService.export_data``."""

    plants: list[PlantRecord]
    care_events: list[CareEventRecord] = Field(default_factory=list)
    settings: ExportSettings = Field(default_factory=ExportSettings)
    export_date: datetime | None = Field(default=None)
    version: str = Field(default="1.0")

    @field_validator("export_date", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        return _coerce_timestamp(v)
