"""
Plant collection operations.

Every mutation is a read-modify-write of whole collections run inside
``StorageGateway.update_collections``, under the same write lock as care-event
appends; nothing writes care timestamps directly. Derived views (task
buckets, calendar projections) are cached by the gateway and dropped on every
write.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from plantcare.constants import CareDefaults, Collections
from plantcare.domain import schedule_projector, task_aggregator
from plantcare.domain.exceptions import NotFoundError, ValidationError
from plantcare.domain.plant import Plant, new_identifier
from plantcare.domain.schedule_projector import DaySchedule
from plantcare.domain.status_classifier import next_check_for
from plantcare.domain.task_aggregator import TaskBuckets
from plantcare.schemas.records import ExportBundle, ExportSettings
from plantcare.services.storage_gateway import StorageGateway
from plantcare.utils.time import coerce_date, minute_floor

logger = logging.getLogger(__name__)

# Fields a user may edit on an existing plant. Care timestamps and next_check
# are deliberately absent: they only move when a care event is appended.
EDITABLE_FIELDS = frozenset(
    {
        "name",
        "location",
        "common_name",
        "latin_name",
        "notes",
        "status",
        "watering_frequency_days",
        "feeding_frequency_days",
    }
)


class PlantService:
    """Plant-level operations and cached read views."""

    def __init__(
        self,
        gateway: StorageGateway,
        *,
        upcoming_horizon_days: int = CareDefaults.UPCOMING_HORIZON_DAYS,
        feeding_staleness_days: int = CareDefaults.FEEDING_STALENESS_DAYS,
    ) -> None:
        self._gateway = gateway
        self._upcoming_horizon_days = upcoming_horizon_days
        self._feeding_staleness_days = feeding_staleness_days

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def list_plants(self) -> List[Plant]:
        return await self._gateway.get_plants()

    async def get_plant(self, plant_id: str) -> Plant:
        return await self._gateway.get_plant(plant_id)

    async def add_plant(
        self,
        name: str,
        *,
        location: str = "",
        common_name: Optional[str] = None,
        latin_name: Optional[str] = None,
        notes: Optional[str] = None,
        watering_frequency_days: int = CareDefaults.WATERING_FREQUENCY_DAYS,
        feeding_frequency_days: int = CareDefaults.FEEDING_FREQUENCY_DAYS,
        status: str = "healthy",
    ) -> Plant:
        """Create a plant with a fresh id and an initial check-in date."""
        if not name or not name.strip():
            raise ValidationError("name is required")
        now = self._gateway.now()
        plant = Plant(
            id=new_identifier(),
            name=name.strip(),
            location=location or "",
            common_name=common_name,
            latin_name=latin_name,
            notes=notes,
            watering_frequency_days=watering_frequency_days,
            feeding_frequency_days=feeding_frequency_days,
            status=status,
            created_at=now,
            updated_at=now,
        )
        plant = replace(plant, next_check=next_check_for(plant, now))

        def _add(collections: Dict[str, List[Dict[str, Any]]]) -> None:
            collections[Collections.PLANTS].append(plant.to_record())

        await self._gateway.update_collections([Collections.PLANTS], _add)
        logger.info("Added plant %s (%s)", plant.id, plant.name)
        return plant

    async def update_plant(self, plant_id: str, **changes: Any) -> Plant:
        """Edit descriptive fields or cadences; a cadence change recomputes next_check."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields not editable: {', '.join(sorted(unknown))}",
                detail={"fields": sorted(unknown)},
            )
        now = self._gateway.now()

        def _edit(collections: Dict[str, List[Dict[str, Any]]]) -> Plant:
            records = collections[Collections.PLANTS]
            index = self._index_of(records, plant_id)
            current = Plant.from_record(records[index])
            updated = replace(current, updated_at=now, **changes)
            if (
                updated.watering_frequency_days != current.watering_frequency_days
                or updated.feeding_frequency_days != current.feeding_frequency_days
            ):
                updated = replace(updated, next_check=next_check_for(updated, now))
            records[index] = updated.to_record()
            return updated

        return await self._gateway.update_collections([Collections.PLANTS], _edit)

    async def delete_plant(self, plant_id: str) -> int:
        """Delete a plant and its care events. Returns the number of events removed."""

        def _delete(collections: Dict[str, List[Dict[str, Any]]]) -> int:
            plants = collections[Collections.PLANTS]
            del plants[self._index_of(plants, plant_id)]
            events = collections[Collections.CARE_EVENTS]
            kept = [e for e in events if e["plantId"] != str(plant_id)]
            removed_count = len(events) - len(kept)
            events[:] = kept
            return removed_count

        removed = await self._gateway.update_collections([Collections.PLANTS, Collections.CARE_EVENTS], _delete)
        logger.info("Deleted plant %s and %d care event(s)", plant_id, removed)
        return removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def search_plants(self, query: str) -> List[Plant]:
        """Case-insensitive match on name, common name, latin name or notes."""
        needle = (query or "").strip().lower()
        plants = await self._gateway.get_plants()
        if not needle:
            return plants
        return [
            p for p in plants
            if any(needle in (value or "").lower() for value in (p.name, p.common_name, p.latin_name, p.notes))
        ]

    async def plants_by_location(self, location: str) -> List[Plant]:
        return [p for p in await self._gateway.get_plants() if p.location == location]

    async def locations(self) -> List[str]:
        """Distinct location tags in first-seen order."""
        seen: Dict[str, None] = {}
        for plant in await self._gateway.get_plants():
            if plant.location:
                seen.setdefault(plant.location, None)
        return list(seen)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    async def task_view(
        self,
        now: Optional[datetime] = None,
        *,
        upcoming_horizon_days: Optional[int] = None,
        feeding_staleness_days: Optional[int] = None,
    ) -> TaskBuckets:
        now = now or minute_floor(self._gateway.now())
        horizon = self._upcoming_horizon_days if upcoming_horizon_days is None else upcoming_horizon_days
        staleness = self._feeding_staleness_days if feeding_staleness_days is None else feeding_staleness_days

        async def _load() -> TaskBuckets:
            return task_aggregator.build(await self._gateway.get_plants(), now, horizon, staleness)

        return await self._gateway.cached_view(("tasks", now.isoformat(), horizon, staleness), _load)

    async def calendar_view(
        self,
        start_date: date | datetime | str,
        end_date: date | datetime | str,
        now: Optional[datetime] = None,
    ) -> Dict[date, DaySchedule]:
        now = now or minute_floor(self._gateway.now())
        start, end = coerce_date(start_date), coerce_date(end_date)

        async def _load() -> Dict[date, DaySchedule]:
            return schedule_projector.project_range(await self._gateway.get_plants(), start_date, end_date, now)

        if start is None or end is None:
            return await _load()
        return await self._gateway.cached_view(("calendar", start, end, now.isoformat()), _load)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup_orphans(self) -> int:
        """Drop care events whose plant no longer exists. Returns how many were removed."""

        def _prune(collections: Dict[str, List[Dict[str, Any]]]) -> int:
            plant_ids = {r["id"] for r in collections[Collections.PLANTS]}
            events = collections[Collections.CARE_EVENTS]
            valid = [e for e in events if e["plantId"] in plant_ids]
            pruned = len(events) - len(valid)
            events[:] = valid
            return pruned

        removed = await self._gateway.update_collections([Collections.PLANTS, Collections.CARE_EVENTS], _prune)
        if removed:
            logger.info("Cleaned up %d orphaned care event(s)", removed)
        return removed

    async def export_data(self) -> Dict[str, Any]:
        """Full backup of plants and care events."""
        bundle = ExportBundle(
            plants=await self._gateway.get_collection(Collections.PLANTS),
            care_events=await self._gateway.get_collection(Collections.CARE_EVENTS),
            settings=ExportSettings(),
            export_date=self._gateway.now(),
        )
        return bundle.to_record()

    async def import_data(self, payload: Mapping[str, Any]) -> Dict[str, int]:
        """Replace all plants and care events with the contents of a backup."""
        try:
            bundle = ExportBundle.model_validate(dict(payload))
        except PydanticValidationError as exc:
            raise ValidationError(
                "Invalid backup format",
                detail={"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]},
            ) from exc
        except TypeError as exc:
            raise ValidationError("Invalid backup format: not an object") from exc

        plants = [r.to_record() for r in bundle.plants]
        plant_ids = {r["id"] for r in plants}
        events = [r.to_record() for r in bundle.care_events if r.plant_id in plant_ids]
        await self._gateway.replace_collections({Collections.PLANTS: plants, Collections.CARE_EVENTS: events})
        logger.info("Imported %d plant(s) and %d care event(s)", len(plants), len(events))
        return {"plants": len(plants), "care_events": len(events)}

    @staticmethod
    def _index_of(records: List[Dict[str, Any]], plant_id: str) -> int:
        for i, record in enumerate(records):
            if record["id"] == str(plant_id):
                return i
        raise NotFoundError(f"Plant {plant_id} not found", detail={"plant_id": str(plant_id)})
