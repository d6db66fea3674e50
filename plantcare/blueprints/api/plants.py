"""
Plant Endpoints
===============

CRUD, search and location filtering, backup export/import and orphan
cleanup. Care timestamps cannot be edited here; they move only through the
care endpoints.
"""
from __future__ import annotations

import logging

from flask import request

from . import collections_api
from plantcare.blueprints.api._common import (
    get_json,
    get_plant_service as _plant_service,
    run_async,
    success,
)
from plantcare.domain.exceptions import ValidationError
from plantcare.services.plant_service import EDITABLE_FIELDS
from plantcare.utils.http import safe_route

logger = logging.getLogger("collections_api.plants")

# camelCase request keys accepted for plant edits
_FIELD_ALIASES = {
    "name": "name",
    "location": "location",
    "commonName": "common_name",
    "latinName": "latin_name",
    "notes": "notes",
    "status": "status",
    "wateringFrequencyDays": "watering_frequency_days",
    "feedingFrequencyDays": "feeding_frequency_days",
}


def _plant_fields(body: dict) -> dict:
    fields = {}
    for key, value in body.items():
        name = _FIELD_ALIASES.get(key, key)
        fields[name] = value
    return fields


@collections_api.get("/plants")
@safe_route("Failed to list plants")
def list_plants():
    """List plants, optionally filtered by ``?q=`` search text or ``?location=``."""
    query = request.args.get("q")
    location = request.args.get("location")
    service = _plant_service()
    if query:
        plants = run_async(service.search_plants(query))
    elif location:
        plants = run_async(service.plants_by_location(location))
    else:
        plants = run_async(service.list_plants())
    return success([p.to_record() for p in plants])


@collections_api.get("/plants/locations")
@safe_route("Failed to list locations")
def list_locations():
    return success(run_async(_plant_service().locations()))


@collections_api.post("/plants")
@safe_route("Failed to create plant")
def create_plant():
    fields = _plant_fields(get_json())
    name = fields.pop("name", None)
    if not isinstance(name, str):
        raise ValidationError("name is required")
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}", detail={"fields": sorted(unknown)})
    plant = run_async(_plant_service().add_plant(name, **fields))
    return success(plant.to_record(), 201)


@collections_api.get("/plants/<plant_id>")
@safe_route("Failed to load plant")
def get_plant(plant_id: str):
    return success(run_async(_plant_service().get_plant(plant_id)).to_record())


@collections_api.patch("/plants/<plant_id>")
@safe_route("Failed to update plant")
def update_plant(plant_id: str):
    fields = _plant_fields(get_json())
    if not fields:
        raise ValidationError("No fields to update")
    plant = run_async(_plant_service().update_plant(plant_id, **fields))
    return success(plant.to_record())


@collections_api.delete("/plants/<plant_id>")
@safe_route("Failed to delete plant")
def delete_plant(plant_id: str):
    removed = run_async(_plant_service().delete_plant(plant_id))
    return success({"deleted": plant_id, "careEventsRemoved": removed})


@collections_api.get("/export")
@safe_route("Failed to export data")
def export_data():
    return success(run_async(_plant_service().export_data()))


@collections_api.post("/import")
@safe_route("Failed to import data")
def import_data():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Backup must be a JSON object")
    counts = run_async(_plant_service().import_data(payload))
    return success(counts, message="Import complete")


@collections_api.post("/maintenance/cleanup")
@safe_route("Failed to clean up care events")
def cleanup_orphans():
    removed = run_async(_plant_service().cleanup_orphans())
    return success({"careEventsRemoved": removed})
