"""
Care Logging Endpoints
======================

Quick-log from a plant card or the task list, bulk care, and per-plant care
history. A log for a (plant, kind) that is already in flight answers 409.
"""
from __future__ import annotations

import logging

from flask import request

from . import collections_api
from plantcare.blueprints.api._common import (
    get_care_log_service as _care_log_service,
    get_json,
    parse_datetime,
    run_async,
    success,
)
from plantcare.domain.exceptions import ValidationError
from plantcare.utils.http import safe_route

logger = logging.getLogger("collections_api.care")


@collections_api.post("/plants/<plant_id>/care/<kind>")
@safe_route("Failed to log care")
def log_care(plant_id: str, kind: str):
    """
    Record one watering or feeding.

    Body (all optional):
        {"occurredAt": ISO 8601, "amount": number, "notes": str}

    Returns:
        {"plant": <plant record>, "event": <care event record>}
    """
    body = get_json()
    occurred_at = parse_datetime(body.get("occurredAt") or body.get("occurred_at"), "occurredAt")
    amount = body.get("amount")
    if amount is not None and (isinstance(amount, bool) or not isinstance(amount, (int, float))):
        raise ValidationError("amount must be a number", detail={"amount": amount})

    service = _care_log_service()
    # Claim the slot before queueing for the store so a second tap gets 409
    with service.reserve(plant_id, kind):
        result = run_async(
            service.quick_log(
                plant_id,
                kind,
                occurred_at=occurred_at,
                amount=amount,
                notes=body.get("notes"),
                reserved=True,
            )
        )
    return success({"plant": result.plant.to_record(), "event": result.event.to_record()}, 201)


@collections_api.post("/care/bulk")
@safe_route("Failed to log bulk care")
def bulk_care():
    """
    Log the same care action for several plants.

    Body:
        {"plantIds": [str, ...], "kind": "watering|feeding", "occurredAt": ISO 8601 (optional)}
    """
    body = get_json()
    plant_ids = body.get("plantIds") or body.get("plant_ids")
    if not isinstance(plant_ids, list) or not plant_ids:
        raise ValidationError("plantIds must be a non-empty list")
    kind = body.get("kind")
    if not kind:
        raise ValidationError("kind is required")
    occurred_at = parse_datetime(body.get("occurredAt"), "occurredAt")

    result = run_async(_care_log_service().bulk_log(plant_ids, kind, occurred_at=occurred_at))
    return success(result.to_dict(), 200 if result.ok else 207)


@collections_api.get("/plants/<plant_id>/history")
@safe_route("Failed to load care history")
def care_history(plant_id: str):
    kind = request.args.get("kind") or None
    events = run_async(_care_log_service().history(plant_id, kind))
    return success([e.to_record() for e in events])
