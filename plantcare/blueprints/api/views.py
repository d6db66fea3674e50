"""
Derived View Endpoints
======================

Read-only projections computed from the stored plants at request time:
task buckets, calendar days and per-plant status.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from flask import request

from . import collections_api
from plantcare.blueprints.api._common import (
    get_gateway,
    get_plant_service as _plant_service,
    parse_datetime,
    parse_int,
    run_async,
    success,
)
from plantcare.domain.exceptions import ValidationError
from plantcare.domain.schedule_projector import schedule_to_dict
from plantcare.domain.status_classifier import classify, next_check_for, rank_by_urgency, urgency_for
from plantcare.utils.http import safe_route
from plantcare.utils.time import to_iso

logger = logging.getLogger("collections_api.views")


@collections_api.get("/tasks")
@safe_route("Failed to build task list")
def get_tasks():
    """
    Task buckets as plant id lists.

    Query:
        horizon: upcoming-check window in days (default from config)
        staleness: feeding staleness bound in days (default from config)
        now: ISO 8601 reference time (default: current time)
    """
    horizon = parse_int(request.args.get("horizon"), "horizon")
    staleness = parse_int(request.args.get("staleness"), "staleness")
    now = parse_datetime(request.args.get("now"), "now")
    buckets = run_async(
        _plant_service().task_view(now, upcoming_horizon_days=horizon, feeding_staleness_days=staleness)
    )
    return success(buckets.to_dict())


@collections_api.get("/calendar")
@safe_route("Failed to build calendar")
def get_calendar():
    """
    Watering/feeding due dates per day for ``[start, end]`` (YYYY-MM-DD).

    ``end`` defaults to ``start`` + 6 days; ``start`` defaults to today.
    """
    now = parse_datetime(request.args.get("now"), "now")
    gateway = get_gateway()
    start = request.args.get("start") or (now or gateway.now()).date().isoformat()
    end = request.args.get("end")
    if not end:
        start_day = parse_datetime(start, "start")
        if start_day is None:
            raise ValidationError("start must be a date")
        end = (start_day.date() + timedelta(days=6)).isoformat()
    schedule = run_async(_plant_service().calendar_view(start, end, now))
    return success(schedule_to_dict(schedule))


@collections_api.get("/plants/<plant_id>/status")
@safe_route("Failed to classify plant")
def get_plant_status(plant_id: str):
    """Per-kind due state, days until due, urgency bucket and computed next check."""
    gateway = get_gateway()
    now = parse_datetime(request.args.get("now"), "now") or gateway.now()
    plant = run_async(gateway.get_plant(plant_id))
    status = classify(plant, now)
    payload = status.to_dict()
    payload["urgency"] = urgency_for(plant, now).value
    payload["next_check"] = to_iso(next_check_for(plant, now))
    payload["stored_next_check"] = to_iso(plant.next_check)
    return success(payload)


@collections_api.get("/plants/by-urgency")
@safe_route("Failed to rank plants")
def plants_by_urgency():
    gateway = get_gateway()
    now = parse_datetime(request.args.get("now"), "now") or gateway.now()
    plants = run_async(gateway.get_plants())
    return success([p.id for p in rank_by_urgency(plants, now)])
