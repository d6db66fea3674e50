"""
Blueprint Common Utilities
==========================

Shared helpers for the API blueprints:
- Service container access
- Running the async service layer from synchronous Flask views
- Request parsing
- Standardized success response
"""
from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime
from typing import Any, Awaitable, Optional, TypeVar

from flask import current_app, request

from plantcare.domain.exceptions import ValidationError
from plantcare.utils.http import success_response
from plantcare.utils.time import coerce_datetime

logger = logging.getLogger("api._common")

T = TypeVar("T")

# Flask serves requests on several threads; every request gets its own event
# loop, so store access is serialized here instead.
_STORE_LOCK = threading.Lock()


# ============================================================================
# CONTAINER ACCESS
# ============================================================================

def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def get_gateway():
    return get_container().gateway


def get_plant_service():
    return get_container().plant_service


def get_care_log_service():
    return get_container().care_log_service


def run_async(awaitable: Awaitable[T]) -> T:
    """Drive one service coroutine to completion from a request thread."""
    with _STORE_LOCK:
        return asyncio.run(awaitable)


# ============================================================================
# REQUEST HELPERS
# ============================================================================

def get_json() -> dict:
    """JSON object body, or an empty dict when absent or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def get_json_array() -> list:
    """JSON array body; anything else is a ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, list):
        raise ValidationError("Request body must be a JSON array")
    return data


def parse_datetime(param: Optional[str], field_name: str) -> Optional[datetime]:
    """Parse an optional ISO 8601 query/body value, rejecting malformed input."""
    if param in (None, ""):
        return None
    parsed = coerce_datetime(param)
    if parsed is None:
        raise ValidationError(f"Invalid {field_name}: expected ISO 8601", detail={field_name: str(param)})
    return parsed


def parse_int(param: Optional[str], field_name: str) -> Optional[int]:
    if param in (None, ""):
        return None
    try:
        return int(param)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer", detail={field_name: param}) from None


# ============================================================================
# RESPONSE HELPERS
# ============================================================================

def success(data: Any = None, status: int = 200, *, message: str | None = None):
    """Flask Response with format: {"ok": true, "data": ..., "error": null}"""
    return success_response(data, status, message=message)

