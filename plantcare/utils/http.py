"""
JSON envelope helpers for the PlantCare API.

Every response has the shape::

    {"ok": true,  "data": <payload>, "error": null}
    {"ok": false, "data": null,      "error": {"code", "message", "details", "timestamp"}}

``RemoteCollectionStore`` relies on ``ok`` and ``data``; ``error.code`` is the
stable machine-readable part, ``error.message`` is for people.
"""
from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify

from plantcare.domain.exceptions import PlantCareError
from plantcare.utils.time import iso_now

_log = logging.getLogger(__name__)

# Messages sent for 5xx answers; the real cause stays in the server log
_GENERIC_MESSAGES: dict[int, str] = {
    500: "An internal error occurred",
    502: "Storage backend unavailable",
}

_STATUS_CODES: dict[int, str] = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    500: "internal_error",
    502: "remote_storage_error",
}


def success_response(data: Any = None, status: int = 200, *, message: str | None = None) -> Response:
    payload: dict[str, Any] = {"ok": True, "data": data, "error": None}
    if message is not None:
        payload["message"] = message
    response = jsonify(payload)
    response.status_code = status
    return response


def error_response(
    message: str,
    status: int = 500,
    *,
    code: str | None = None,
    details: dict | None = None,
) -> Response:
    response = jsonify(
        {
            "ok": False,
            "data": None,
            "error": {
                "code": code or _STATUS_CODES.get(status, "error"),
                "message": message,
                "details": details or {},
                "timestamp": iso_now(timespec="seconds"),
            },
        }
    )
    response.status_code = status
    return response


def safe_error(exc: BaseException, status: int = 500, *, context: str = "", code: str | None = None) -> Response:
    """Log ``exc`` with its traceback and answer with a generic message."""
    _log.error("API error [%s] %s: %s", status, context, exc, exc_info=exc)
    message = _GENERIC_MESSAGES.get(status, _GENERIC_MESSAGES[500])
    return error_response(message, status, code=code)


def exception_response(exc: PlantCareError, *, context: str = "") -> Response:
    """Map a PlantCareError to its status; only 4xx errors expose message and detail."""
    status = exc.http_status
    if status >= 500:
        return safe_error(exc, status, context=context or type(exc).__name__, code=exc.code)
    _log.info("API %s [%s] %s: %s", exc.code, status, context, exc)
    return error_response(str(exc) or _STATUS_CODES.get(status, "error"), status, code=exc.code, details=exc.detail)


def safe_route(error_message: str = "An internal error occurred", *, error_status: int = 500) -> Callable:
    """Wrap a view so PlantCareErrors become their HTTP status and anything else a logged 500.

    Usage::

        @collections_api.get("/tasks")
        @safe_route("Failed to build task list")
        def get_tasks():
            ...
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except PlantCareError as exc:
                return exception_response(exc, context=error_message)
            except Exception as exc:
                return safe_error(exc, error_status, context=error_message)

        return wrapper

    return decorator
