"""Centralized exception hierarchy for PlantCare.

All domain and service exceptions inherit from :class:`PlantCareError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

Blueprint-level error handling (see ``plantcare/utils/http.safe_route``) maps
these to the correct HTTP status codes automatically.

Hierarchy
---------
::

    PlantCareError (base: maps to 500)
    ├── ValidationError          (400: bad input / malformed record)
    ├── NotFoundError            (404: plant does not exist)
    ├── ConflictError            (409: quick-log already in flight)
    ├── StorageError             (500: backend read/write failure)
    │   └── RemoteStorageError   (502: network / remote store)
    ├── InconsistentStateError   (500: derived field contradicts its source)
    └── ConfigurationError       (500: missing / invalid config)
"""

from __future__ import annotations


class PlantCareError(Exception):
    """Base exception for all PlantCare errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, **not** leaked to
        the HTTP client unless the exception class opts in).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(PlantCareError):
    """Caller supplied invalid input or a record failed schema validation (HTTP 400)."""

    http_status: int = 400
    code: str = "validation_error"


class NotFoundError(PlantCareError):
    """Referenced plant does not exist (HTTP 404)."""

    http_status: int = 404
    code: str = "not_found"


class ConflictError(PlantCareError):
    """Operation conflicts with an operation already in progress (HTTP 409)."""

    http_status: int = 409
    code: str = "conflict"


# ── Server errors (5xx) ──────────────────────────────────────────────


class StorageError(PlantCareError):
    """Storage backend read or write failure (HTTP 500)."""

    http_status: int = 500
    code: str = "storage_error"


class RemoteStorageError(StorageError):
    """Remote store unreachable, timed out or answered with an error (HTTP 502)."""

    http_status: int = 502
    code: str = "remote_storage_error"


class InconsistentStateError(PlantCareError):
    """A derived field precedes the timestamp it was derived from (HTTP 500).

    Signals a computation bug; never corrected silently.
    """

    http_status: int = 500
    code: str = "inconsistent_state"


class ConfigurationError(PlantCareError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
    code: str = "configuration_error"
