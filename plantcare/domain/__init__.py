"""
Care Domain Package
===================
Entities and the pure scheduling engine: care clock, status classification,
calendar projection and task bucketing. Nothing in here performs I/O.
"""

from .care_clock import clamp_for_display, compute_next_due, days_since, days_until_due
from .exceptions import (
    ConfigurationError,
    ConflictError,
    InconsistentStateError,
    NotFoundError,
    PlantCareError,
    RemoteStorageError,
    StorageError,
    ValidationError,
)
from .plant import CareEvent, Plant, new_identifier, validate_frequency
from .schedule_projector import DaySchedule, events_on, project_range
from .status_classifier import CareStatus, classify, is_due, next_check_for, verify_next_check
from .task_aggregator import TaskBuckets, build

__all__ = [
    # Entities
    "CareEvent",
    "Plant",
    "new_identifier",
    "validate_frequency",
    # Care clock
    "clamp_for_display",
    "compute_next_due",
    "days_since",
    "days_until_due",
    # Classification
    "CareStatus",
    "classify",
    "is_due",
    "next_check_for",
    "verify_next_check",
    # Views
    "DaySchedule",
    "TaskBuckets",
    "build",
    "events_on",
    "project_range",
    # Errors
    "ConfigurationError",
    "ConflictError",
    "InconsistentStateError",
    "NotFoundError",
    "PlantCareError",
    "RemoteStorageError",
    "StorageError",
    "ValidationError",
]
