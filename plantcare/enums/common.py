"""
Common Enumerations
====================

Enums shared by the care engine, the storage layer and the HTTP surface.
"""

from enum import Enum


class CareKind(str, Enum):
    """
    Kinds of care action that drive scheduling.
    Used by: care_clock, status_classifier, storage_gateway
    """
    WATERING = "watering"
    FEEDING = "feeding"

    def __str__(self) -> str:
        return self.value


class PlantStatus(str, Enum):
    """User-assigned plant health status."""
    HEALTHY = "healthy"
    NEEDS_ATTENTION = "needs_attention"
    SICK = "sick"
    RECOVERING = "recovering"

    def __str__(self) -> str:
        return self.value


class CareState(str, Enum):
    """Per-kind classification produced by the status classifier."""
    OK = "ok"
    DUE = "due"

    def __str__(self) -> str:
        return self.value


class UrgencyBucket(str, Enum):
    """
    Urgency buckets used to group plants in task and calendar views.
    Used by: status_classifier.urgency_for
    """
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    UPCOMING = "upcoming"
    OK = "ok"

    def __str__(self) -> str:
        return self.value


class StorageBackend(str, Enum):
    """Process-wide storage backend selection."""
    OFFLINE = "offline"
    REMOTE = "remote"

    def __str__(self) -> str:
        return self.value
