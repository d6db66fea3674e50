"""
Enums Module
============

This module provides enumeration types for the PlantCare application.
Enums ensure type safety and consistency across the codebase.
"""

from plantcare.enums.common import CareKind, CareState, PlantStatus, StorageBackend, UrgencyBucket

__all__ = [
    "CareKind",
    "CareState",
    "PlantStatus",
    "StorageBackend",
    "UrgencyBucket",
]
