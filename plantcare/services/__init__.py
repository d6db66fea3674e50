"""
Application services over the storage gateway.

The gateway owns persistence and the composite care-event write; the
services add plant-level operations, quick-log and cached views.
"""

from plantcare.services.care_log_service import BulkLogResult, CareLogService
from plantcare.services.plant_service import PlantService
from plantcare.services.storage_gateway import AppendResult, CollectionBackend, StorageGateway

__all__ = [
    "AppendResult",
    "BulkLogResult",
    "CareLogService",
    "CollectionBackend",
    "PlantService",
    "StorageGateway",
]
