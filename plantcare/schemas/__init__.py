"""
Schemas Module
==============

Pydantic models for persisted records. Schemas ensure that nothing loosely
shaped crosses the storage boundary into the care engine.
"""

from plantcare.schemas.records import CareEventRecord, ExportBundle, ExportSettings, PlantRecord

__all__ = [
    "CareEventRecord",
    "ExportBundle",
    "ExportSettings",
    "PlantRecord",
]
