"""
Shared test fixtures for the PlantCare test suite.

Provides:
- A fixed reference clock (``now``) so day arithmetic is deterministic
- A ``make_plant`` factory for domain-level tests
- Offline store / gateway / service instances backed by ``tmp_path``
- A Flask app and test client serving a temporary data directory

Usage:
    def test_example(gateway, make_plant, now):
        asyncio.run(gateway.set_collection("plants", [make_plant(id="p1")]))
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from plantcare.domain.plant import Plant
from plantcare.services.care_log_service import CareLogService
from plantcare.services.plant_service import PlantService
from plantcare.services.storage_gateway import StorageGateway
from plantcare.utils.cache import TTLCache
from infrastructure.storage.local_store import LocalCollectionStore

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("plantcare").setLevel(logging.WARNING)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


# ========================== Clock & Entities ===============================


@pytest.fixture()
def now() -> datetime:
    """Fixed reference time: 2024-06-15 12:00 UTC."""
    return NOW


@pytest.fixture()
def days_ago(now):
    """Return a helper producing ``now - n days``."""

    def _days_ago(n: float) -> datetime:
        return now - timedelta(days=n)

    return _days_ago


@pytest.fixture()
def make_plant():
    """Factory for Plant entities with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> Plant:
        counter["n"] += 1
        fields: dict[str, Any] = {
            "id": f"plant-{counter['n']}",
            "name": f"Plant {counter['n']}",
        }
        fields.update(overrides)
        return Plant(**fields)

    return _make


# ========================== Storage & Services =============================


class MemoryBackend:
    """Synchronous in-memory backend with injectable write failures.

    ``fail_sets[name] = exc`` makes the next ``set(name, ...)`` raise ``exc``.
    """

    def __init__(self):
        self.data: dict[str, list] = {}
        self.fail_sets: dict[str, Exception] = {}
        self.set_calls: list[str] = []

    def get(self, name):
        return list(self.data.get(name, []))

    def set(self, name, records):
        self.set_calls.append(name)
        if name in self.fail_sets:
            raise self.fail_sets.pop(name)
        self.data[name] = list(records)


class AsyncMemoryBackend(MemoryBackend):
    """Same store with coroutine methods that yield to the loop, like the remote backend."""

    async def get(self, name):
        await asyncio.sleep(0)
        return MemoryBackend.get(self, name)

    async def set(self, name, records):
        await asyncio.sleep(0)
        MemoryBackend.set(self, name, records)


@pytest.fixture()
def memory_backend():
    return MemoryBackend()


@pytest.fixture()
def async_memory_backend():
    return AsyncMemoryBackend()


@pytest.fixture()
def memory_gateway(memory_backend, now):
    return StorageGateway(memory_backend, clock=lambda: now)


@pytest.fixture()
def async_gateway(async_memory_backend, now):
    return StorageGateway(async_memory_backend, clock=lambda: now)


@pytest.fixture()
def local_store(tmp_path):
    """Offline collection store in a per-test temporary directory."""
    return LocalCollectionStore(tmp_path / "data")


@pytest.fixture()
def gateway(local_store, now):
    """Gateway over the offline store with the fixed clock."""
    return StorageGateway(local_store, cache=TTLCache(ttl_seconds=60, maxsize=32), clock=lambda: now)


@pytest.fixture()
def plant_service(gateway):
    return PlantService(gateway)


@pytest.fixture()
def care_log_service(gateway):
    return CareLogService(gateway)


# ========================== Flask ==========================================


@pytest.fixture()
def app(tmp_path, monkeypatch):
    """Flask app serving a temporary data directory."""
    monkeypatch.delenv("PLANTCARE_STORAGE_BACKEND", raising=False)
    from plantcare import create_app

    flask_app = create_app({"data_dir": str(tmp_path / "server-data"), "log_path": "", "cache_enabled": False})
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
