"""
Storage Gateway
===============

The only path to persisted plants and care events. Wraps one backend, chosen
once per process, behind a single contract:

- ``get_collection(name)``: ordered records; ``[]`` if never written
- ``set_collection(name, records)``: wholesale replace (no merge)
- ``append_care_event(plant, kind, event)``: append the event, move the
  plant's care timestamp, recompute ``next_check``, drop cached views
- ``update_collections(names, mutate)``: read-modify-write under the same
  write lock, so plant edits never overwrite a concurrent care event

Backends only need ``get(name)`` and ``set(name, records)``. They may be
synchronous (offline store) or return awaitables (remote store); the gateway
awaits whatever comes back, so callers never know which one is in use.

Known collections are validated record-by-record against the pydantic
schemas before any write and after every read.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol

from plantcare.constants import Collections
from plantcare.domain.exceptions import NotFoundError, PlantCareError, StorageError, ValidationError
from plantcare.domain.plant import CareEvent, Plant
from plantcare.domain.status_classifier import next_check_for, verify_next_check
from plantcare.enums.common import CareKind
from plantcare.utils.cache import TTLCache
from plantcare.utils.time import coerce_datetime, ensure_utc, utc_now
from infrastructure.storage.local_store import validate_collection_name

logger = logging.getLogger(__name__)


class CollectionBackend(Protocol):
    """Persistence collaborator: a JSON-array store addressed by collection name."""

    def get(self, name: str) -> list[Any] | Awaitable[list[Any]]:
        ...

    def set(self, name: str, records: list[Any]) -> None | Awaitable[None]:
        ...


_ENTITY_TYPES: dict[str, type] = {
    Collections.PLANTS: Plant,
    Collections.CARE_EVENTS: CareEvent,
}


@dataclass(frozen=True)
class AppendResult:
    """Outcome of a successful ``append_care_event``."""

    plant: Plant
    event: CareEvent


class StorageGateway:
    """Backend-agnostic record storage with the composite care-event write."""

    def __init__(
        self,
        backend: CollectionBackend,
        *,
        cache: TTLCache | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._backend = backend
        self._cache = cache if cache is not None else TTLCache(ttl_seconds=30, maxsize=64)
        self._clock = clock
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    @property
    def backend(self) -> CollectionBackend:
        return self._backend

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    # ------------------------------------------------------------------
    # Collection contract
    # ------------------------------------------------------------------

    async def get_collection(self, name: str) -> list[dict[str, Any]]:
        """Records of ``name`` in stored order; ``[]`` if it was never written."""
        validate_collection_name(name)
        raw = await self._call("get", name)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StorageError(f"Collection {name} is not a list", detail={"collection": name})
        return self._normalize(name, raw)

    async def set_collection(self, name: str, records: Iterable[Any]) -> None:
        """Replace ``name`` wholesale. Validation happens before the backend is touched."""
        validate_collection_name(name)
        normalized = self._normalize(name, list(records))
        async with self._write_lock():
            await self._call("set", name, normalized)
            self.invalidate_views()
        logger.debug("Collection %s replaced with %d records", name, len(normalized))

    async def get_plants(self) -> list[Plant]:
        return [Plant.from_record(r) for r in await self.get_collection(Collections.PLANTS)]

    async def get_care_events(self) -> list[CareEvent]:
        return [CareEvent.from_record(r) for r in await self.get_collection(Collections.CARE_EVENTS)]

    async def get_plant(self, plant_id: str) -> Plant:
        plant_id = str(plant_id)
        for plant in await self.get_plants():
            if plant.id == plant_id:
                return plant
        raise NotFoundError(f"Plant {plant_id} not found", detail={"plant_id": plant_id})

    # ------------------------------------------------------------------
    # Composite write
    # ------------------------------------------------------------------

    async def append_care_event(
        self,
        plant: Plant | str,
        kind: CareKind | str,
        event: CareEvent | Mapping[str, Any] | None = None,
    ) -> AppendResult:
        """Record one care action as a single logical unit.

        The event collection is written first and the plant second. If the
        plant write fails the event collection is put back; the plant's
        derived fields are therefore never persisted without its event.
        """
        try:
            kind = CareKind(kind)
        except ValueError as exc:
            raise ValidationError(f"Unknown care kind: {kind!r}", detail={"kind": str(kind)}) from exc
        plant_id = plant.id if isinstance(plant, Plant) else str(plant)
        care_event = self._build_event(plant_id, kind, event)

        async with self._write_lock():
            plant_records = await self.get_collection(Collections.PLANTS)
            index = next((i for i, r in enumerate(plant_records) if r["id"] == plant_id), None)
            if index is None:
                raise NotFoundError(f"Plant {plant_id} not found", detail={"plant_id": plant_id})
            event_records = await self.get_collection(Collections.CARE_EVENTS)

            now = self.now()
            stored = Plant.from_record(plant_records[index])
            previous = stored.last_event_at(kind)
            latest = care_event.occurred_at if previous is None else max(previous, care_event.occurred_at)
            updated = stored.with_care(kind, latest)
            updated = replace(
                updated,
                next_check=next_check_for(updated, now, overrides={kind: latest}),
                updated_at=now,
            )
            verify_next_check(updated)

            new_plants = list(plant_records)
            new_plants[index] = updated.to_record()
            await self._write_all(
                [
                    (Collections.CARE_EVENTS, event_records + [care_event.to_record()], event_records),
                    (Collections.PLANTS, new_plants, plant_records),
                ]
            )
            self.invalidate_views()

        logger.info(
            "Logged %s for plant %s at %s (next check %s)",
            kind.value,
            plant_id,
            care_event.occurred_at.isoformat(),
            updated.next_check.isoformat() if updated.next_check else None,
        )
        return AppendResult(plant=updated, event=care_event)

    async def replace_collections(self, changes: Mapping[str, Iterable[Any]]) -> None:
        """Replace several collections as one unit, rolling back on failure."""
        normalized = {name: self._normalize(validate_collection_name(name), list(records)) for name, records in changes.items()}
        async with self._write_lock():
            steps = []
            for name, records in normalized.items():
                previous = await self.get_collection(name)
                steps.append((name, records, previous))
            await self._write_all(steps)
            self.invalidate_views()

    async def update_collections(
        self,
        names: Iterable[str],
        mutate: Callable[[dict[str, list[dict[str, Any]]]], Any],
    ) -> Any:
        """Read-modify-write of ``names`` under the write lock.

        ``mutate`` receives ``{name: records}`` (private copies), edits the lists
        in place and returns a value handed back to the caller. Only collections
        whose records changed are written, with the same rollback as
        ``append_care_event``. Anything ``mutate`` raises aborts the write.
        """
        names = [validate_collection_name(name) for name in names]
        async with self._write_lock():
            current = {name: await self.get_collection(name) for name in names}
            working = {
                name: [dict(r) if isinstance(r, Mapping) else r for r in records]
                for name, records in current.items()
            }
            result = mutate(working)
            steps = []
            for name in names:
                records = self._normalize(name, list(working[name]))
                if records != current[name]:
                    steps.append((name, records, current[name]))
            if steps:
                await self._write_all(steps)
                self.invalidate_views()
        logger.debug("Updated collection(s) %s", ", ".join(name for name, _, _ in steps) or "none")
        return result

    # ------------------------------------------------------------------
    # Derived view cache
    # ------------------------------------------------------------------

    async def cached_view(self, key: Any, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return a cached derived view, computing it with ``loader`` on a miss.

        A value whose load overlapped a write is returned but not cached.
        """
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        generation = self._cache.generation
        value = await loader()
        if not self._cache.set(key, value, generation=generation):
            logger.debug("View %r not cached (stale or cache disabled)", key)
        return value

    def invalidate_views(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write_lock(self) -> asyncio.Lock:
        # One lock per running loop; waiters are served in submission order.
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def _call(self, method: str, *args: Any) -> Any:
        try:
            result = getattr(self._backend, method)(*args)
            if inspect.isawaitable(result):
                result = await result
        except PlantCareError:
            raise
        except Exception as e:
            logger.error("Storage backend %s(%s) failed: %s", method, args[0] if args else "", e)
            raise StorageError(f"Storage backend {method} failed", detail={"collection": args[0] if args else None}) from e
        return result

    async def _write_all(self, steps: list[tuple[str, list[dict[str, Any]], list[dict[str, Any]]]]) -> None:
        """Write each (name, new, previous) in order; undo completed writes if a later one fails."""
        done: list[tuple[str, list[dict[str, Any]]]] = []
        for name, records, previous in steps:
            try:
                await self._call("set", name, records)
            except StorageError as exc:
                rollback_failed = []
                for done_name, done_previous in reversed(done):
                    try:
                        await self._call("set", done_name, done_previous)
                    except StorageError:
                        logger.error("Rollback of collection %s failed", done_name)
                        rollback_failed.append(done_name)
                if rollback_failed:
                    raise StorageError(
                        f"Write to {name} failed and rollback of {', '.join(rollback_failed)} failed",
                        detail={"collection": name, "partial": True, "unrecovered": rollback_failed},
                    ) from exc
                logger.warning("Write to %s failed; rolled back %d collection(s)", name, len(done))
                raise type(exc)(
                    f"Write to {name} failed",
                    detail={"collection": name, "partial": False, "rolled_back": [n for n, _ in done]},
                ) from exc
            done.append((name, previous))

    def _normalize(self, name: str, records: list[Any]) -> list[dict[str, Any]]:
        entity_type = _ENTITY_TYPES.get(name)
        if entity_type is None:
            return [dict(r) if isinstance(r, Mapping) else r for r in records]
        normalized = []
        for position, record in enumerate(records):
            if isinstance(record, entity_type):
                normalized.append(record.to_record())
                continue
            if not isinstance(record, Mapping):
                raise ValidationError(
                    f"Record {position} of {name} is not an object",
                    detail={"collection": name, "position": position},
                )
            try:
                normalized.append(entity_type.from_record(record).to_record())
            except ValidationError as exc:
                exc.detail.setdefault("collection", name)
                exc.detail.setdefault("position", position)
                raise
        return normalized

    def _build_event(
        self,
        plant_id: str,
        kind: CareKind,
        event: CareEvent | Mapping[str, Any] | None,
    ) -> CareEvent:
        if isinstance(event, CareEvent):
            if event.plant_id != plant_id or event.kind is not kind:
                raise ValidationError(
                    "Care event does not match plant/kind",
                    detail={"plant_id": plant_id, "kind": kind.value, "event_plant_id": event.plant_id},
                )
            return event

        data = dict(event or {})
        raw_occurred = data.get("occurred_at", data.get("occurredAt"))
        if raw_occurred is None:
            occurred_at = self.now()
        else:
            occurred_at = coerce_datetime(raw_occurred)
            if occurred_at is None:
                raise ValidationError("Malformed occurred_at timestamp", detail={"occurred_at": str(raw_occurred)})
        amount = data.get("amount")
        if amount is not None and (isinstance(amount, bool) or not isinstance(amount, (int, float))):
            raise ValidationError("amount must be a number", detail={"amount": amount})
        return CareEvent(
            plant_id=plant_id,
            kind=kind,
            occurred_at=occurred_at,
            amount=float(amount) if amount is not None else None,
            notes=data.get("notes"),
        )
