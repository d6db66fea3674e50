"""
Care logging service.

Entry point for quick-log buttons (plant cards, task list) and the bulk-care
page. Guarantees at most one in-flight log per (plant, kind) so rapid repeated
taps cannot create duplicate events, and keeps per-session submission order by
funnelling every write through the gateway's write lock.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from plantcare.domain.exceptions import ConflictError, PlantCareError, ValidationError
from plantcare.domain.plant import CareEvent, Plant
from plantcare.enums.common import CareKind
from plantcare.services.storage_gateway import AppendResult, StorageGateway

logger = logging.getLogger(__name__)


def _care_kind(kind: CareKind | str) -> CareKind:
    try:
        return CareKind(kind)
    except ValueError as exc:
        raise ValidationError(f"Unknown care kind: {kind!r}", detail={"kind": str(kind)}) from exc


@dataclass
class BulkLogResult:
    """Per-plant outcome of a bulk care action."""

    succeeded: List[Plant] = field(default_factory=list)
    failed: Dict[str, PlantCareError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "succeeded": [p.id for p in self.succeeded],
            "failed": {pid: str(err) for pid, err in self.failed.items()},
        }


class CareLogService:
    """Quick-log, bulk-log and history over a StorageGateway."""

    def __init__(self, gateway: StorageGateway) -> None:
        self._gateway = gateway
        self._in_flight: Set[Tuple[str, CareKind]] = set()
        # Request threads claim keys before they queue for the store.
        self._lock = threading.Lock()

    def is_in_flight(self, plant_id: str, kind: CareKind | str) -> bool:
        """True while a log for this plant and kind awaits confirmation."""
        with self._lock:
            return (str(plant_id), _care_kind(kind)) in self._in_flight

    @contextmanager
    def reserve(self, plant_id: str, kind: CareKind | str) -> Iterator[Tuple[str, CareKind]]:
        """Hold the in-flight slot for (plant, kind) for the duration of the block.

        Raises ConflictError straight away if another log holds it. Callers that
        queue for the store (HTTP request threads) reserve first, then run
        ``quick_log(..., reserved=True)``.
        """
        kind = _care_kind(kind)
        key = (str(plant_id), kind)
        with self._lock:
            if key in self._in_flight:
                logger.info("Rejecting duplicate %s log for plant %s (already in flight)", kind.value, plant_id)
                raise ConflictError(
                    f"A {kind.value} log for plant {plant_id} is already in progress",
                    detail={"plant_id": str(plant_id), "kind": kind.value},
                )
            self._in_flight.add(key)
        try:
            yield key
        finally:
            with self._lock:
                self._in_flight.discard(key)

    async def quick_log(
        self,
        plant_id: str,
        kind: CareKind | str,
        *,
        occurred_at: Optional[datetime] = None,
        amount: Optional[float] = None,
        notes: Optional[str] = None,
        reserved: bool = False,
    ) -> AppendResult:
        """Record one care action for ``plant_id`` (defaults to now).

        Raises ConflictError if the same plant/kind is already being logged,
        NotFoundError for an unknown plant, StorageError if the backend did not
        confirm the write. Nothing is left half-applied on failure.

        ``reserved=True`` means the caller already holds ``reserve(plant_id, kind)``.
        """
        kind = _care_kind(kind)
        if reserved:
            return await self._append(str(plant_id), kind, occurred_at, amount, notes)
        with self.reserve(plant_id, kind):
            return await self._append(str(plant_id), kind, occurred_at, amount, notes)

    async def _append(
        self,
        plant_id: str,
        kind: CareKind,
        occurred_at: Optional[datetime],
        amount: Optional[float],
        notes: Optional[str],
    ) -> AppendResult:
        event: Dict[str, Any] = {"occurred_at": occurred_at or self._gateway.now()}
        if amount is not None:
            event["amount"] = amount
        if notes:
            event["notes"] = notes
        try:
            return await self._gateway.append_care_event(plant_id, kind, event)
        except PlantCareError as exc:
            logger.warning("Failed to log %s for plant %s: %s", kind.value, plant_id, exc)
            raise

    async def bulk_log(
        self,
        plant_ids: Iterable[str],
        kind: CareKind | str,
        *,
        occurred_at: Optional[datetime] = None,
    ) -> BulkLogResult:
        """Log the same care action for several plants, in the given order.

        A failure for one plant is recorded and the batch continues.
        """
        kind = _care_kind(kind)
        result = BulkLogResult()
        when = occurred_at or self._gateway.now()
        for plant_id in plant_ids:
            try:
                outcome = await self.quick_log(plant_id, kind, occurred_at=when)
            except PlantCareError as exc:
                result.failed[str(plant_id)] = exc
                continue
            result.succeeded.append(outcome.plant)
        if result.failed:
            logger.warning("Bulk %s log: %d succeeded, %d failed", kind.value, len(result.succeeded), len(result.failed))
        return result

    async def history(self, plant_id: str, kind: CareKind | str | None = None) -> List[CareEvent]:
        """Care events for one plant, newest first."""
        try:
            wanted = CareKind(kind) if kind is not None else None
        except ValueError as exc:
            raise ValidationError(f"Unknown care kind: {kind!r}") from exc
        await self._gateway.get_plant(plant_id)
        events = [
            e for e in await self._gateway.get_care_events()
            if e.plant_id == str(plant_id) and (wanted is None or e.kind is wanted)
        ]
        events.sort(key=lambda e: e.occurred_at, reverse=True)
        return events
