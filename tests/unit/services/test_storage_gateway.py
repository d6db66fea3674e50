"""
Storage Gateway Tests
=====================
Collection contract, record validation, the composite care-event write and
its rollback, and view-cache invalidation.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import Mock

import pytest

from plantcare.domain.exceptions import (
    NotFoundError,
    RemoteStorageError,
    StorageError,
    ValidationError,
)
from plantcare.enums.common import CareKind
from plantcare.services.storage_gateway import StorageGateway


def _seed(gateway, *plants):
    asyncio.run(gateway.set_collection("plants", list(plants)))


class TestCollectionContract:
    """get_collection / set_collection."""

    def test_missing_collection_reads_empty(self, memory_gateway):
        assert asyncio.run(memory_gateway.get_collection("plants")) == []
        assert asyncio.run(memory_gateway.get_collection("settings")) == []

    def test_set_replaces_wholesale(self, memory_gateway, make_plant):
        _seed(memory_gateway, make_plant(id="a"), make_plant(id="b"))
        _seed(memory_gateway, make_plant(id="c"))
        records = asyncio.run(memory_gateway.get_collection("plants"))
        assert [r["id"] for r in records] == ["c"]

    def test_unknown_collections_pass_through(self, memory_gateway):
        asyncio.run(memory_gateway.set_collection("settings", [{"theme": "dark"}]))
        assert asyncio.run(memory_gateway.get_collection("settings")) == [{"theme": "dark"}]

    @pytest.mark.parametrize("name", ["", "../etc", "plants.json", "1plants", None])
    def test_invalid_collection_name(self, memory_gateway, name):
        with pytest.raises(ValidationError):
            asyncio.run(memory_gateway.get_collection(name))

    def test_malformed_record_rejected_before_write(self, now):
        backend = Mock()
        gateway = StorageGateway(backend, clock=lambda: now)
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(gateway.set_collection("plants", [{"id": "p1", "name": "Fern", "wateringFrequencyDays": -1}]))
        assert exc_info.value.detail["position"] == 0
        backend.set.assert_not_called()

    def test_malformed_stored_record_rejected_on_read(self, memory_backend, memory_gateway):
        memory_backend.data["careEvents"] = [{"id": "e1", "plantId": "p1", "kind": "misting", "occurredAt": "2024-01-01"}]
        with pytest.raises(ValidationError):
            asyncio.run(memory_gateway.get_care_events())

    def test_non_list_collection_is_storage_error(self, now):
        backend = Mock()
        backend.get.return_value = {"not": "a list"}
        with pytest.raises(StorageError):
            asyncio.run(StorageGateway(backend, clock=lambda: now).get_collection("plants"))

    def test_backend_exception_is_wrapped(self, now):
        backend = Mock()
        backend.get.side_effect = OSError("disk gone")
        with pytest.raises(StorageError) as exc_info:
            asyncio.run(StorageGateway(backend, clock=lambda: now).get_collection("plants"))
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_get_plant_not_found(self, memory_gateway):
        with pytest.raises(NotFoundError):
            asyncio.run(memory_gateway.get_plant("missing"))


class TestAppendCareEvent:
    """The composite care-event write."""

    def test_first_watering_updates_plant_and_next_check(self, memory_gateway, make_plant, now):
        _seed(memory_gateway, make_plant(id="p1"))
        result = asyncio.run(memory_gateway.append_care_event("p1", CareKind.WATERING))

        assert result.plant.last_watered == now
        assert result.plant.next_check == now + timedelta(days=7)
        assert result.plant.updated_at == now
        assert result.event.kind is CareKind.WATERING

        stored = asyncio.run(memory_gateway.get_plant("p1"))
        assert stored == result.plant
        events = asyncio.run(memory_gateway.get_care_events())
        assert [e.id for e in events] == [result.event.id]

    def test_feeding_uses_earliest_due(self, memory_gateway, make_plant, days_ago, now):
        _seed(memory_gateway, make_plant(id="p1", last_watered=days_ago(6)))
        result = asyncio.run(memory_gateway.append_care_event("p1", "feeding"))
        # watering due tomorrow wins over feeding due in 14 days
        assert result.plant.next_check == days_ago(6) + timedelta(days=7)
        assert result.plant.last_fed == now

    def test_backdated_event_does_not_regress_timestamp(self, memory_gateway, make_plant, days_ago):
        _seed(memory_gateway, make_plant(id="p1", last_watered=days_ago(1)))
        result = asyncio.run(
            memory_gateway.append_care_event("p1", "watering", {"occurredAt": days_ago(5).isoformat()})
        )
        assert result.plant.last_watered == days_ago(1)
        assert result.event.occurred_at == days_ago(5)

    def test_repeated_event_at_same_time_gives_same_next_check(self, memory_gateway, make_plant, days_ago):
        _seed(memory_gateway, make_plant(id="once"), make_plant(id="twice"))
        when = {"occurredAt": days_ago(2).isoformat()}

        single = asyncio.run(memory_gateway.append_care_event("once", "watering", when))
        asyncio.run(memory_gateway.append_care_event("twice", "watering", when))
        repeated = asyncio.run(memory_gateway.append_care_event("twice", "watering", when))

        assert repeated.plant.next_check == single.plant.next_check == days_ago(2) + timedelta(days=7)
        assert repeated.plant.last_watered == days_ago(2)
        events = asyncio.run(memory_gateway.get_care_events())
        assert [e.plant_id for e in events] == ["once", "twice", "twice"]

    def test_event_payload_fields(self, memory_gateway, make_plant, days_ago):
        _seed(memory_gateway, make_plant(id="p1"))
        result = asyncio.run(
            memory_gateway.append_care_event(
                "p1", "feeding", {"occurred_at": days_ago(2), "amount": 5, "notes": "half strength"}
            )
        )
        assert result.event.amount == 5.0
        assert result.event.notes == "half strength"
        assert result.plant.last_fed == days_ago(2)

    def test_unknown_plant_writes_nothing(self, memory_backend, memory_gateway):
        with pytest.raises(NotFoundError):
            asyncio.run(memory_gateway.append_care_event("ghost", "watering"))
        assert memory_backend.set_calls == []

    @pytest.mark.parametrize(
        "kind,event",
        [
            ("pruning", None),
            ("watering", {"occurredAt": "not a date"}),
            ("watering", {"amount": "lots"}),
            ("watering", {"amount": -2}),
        ],
    )
    def test_invalid_input_rejected(self, memory_gateway, make_plant, kind, event):
        _seed(memory_gateway, make_plant(id="p1"))
        with pytest.raises(ValidationError):
            asyncio.run(memory_gateway.append_care_event("p1", kind, event))

    def test_plant_write_failure_restores_events(self, memory_backend, memory_gateway, make_plant):
        _seed(memory_gateway, make_plant(id="p1"))
        memory_backend.fail_sets["plants"] = OSError("write refused")

        with pytest.raises(StorageError) as exc_info:
            asyncio.run(memory_gateway.append_care_event("p1", "watering"))

        assert exc_info.value.detail["partial"] is False
        assert exc_info.value.detail["rolled_back"] == ["careEvents"]
        assert memory_backend.data["careEvents"] == []
        assert asyncio.run(memory_gateway.get_plant("p1")).last_watered is None

    def test_failed_rollback_reports_partial_write(self, memory_backend, memory_gateway, make_plant):
        _seed(memory_gateway, make_plant(id="p1"))
        original_set = memory_backend.set
        calls = {"n": 0}

        def flaky_set(name, records):
            calls["n"] += 1
            # first write (events) succeeds, everything after fails
            if calls["n"] > 1:
                raise OSError("backend down")
            original_set(name, records)

        memory_backend.set = flaky_set
        with pytest.raises(StorageError) as exc_info:
            asyncio.run(memory_gateway.append_care_event("p1", "watering"))
        assert exc_info.value.detail["partial"] is True
        assert exc_info.value.detail["unrecovered"] == ["careEvents"]

    def test_remote_failure_keeps_its_type(self, memory_backend, memory_gateway, make_plant):
        _seed(memory_gateway, make_plant(id="p1"))
        memory_backend.fail_sets["plants"] = RemoteStorageError("HTTP 503")
        with pytest.raises(RemoteStorageError):
            asyncio.run(memory_gateway.append_care_event("p1", "watering"))
        assert memory_backend.data["careEvents"] == []

    def test_async_backend_behaves_identically(self, async_gateway, make_plant, now):
        gateway = async_gateway
        _seed(gateway, make_plant(id="p1"))
        result = asyncio.run(gateway.append_care_event("p1", "watering"))
        assert result.plant.next_check == now + timedelta(days=7)
        assert len(asyncio.run(gateway.get_care_events())) == 1

    def test_concurrent_appends_are_serialized(self, async_gateway, make_plant, now):
        gateway = async_gateway
        _seed(gateway, make_plant(id="p1"), make_plant(id="p2"))

        async def _both():
            return await asyncio.gather(
                gateway.append_care_event("p1", "watering"),
                gateway.append_care_event("p2", "feeding"),
                gateway.append_care_event("p1", "feeding"),
            )

        asyncio.run(_both())
        events = asyncio.run(gateway.get_care_events())
        assert [(e.plant_id, e.kind.value) for e in events] == [
            ("p1", "watering"),
            ("p2", "feeding"),
            ("p1", "feeding"),
        ]
        p1 = asyncio.run(gateway.get_plant("p1"))
        assert p1.last_watered == now and p1.last_fed == now


class TestViewCache:
    """cached_view and invalidation on writes."""

    def test_view_is_cached_until_write(self, memory_gateway, make_plant):
        loader_calls = []

        async def loader():
            loader_calls.append(1)
            return len(await memory_gateway.get_plants())

        assert asyncio.run(memory_gateway.cached_view("count", loader)) == 0
        assert asyncio.run(memory_gateway.cached_view("count", loader)) == 0
        assert len(loader_calls) == 1

        _seed(memory_gateway, make_plant(id="p1"))
        assert asyncio.run(memory_gateway.cached_view("count", loader)) == 1
        assert len(loader_calls) == 2

    def test_view_loaded_during_write_is_not_cached(self, async_gateway, make_plant):
        _seed(async_gateway, make_plant(id="p1"))

        async def _race():
            write_done = asyncio.Event()

            async def slow_count():
                plants = await async_gateway.get_plants()
                await write_done.wait()
                return len(plants)

            view = asyncio.ensure_future(async_gateway.cached_view("count", slow_count))
            await asyncio.sleep(0)
            await async_gateway.set_collection("plants", [])
            write_done.set()
            return await view

        # the view read one plant before the write emptied the collection
        assert asyncio.run(_race()) == 1
        assert async_gateway.cache.get("count") is None

        async def count():
            return len(await async_gateway.get_plants())

        assert asyncio.run(async_gateway.cached_view("count", count)) == 0

    def test_append_invalidates_views(self, memory_gateway, make_plant):
        _seed(memory_gateway, make_plant(id="p1"))
        asyncio.run(memory_gateway.cached_view("k", _const("stale")))
        asyncio.run(memory_gateway.append_care_event("p1", "watering"))
        assert len(memory_gateway.cache) == 0


def _const(value):
    async def _loader():
        return value

    return _loader
