"""
Tests for the in-memory store and its JSON snapshot.
"""

import asyncio

import pendulum
import pytest

from conftest import make_reservation

from pcbooking.adapters.memory_store import InMemoryReservationStore
from pcbooking.domain.exceptions import NotFoundError, OverlapConflictError, StorageUnavailableError
from pcbooking.domain.models import Resource


@pytest.fixture
def store(pcs):
    return InMemoryReservationStore(
        resources=pcs,
        reservations=[
            make_reservation("a", "10:00", "10:30", note="CAD"),
            make_reservation("b", "11:00", "11:30", resource_id="2"),
        ],
    )


class TestInMemoryReservationStore:
    """Tests for InMemoryReservationStore."""

    def test_reads_join_resource_name(self, store):
        assert asyncio.run(store.get("a")).resource_name == "PC-1"

    def test_checked_insert_is_half_open(self, store):
        seen = []

        asyncio.run(store.insert(make_reservation("c", "10:30", "11:00"), check=seen.append))
        asyncio.run(store.insert(make_reservation("d", "09:50", "10:10"), check=seen.append))

        assert seen[0] == []
        assert [r.id for r in seen[1]] == ["a"]

    def test_rejecting_check_leaves_store_unchanged(self, store):
        def reject(existing):
            raise OverlapConflictError("taken", conflicting=make_reservation("z", "10:00", "10:10"))

        with pytest.raises(OverlapConflictError):
            asyncio.run(
                store.update(
                    "a",
                    {"end": pendulum.parse("2024-01-10 11:00", tz="Asia/Tokyo")},
                    check=reject,
                )
            )
        with pytest.raises(OverlapConflictError):
            asyncio.run(store.insert(make_reservation("x", "10:00", "10:10"), check=reject))

        assert asyncio.run(store.get("a")).end == pendulum.parse("2024-01-10 10:30", tz="Asia/Tokyo")
        assert asyncio.run(store.get("x")) is None

    def test_update_unknown_field(self, store):
        with pytest.raises(ValueError):
            asyncio.run(store.update("a", {"resource_id": "2"}))

    def test_update_missing_reservation(self, store):
        with pytest.raises(NotFoundError):
            asyncio.run(store.update("missing", {"holder_name": "Bob"}))

    def test_delete_by_id(self, store):
        assert asyncio.run(store.delete_by_id("a"))
        assert not asyncio.run(store.delete_by_id("a"))

    def test_json_snapshot_round_trip(self, store, tmp_path):
        path = tmp_path / "reservations.json"
        store.dump_json_file(path)

        loaded = InMemoryReservationStore.from_json_file(path)

        original = asyncio.run(store.list_all())
        restored = asyncio.run(loaded.list_all())
        assert [(r.id, r.start, r.end, r.note, r.resource_name) for r in restored] == [
            (r.id, r.start, r.end, r.note, r.resource_name) for r in original
        ]
        assert "T01:00:00Z" in path.read_text(encoding="utf-8")

    def test_unreadable_snapshot(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageUnavailableError):
            InMemoryReservationStore.from_json_file(path)

    def test_missing_snapshot(self, tmp_path):
        with pytest.raises(StorageUnavailableError):
            InMemoryReservationStore.from_json_file(tmp_path / "missing.json")

    def test_resources_sorted_by_name(self):
        store = InMemoryReservationStore(resources=[Resource("2", "b"), Resource("1", "a")])

        assert [r.id for r in asyncio.run(store.list_resources())] == ["1", "2"]
