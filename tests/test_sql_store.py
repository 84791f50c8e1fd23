"""
Tests for the SQLAlchemy store against in-memory SQLite.
"""

import asyncio

import pendulum
import pytest

from conftest import make_reservation

from pcbooking.adapters.sql_store import SqlReservationStore
from pcbooking.domain.exceptions import NotFoundError, OverlapConflictError, StorageUnavailableError


@pytest.fixture
def store(pcs):
    store = SqlReservationStore.from_url("sqlite://")
    store.create_schema()
    for resource in pcs:
        asyncio.run(store.add_resource(resource))
    yield store
    store.dispose()


class TestSqlReservationStore:
    """Tests for SqlReservationStore."""

    def test_insert_round_trips_as_utc(self, store):
        reservation = make_reservation("a", "10:00", "10:30", note="CAD")

        stored = asyncio.run(store.insert(reservation))

        assert stored.start == pendulum.parse("2024-01-10T01:00:00Z")
        assert stored.start.timezone_name == "UTC"
        assert stored.note == "CAD"
        assert stored.resource_name == "PC-1"

    def test_checked_insert_sees_overlaps_on_same_resource(self, store):
        asyncio.run(store.insert(make_reservation("a", "10:00", "10:30")))
        asyncio.run(store.insert(make_reservation("b", "10:00", "10:30", resource_id="2")))
        seen = []

        asyncio.run(store.insert(make_reservation("c", "10:30", "11:00"), check=seen.append))
        asyncio.run(store.insert(make_reservation("d", "10:10", "10:20", resource_id="2"), check=seen.append))

        assert seen[0] == []
        assert [r.id for r in seen[1]] == ["b"]

    def test_rejecting_check_rolls_back(self, store):
        asyncio.run(store.insert(make_reservation("a", "10:00", "10:30")))

        def reject(existing):
            raise OverlapConflictError("taken", conflicting=existing[0])

        with pytest.raises(OverlapConflictError):
            asyncio.run(store.insert(make_reservation("b", "10:10", "10:40"), check=reject))

        assert asyncio.run(store.get("b")) is None

    def test_checked_update_excludes_itself(self, store):
        asyncio.run(store.insert(make_reservation("a", "10:00", "10:30")))
        asyncio.run(store.insert(make_reservation("b", "11:00", "11:30")))
        seen = []

        asyncio.run(
            store.update(
                "a",
                {"end": pendulum.parse("2024-01-10 11:10", tz="Asia/Tokyo")},
                check=seen.append,
            )
        )

        assert [r.id for r in seen[0]] == ["b"]

    def test_find_intersecting(self, store):
        asyncio.run(store.insert(make_reservation("n", "23:00", "23:50", day="2024-01-09")))
        asyncio.run(store.update("n", {"end": pendulum.parse("2024-01-10 01:00", tz="Asia/Tokyo")}))
        asyncio.run(store.insert(make_reservation("a", "10:00", "10:30")))
        asyncio.run(store.insert(make_reservation("next", "00:00", "00:30", day="2024-01-11")))

        items = asyncio.run(
            store.find_intersecting(
                pendulum.datetime(2024, 1, 10, tz="Asia/Tokyo"),
                pendulum.datetime(2024, 1, 11, tz="Asia/Tokyo"),
            )
        )

        assert [r.id for r in items] == ["n", "a"]

    def test_find_by_date_range(self, store):
        asyncio.run(store.insert(make_reservation("a", "10:00", "10:30")))
        asyncio.run(store.insert(make_reservation("b", "00:00", "00:30", day="2024-01-11")))

        items = asyncio.run(
            store.find_by_date_range(
                pendulum.datetime(2024, 1, 10, tz="Asia/Tokyo"),
                pendulum.datetime(2024, 1, 11, tz="Asia/Tokyo"),
            )
        )

        assert [r.id for r in items] == ["a"]

    def test_list_all_newest_first(self, store):
        asyncio.run(store.insert(make_reservation("a", "10:00", "10:30")))
        asyncio.run(store.insert(make_reservation("b", "11:00", "11:30")))

        assert [r.id for r in asyncio.run(store.list_all())] == ["b", "a"]
        assert [r.id for r in asyncio.run(store.list_all(limit=1))] == ["b"]

    def test_update(self, store):
        asyncio.run(store.insert(make_reservation("a", "10:00", "10:30", note="CAD")))

        updated = asyncio.run(
            store.update(
                "a",
                {"holder_name": "Bob", "note": None, "end": pendulum.parse("2024-01-10 11:00", tz="Asia/Tokyo")},
            )
        )

        assert updated.holder_name == "Bob"
        assert updated.note is None
        assert updated.end == pendulum.parse("2024-01-10T02:00:00Z")

    def test_update_missing(self, store):
        with pytest.raises(NotFoundError):
            asyncio.run(store.update("missing", {"holder_name": "Bob"}))

    def test_delete_where_end_before(self, store):
        asyncio.run(store.insert(make_reservation("old", "10:00", "10:30", day="2024-01-09")))
        asyncio.run(store.insert(make_reservation("edge", "23:30", "23:50", day="2024-01-09")))
        asyncio.run(store.insert(make_reservation("today", "10:00", "10:30")))

        removed = asyncio.run(store.delete_where_end_before(pendulum.parse("2024-01-09 23:50", tz="Asia/Tokyo")))

        assert removed == 1
        assert asyncio.run(store.get("edge")) is not None
        assert asyncio.run(store.delete_by_id("today"))
        assert not asyncio.run(store.delete_by_id("today"))

    def test_duplicate_id_is_a_storage_error(self, store):
        asyncio.run(store.insert(make_reservation("a", "10:00", "10:30")))

        with pytest.raises(StorageUnavailableError):
            asyncio.run(store.insert(make_reservation("a", "11:00", "11:30")))

    def test_resources_ordered_by_name(self, store):
        assert [r.name for r in asyncio.run(store.list_resources())] == ["PC-1", "PC-2"]
        assert asyncio.run(store.get_resource("9")) is None
