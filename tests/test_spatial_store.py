"""Unit tests for the in-memory spatial store and its connection pool."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from datastore.spatial_store import ConnectionPool, MockSpatialStore, StoreUnavailableError
from models.geometry import Polygon
from models.records import AvailabilityHistoryEntry, Bike, Coordinate, Rider, ServiceArea
from tests.conftest import CENTRAL_AREA_WKT, INSIDE, OUTSIDE, seed


def _entry(entry_id: str = "entry-1") -> AvailabilityHistoryEntry:
    return AvailabilityHistoryEntry(
        id=entry_id,
        rider_id="rider-valid",
        latitude=INSIDE.latitude,
        longitude=INSIDE.longitude,
        response='{"message": "Success"}',
        created_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


def test_find_rider_by_email_is_case_insensitive_and_returns_copy(store: MockSpatialStore) -> None:
    rider = store.find_rider_by_email("  VALID@test.com ")

    assert rider is not None
    assert rider.id == "rider-valid"

    rider.balance = 0
    again = store.find_rider_by_email("valid@test.com")
    assert again is not None
    assert again.balance == 120


def test_find_rider_by_email_returns_none_when_missing(store: MockSpatialStore) -> None:
    assert store.find_rider_by_email("nobody@test.com") is None


def test_add_rider_rejects_negative_balance(store: MockSpatialStore) -> None:
    with pytest.raises(ValueError):
        store.add_rider(Rider(id="r", email="neg@test.com", balance=-1))


def test_service_areas_containing(store: MockSpatialStore) -> None:
    assert [area.id for area in store.service_areas_containing(INSIDE)] == [1]
    assert store.service_areas_containing(OUTSIDE) == []


def test_available_bikes_excludes_faulty_busy_and_outside(store: MockSpatialStore) -> None:
    area = store.service_areas_containing(INSIDE)[0]

    bikes = store.available_bikes_in_area(area)

    assert sorted(bike.id for bike in bikes) == ["bike-1", "bike-2"]


def test_insert_history_appends_and_rejects_duplicates(store: MockSpatialStore) -> None:
    store.insert_history(_entry())

    with pytest.raises(ValueError):
        store.insert_history(_entry())

    history = store.list_history()
    assert [entry.id for entry in history] == ["entry-1"]


def test_store_persists_to_disk_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    first = MockSpatialStore(name="test", persistence_path=path)
    seed(first)
    first.insert_history(_entry())

    payload = json.loads(path.read_text())
    assert {area["area"] for area in payload["service_areas"]} == {
        Polygon.from_wkt(CENTRAL_AREA_WKT).to_wkt()
    }

    reloaded = MockSpatialStore(name="test", persistence_path=path)
    assert reloaded.counts() == first.counts()
    assert reloaded.list_history()[0].created_at == _entry().created_at
    assert [area.id for area in reloaded.service_areas_containing(INSIDE)] == [1]


def test_store_ignores_corrupt_snapshot(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{not json")

    store = MockSpatialStore(name="test", persistence_path=path)

    assert store.counts()["riders"] == 0


def test_pool_exhaustion_raises_store_unavailable() -> None:
    pool = ConnectionPool(size=1, acquire_timeout=0.05)

    with pool.checkout():
        assert pool.in_use == 1
        with pytest.raises(StoreUnavailableError):
            with pool.checkout():
                pass

    assert pool.in_use == 0


def test_pool_releases_connection_on_error() -> None:
    pool = ConnectionPool(size=1, acquire_timeout=0.05)

    with pytest.raises(RuntimeError):
        with pool.checkout():
            raise RuntimeError("query failed")

    assert pool.in_use == 0
    with pool.checkout():
        assert pool.in_use == 1


def test_queries_fail_when_pool_is_exhausted() -> None:
    pool = ConnectionPool(size=1, acquire_timeout=0.05)
    store = MockSpatialStore(name="test", pool=pool)

    with pool.checkout():
        with pytest.raises(StoreUnavailableError):
            store.find_rider_by_email("valid@test.com")


def test_pool_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        ConnectionPool(size=0)


def test_available_bikes_uses_stored_polygon_for_known_area(store: MockSpatialStore) -> None:
    stale = ServiceArea(
        id=1,
        name="Central",
        polygon=Polygon.from_wkt("POLYGON((0 0, 1 0, 1 1, 0 1, 0 0))"),
    )
    store.add_bike(Bike(id="bike-3", designation=1005, latitude=12.95, longitude=77.55))

    bikes = store.available_bikes_in_area(stale)

    assert "bike-3" in {bike.id for bike in bikes}
    assert not stale.contains(Coordinate(latitude=12.95, longitude=77.55))
