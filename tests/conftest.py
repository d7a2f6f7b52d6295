"""Shared fixtures: a seeded in-memory store and an eligibility service over it."""

from __future__ import annotations

from typing import Iterator

import pytest

from datastore.spatial_store import ConnectionPool, MockSpatialStore
from models.geometry import Polygon
from models.records import Bike, City, Coordinate, Rider, ServiceArea
from services.audit import AuditLogger
from services.eligibility import EligibilityService

CENTRAL_AREA_WKT = "POLYGON((77.5 12.9, 77.6 12.9, 77.6 13.0, 77.5 13.0, 77.5 12.9))"
# Bikes are parked here; a rider standing here is inside the central area.
INSIDE = Coordinate(latitude=12.9716, longitude=77.5946)
OUTSIDE = Coordinate(latitude=28.6139, longitude=77.2090)


def seed(store: MockSpatialStore) -> None:
    store.add_city(City(id=1, name="Bengaluru", centroid_latitude=12.9716, centroid_longitude=77.5946))
    store.add_service_area(
        ServiceArea(id=1, name="Central", polygon=Polygon.from_wkt(CENTRAL_AREA_WKT), city_id=1)
    )
    store.add_rider(Rider(id="rider-valid", email="valid@test.com", balance=120))
    store.add_rider(Rider(id="rider-blocked", email="blocked@test.com", balance=100, is_blocked=True))
    store.add_rider(Rider(id="rider-low", email="lowbalance@test.com", balance=30))
    store.add_rider(Rider(id="rider-exact", email="exact50@test.com", balance=50))
    store.add_rider(Rider(id="rider-49", email="almost@test.com", balance=49))
    store.add_bike(Bike(id="bike-1", designation=1001, latitude=12.9716, longitude=77.5946))
    store.add_bike(Bike(id="bike-2", designation=1002, latitude=12.9720, longitude=77.5950))
    store.add_bike(
        Bike(id="bike-faulty", designation=1003, latitude=12.9730, longitude=77.5960, is_faulty=True)
    )
    store.add_bike(
        Bike(id="bike-busy", designation=1004, latitude=12.9740, longitude=77.5970, status="in-use")
    )
    store.add_bike(Bike(id="bike-far", designation=2001, latitude=28.6139, longitude=77.2090))


@pytest.fixture
def store() -> MockSpatialStore:
    seeded = MockSpatialStore(name="test", pool=ConnectionPool(size=10, acquire_timeout=1.0))
    seed(seeded)
    return seeded


@pytest.fixture
def service(store: MockSpatialStore) -> Iterator[EligibilityService]:
    eligibility = EligibilityService(
        store=store,
        audit=AuditLogger(store, workers=1),
        timeout=1.0,
    )
    yield eligibility
    eligibility.shutdown()
