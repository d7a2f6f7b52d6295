"""In-memory spatial store with pooled query checkouts and optional JSON persistence."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import BoundedSemaphore, Lock
from typing import Any, Dict, Iterator, List, Optional, Protocol

from models.geometry import Polygon
from models.records import (
    BIKE_STATUS_AVAILABLE,
    AvailabilityHistoryEntry,
    Bike,
    City,
    Coordinate,
    Rider,
    ServiceArea,
)
from settings import get_settings

logger = logging.getLogger(__name__)


class StoreUnavailableError(RuntimeError):
    """Raised when the store cannot serve a query (pool exhausted, backend down)."""


class SpatialStore(Protocol):
    """Query contract the eligibility core relies on."""

    def ping(self) -> None: ...

    def find_rider_by_email(self, email: str) -> Optional[Rider]: ...

    def service_areas_containing(self, coordinate: Coordinate) -> List[ServiceArea]: ...

    def available_bikes_in_area(self, area: ServiceArea) -> List[Bike]: ...

    def insert_history(self, entry: AvailabilityHistoryEntry) -> None: ...


class ConnectionPool:
    """Bounded pool of store handles; every checkout is released on exit."""

    def __init__(self, size: int = 10, acquire_timeout: float = 2.0) -> None:
        if size <= 0:
            raise ValueError("Pool size must be positive.")
        self.size = size
        self.acquire_timeout = acquire_timeout
        self._slots = BoundedSemaphore(size)
        self._in_use = 0
        self._counter_lock = Lock()

    @property
    def in_use(self) -> int:
        with self._counter_lock:
            return self._in_use

    @contextmanager
    def checkout(self) -> Iterator[None]:
        if not self._slots.acquire(timeout=self.acquire_timeout):
            raise StoreUnavailableError(
                f"Timed out after {self.acquire_timeout}s waiting for a store connection."
            )
        with self._counter_lock:
            self._in_use += 1
        try:
            yield
        finally:
            with self._counter_lock:
                self._in_use -= 1
            self._slots.release()


class MockSpatialStore:
    """In-memory stand-in for a relational store with spatial extensions."""

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        pool: Optional[ConnectionPool] = None,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self.pool = pool or ConnectionPool()
        self._riders: Dict[str, Rider] = {}
        self._cities: Dict[int, City] = {}
        self._service_areas: Dict[int, ServiceArea] = {}
        self._bikes: Dict[str, Bike] = {}
        self._history: List[AvailabilityHistoryEntry] = []
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    # Query contract

    def ping(self) -> None:
        with self.pool.checkout():
            return None

    def find_rider_by_email(self, email: str) -> Optional[Rider]:
        key = _email_key(email)
        with self.pool.checkout(), self._lock:
            rider = self._riders.get(key)
            return _copy_rider(rider) if rider is not None else None

    def service_areas_containing(self, coordinate: Coordinate) -> List[ServiceArea]:
        """Return every area whose polygon strictly contains ``coordinate``, by id."""
        with self.pool.checkout(), self._lock:
            areas = [area for area in self._service_areas.values() if area.contains(coordinate)]
        return sorted(areas, key=lambda area: area.id)

    def available_bikes_in_area(self, area: ServiceArea) -> List[Bike]:
        with self.pool.checkout(), self._lock:
            stored_area = self._service_areas.get(area.id)
            polygon = stored_area.polygon if stored_area is not None else area.polygon
            return [
                _copy_bike(bike)
                for bike in self._bikes.values()
                if not bike.is_faulty
                and bike.status == BIKE_STATUS_AVAILABLE
                and polygon.contains(bike.coordinate.as_point())
            ]

    def insert_history(self, entry: AvailabilityHistoryEntry) -> None:
        with self.pool.checkout(), self._lock:
            if any(existing.id == entry.id for existing in self._history):
                raise ValueError(f"History entry {entry.id!r} already exists.")
            self._history.append(
                AvailabilityHistoryEntry(
                    id=entry.id,
                    rider_id=entry.rider_id,
                    latitude=entry.latitude,
                    longitude=entry.longitude,
                    response=entry.response,
                    created_at=entry.created_at,
                )
            )
            self._persist()

    # Reference data maintained by tooling outside the eligibility core

    def add_rider(self, rider: Rider) -> None:
        if rider.balance < 0:
            raise ValueError("Rider balance cannot be negative.")
        with self._lock:
            self._riders[_email_key(rider.email)] = _copy_rider(rider)
            self._persist()

    def add_city(self, city: City) -> None:
        with self._lock:
            self._cities[city.id] = City(
                id=city.id,
                name=city.name,
                centroid_latitude=city.centroid_latitude,
                centroid_longitude=city.centroid_longitude,
            )
            self._persist()

    def add_service_area(self, area: ServiceArea) -> None:
        with self._lock:
            self._service_areas[area.id] = ServiceArea(
                id=area.id, name=area.name, polygon=area.polygon, city_id=area.city_id
            )
            self._persist()

    def add_bike(self, bike: Bike) -> None:
        with self._lock:
            self._bikes[bike.id] = _copy_bike(bike)
            self._persist()

    def list_history(self) -> list[AvailabilityHistoryEntry]:
        """Return copies of all audit entries in insertion order."""

        with self._lock:
            return [
                AvailabilityHistoryEntry(
                    id=entry.id,
                    rider_id=entry.rider_id,
                    latitude=entry.latitude,
                    longitude=entry.longitude,
                    response=entry.response,
                    created_at=entry.created_at,
                )
                for entry in self._history
            ]

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {
                "riders": len(self._riders),
                "cities": len(self._cities),
                "service_areas": len(self._service_areas),
                "bikes": len(self._bikes),
                "history": len(self._history),
            }

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            "riders": [_rider_to_dict(rider) for rider in self._riders.values()],
            "cities": [_city_to_dict(city) for city in self._cities.values()],
            "service_areas": [_area_to_dict(area) for area in self._service_areas.values()],
            "bikes": [_bike_to_dict(bike) for bike in self._bikes.values()],
            "history": [_history_to_dict(entry) for entry in self._history],
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable store snapshot at %s", self.persistence_path)
            data = {}

        for payload in data.get("riders", []):
            rider = _rider_from_dict(payload)
            self._riders[_email_key(rider.email)] = rider
        for payload in data.get("cities", []):
            city = City(**payload)
            self._cities[city.id] = city
        for payload in data.get("service_areas", []):
            area = _area_from_dict(payload)
            self._service_areas[area.id] = area
        for payload in data.get("bikes", []):
            bike = _bike_from_dict(payload)
            self._bikes[bike.id] = bike
        for payload in data.get("history", []):
            self._history.append(_history_from_dict(payload))


def _email_key(email: str) -> str:
    return email.strip().lower()


def _copy_rider(rider: Rider) -> Rider:
    return Rider(id=rider.id, email=rider.email, balance=rider.balance, is_blocked=rider.is_blocked)


def _copy_bike(bike: Bike) -> Bike:
    return Bike(
        id=bike.id,
        designation=bike.designation,
        latitude=bike.latitude,
        longitude=bike.longitude,
        is_faulty=bike.is_faulty,
        status=bike.status,
        category=bike.category,
    )


def _rider_to_dict(rider: Rider) -> Dict[str, Any]:
    return {
        "id": rider.id,
        "email": rider.email,
        "balance": rider.balance,
        "is_blocked": rider.is_blocked,
    }


def _rider_from_dict(payload: Dict[str, Any]) -> Rider:
    return Rider(
        id=str(payload["id"]),
        email=str(payload["email"]),
        balance=float(payload.get("balance", 0)),
        is_blocked=bool(payload.get("is_blocked", False)),
    )


def _city_to_dict(city: City) -> Dict[str, Any]:
    return {
        "id": city.id,
        "name": city.name,
        "centroid_latitude": city.centroid_latitude,
        "centroid_longitude": city.centroid_longitude,
    }


def _area_to_dict(area: ServiceArea) -> Dict[str, Any]:
    return {
        "id": area.id,
        "name": area.name,
        "area": area.polygon.to_wkt(),
        "city_id": area.city_id,
    }


def _area_from_dict(payload: Dict[str, Any]) -> ServiceArea:
    return ServiceArea(
        id=int(payload["id"]),
        name=str(payload["name"]),
        polygon=Polygon.from_wkt(payload["area"]),
        city_id=payload.get("city_id"),
    )


def _bike_to_dict(bike: Bike) -> Dict[str, Any]:
    return {
        "id": bike.id,
        "designation": bike.designation,
        "latitude": bike.latitude,
        "longitude": bike.longitude,
        "is_faulty": bike.is_faulty,
        "status": bike.status,
        "category": bike.category,
    }


def _bike_from_dict(payload: Dict[str, Any]) -> Bike:
    return Bike(
        id=str(payload["id"]),
        designation=int(payload["designation"]),
        latitude=float(payload["latitude"]),
        longitude=float(payload["longitude"]),
        is_faulty=bool(payload.get("is_faulty", False)),
        status=str(payload.get("status", BIKE_STATUS_AVAILABLE)),
        category=str(payload.get("category", "standard")),
    )


def _history_to_dict(entry: AvailabilityHistoryEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "rider_id": entry.rider_id,
        "latitude": entry.latitude,
        "longitude": entry.longitude,
        "response": entry.response,
        "created_at": entry.created_at.isoformat(),
    }


def _history_from_dict(payload: Dict[str, Any]) -> AvailabilityHistoryEntry:
    return AvailabilityHistoryEntry(
        id=str(payload["id"]),
        rider_id=str(payload["rider_id"]),
        latitude=float(payload["latitude"]),
        longitude=float(payload["longitude"]),
        response=str(payload["response"]),
        created_at=datetime.fromisoformat(payload["created_at"]),
    )


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockSpatialStore:
    settings = get_settings()
    store_name = settings.store_name if name is None else name
    store_path = settings.store_persistence_path if path is None else path
    persistence = Path(store_path) if store_path else None
    pool = ConnectionPool(
        size=settings.store_pool_size,
        acquire_timeout=settings.store_timeout_seconds,
    )
    return MockSpatialStore(name=store_name, persistence_path=persistence, pool=pool)
