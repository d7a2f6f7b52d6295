"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from models.geometry import Polygon

MIN_RIDE_BALANCE = 50

BIKE_STATUS_AVAILABLE = "available"


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float

    def as_point(self) -> tuple[float, float]:
        """Return the ``(x, y)`` pair used by polygon geometry."""
        return (self.longitude, self.latitude)


@dataclass(slots=True)
class Rider:
    """Account state read during the eligibility check."""

    id: str
    email: str
    balance: float = 0.0
    is_blocked: bool = False


@dataclass(slots=True)
class City:
    id: int
    name: str
    centroid_latitude: Optional[float] = None
    centroid_longitude: Optional[float] = None


@dataclass(slots=True)
class ServiceArea:
    """Named polygon inside which rides may start."""

    id: int
    name: str
    polygon: Polygon
    city_id: Optional[int] = None

    def contains(self, coordinate: Coordinate) -> bool:
        return self.polygon.contains(coordinate.as_point())


@dataclass(slots=True)
class Bike:
    id: str
    designation: int
    latitude: float
    longitude: float
    is_faulty: bool = False
    status: str = BIKE_STATUS_AVAILABLE
    category: str = "standard"

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


@dataclass(slots=True)
class AvailabilityHistoryEntry:
    """Append-only audit record of a completed eligibility check."""

    id: str
    rider_id: str
    latitude: float
    longitude: float
    response: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class DenialReason(str, Enum):
    """Stage at which the eligibility gate refused a ride."""

    rider_not_found = "rider_not_found"
    account_blocked = "account_blocked"
    balance_too_low = "balance_too_low"
    not_serviceable = "not_serviceable"
    no_bikes_available = "no_bikes_available"


@dataclass(slots=True)
class EligibilityQuery:
    rider_email: str
    coordinate: Coordinate
    requested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class EligibilityDecision:
    """Outcome of one pass through the eligibility gate."""

    allow_ride: bool
    balance: float
    reason: Optional[DenialReason] = None
    bikes: List[Bike] = field(default_factory=list)
    service_area: Optional[ServiceArea] = None

    @classmethod
    def deny(
        cls,
        reason: DenialReason,
        balance: float = 0.0,
        service_area: Optional[ServiceArea] = None,
    ) -> "EligibilityDecision":
        return cls(allow_ride=False, balance=balance, reason=reason, service_area=service_area)

    @classmethod
    def allow(
        cls, balance: float, bikes: List[Bike], service_area: ServiceArea
    ) -> "EligibilityDecision":
        return cls(allow_ride=True, balance=balance, bikes=list(bikes), service_area=service_area)
