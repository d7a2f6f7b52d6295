"""Ride eligibility gate: decides whether a rider may see bikes right now."""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import CancelledError, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from threading import Event
from functools import lru_cache
from numbers import Real
from typing import Any, Callable, Optional, TypeVar

from app.schemas import render_decision
from datastore.spatial_store import SpatialStore, build_default_store
from models.records import (
    MIN_RIDE_BALANCE,
    Coordinate,
    DenialReason,
    EligibilityDecision,
    EligibilityQuery,
)
from services.audit import AuditLogger
from services.fleet import FleetRepository
from services.service_areas import ServiceAreaResolver
from settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

STAGE_RIDER_LOOKUP = "rider_lookup"
STAGE_SERVICE_AREA = "service_area"
STAGE_FLEET_LOOKUP = "fleet_lookup"


class InvalidRequestError(ValueError):
    """The request is missing coordinates or rider identity, or they are malformed."""


class EligibilityFaultError(RuntimeError):
    """A mandatory store stage failed, so eligibility could not be determined."""

    def __init__(self, stage: str, detail: str = "") -> None:
        self.stage = stage
        super().__init__(detail or f"{stage} unavailable")


class StageTimeoutError(EligibilityFaultError):
    """A store stage did not answer within the configured timeout."""


class EligibilityService:
    """Runs the ordered eligibility checks against an injected store handle.

    Checks run cheapest first: local rider state, then the spatial lookups.
    Each store call runs on the service executor so it can be bounded by
    ``timeout``. The timeout is measured from the moment the call starts
    running; time spent queued behind other requests is not charged to it.
    """

    def __init__(
        self,
        store: SpatialStore,
        resolver: Optional[ServiceAreaResolver] = None,
        fleet: Optional[FleetRepository] = None,
        audit: Optional[AuditLogger] = None,
        timeout: float = 2.0,
        workers: int = 32,
    ) -> None:
        self.store = store
        self.resolver = resolver or ServiceAreaResolver(store)
        self.fleet = fleet or FleetRepository(store)
        self.audit = audit or AuditLogger(store)
        self.timeout = timeout
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="eligibility")

    def evaluate(self, latitude: Any, longitude: Any, rider_email: Any) -> EligibilityDecision:
        """Validate raw input and run the gate. Raises on request errors and store faults."""
        query = self.build_query(latitude, longitude, rider_email)
        return self.run(query)

    @staticmethod
    def build_query(latitude: Any, longitude: Any, rider_email: Any) -> EligibilityQuery:
        lat = _coerce_degrees(latitude, "latitude", 90.0)
        lon = _coerce_degrees(longitude, "longitude", 180.0)
        if not isinstance(rider_email, str) or not rider_email.strip():
            raise InvalidRequestError("rider email is required")
        return EligibilityQuery(
            rider_email=rider_email.strip(),
            coordinate=Coordinate(latitude=lat, longitude=lon),
        )

    def run(self, query: EligibilityQuery) -> EligibilityDecision:
        start_time = time.perf_counter()
        coordinate = query.coordinate

        rider = self._call(STAGE_RIDER_LOOKUP, self.store.find_rider_by_email, query.rider_email)
        if rider is None:
            return self._deny(start_time, EligibilityDecision.deny(DenialReason.rider_not_found))

        if rider.is_blocked:
            decision = EligibilityDecision.deny(DenialReason.account_blocked, balance=rider.balance)
            return self._deny(start_time, decision, rider.id)

        if rider.balance < MIN_RIDE_BALANCE:
            decision = EligibilityDecision.deny(DenialReason.balance_too_low, balance=rider.balance)
            return self._deny(start_time, decision, rider.id)

        try:
            area = self._call(STAGE_SERVICE_AREA, self.resolver.resolve, coordinate)
        except StageTimeoutError:
            logger.warning(
                "Service area lookup timed out; treating coordinate as not serviceable",
                extra={"rider_id": rider.id, "stage": STAGE_SERVICE_AREA},
            )
            area = None
        if area is None:
            decision = EligibilityDecision.deny(DenialReason.not_serviceable, balance=rider.balance)
            return self._deny(start_time, decision, rider.id, coordinate)

        bikes = self._call(STAGE_FLEET_LOOKUP, self.fleet.available_bikes_in, area)
        if not bikes:
            decision = EligibilityDecision.deny(
                DenialReason.no_bikes_available, balance=rider.balance, service_area=area
            )
            self._record(rider.id, coordinate, decision)
            return self._deny(start_time, decision, rider.id, coordinate)

        decision = EligibilityDecision.allow(balance=rider.balance, bikes=bikes, service_area=area)
        self._record(rider.id, coordinate, decision)
        logger.info(
            "Ride allowed",
            extra={
                "rider_id": rider.id,
                "service_area_id": area.id,
                "bike_count": len(bikes),
                "elapsed_ms": _elapsed_ms(start_time),
            },
        )
        return decision

    def shutdown(self) -> None:
        """Stop accepting store calls and flush outstanding audit writes."""
        self.executor.shutdown(wait=False, cancel_futures=True)
        self.audit.shutdown(wait_for_writes=True)

    def _record(self, rider_id: str, coordinate: Coordinate, decision: EligibilityDecision) -> None:
        # The decision is final by now; audit problems are logged and dropped.
        try:
            payload = render_decision(decision).model_dump_json(by_alias=True)
            self.audit.submit(rider_id, coordinate, payload)
        except Exception:
            logger.exception(
                "Failed to submit availability history", extra={"rider_id": rider_id}
            )

    @staticmethod
    def _deny(
        start_time: float,
        decision: EligibilityDecision,
        rider_id: Optional[str] = None,
        coordinate: Optional[Coordinate] = None,
    ) -> EligibilityDecision:
        # Denials are routine outcomes, never alert-level.
        area = decision.service_area
        logger.info(
            "Ride denied",
            extra={
                "rider_id": rider_id,
                "reason": decision.reason,
                "service_area_id": area.id if area is not None else None,
                "latitude": coordinate.latitude if coordinate is not None else None,
                "longitude": coordinate.longitude if coordinate is not None else None,
                "elapsed_ms": _elapsed_ms(start_time),
            },
        )
        return decision

    def _call(self, stage: str, func: Callable[..., T], *args: Any) -> T:
        started = Event()

        def invoke() -> T:
            started.set()
            return func(*args)

        try:
            future = self.executor.submit(invoke)
        except RuntimeError as exc:
            raise EligibilityFaultError(stage, "eligibility service is shutting down") from exc
        # Cancelled futures never run invoke(), so completion also releases the wait.
        future.add_done_callback(lambda _: started.set())
        started.wait()

        try:
            return future.result(timeout=self.timeout)
        except CancelledError as exc:
            raise EligibilityFaultError(stage, "eligibility service is shutting down") from exc
        except FutureTimeoutError as exc:
            logger.error(
                "Store call timed out after %.2fs", self.timeout, extra={"stage": stage}
            )
            raise StageTimeoutError(stage) from exc
        except Exception as exc:
            logger.exception("Store call failed", extra={"stage": stage})
            raise EligibilityFaultError(stage) from exc


def _coerce_degrees(value: Any, name: str, limit: float) -> float:
    if value is None or isinstance(value, bool):
        raise InvalidRequestError(f"{name} is required")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as exc:
            raise InvalidRequestError(f"{name} must be numeric") from exc
    if not isinstance(value, Real):
        raise InvalidRequestError(f"{name} must be numeric")
    degrees = float(value)
    if not math.isfinite(degrees) or abs(degrees) > limit:
        raise InvalidRequestError(f"{name} is out of range")
    return degrees


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


@lru_cache
def build_default_service() -> EligibilityService:
    """Factory that wires the eligibility service with the default store."""
    settings = get_settings()
    store = build_default_store()
    audit = AuditLogger(store, workers=settings.audit_workers)
    return EligibilityService(
        store=store,
        audit=audit,
        timeout=settings.store_timeout_seconds,
        workers=settings.store_workers,
    )
