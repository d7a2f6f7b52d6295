"""Fleet availability lookup for a resolved service area."""

from __future__ import annotations

from typing import List

from datastore.spatial_store import SpatialStore
from models.records import Bike, ServiceArea


class FleetRepository:
    """Returns non-faulty, available bikes parked inside a service area."""

    def __init__(self, store: SpatialStore) -> None:
        self.store = store

    def available_bikes_in(self, area: ServiceArea) -> List[Bike]:
        bikes = self.store.available_bikes_in_area(area)
        return sorted(bikes, key=lambda bike: (bike.designation, bike.id))
