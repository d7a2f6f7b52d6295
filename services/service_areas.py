"""Resolve which service area a coordinate falls in."""

from __future__ import annotations

import logging
from typing import Optional

from datastore.spatial_store import SpatialStore
from models.records import Coordinate, ServiceArea

logger = logging.getLogger(__name__)


class ServiceAreaResolver:
    """Point-in-polygon lookup over all known service areas.

    Overlapping areas are an operator error. When a point falls in more than one
    area the smallest polygon wins, with ties going to the lowest id.
    """

    def __init__(self, store: SpatialStore) -> None:
        self.store = store

    def resolve(self, coordinate: Coordinate) -> Optional[ServiceArea]:
        candidates = self.store.service_areas_containing(coordinate)
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        winner = min(candidates, key=lambda area: (area.polygon.area, area.id))
        logger.warning(
            "Coordinate lies in overlapping service areas; using %s",
            winner.name,
            extra={
                "service_area_id": winner.id,
                "candidate_ids": [area.id for area in candidates],
                "latitude": coordinate.latitude,
                "longitude": coordinate.longitude,
            },
        )
        return winner
