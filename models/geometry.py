"""Planar polygon geometry for service-area containment.

Vertices are stored as ``(x, y)`` pairs where ``x`` is longitude and ``y`` is
latitude, the axis order used by WKT. Service areas are small enough that
treating degrees as planar coordinates matches what the spatial store does.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

Point = Tuple[float, float]

_WKT_POLYGON = re.compile(r"^\s*POLYGON\s*\(\s*\((?P<ring>[^()]*)\)\s*\)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class Polygon:
    """Immutable simple polygon with strict point containment.

    The closing vertex is optional on input and dropped internally, so
    ``Polygon(((0, 0), (1, 0), (1, 1), (0, 0)))`` and the open form describe the
    same ring.
    """

    vertices: Tuple[Point, ...]

    def __post_init__(self) -> None:
        ring = tuple((float(x), float(y)) for x, y in self.vertices)
        if len(ring) > 1 and ring[0] == ring[-1]:
            ring = ring[:-1]
        if len(ring) < 3:
            raise ValueError(f"Polygon must have at least 3 distinct vertices, got {len(ring)}")
        object.__setattr__(self, "vertices", ring)

    @classmethod
    def from_points(cls, points: Iterable[Sequence[float]]) -> "Polygon":
        return cls(tuple((point[0], point[1]) for point in points))

    @classmethod
    def from_wkt(cls, text: str) -> "Polygon":
        """Parse ``POLYGON((x y, x y, ...))``. Interior rings are not supported."""
        match = _WKT_POLYGON.match(text or "")
        if match is None:
            raise ValueError(f"Unsupported polygon WKT: {text!r}")
        points: list[Point] = []
        for pair in match.group("ring").split(","):
            parts = pair.split()
            if len(parts) != 2:
                raise ValueError(f"Invalid WKT coordinate pair: {pair.strip()!r}")
            try:
                points.append((float(parts[0]), float(parts[1])))
            except ValueError as exc:
                raise ValueError(f"Invalid WKT coordinate pair: {pair.strip()!r}") from exc
        return cls(tuple(points))

    def to_wkt(self) -> str:
        ring = self.vertices + (self.vertices[0],)
        body = ", ".join(f"{x!r} {y!r}" for x, y in ring)
        return f"POLYGON(({body}))"

    @property
    def area(self) -> float:
        """Unsigned shoelace area in squared degrees."""
        total = 0.0
        count = len(self.vertices)
        for index in range(count):
            x1, y1 = self.vertices[index]
            x2, y2 = self.vertices[(index + 1) % count]
            total += x1 * y2 - x2 * y1
        return abs(total) / 2.0

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        xs = [x for x, _ in self.vertices]
        ys = [y for _, y in self.vertices]
        return min(xs), min(ys), max(xs), max(ys)

    def contains(self, point: Point) -> bool:
        """Return True when ``point`` lies strictly inside the polygon.

        Points on an edge or vertex are outside, matching ``ST_Contains``.
        """
        x, y = point
        min_x, min_y, max_x, max_y = self.bounds
        if not (min_x <= x <= max_x and min_y <= y <= max_y):
            return False

        inside = False
        count = len(self.vertices)
        for index in range(count):
            x1, y1 = self.vertices[index]
            x2, y2 = self.vertices[(index + 1) % count]
            if _on_segment(x, y, x1, y1, x2, y2):
                return False
            # Ray cast towards +x; half-open edge test avoids double counting vertices.
            if (y1 > y) != (y2 > y):
                crossing_x = x1 + (y - y1) * (x2 - x1) / (y2 - y1)
                if x < crossing_x:
                    inside = not inside
        return inside


def _on_segment(x: float, y: float, x1: float, y1: float, x2: float, y2: float) -> bool:
    cross = (x2 - x1) * (y - y1) - (y2 - y1) * (x - x1)
    if abs(cross) > 1e-12:
        return False
    return min(x1, x2) <= x <= max(x1, x2) and min(y1, y2) <= y <= max(y1, y2)
