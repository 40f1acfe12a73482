"""Geographic primitives shared by zones, orders and routing.

Coordinates are WGS84 degrees.  Polygons follow the GeoJSON convention:
a list of linear rings, each ring a list of ``[lng, lat]`` pairs, where
only the outer ring (index 0) is considered.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence, Union

EARTH_RADIUS_KM = 6371.0

Number = Union[float, Decimal, int]


@dataclass(frozen=True)
class Coordinates:
    """Immutable latitude/longitude pair."""

    lat: float
    lng: float

    @classmethod
    def from_pair(
        cls, lat: Optional[Number], lng: Optional[Number]
    ) -> Optional[Coordinates]:
        """Build coordinates, or ``None`` when either component is missing."""
        if lat is None or lng is None:
            return None
        return cls(lat=float(lat), lng=float(lng))


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(destination.lat - origin.lat)
    d_lng = math.radians(destination.lng - origin.lng)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(origin.lat))
        * math.cos(math.radians(destination.lat))
        * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def point_in_polygon(point: Coordinates, polygon: Sequence[Sequence[Sequence[float]]]) -> bool:
    """Ray-casting test against the outer ring of a GeoJSON polygon."""
    if not polygon or not polygon[0]:
        return False
    ring = polygon[0]
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > point.lat) != (yj > point.lat):
            crossing = (xj - xi) * (point.lat - yi) / (yj - yi) + xi
            if point.lng < crossing:
                inside = not inside
        j = i
    return inside
