"""
Purpose: Great-circle distance between two coordinates.
What it does:
- distance_km(a, b): Haversine distance in kilometres.

Rule: Pure math only. Callers decide what to do when a coordinate is missing
(skip the helper or treat the distance as unknown).
"""

from __future__ import annotations

import math
from typing import Tuple

#internal coordinate type :(lat,lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0


def distance_km(a: LatLon, b: LatLon) -> float:
    """
    Haversine distance between `a` and `b` in kilometres.

    Symmetric, and 0.0 for identical points.
    """
    lat1, lon1 = a
    lat2, lon2 = b

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    # float noise can push h a hair outside [0, 1] for antipodal points
    h = min(1.0, max(0.0, h))

    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c
