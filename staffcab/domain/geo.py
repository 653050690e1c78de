"""
Great-circle distance. Pure domain, math only.
"""

import math

from staffcab.domain.models import Coordinates

EARTH_RADIUS_M = 6371000.0


def haversine_m(a: Coordinates, b: Coordinates) -> float:
    """Distance in metres between two (lat, lng) points."""
    lat1, lng1 = a
    lat2, lng2 = b
    lat1_r = math.radians(lat1)
    lat2_r = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_within_m(a: Coordinates, b: Coordinates, meters: float) -> bool:
    return haversine_m(a, b) <= meters


def is_finite_coordinates(value) -> bool:
    """True for a (lat, lng) pair of finite numbers."""
    if value is None:
        return False
    try:
        lat, lng = value
        return math.isfinite(float(lat)) and math.isfinite(float(lng))
    except (TypeError, ValueError):
        return False
