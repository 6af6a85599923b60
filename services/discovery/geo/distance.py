"""
Distance evaluation between location fixes.

Haversine on a spherical earth: accurate to well under 0.5% for the short
ranges the discovery pipeline deals with. Pure math, no external libs.
"""

from __future__ import annotations

import math

from services.discovery.models import Coordinates

# Earth radius in meters
_EARTH_RADIUS_M = 6_371_000

# Movement below this is treated as GPS jitter and never re-triggers
# downstream fetches. Matches the tracking subscription's distance interval.
MOVEMENT_THRESHOLD_M = 500.0

# Decimal places kept when bucketing coordinates into cache keys.
# 3 places is roughly 110 m of latitude.
DEFAULT_BUCKET_PRECISION = 3


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Compute haversine distance between two points in meters.

    Args:
        lat1, lng1: First point (decimal degrees)
        lat2, lng2: Second point (decimal degrees)

    Returns:
        Distance in meters.
    """
    lat1_r = math.radians(lat1)
    lat2_r = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return _EARTH_RADIUS_M * c


def distance_meters(a: Coordinates, b: Coordinates) -> float:
    """Distance in meters between two fixes. Symmetric, zero iff a == b."""
    if a == b:
        return 0.0
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def is_significant_movement(
    previous: Coordinates | None,
    new: Coordinates,
    threshold_m: float = MOVEMENT_THRESHOLD_M,
) -> bool:
    """Return True when moving from previous to new warrants re-evaluation.

    The first fix (previous is None) is always significant.
    """
    if previous is None:
        return True
    return distance_meters(previous, new) >= threshold_m


def bucket_key(coords: Coordinates, precision: int = DEFAULT_BUCKET_PRECISION) -> str:
    """Round coordinates to a fixed precision so nearby fixes share a key."""
    lat = round(coords.latitude, precision)
    lng = round(coords.longitude, precision)
    # -0.0 formats as "-0.000"
    if lat == 0:
        lat = 0.0
    if lng == 0:
        lng = 0.0
    return f"{lat:.{precision}f}:{lng:.{precision}f}"
