"""
Planar distance approximation.

Assumption
----------
Degrees of latitude and longitude are treated as a flat grid where one
degree is ~111 km.  This is wrong away from the equator and over long
distances, but it is what the driver list and the delivery geofence
need: a cheap, monotonic "how far" figure.  A routing-service client
would replace this module if accuracy ever mattered.

Complexity: O(1) per call.
"""

import math

KM_PER_DEGREE = 111.0


def planar_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Return the approximate distance in **km** between two points."""
    return math.hypot(lat2 - lat1, lng2 - lng1) * KM_PER_DEGREE


def round_km(distance_km: float) -> float:
    """Round to one decimal for display (half away from zero)."""
    return math.floor(distance_km * 10 + 0.5) / 10
