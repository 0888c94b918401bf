"""
Distance calculation using the Haversine formula.

Assumption
----------
We use great-circle (Haversine) distance instead of a real routing engine
(OSRM / Google Maps).  Prices and ETAs are derived from it, so the figure
quoted to a customer is the straight-line distance, not the road distance.

Complexity: O(1) per call.
"""

import math

from .entities import GeoPoint

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    # Clamp guards against a > 1 from floating-point error near antipodes.
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """
    Validated great-circle distance between two points, rounded to 2 dp.

    Raises ``ValidationError`` if either point is out of range.
    """
    a.validate()
    b.validate()
    return round(haversine_km(a.latitude, a.longitude, b.latitude, b.longitude), 2)
