"""
Spatial binning with H3 hexagons.

Each request stores the H3 cell of its pickup point so that drivers can
browse pending jobs "around here" with an indexed ``IN (...)`` lookup
instead of a full scan.  This is a coarse neighbourhood; exact distances
still come from ``distance.distance``.

Complexity: O(1) per cell lookup, O(k²) cells for a k-ring.
"""

from __future__ import annotations

import h3

from .entities import GeoPoint


def pickup_cell(point: GeoPoint, resolution: int = 8) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    point.validate()
    return h3.latlng_to_cell(point.latitude, point.longitude, resolution)


def nearby_cells(point: GeoPoint, rings: int = 1, resolution: int = 8) -> set[str]:
    """The cell containing *point* plus *rings* rings of neighbours."""
    return set(h3.grid_disk(pickup_cell(point, resolution), max(0, rings)))
