"""
Driver Locator
==============

1. **Eligibility**  -- keep drivers that are available, have a known
   location and (optionally) drive the requested vehicle class.
2. **Distance**     -- great-circle distance from the pickup point.
3. **Radius cut**   -- discard anything further than ``radius_km``.
4. **Ranking**      -- ascending distance, ties broken by driver id so the
   order is deterministic across calls.

The directory is a snapshot owned by the caller; it is never mutated and
no state survives between calls, so concurrent locate queries need no
coordination.  A record with an out-of-range location is skipped with a
warning rather than failing the whole query.

Complexity
----------
Let N = drivers in the snapshot, K = drivers within the radius.

* Filtering + distance:  O(N)
* Sorting:               O(K log K)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from .distance import distance
from .entities import Driver, GeoPoint
from .enums import VehicleClass
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 10.0


@dataclass(frozen=True)
class Candidate:
    driver: Driver
    distance_km: float


def find_candidates(
    pickup: GeoPoint,
    directory: Iterable[Driver],
    radius_km: float = DEFAULT_RADIUS_KM,
    vehicle_class: Optional[VehicleClass] = None,
    limit: Optional[int] = None,
) -> list[Candidate]:
    """Rank the eligible drivers of *directory* by distance to *pickup*."""
    pickup.validate()
    if math.isnan(radius_km) or radius_km < 0:
        raise ValidationError(f"Radius must be >= 0, got {radius_km}")
    if limit is not None and limit < 1:
        raise ValidationError(f"Limit must be >= 1, got {limit}")

    candidates: list[Candidate] = []
    for driver in directory:
        if not driver.is_available or driver.current_location is None:
            continue
        if vehicle_class is not None and driver.vehicle_class != vehicle_class:
            continue

        try:
            driver.current_location.validate()
        except ValidationError as exc:
            logger.warning("Skipping driver %d with a bad location: %s", driver.id, exc)
            continue

        km = distance(pickup, driver.current_location)
        if km > radius_km:
            continue
        candidates.append(Candidate(driver=driver, distance_km=km))

    candidates.sort(key=lambda c: (c.distance_km, c.driver.id))
    if limit is not None:
        return candidates[:limit]
    return candidates
