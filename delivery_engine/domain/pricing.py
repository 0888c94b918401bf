"""
Pricing & Time Estimator
========================

Formula
-------
Price = Base_Fare + Distance x Rate_Per_KM[vehicle] + Weight_Surcharge
ETA   = Handling_Minutes + Distance / Speed[vehicle] x 60

* **Weight_Surcharge** = max(0, weight_kg - 5) x 0.5
* **Handling_Minutes** = 10 (fixed pickup / drop-off handling time)

Both results use half-up rounding (price to 2 dp, ETA to whole minutes).

Complexity: O(1) per estimate.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .distance import distance
from .entities import GeoPoint
from .enums import VehicleClass
from .errors import ValidationError

BASE_FARE = 5.0
FREE_WEIGHT_KG = 5.0
SURCHARGE_PER_KG = 0.5
HANDLING_MINUTES = 10


@dataclass(frozen=True)
class VehicleRate:
    price_per_km: float
    speed_kmh: float


VEHICLE_RATES: dict[VehicleClass, VehicleRate] = {
    VehicleClass.MOTORCYCLE: VehicleRate(price_per_km=0.8, speed_kmh=45),
    VehicleClass.CAR: VehicleRate(price_per_km=1.2, speed_kmh=40),
    VehicleClass.TRUCK: VehicleRate(price_per_km=2.0, speed_kmh=35),
}


@dataclass(frozen=True)
class Estimate:
    price: float
    eta_minutes: int


@dataclass(frozen=True)
class Quote:
    distance_km: float
    price: float
    eta_minutes: int


def _round_half_up(value: float, places: int = 0) -> Decimal:
    # str() first so 11.335 rounds as written, not as its binary expansion
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def _rate_for(vehicle_class: VehicleClass) -> VehicleRate:
    try:
        return VEHICLE_RATES[VehicleClass(vehicle_class)]
    except ValueError:
        raise ValidationError(f"Unknown vehicle class: {vehicle_class!r}") from None


def _check(distance_km: float, weight_kg: float = 0.0) -> None:
    if not math.isfinite(distance_km) or distance_km < 0:
        raise ValidationError(f"Distance must be a finite number >= 0, got {distance_km}")
    if not math.isfinite(weight_kg) or weight_kg < 0:
        raise ValidationError(f"Weight must be a finite number >= 0, got {weight_kg}")


def weight_surcharge(weight_kg: float) -> float:
    return max(0.0, weight_kg - FREE_WEIGHT_KG) * SURCHARGE_PER_KG


def calculate_price(
    distance_km: float,
    weight_kg: float,
    vehicle_class: VehicleClass,
    base_fare: float = BASE_FARE,
) -> float:
    _check(distance_km, weight_kg)
    rate = _rate_for(vehicle_class)
    raw = base_fare + distance_km * rate.price_per_km + weight_surcharge(weight_kg)
    return float(_round_half_up(raw, 2))


def calculate_eta_minutes(distance_km: float, vehicle_class: VehicleClass) -> int:
    _check(distance_km)
    rate = _rate_for(vehicle_class)
    return int(_round_half_up(HANDLING_MINUTES + distance_km / rate.speed_kmh * 60))


def estimate(
    distance_km: float,
    weight_kg: float,
    vehicle_class: VehicleClass,
    base_fare: float = BASE_FARE,
) -> Estimate:
    """Price and ETA for a trip of *distance_km*.  Pure."""
    return Estimate(
        price=calculate_price(distance_km, weight_kg, vehicle_class, base_fare),
        eta_minutes=calculate_eta_minutes(distance_km, vehicle_class),
    )


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the lifecycle service and the API layer."""

    def __init__(self, base_fare: float = BASE_FARE):
        self.base_fare = base_fare

    def quote(
        self,
        pickup: GeoPoint,
        dropoff: GeoPoint,
        weight_kg: float,
        vehicle_class: VehicleClass,
    ) -> Quote:
        distance_km = distance(pickup, dropoff)
        result = estimate(distance_km, weight_kg, vehicle_class, self.base_fare)
        return Quote(
            distance_km=distance_km,
            price=result.price,
            eta_minutes=result.eta_minutes,
        )
