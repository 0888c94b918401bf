"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``DeliveryRequest``: enforces valid lifecycle
  transitions (pending -> accepted -> picked_up -> in_transit -> delivered,
  with cancellation from pending or accepted).
- ``GeoPoint`` is an immutable value object; range checks are explicit so
  that out-of-range input is rejected at the boundary with a typed error.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import (
    ASSIGNED_STATUSES,
    DELIVERY_TRANSITIONS,
    TERMINAL_STATUSES,
    DeliveryStatus,
    VehicleClass,
)
from .errors import InvalidTransitionError, ValidationError


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def validate(self) -> "GeoPoint":
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValidationError(
                f"Coordinates must be finite numbers: ({self.latitude}, {self.longitude})"
            )
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(f"Longitude out of range: {self.longitude}")
        return self


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Driver:
    id: int
    vehicle_class: VehicleClass = VehicleClass.CAR
    current_location: Optional[GeoPoint] = None
    is_available: bool = True
    rating: float = 5.0
    total_deliveries: int = 0
    name: str = ""
    vehicle_plate: str = ""

    def to_dict(self) -> dict[str, Any]:
        location = self.current_location
        return {
            "id": self.id,
            "vehicle_class": self.vehicle_class.value,
            "current_location": (
                [location.latitude, location.longitude] if location else None
            ),
            "is_available": self.is_available,
            "rating": self.rating,
            "total_deliveries": self.total_deliveries,
            "name": self.name,
            "vehicle_plate": self.vehicle_plate,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Driver":
        location = data.get("current_location")
        return cls(
            id=data["id"],
            vehicle_class=VehicleClass(data["vehicle_class"]),
            current_location=GeoPoint(*location) if location else None,
            is_available=data["is_available"],
            rating=data.get("rating", 5.0),
            total_deliveries=data.get("total_deliveries", 0),
            name=data.get("name", ""),
            vehicle_plate=data.get("vehicle_plate", ""),
        )


@dataclass
class DeliveryRequest:
    id: Optional[int] = None
    pickup: GeoPoint = field(default_factory=lambda: GeoPoint(0, 0))
    dropoff: GeoPoint = field(default_factory=lambda: GeoPoint(0, 0))
    package_weight_kg: float = 0.0
    vehicle_class: VehicleClass = VehicleClass.CAR
    status: DeliveryStatus = DeliveryStatus.PENDING
    assigned_driver_id: Optional[int] = None
    price: float = 0.0
    estimated_minutes: int = 0
    distance_km: float = 0.0
    customer_id: Optional[int] = None
    pickup_address: Optional[str] = None
    dropoff_address: Optional[str] = None
    package_description: Optional[str] = None
    pickup_cell: Optional[str] = None
    idempotency_key: Optional[str] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition_to(self, new_status: DeliveryStatus) -> bool:
        return new_status in DELIVERY_TRANSITIONS.get(self.status, set())

    def ensure_transition(self, new_status: DeliveryStatus) -> None:
        """Raise unless *new_status* is reachable along the transition graph."""
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )

    def transition_to(self, new_status: DeliveryStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        self.ensure_transition(new_status)
        self.status = new_status

    def assignment_consistent(self) -> bool:
        """A driver is referenced iff the status is one of the assigned ones."""
        has_driver = self.assigned_driver_id is not None
        return has_driver == (self.status in ASSIGNED_STATUSES)
