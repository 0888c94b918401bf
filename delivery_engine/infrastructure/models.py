"""
SQLAlchemy ORM models.

Tables
------
* ``drivers``            -- driver directory (availability + last location)
* ``delivery_requests``  -- delivery jobs and their lifecycle state

Indexes
-------
* **B-Tree** on ``status``, ``assigned_driver_id``, ``customer_id``,
  ``pickup_cell`` and ``idempotency_key`` for the look-ups used by the
  lifecycle service and the API.  ``pickup_cell`` holds the H3 index of the
  pickup point and stands in for a spatial index.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)

from .database import Base
from delivery_engine.domain.enums import DeliveryStatus, VehicleClass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _values(enum_cls):
    return [member.value for member in enum_cls]


vehicle_class_type = Enum(VehicleClass, name="vehicle_class", values_callable=_values)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False, default="")
    vehicle_class = Column(vehicle_class_type, default=VehicleClass.CAR, nullable=False)
    vehicle_plate = Column(String(20), nullable=False, default="")
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    rating = Column(Float, default=5.0, nullable=False)
    total_deliveries = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (Index("idx_drivers_available", "is_available"),)


class DeliveryRequestModel(Base):
    __tablename__ = "delivery_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, nullable=True)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    pickup_address = Column(String(255), nullable=True)
    dropoff_address = Column(String(255), nullable=True)
    pickup_cell = Column(String(20), nullable=True)

    package_weight_kg = Column(Float, nullable=False)
    package_description = Column(String(255), nullable=True)
    vehicle_class = Column(vehicle_class_type, nullable=False)

    status = Column(
        Enum(DeliveryStatus, name="delivery_status", values_callable=_values),
        default=DeliveryStatus.PENDING,
        nullable=False,
    )
    assigned_driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)

    # Computed once at creation
    distance_km = Column(Float, nullable=False)
    price = Column(Float, nullable=False)
    estimated_minutes = Column(Integer, nullable=False)

    idempotency_key = Column(String(64), unique=True, nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        # A driver is referenced exactly while the job is assigned.
        CheckConstraint(
            "(assigned_driver_id IS NOT NULL) = "
            "(status IN ('accepted', 'picked_up', 'in_transit', 'delivered'))",
            name="ck_delivery_requests_assignment",
        ),
        Index("idx_delivery_requests_status", "status"),
        Index("idx_delivery_requests_driver", "assigned_driver_id"),
        Index("idx_delivery_requests_customer", "customer_id"),
        Index("idx_delivery_requests_cell", "pickup_cell"),
        Index("idx_delivery_requests_idempotency", "idempotency_key"),
    )
