"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from delivery_engine.domain.entities import GeoPoint
from delivery_engine.domain.enums import DeliveryStatus, VehicleClass


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)

    def to_point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    model_config = {"from_attributes": True}


# ── Requests ──────────────────────────────────────────────────────────


class EstimateRequest(BaseModel):
    pickup: Coordinates
    dropoff: Coordinates
    package_weight_kg: float = Field(..., ge=0, allow_inf_nan=False)
    vehicle_class: VehicleClass = VehicleClass.CAR


class DeliveryCreateRequest(EstimateRequest):
    customer_id: Optional[int] = None
    pickup_address: Optional[str] = Field(None, max_length=255)
    dropoff_address: Optional[str] = Field(None, max_length=255)
    package_description: Optional[str] = Field(None, max_length=255)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent duplicate requests on retries.",
    )


class DriverActionRequest(BaseModel):
    driver_id: int


class TransitionRequest(BaseModel):
    status: DeliveryStatus
    driver_id: Optional[int] = Field(
        None, description="Required only when moving to 'accepted'."
    )


class ForceStatusRequest(BaseModel):
    status: DeliveryStatus
    driver_id: Optional[int] = None


# ── Responses ─────────────────────────────────────────────────────────


class EstimateResponse(BaseModel):
    distance_km: float
    price: float
    eta_minutes: int


class DeliveryResponse(BaseModel):
    id: int
    customer_id: Optional[int] = None
    pickup: Coordinates
    dropoff: Coordinates
    pickup_address: Optional[str] = None
    dropoff_address: Optional[str] = None
    package_weight_kg: float
    package_description: Optional[str] = None
    vehicle_class: VehicleClass
    status: DeliveryStatus
    assigned_driver_id: Optional[int] = None
    distance_km: float
    price: float
    estimated_minutes: int
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CandidateResponse(BaseModel):
    driver_id: int
    name: str
    vehicle_class: VehicleClass
    rating: float
    total_deliveries: int
    latitude: float
    longitude: float
    distance_km: float


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
