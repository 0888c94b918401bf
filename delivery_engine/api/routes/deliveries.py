"""
Delivery endpoints
==================

POST /api/v1/deliveries/estimate               -- price / ETA quote, nothing stored
POST /api/v1/deliveries                        -- create a delivery request
GET  /api/v1/deliveries                        -- list, filtered by status / customer / driver
GET  /api/v1/deliveries/nearby                 -- pending jobs around a point
GET  /api/v1/deliveries/{request_id}           -- current state of one request
POST /api/v1/deliveries/{request_id}/accept    -- a driver takes the job
POST /api/v1/deliveries/{request_id}/transition -- move along the status graph
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from delivery_engine.api.dependencies import get_lifecycle
from delivery_engine.api.middleware import limiter
from delivery_engine.api.schemas import (
    DeliveryCreateRequest,
    DeliveryResponse,
    DriverActionRequest,
    EstimateRequest,
    EstimateResponse,
    ErrorResponse,
    TransitionRequest,
)
from delivery_engine.config import settings
from delivery_engine.domain.entities import GeoPoint
from delivery_engine.domain.enums import DeliveryStatus
from delivery_engine.domain.lifecycle import DeliveryLifecycle

router = APIRouter(prefix="/deliveries", tags=["deliveries"])


@router.post(
    "/estimate",
    response_model=EstimateResponse,
    summary="Quote price and ETA for a trip",
)
@limiter.limit(settings.rate_limit)
async def estimate(
    request: Request,
    body: EstimateRequest,
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    quote = lifecycle.estimate(
        body.pickup.to_point(),
        body.dropoff.to_point(),
        body.package_weight_kg,
        body.vehicle_class,
    )
    return EstimateResponse(
        distance_km=quote.distance_km,
        price=quote.price,
        eta_minutes=quote.eta_minutes,
    )


@router.post(
    "",
    status_code=201,
    response_model=DeliveryResponse,
    summary="Create a delivery request",
)
@limiter.limit(settings.rate_limit)
async def create_delivery(
    request: Request,
    body: DeliveryCreateRequest,
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.create_request(
        body.pickup.to_point(),
        body.dropoff.to_point(),
        body.package_weight_kg,
        body.vehicle_class,
        customer_id=body.customer_id,
        pickup_address=body.pickup_address,
        dropoff_address=body.dropoff_address,
        package_description=body.package_description,
        idempotency_key=body.idempotency_key,
    )


@router.get(
    "",
    response_model=list[DeliveryResponse],
    summary="List delivery requests, newest first",
)
@limiter.limit(settings.rate_limit)
async def list_deliveries(
    request: Request,
    status: Optional[DeliveryStatus] = None,
    customer_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_requests(
        status=status, customer_id=customer_id, driver_id=driver_id
    )


@router.get(
    "/nearby",
    response_model=list[DeliveryResponse],
    summary="Pending delivery requests whose pickup is near a point",
)
@limiter.limit(settings.rate_limit)
async def list_nearby(
    request: Request,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    rings: Optional[int] = Query(None, ge=0, le=10),
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_pending_near(GeoPoint(latitude, longitude), rings)


@router.get(
    "/{request_id}",
    response_model=DeliveryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get delivery request status",
)
@limiter.limit(settings.rate_limit)
async def get_delivery(
    request: Request,
    request_id: int,
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get(request_id)


@router.post(
    "/{request_id}/accept",
    response_model=DeliveryResponse,
    responses={409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Accept a pending delivery request",
    description=(
        "Atomically assigns the driver if the request is still pending. "
        "A 409 means the job was taken by someone else; do not retry."
    ),
)
@limiter.limit(settings.rate_limit)
async def accept_delivery(
    request: Request,
    request_id: int,
    body: DriverActionRequest,
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.accept(request_id, body.driver_id)


@router.post(
    "/{request_id}/transition",
    response_model=DeliveryResponse,
    responses={409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Move a delivery request to its next status",
)
@limiter.limit(settings.rate_limit)
async def transition_delivery(
    request: Request,
    request_id: int,
    body: TransitionRequest,
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.transition(request_id, body.status, driver_id=body.driver_id)
