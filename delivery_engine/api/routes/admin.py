"""
Admin / operator endpoints
==========================

POST /api/v1/admin/deliveries/{request_id}/assign       -- force-assign a driver to a pending job
POST /api/v1/admin/deliveries/{request_id}/force-status -- set a status without walking the graph
GET  /api/v1/admin/health                               -- simple health check

Authorisation of operators happens upstream of this service.
"""

from fastapi import APIRouter, Depends, Request

from delivery_engine.api.dependencies import get_lifecycle
from delivery_engine.api.middleware import limiter
from delivery_engine.api.schemas import (
    DeliveryResponse,
    DriverActionRequest,
    ErrorResponse,
    ForceStatusRequest,
    HealthResponse,
)
from delivery_engine.config import settings
from delivery_engine.domain.lifecycle import DeliveryLifecycle

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/deliveries/{request_id}/assign",
    response_model=DeliveryResponse,
    responses={409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Assign a driver to a pending delivery request",
)
@limiter.limit(settings.rate_limit)
async def assign_driver(
    request: Request,
    request_id: int,
    body: DriverActionRequest,
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.assign(request_id, body.driver_id)


@router.post(
    "/deliveries/{request_id}/force-status",
    response_model=DeliveryResponse,
    responses={409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Override the status of a non-terminal delivery request",
)
@limiter.limit(settings.rate_limit)
async def force_status(
    request: Request,
    request_id: int,
    body: ForceStatusRequest,
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.force_status(request_id, body.status, driver_id=body.driver_id)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
