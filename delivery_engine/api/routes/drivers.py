"""
Driver endpoints
================

GET /api/v1/drivers/candidates -- available drivers near a pickup point, nearest first
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from delivery_engine.api.dependencies import get_lifecycle
from delivery_engine.api.middleware import limiter
from delivery_engine.api.schemas import CandidateResponse
from delivery_engine.config import settings
from delivery_engine.domain.entities import GeoPoint
from delivery_engine.domain.enums import VehicleClass
from delivery_engine.domain.lifecycle import DeliveryLifecycle

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get(
    "/candidates",
    response_model=list[CandidateResponse],
    summary="Rank available drivers by distance to a pickup point",
)
@limiter.limit(settings.rate_limit)
async def find_candidates(
    request: Request,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, ge=0, allow_inf_nan=False),
    vehicle_class: Optional[VehicleClass] = None,
    limit: Optional[int] = Query(None, ge=1, le=100),
    lifecycle: DeliveryLifecycle = Depends(get_lifecycle),
):
    candidates = await lifecycle.find_candidates(
        GeoPoint(latitude, longitude),
        radius_km=radius_km,
        vehicle_class=vehicle_class,
        limit=limit,
    )
    return [
        CandidateResponse(
            driver_id=c.driver.id,
            name=c.driver.name,
            vehicle_class=c.driver.vehicle_class,
            rating=c.driver.rating,
            total_deliveries=c.driver.total_deliveries,
            latitude=c.driver.current_location.latitude,
            longitude=c.driver.current_location.longitude,
            distance_km=c.distance_km,
        )
        for c in candidates
    ]
