"""FastAPI dependency injection helpers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_engine.config import settings
from delivery_engine.domain.lifecycle import DeliveryLifecycle
from delivery_engine.domain.ports import DriverDirectory
from delivery_engine.domain.pricing import PricingEngine
from delivery_engine.infrastructure.database import session_scope
from delivery_engine.infrastructure.driver_cache import CachedDriverDirectory
from delivery_engine.infrastructure.redis_client import get_redis
from delivery_engine.infrastructure.repositories import (
    DeliveryRequestRepository,
    DriverRepository,
)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with session_scope() as session:
        yield session


async def get_driver_directory(
    db: AsyncSession = Depends(get_db),
) -> DriverDirectory:
    """SQL driver directory, behind the Redis snapshot cache when enabled."""
    directory = DriverRepository(db)
    if settings.driver_snapshot_ttl_seconds <= 0:
        return directory
    return CachedDriverDirectory(
        directory, await get_redis(), ttl_seconds=settings.driver_snapshot_ttl_seconds
    )


async def get_lifecycle(
    db: AsyncSession = Depends(get_db),
    directory: DriverDirectory = Depends(get_driver_directory),
) -> DeliveryLifecycle:
    return DeliveryLifecycle(
        DeliveryRequestRepository(db),
        directory,
        PricingEngine(base_fare=settings.base_fare),
        default_radius_km=settings.default_search_radius_km,
        h3_resolution=settings.h3_resolution,
        nearby_rings=settings.nearby_rings,
        store_timeout_seconds=settings.store_timeout_seconds,
    )
