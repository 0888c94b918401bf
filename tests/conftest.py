"""
Shared test fixtures.

Uses a throwaway SQLite file database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  A file rather than ``:memory:`` so that every
session gets its own connection; the concurrent-accept tests need separate
transactions to race each other for real.
"""

from typing import AsyncGenerator

import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from delivery_engine.domain.enums import VehicleClass
from delivery_engine.infrastructure.database import Base
from delivery_engine.infrastructure.models import DriverModel

# Accra city centre; the drivers below sit due north / south of it, so their
# great-circle distances are exact multiples along one meridian.
CENTRE_LAT, CENTRE_LNG = 5.6037, -0.1870
KM_PER_DEGREE_LAT = 111.19493

TEST_DRIVERS = {
    # name: (vehicle_class, lat, lng, is_available)
    "near": (VehicleClass.CAR, CENTRE_LAT + 3.2 / KM_PER_DEGREE_LAT, CENTRE_LNG, True),
    "far": (VehicleClass.CAR, CENTRE_LAT + 12.0 / KM_PER_DEGREE_LAT, CENTRE_LNG, True),
    "offline": (VehicleClass.CAR, CENTRE_LAT - 4.0 / KM_PER_DEGREE_LAT, CENTRE_LNG, False),
    "unlocated": (VehicleClass.MOTORCYCLE, None, None, True),
    "rider_one": (VehicleClass.MOTORCYCLE, CENTRE_LAT, CENTRE_LNG + 0.01, True),
    "rider_two": (VehicleClass.MOTORCYCLE, CENTRE_LAT, CENTRE_LNG - 0.01, True),
}


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables in a fresh database file, then drop the engine."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'delivery.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def drivers(session_factory) -> dict[str, int]:
    """Seed the driver directory; returns driver ids keyed by nickname."""
    ids: dict[str, int] = {}
    async with session_factory() as session:
        for name, (vehicle_class, lat, lng, available) in TEST_DRIVERS.items():
            row = DriverModel(
                name=name,
                vehicle_class=vehicle_class,
                current_lat=lat,
                current_lng=lng,
                is_available=available,
            )
            session.add(row)
            await session.flush()
            ids[name] = row.id
        await session.commit()
    return ids


@pytest_asyncio.fixture
async def db_session(session_factory, drivers) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
