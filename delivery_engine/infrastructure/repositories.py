"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Assignment-changing writes are single
``UPDATE ... WHERE <expected state>`` statements; the row count tells the
caller whether it won.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DeliveryRequestModel, DriverModel
from delivery_engine.domain.entities import DeliveryRequest, Driver, GeoPoint
from delivery_engine.domain.enums import DeliveryStatus
from delivery_engine.domain.ports import DriverDirectory, RequestStore

_REQUEST_COLUMNS = frozenset(DeliveryRequestModel.__table__.columns.keys())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_request(row: DeliveryRequestModel) -> DeliveryRequest:
    return DeliveryRequest(
        id=row.id,
        pickup=GeoPoint(row.pickup_lat, row.pickup_lng),
        dropoff=GeoPoint(row.dropoff_lat, row.dropoff_lng),
        package_weight_kg=row.package_weight_kg,
        vehicle_class=row.vehicle_class,
        status=DeliveryStatus(row.status),
        assigned_driver_id=row.assigned_driver_id,
        price=row.price,
        estimated_minutes=row.estimated_minutes,
        distance_km=row.distance_km,
        customer_id=row.customer_id,
        pickup_address=row.pickup_address,
        dropoff_address=row.dropoff_address,
        package_description=row.package_description,
        pickup_cell=row.pickup_cell,
        idempotency_key=row.idempotency_key,
        delivered_at=row.delivered_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_driver(row: DriverModel) -> Driver:
    location = None
    if row.current_lat is not None and row.current_lng is not None:
        location = GeoPoint(row.current_lat, row.current_lng)
    return Driver(
        id=row.id,
        vehicle_class=row.vehicle_class,
        current_location=location,
        is_available=row.is_available,
        rating=row.rating,
        total_deliveries=row.total_deliveries,
        name=row.name,
        vehicle_plate=row.vehicle_plate,
    )


class DeliveryRequestRepository(RequestStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, request: DeliveryRequest) -> int:
        row = DeliveryRequestModel(
            customer_id=request.customer_id,
            pickup_lat=request.pickup.latitude,
            pickup_lng=request.pickup.longitude,
            dropoff_lat=request.dropoff.latitude,
            dropoff_lng=request.dropoff.longitude,
            pickup_address=request.pickup_address,
            dropoff_address=request.dropoff_address,
            pickup_cell=request.pickup_cell,
            package_weight_kg=request.package_weight_kg,
            package_description=request.package_description,
            vehicle_class=request.vehicle_class,
            status=request.status,
            assigned_driver_id=request.assigned_driver_id,
            distance_km=request.distance_km,
            price=request.price,
            estimated_minutes=request.estimated_minutes,
            idempotency_key=request.idempotency_key,
        )
        self.session.add(row)
        await self.session.flush()
        return row.id

    async def find_by_id(self, request_id: int) -> Optional[DeliveryRequest]:
        # populate_existing: a conditional update may have changed the row
        # behind the identity map's back.
        row = await self.session.get(
            DeliveryRequestModel, request_id, populate_existing=True
        )
        return _to_request(row) if row else None

    async def find_by_idempotency_key(self, key: str) -> Optional[DeliveryRequest]:
        result = await self.session.execute(
            select(DeliveryRequestModel).where(
                DeliveryRequestModel.idempotency_key == key
            )
        )
        row = result.scalar_one_or_none()
        return _to_request(row) if row else None

    async def conditional_update(
        self,
        request_id: int,
        expected: Mapping[str, Any],
        patch: Mapping[str, Any],
    ) -> bool:
        unknown = (set(expected) | set(patch)) - _REQUEST_COLUMNS
        if unknown:
            raise ValueError(f"Unknown delivery request fields: {sorted(unknown)}")

        conditions = [DeliveryRequestModel.id == request_id]
        for name, value in expected.items():
            column = getattr(DeliveryRequestModel, name)
            conditions.append(column.is_(None) if value is None else column == value)

        values = {"updated_at": _utcnow(), **patch}
        result = await self.session.execute(
            update(DeliveryRequestModel)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list(
        self,
        *,
        status: Optional[DeliveryStatus] = None,
        customer_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        pickup_cells: Optional[Iterable[str]] = None,
    ) -> list[DeliveryRequest]:
        query = select(DeliveryRequestModel)
        if status is not None:
            query = query.where(DeliveryRequestModel.status == status)
        if customer_id is not None:
            query = query.where(DeliveryRequestModel.customer_id == customer_id)
        if driver_id is not None:
            query = query.where(DeliveryRequestModel.assigned_driver_id == driver_id)
        if pickup_cells is not None:
            query = query.where(DeliveryRequestModel.pickup_cell.in_(list(pickup_cells)))
        query = query.order_by(
            DeliveryRequestModel.created_at.desc(), DeliveryRequestModel.id.desc()
        )
        result = await self.session.execute(
            query.execution_options(populate_existing=True)
        )
        return [_to_request(row) for row in result.scalars().all()]


class DriverRepository(DriverDirectory):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_available(self) -> list[Driver]:
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.is_available.is_(True))
            .order_by(DriverModel.id)
            .execution_options(populate_existing=True)
        )
        return [_to_driver(row) for row in result.scalars().all()]

    async def get(self, driver_id: int) -> Optional[Driver]:
        row = await self.session.get(DriverModel, driver_id, populate_existing=True)
        return _to_driver(row) if row else None

    async def claim(self, driver_id: int) -> bool:
        result = await self.session.execute(
            update(DriverModel)
            .where(DriverModel.id == driver_id, DriverModel.is_available.is_(True))
            .values(is_available=False, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release(self, driver_id: int, completed_delivery: bool = False) -> None:
        values: dict[str, Any] = {"is_available": True, "updated_at": _utcnow()}
        if completed_delivery:
            values["total_deliveries"] = DriverModel.total_deliveries + 1
        await self.session.execute(
            update(DriverModel)
            .where(DriverModel.id == driver_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
