"""
Delivery Request Lifecycle
==========================

Drives a request from creation to a terminal state.

Concurrency safety
------------------
Every write that changes status or assignment is a **conditional update**
evaluated by the store: "set these fields iff the record still has the
status / driver we last saw".  Two drivers accepting the same job therefore
race inside the database, where exactly one ``UPDATE`` matches; the loser
receives ``ConflictError``.  No in-process lock is taken, so the guarantee
holds across replicas.

Drivers are claimed the same way (``is_available`` true -> false) before the
request is updated; a claim that ends up unused is released again.

Timeouts
--------
Store calls run under ``asyncio.wait_for``.  A timeout surfaces as
``OutcomeUnknownError`` and is never retried here: the write may have
landed, so the caller must re-read the request first.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Optional, TypeVar

from .cells import nearby_cells, pickup_cell
from .entities import DeliveryRequest, GeoPoint
from .enums import ASSIGNED_STATUSES, DeliveryStatus, VehicleClass
from .errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    OutcomeUnknownError,
    ValidationError,
)
from .locator import DEFAULT_RADIUS_KM, Candidate, find_candidates
from .ports import DriverDirectory, RequestStore
from .pricing import PricingEngine, Quote

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _status(value: Any) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown delivery status: {value!r}") from None


def _vehicle_class(value: Any) -> VehicleClass:
    try:
        return VehicleClass(value)
    except ValueError:
        raise ValidationError(f"Unknown vehicle class: {value!r}") from None


class DeliveryLifecycle:
    """Caller-facing operations of the matching and lifecycle engine."""

    def __init__(
        self,
        store: RequestStore,
        directory: DriverDirectory,
        pricing: Optional[PricingEngine] = None,
        *,
        default_radius_km: float = DEFAULT_RADIUS_KM,
        h3_resolution: int = 8,
        nearby_rings: int = 1,
        store_timeout_seconds: float = 2.0,
    ):
        self.store = store
        self.directory = directory
        self.pricing = pricing or PricingEngine()
        self.default_radius_km = default_radius_km
        self.h3_resolution = h3_resolution
        self.nearby_rings = nearby_rings
        self.store_timeout_seconds = store_timeout_seconds

    # ── Queries ───────────────────────────────────────────────────────

    def estimate(
        self,
        pickup: GeoPoint,
        dropoff: GeoPoint,
        weight_kg: float,
        vehicle_class: VehicleClass,
    ) -> Quote:
        return self.pricing.quote(
            pickup, dropoff, weight_kg, _vehicle_class(vehicle_class)
        )

    async def find_candidates(
        self,
        pickup: GeoPoint,
        radius_km: Optional[float] = None,
        vehicle_class: Optional[VehicleClass] = None,
        limit: Optional[int] = None,
    ) -> list[Candidate]:
        snapshot = await self.directory.list_available()
        return find_candidates(
            pickup,
            snapshot,
            radius_km=self.default_radius_km if radius_km is None else radius_km,
            vehicle_class=vehicle_class,
            limit=limit,
        )

    async def get(self, request_id: int) -> DeliveryRequest:
        request = await self.store.find_by_id(request_id)
        if request is None:
            raise NotFoundError(f"Delivery request {request_id} not found")
        return request

    async def list_requests(
        self,
        status: Optional[DeliveryStatus] = None,
        customer_id: Optional[int] = None,
        driver_id: Optional[int] = None,
    ) -> list[DeliveryRequest]:
        return await self.store.list(
            status=_status(status) if status is not None else None,
            customer_id=customer_id,
            driver_id=driver_id,
        )

    async def list_pending_near(
        self, point: GeoPoint, rings: Optional[int] = None
    ) -> list[DeliveryRequest]:
        """Pending jobs whose pickup lies in the H3 neighbourhood of *point*."""
        cells = nearby_cells(
            point,
            rings=self.nearby_rings if rings is None else rings,
            resolution=self.h3_resolution,
        )
        return await self.store.list(
            status=DeliveryStatus.PENDING, pickup_cells=cells
        )

    # ── Creation ──────────────────────────────────────────────────────

    async def create_request(
        self,
        pickup: GeoPoint,
        dropoff: GeoPoint,
        weight_kg: float,
        vehicle_class: VehicleClass,
        *,
        customer_id: Optional[int] = None,
        pickup_address: Optional[str] = None,
        dropoff_address: Optional[str] = None,
        package_description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> DeliveryRequest:
        if idempotency_key:
            existing = await self.store.find_by_idempotency_key(idempotency_key)
            if existing is not None:
                return existing

        vehicle_class = _vehicle_class(vehicle_class)
        quote = self.pricing.quote(pickup, dropoff, weight_kg, vehicle_class)
        request = DeliveryRequest(
            pickup=pickup,
            dropoff=dropoff,
            package_weight_kg=weight_kg,
            vehicle_class=vehicle_class,
            status=DeliveryStatus.PENDING,
            price=quote.price,
            estimated_minutes=quote.eta_minutes,
            distance_km=quote.distance_km,
            customer_id=customer_id,
            pickup_address=pickup_address,
            dropoff_address=dropoff_address,
            package_description=package_description,
            pickup_cell=pickup_cell(pickup, self.h3_resolution),
            idempotency_key=idempotency_key,
        )
        request_id = await self.store.create(request)
        logger.info(
            "Delivery request %d created (%.2f km, price=%.2f, eta=%d min)",
            request_id,
            quote.distance_km,
            quote.price,
            quote.eta_minutes,
        )
        return await self.get(request_id)

    # ── Assignment ────────────────────────────────────────────────────

    async def accept(self, request_id: int, driver_id: int) -> DeliveryRequest:
        """A driver takes a pending job.  Losers get ``ConflictError``."""
        return await self._assign(request_id, driver_id, actor="driver")

    async def assign(self, request_id: int, driver_id: int) -> DeliveryRequest:
        """Operator override with the same atomicity contract as ``accept``."""
        return await self._assign(request_id, driver_id, actor="operator")

    async def _assign(
        self, request_id: int, driver_id: int, actor: str
    ) -> DeliveryRequest:
        request = await self.get(request_id)
        if (
            request.status != DeliveryStatus.PENDING
            or request.assigned_driver_id is not None
        ):
            raise ConflictError(f"Delivery request {request_id} is no longer available")

        if await self.directory.get(driver_id) is None:
            raise NotFoundError(f"Driver {driver_id} not found")
        if not await self._guarded(self.directory.claim(driver_id)):
            raise ConflictError(f"Driver {driver_id} is not available")

        won = await self._guarded(
            self.store.conditional_update(
                request_id,
                expected={
                    "status": DeliveryStatus.PENDING,
                    "assigned_driver_id": None,
                },
                patch={
                    "status": DeliveryStatus.ACCEPTED,
                    "assigned_driver_id": driver_id,
                },
            )
        )
        if not won:
            await self.directory.release(driver_id)
            logger.info(
                "Driver %d lost the race for delivery request %d", driver_id, request_id
            )
            raise ConflictError(f"Delivery request {request_id} is no longer available")

        logger.info(
            "Delivery request %d assigned to driver %d (%s)", request_id, driver_id, actor
        )
        return await self.get(request_id)

    # ── Status changes ────────────────────────────────────────────────

    async def transition(
        self,
        request_id: int,
        target_status: DeliveryStatus,
        driver_id: Optional[int] = None,
    ) -> DeliveryRequest:
        """Move along one edge of the transition graph."""
        target = _status(target_status)
        request = await self.get(request_id)
        request.ensure_transition(target)

        if target == DeliveryStatus.ACCEPTED:
            if driver_id is None:
                raise ValidationError("Accepting a delivery request needs a driver id")
            return await self.accept(request_id, driver_id)

        expected: dict[str, Any] = {
            "status": request.status,
            "assigned_driver_id": request.assigned_driver_id,
        }
        patch: dict[str, Any] = {"status": target}
        if target == DeliveryStatus.CANCELLED:
            patch["assigned_driver_id"] = None
        elif target == DeliveryStatus.DELIVERED:
            patch["delivered_at"] = _utcnow()

        won = await self._guarded(
            self.store.conditional_update(request_id, expected=expected, patch=patch)
        )
        if not won:
            raise ConflictError(
                f"Delivery request {request_id} changed while moving to {target.value}"
            )

        previous_driver = request.assigned_driver_id
        if previous_driver is not None:
            if target == DeliveryStatus.DELIVERED:
                await self.directory.release(previous_driver, completed_delivery=True)
            elif target == DeliveryStatus.CANCELLED:
                await self.directory.release(previous_driver)

        logger.info(
            "Delivery request %d: %s -> %s",
            request_id,
            request.status.value,
            target.value,
        )
        return await self.get(request_id)

    async def force_status(
        self,
        request_id: int,
        status: DeliveryStatus,
        driver_id: Optional[int] = None,
    ) -> DeliveryRequest:
        """
        Operator override: set *status* without walking the graph.

        The assignment invariant still holds (entering an assigned status
        needs a driver, leaving it clears the driver) and terminal requests
        stay immutable.
        """
        target = _status(status)
        request = await self.get(request_id)
        if request.is_terminal:
            raise InvalidTransitionError(
                f"Delivery request {request_id} is {request.status.value} and cannot change"
            )

        previous_driver = request.assigned_driver_id
        claimed: Optional[int] = None
        patch: dict[str, Any] = {"status": target}

        if target in ASSIGNED_STATUSES:
            if previous_driver is None:
                if driver_id is None:
                    raise ValidationError(
                        f"Status {target.value} needs a driver id for request {request_id}"
                    )
                if await self.directory.get(driver_id) is None:
                    raise NotFoundError(f"Driver {driver_id} not found")
                if not await self._guarded(self.directory.claim(driver_id)):
                    raise ConflictError(f"Driver {driver_id} is not available")
                claimed = driver_id
                patch["assigned_driver_id"] = driver_id
            elif driver_id is not None and driver_id != previous_driver:
                raise ValidationError(
                    f"Delivery request {request_id} is already assigned to driver "
                    f"{previous_driver}"
                )
        else:
            patch["assigned_driver_id"] = None

        if target == DeliveryStatus.DELIVERED:
            patch["delivered_at"] = _utcnow()

        won = await self._guarded(
            self.store.conditional_update(
                request_id,
                expected={
                    "status": request.status,
                    "assigned_driver_id": previous_driver,
                },
                patch=patch,
            )
        )
        if not won:
            if claimed is not None:
                await self.directory.release(claimed)
            raise ConflictError(f"Delivery request {request_id} changed concurrently")

        assigned = claimed if claimed is not None else previous_driver
        if target == DeliveryStatus.DELIVERED and assigned is not None:
            await self.directory.release(assigned, completed_delivery=True)
        elif target not in ASSIGNED_STATUSES and previous_driver is not None:
            await self.directory.release(previous_driver)

        logger.warning(
            "Delivery request %d forced: %s -> %s",
            request_id,
            request.status.value,
            target.value,
        )
        return await self.get(request_id)

    # ── Internals ─────────────────────────────────────────────────────

    async def _guarded(self, operation: Awaitable[T]) -> T:
        """Await a store call, turning a timeout into an unknown outcome."""
        try:
            return await asyncio.wait_for(
                operation, timeout=self.store_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Store call timed out after %.1fs; outcome unknown",
                self.store_timeout_seconds,
            )
            raise OutcomeUnknownError(
                "The store did not answer in time; re-read the delivery request "
                "before retrying"
            ) from None
