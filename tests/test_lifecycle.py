"""
Lifecycle service tests against the SQLite-backed repositories.

Covers creation and idempotency, driver acceptance, every edge of the
transition graph, operator overrides and store timeouts.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from delivery_engine.domain.entities import DeliveryRequest, Driver, GeoPoint
from delivery_engine.domain.enums import DeliveryStatus, VehicleClass
from delivery_engine.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    OutcomeUnknownError,
    ValidationError,
)
from delivery_engine.domain.lifecycle import DeliveryLifecycle
from delivery_engine.infrastructure.repositories import (
    DeliveryRequestRepository,
    DriverRepository,
)
from tests.conftest import CENTRE_LAT, CENTRE_LNG

PICKUP = GeoPoint(CENTRE_LAT, CENTRE_LNG)
DROPOFF = GeoPoint(5.5600, -0.2057)


@pytest_asyncio.fixture
async def lifecycle(db_session) -> DeliveryLifecycle:
    return DeliveryLifecycle(
        DeliveryRequestRepository(db_session), DriverRepository(db_session)
    )


async def _create(lifecycle: DeliveryLifecycle, **kwargs) -> DeliveryRequest:
    return await lifecycle.create_request(
        PICKUP, DROPOFF, 3.0, VehicleClass.CAR, **kwargs
    )


async def _driver(lifecycle: DeliveryLifecycle, driver_id: int) -> Driver:
    return await lifecycle.directory.get(driver_id)


# ── Creation ──────────────────────────────────────────────────────────


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_prices_and_stores_pending(self, lifecycle):
        request = await _create(lifecycle, customer_id=42, pickup_address="Osu")
        assert request.id is not None
        assert request.status == DeliveryStatus.PENDING
        assert request.assigned_driver_id is None
        assert request.distance_km == 5.28
        assert request.price == 11.34
        assert request.estimated_minutes == 18
        assert request.customer_id == 42
        assert request.pickup_address == "Osu"
        assert request.pickup_cell is not None

    @pytest.mark.asyncio
    async def test_idempotency_key_returns_existing(self, lifecycle):
        first = await _create(lifecycle, idempotency_key="order-77")
        second = await _create(lifecycle, idempotency_key="order-77")
        assert first.id == second.id
        assert len(await lifecycle.list_requests()) == 1

    @pytest.mark.asyncio
    async def test_invalid_coordinates_rejected(self, lifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.create_request(
                GeoPoint(200.0, 0.0), DROPOFF, 1.0, VehicleClass.CAR
            )

    @pytest.mark.asyncio
    async def test_negative_weight_rejected(self, lifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.create_request(PICKUP, DROPOFF, -1.0, VehicleClass.CAR)

    @pytest.mark.asyncio
    async def test_unknown_vehicle_class_rejected(self, lifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.create_request(PICKUP, DROPOFF, 1.0, "bicycle")


# ── Queries ───────────────────────────────────────────────────────────


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_unknown_request(self, lifecycle):
        with pytest.raises(NotFoundError):
            await lifecycle.get(9999)

    @pytest.mark.asyncio
    async def test_estimate(self, lifecycle):
        quote = lifecycle.estimate(PICKUP, DROPOFF, 3.0, VehicleClass.CAR)
        assert (quote.distance_km, quote.price, quote.eta_minutes) == (5.28, 11.34, 18)

    @pytest.mark.asyncio
    async def test_find_candidates_uses_directory(self, lifecycle, drivers):
        result = await lifecycle.find_candidates(
            PICKUP, radius_km=10, vehicle_class=VehicleClass.CAR
        )
        assert [c.driver.id for c in result] == [drivers["near"]]
        assert result[0].distance_km == 3.2

    @pytest.mark.asyncio
    async def test_find_candidates_default_radius(self, lifecycle, drivers):
        result = await lifecycle.find_candidates(PICKUP)
        ids = [c.driver.id for c in result]
        assert drivers["far"] not in ids
        assert drivers["offline"] not in ids
        assert drivers["unlocated"] not in ids
        assert drivers["near"] in ids

    @pytest.mark.asyncio
    async def test_list_filters(self, lifecycle, drivers):
        first = await _create(lifecycle, customer_id=1)
        second = await _create(lifecycle, customer_id=2)
        await lifecycle.accept(second.id, drivers["near"])

        pending = await lifecycle.list_requests(status=DeliveryStatus.PENDING)
        assert [r.id for r in pending] == [first.id]

        by_customer = await lifecycle.list_requests(customer_id=2)
        assert [r.id for r in by_customer] == [second.id]

        by_driver = await lifecycle.list_requests(driver_id=drivers["near"])
        assert [r.id for r in by_driver] == [second.id]

    @pytest.mark.asyncio
    async def test_list_newest_first(self, lifecycle):
        first = await _create(lifecycle)
        second = await _create(lifecycle)
        assert [r.id for r in await lifecycle.list_requests()] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_unknown_status_rejected(self, lifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.list_requests(status="lost")

    @pytest.mark.asyncio
    async def test_list_pending_near(self, lifecycle, drivers):
        here = await _create(lifecycle)
        taken = await _create(lifecycle)
        await lifecycle.accept(taken.id, drivers["near"])
        await lifecycle.create_request(
            GeoPoint(6.6885, -1.6244), DROPOFF, 1.0, VehicleClass.CAR
        )

        nearby = await lifecycle.list_pending_near(PICKUP)
        assert [r.id for r in nearby] == [here.id]


# ── Accept / assign ──────────────────────────────────────────────────


class TestAccept:
    @pytest.mark.asyncio
    async def test_accept_assigns_and_claims_driver(self, lifecycle, drivers):
        request = await _create(lifecycle)
        accepted = await lifecycle.accept(request.id, drivers["near"])

        assert accepted.status == DeliveryStatus.ACCEPTED
        assert accepted.assigned_driver_id == drivers["near"]
        assert accepted.assignment_consistent()
        assert (await _driver(lifecycle, drivers["near"])).is_available is False

    @pytest.mark.asyncio
    async def test_second_accept_conflicts(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.accept(request.id, drivers["near"])

        with pytest.raises(ConflictError):
            await lifecycle.accept(request.id, drivers["far"])

        stored = await lifecycle.get(request.id)
        assert stored.assigned_driver_id == drivers["near"]
        assert (await _driver(lifecycle, drivers["far"])).is_available is True

    @pytest.mark.asyncio
    async def test_accept_cancelled_conflicts(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.transition(request.id, DeliveryStatus.CANCELLED)
        with pytest.raises(ConflictError):
            await lifecycle.accept(request.id, drivers["near"])

    @pytest.mark.asyncio
    async def test_unknown_driver(self, lifecycle):
        request = await _create(lifecycle)
        with pytest.raises(NotFoundError):
            await lifecycle.accept(request.id, 9999)

    @pytest.mark.asyncio
    async def test_unavailable_driver_conflicts(self, lifecycle, drivers):
        request = await _create(lifecycle)
        with pytest.raises(ConflictError):
            await lifecycle.accept(request.id, drivers["offline"])
        assert (await lifecycle.get(request.id)).status == DeliveryStatus.PENDING

    @pytest.mark.asyncio
    async def test_busy_driver_cannot_take_second_job(self, lifecycle, drivers):
        first = await _create(lifecycle)
        second = await _create(lifecycle)
        await lifecycle.accept(first.id, drivers["near"])
        with pytest.raises(ConflictError):
            await lifecycle.accept(second.id, drivers["near"])

    @pytest.mark.asyncio
    async def test_operator_assign(self, lifecycle, drivers):
        request = await _create(lifecycle)
        assigned = await lifecycle.assign(request.id, drivers["far"])
        assert assigned.status == DeliveryStatus.ACCEPTED
        assert assigned.assigned_driver_id == drivers["far"]

    @pytest.mark.asyncio
    async def test_operator_assign_conflicts_when_taken(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.accept(request.id, drivers["near"])
        with pytest.raises(ConflictError):
            await lifecycle.assign(request.id, drivers["far"])


# ── Transitions ──────────────────────────────────────────────────────


class TestTransition:
    @pytest.mark.asyncio
    async def test_full_path_to_delivered(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.transition(
            request.id, DeliveryStatus.ACCEPTED, driver_id=drivers["near"]
        )
        await lifecycle.transition(request.id, DeliveryStatus.PICKED_UP)
        await lifecycle.transition(request.id, DeliveryStatus.IN_TRANSIT)
        delivered = await lifecycle.transition(request.id, DeliveryStatus.DELIVERED)

        assert delivered.status == DeliveryStatus.DELIVERED
        assert delivered.assigned_driver_id == drivers["near"]
        assert delivered.delivered_at is not None
        driver = await _driver(lifecycle, drivers["near"])
        assert driver.is_available is True
        assert driver.total_deliveries == 1

    @pytest.mark.asyncio
    async def test_pending_to_delivered_is_invalid(self, lifecycle):
        request = await _create(lifecycle)
        with pytest.raises(InvalidTransitionError):
            await lifecycle.transition(request.id, DeliveryStatus.DELIVERED)
        assert (await lifecycle.get(request.id)).status == DeliveryStatus.PENDING

    @pytest.mark.asyncio
    async def test_backward_edge_is_invalid(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.accept(request.id, drivers["near"])
        await lifecycle.transition(request.id, DeliveryStatus.PICKED_UP)
        await lifecycle.transition(request.id, DeliveryStatus.IN_TRANSIT)

        with pytest.raises(InvalidTransitionError):
            await lifecycle.transition(request.id, DeliveryStatus.PICKED_UP)
        stored = await lifecycle.get(request.id)
        assert stored.status == DeliveryStatus.IN_TRANSIT
        assert stored.assigned_driver_id == drivers["near"]

    @pytest.mark.asyncio
    async def test_accepted_needs_driver(self, lifecycle):
        request = await _create(lifecycle)
        with pytest.raises(ValidationError):
            await lifecycle.transition(request.id, DeliveryStatus.ACCEPTED)

    @pytest.mark.asyncio
    async def test_cancel_pending(self, lifecycle):
        request = await _create(lifecycle)
        cancelled = await lifecycle.transition(request.id, DeliveryStatus.CANCELLED)
        assert cancelled.status == DeliveryStatus.CANCELLED
        assert cancelled.assignment_consistent()

    @pytest.mark.asyncio
    async def test_cancel_accepted_releases_driver(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.accept(request.id, drivers["near"])
        cancelled = await lifecycle.transition(request.id, DeliveryStatus.CANCELLED)

        assert cancelled.status == DeliveryStatus.CANCELLED
        assert cancelled.assigned_driver_id is None
        driver = await _driver(lifecycle, drivers["near"])
        assert driver.is_available is True
        assert driver.total_deliveries == 0

    @pytest.mark.asyncio
    async def test_cancel_after_pickup_is_invalid(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.accept(request.id, drivers["near"])
        await lifecycle.transition(request.id, DeliveryStatus.PICKED_UP)
        with pytest.raises(InvalidTransitionError):
            await lifecycle.transition(request.id, DeliveryStatus.CANCELLED)

    @pytest.mark.asyncio
    async def test_terminal_request_is_immutable(self, lifecycle):
        request = await _create(lifecycle)
        await lifecycle.transition(request.id, DeliveryStatus.CANCELLED)
        for status in DeliveryStatus:
            with pytest.raises(InvalidTransitionError):
                await lifecycle.transition(request.id, status, driver_id=1)

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, lifecycle):
        request = await _create(lifecycle)
        with pytest.raises(ValidationError):
            await lifecycle.transition(request.id, "teleported")

    @pytest.mark.asyncio
    async def test_unknown_request(self, lifecycle):
        with pytest.raises(NotFoundError):
            await lifecycle.transition(9999, DeliveryStatus.CANCELLED)


# ── Operator overrides ───────────────────────────────────────────────


class TestForceStatus:
    @pytest.mark.asyncio
    async def test_force_into_assigned_status_claims_driver(self, lifecycle, drivers):
        request = await _create(lifecycle)
        forced = await lifecycle.force_status(
            request.id, DeliveryStatus.IN_TRANSIT, driver_id=drivers["near"]
        )
        assert forced.status == DeliveryStatus.IN_TRANSIT
        assert forced.assigned_driver_id == drivers["near"]
        assert (await _driver(lifecycle, drivers["near"])).is_available is False

    @pytest.mark.asyncio
    async def test_force_into_assigned_status_needs_driver(self, lifecycle):
        request = await _create(lifecycle)
        with pytest.raises(ValidationError):
            await lifecycle.force_status(request.id, DeliveryStatus.PICKED_UP)

    @pytest.mark.asyncio
    async def test_force_back_to_pending_releases_driver(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.accept(request.id, drivers["near"])
        await lifecycle.transition(request.id, DeliveryStatus.PICKED_UP)

        forced = await lifecycle.force_status(request.id, DeliveryStatus.PENDING)
        assert forced.status == DeliveryStatus.PENDING
        assert forced.assigned_driver_id is None
        assert forced.assignment_consistent()
        assert (await _driver(lifecycle, drivers["near"])).is_available is True

    @pytest.mark.asyncio
    async def test_force_delivered_counts_delivery(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.accept(request.id, drivers["near"])
        forced = await lifecycle.force_status(request.id, DeliveryStatus.DELIVERED)

        assert forced.delivered_at is not None
        driver = await _driver(lifecycle, drivers["near"])
        assert driver.is_available is True
        assert driver.total_deliveries == 1

    @pytest.mark.asyncio
    async def test_force_keeps_existing_driver(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.accept(request.id, drivers["near"])
        forced = await lifecycle.force_status(
            request.id, DeliveryStatus.IN_TRANSIT, driver_id=drivers["near"]
        )
        assert forced.assigned_driver_id == drivers["near"]

    @pytest.mark.asyncio
    async def test_force_rejects_different_driver(self, lifecycle, drivers):
        request = await _create(lifecycle)
        await lifecycle.accept(request.id, drivers["near"])
        with pytest.raises(ValidationError):
            await lifecycle.force_status(
                request.id, DeliveryStatus.IN_TRANSIT, driver_id=drivers["far"]
            )

    @pytest.mark.asyncio
    async def test_force_refuses_terminal_request(self, lifecycle):
        request = await _create(lifecycle)
        await lifecycle.transition(request.id, DeliveryStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError):
            await lifecycle.force_status(request.id, DeliveryStatus.PENDING)

    @pytest.mark.asyncio
    async def test_force_with_busy_driver_conflicts(self, lifecycle, drivers):
        request = await _create(lifecycle)
        with pytest.raises(ConflictError):
            await lifecycle.force_status(
                request.id, DeliveryStatus.ACCEPTED, driver_id=drivers["offline"]
            )


# ── Timeouts ─────────────────────────────────────────────────────────


class TestTimeouts:
    @pytest.mark.asyncio
    async def test_slow_store_reports_unknown_outcome(self):
        async def _hang(*args, **kwargs):
            await asyncio.sleep(1)
            return True

        store = AsyncMock()
        store.find_by_id = AsyncMock(
            return_value=DeliveryRequest(id=1, status=DeliveryStatus.PENDING)
        )
        store.conditional_update = _hang
        directory = AsyncMock()
        directory.get = AsyncMock(return_value=Driver(id=5))
        directory.claim = AsyncMock(return_value=True)

        lifecycle = DeliveryLifecycle(store, directory, store_timeout_seconds=0.01)
        with pytest.raises(OutcomeUnknownError):
            await lifecycle.accept(1, 5)

        # The claim may have landed; it is not rolled back blindly.
        directory.release.assert_not_called()

    @pytest.mark.asyncio
    async def test_lost_update_releases_claimed_driver(self):
        store = AsyncMock()
        store.find_by_id = AsyncMock(
            return_value=DeliveryRequest(id=1, status=DeliveryStatus.PENDING)
        )
        store.conditional_update = AsyncMock(return_value=False)
        directory = AsyncMock()
        directory.get = AsyncMock(return_value=Driver(id=5))
        directory.claim = AsyncMock(return_value=True)

        lifecycle = DeliveryLifecycle(store, directory)
        with pytest.raises(ConflictError):
            await lifecycle.accept(1, 5)
        directory.release.assert_awaited_once_with(5)
