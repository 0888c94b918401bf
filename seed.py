"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 12 sample drivers (spread around central Accra, a few offline)
  - 4 sample delivery requests (pending, accepted, delivered, cancelled)

Requests are created through ``DeliveryLifecycle`` so prices, ETAs and
assignments obey the same rules as the API.
"""

import asyncio

from sqlalchemy import text

from delivery_engine.config import settings
from delivery_engine.domain.entities import GeoPoint
from delivery_engine.domain.enums import DeliveryStatus, VehicleClass
from delivery_engine.domain.lifecycle import DeliveryLifecycle
from delivery_engine.domain.pricing import PricingEngine
from delivery_engine.infrastructure.database import engine, session_scope
from delivery_engine.infrastructure.models import DriverModel
from delivery_engine.infrastructure.repositories import (
    DeliveryRequestRepository,
    DriverRepository,
)

# Accra city centre (approx)
CENTRE_LAT, CENTRE_LNG = 5.6037, -0.1870


DRIVERS = [
    # Motorcycles close to the centre
    {"name": "Kwame Mensah", "vehicle_class": VehicleClass.MOTORCYCLE, "plate": "GR-1021-24", "lat": 5.6050, "lng": -0.1860, "rating": 4.8},
    {"name": "Ama Owusu", "vehicle_class": VehicleClass.MOTORCYCLE, "plate": "GR-3310-23", "lat": 5.5990, "lng": -0.1900, "rating": 4.9},
    {"name": "Kofi Boateng", "vehicle_class": VehicleClass.MOTORCYCLE, "plate": "GT-7781-22", "lat": 5.6100, "lng": -0.1800, "rating": 4.5},
    {"name": "Efua Asante", "vehicle_class": VehicleClass.MOTORCYCLE, "plate": "GW-5521-24", "lat": 5.5800, "lng": -0.2100, "rating": 4.7},
    # Cars
    {"name": "Yaw Darko", "vehicle_class": VehicleClass.CAR, "plate": "GR-8890-21", "lat": 5.6200, "lng": -0.1750, "rating": 4.6},
    {"name": "Akosua Adjei", "vehicle_class": VehicleClass.CAR, "plate": "GE-1188-23", "lat": 5.5600, "lng": -0.2057, "rating": 4.9},
    {"name": "Kojo Appiah", "vehicle_class": VehicleClass.CAR, "plate": "GN-4402-22", "lat": 5.6400, "lng": -0.1600, "rating": 4.3},
    {"name": "Abena Ofori", "vehicle_class": VehicleClass.CAR, "plate": "GR-6720-24", "lat": 5.6500, "lng": -0.2500, "rating": 4.8},
    # Trucks
    {"name": "Kwesi Amoah", "vehicle_class": VehicleClass.TRUCK, "plate": "GT-9911-20", "lat": 5.6300, "lng": -0.2200, "rating": 4.4},
    {"name": "Adwoa Sarpong", "vehicle_class": VehicleClass.TRUCK, "plate": "GW-2290-21", "lat": 5.7000, "lng": -0.1500, "rating": 4.7},
    # Offline / unknown location
    {"name": "Fiifi Quaye", "vehicle_class": VehicleClass.CAR, "plate": "GR-0099-19", "lat": 5.6040, "lng": -0.1875, "rating": 4.2, "available": False},
    {"name": "Esi Nyarko", "vehicle_class": VehicleClass.MOTORCYCLE, "plate": "GE-7007-24", "lat": None, "lng": None, "rating": 5.0},
]


REQUESTS = [
    {
        "pickup": (5.6037, -0.1870), "dropoff": (5.5600, -0.2057),
        "weight": 3.0, "vehicle_class": VehicleClass.CAR,
        "pickup_address": "Makola Market", "dropoff_address": "Korle Bu",
        "final": DeliveryStatus.PENDING, "driver": None,
    },
    {
        "pickup": (5.6050, -0.1865), "dropoff": (5.6500, -0.1700),
        "weight": 1.5, "vehicle_class": VehicleClass.MOTORCYCLE,
        "pickup_address": "Independence Square", "dropoff_address": "Legon",
        "final": DeliveryStatus.ACCEPTED, "driver": 0,
    },
    {
        "pickup": (5.6200, -0.1750), "dropoff": (5.5570, -0.1960),
        "weight": 12.0, "vehicle_class": VehicleClass.CAR,
        "pickup_address": "Osu", "dropoff_address": "Jamestown",
        "final": DeliveryStatus.DELIVERED, "driver": 4,
    },
    {
        "pickup": (5.6300, -0.2200), "dropoff": (5.6900, -0.1400),
        "weight": 250.0, "vehicle_class": VehicleClass.TRUCK,
        "pickup_address": "Kaneshie", "dropoff_address": "Madina",
        "final": DeliveryStatus.CANCELLED, "driver": None,
    },
]

PATH_TO = {
    DeliveryStatus.PENDING: [],
    DeliveryStatus.ACCEPTED: [],
    DeliveryStatus.DELIVERED: [
        DeliveryStatus.PICKED_UP,
        DeliveryStatus.IN_TRANSIT,
        DeliveryStatus.DELIVERED,
    ],
    DeliveryStatus.CANCELLED: [DeliveryStatus.CANCELLED],
}


async def seed():
    async with session_scope() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM drivers"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Drivers ───────────────────────────────────────────────────
        driver_models = []
        for d in DRIVERS:
            m = DriverModel(
                name=d["name"],
                vehicle_class=d["vehicle_class"],
                vehicle_plate=d["plate"],
                current_lat=d["lat"],
                current_lng=d["lng"],
                rating=d["rating"],
                is_available=d.get("available", True),
            )
            session.add(m)
            driver_models.append(m)
        await session.flush()
        print(f"  Created {len(driver_models)} drivers")

        # ── Delivery requests ─────────────────────────────────────────
        lifecycle = DeliveryLifecycle(
            DeliveryRequestRepository(session),
            DriverRepository(session),
            PricingEngine(base_fare=settings.base_fare),
            h3_resolution=settings.h3_resolution,
        )
        for r in REQUESTS:
            request = await lifecycle.create_request(
                GeoPoint(*r["pickup"]),
                GeoPoint(*r["dropoff"]),
                r["weight"],
                r["vehicle_class"],
                pickup_address=r["pickup_address"],
                dropoff_address=r["dropoff_address"],
            )
            if r["driver"] is not None:
                await lifecycle.accept(request.id, driver_models[r["driver"]].id)
            for status in PATH_TO[r["final"]]:
                await lifecycle.transition(request.id, status)
        print(f"  Created {len(REQUESTS)} delivery requests")

        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
