"""
Database seeding script for local development.

Creates directory records (drivers, vehicles), a route waiting in the pool
and a handful of pending bookings on it.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ridepool_backend.app.db.session import AsyncSessionLocal, engine, Base
from ridepool_backend.app.models.booking import Booking
from ridepool_backend.app.models.booking_enums import BookingStatus
from ridepool_backend.app.models.driver import Driver
from ridepool_backend.app.models.route_pool import RoutePoolEntry
from ridepool_backend.app.models.vehicle import Vehicle
# Registered with Base so create_all builds every table
from ridepool_backend.app.models.assigned_route import AssignedRoute
from ridepool_backend.app.models.audit_log import AuditLog


async def seed_data():
    """
    Seed development data.

    Creates:
    - 2 drivers, 2 vehicles
    - 1 route pool entry (R1)
    - 3 pending bookings on R1
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")

        if await db.get(RoutePoolEntry, "R1") is not None:
            print("ℹ️  Route R1 already exists, skipping seeding")
            return

        db.add_all([
            Driver(id="D1", name="Amina Yusuf", email="amina@ridepool.dev"),
            Driver(id="D2", name=None, email="driver2@ridepool.dev"),
            Vehicle(id="V1", make="Toyota", model="HiAce", plate_number="KDA 123A"),
            Vehicle(id="V2", make="Nissan", model="Caravan", plate_number="KDB 456B"),
        ])
        print("✅ Created drivers D1, D2 and vehicles V1, V2")

        db.add(RoutePoolEntry(
            id="R1",
            name="Westlands Morning Shuttle",
            origin="Westlands",
            destination="Upper Hill",
            waypoints=["Museum Hill", "Kenyatta Avenue"],
        ))
        print("✅ Created route R1")

        pickup = datetime.now(timezone.utc).replace(hour=7, minute=0, second=0, microsecond=0) + timedelta(days=1)
        for i in range(1, 4):
            db.add(Booking(
                id=f"B{i}",
                route_id="R1",
                route_name="Westlands Morning Shuttle",
                user_id=f"U{i}",
                user_name=f"Rider {i}",
                user_email=f"rider{i}@ridepool.dev",
                origin="Westlands",
                destination="Upper Hill",
                pickup_time=pickup,
                dropoff_time=pickup + timedelta(minutes=45),
                status=BookingStatus.PENDING,
            ))
        print("✅ Created 3 pending bookings on R1")

        await db.commit()

        print("\n🎉 Seeding completed successfully!")
        print("\nTry: POST /v1/ride-assign/routes/R1/assign  {\"driverId\": \"D1\", \"vehicleId\": \"V1\"}")


if __name__ == "__main__":
    asyncio.run(seed_data())
