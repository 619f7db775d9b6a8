"""
Centralized Test Configuration.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from ridepool_backend.app.main import app
from ridepool_backend.app.db.session import get_db, get_session_factory, Base
from ridepool_backend.app.core.reliability import RetryPolicy
from ridepool_backend.app.domain.assignment.orchestrator import AssignmentOrchestrator
from ridepool_backend.app.models.assigned_route import AssignedRoute
from ridepool_backend.app.models.booking import Booking
from ridepool_backend.app.models.booking_enums import BookingStatus
from ridepool_backend.app.models.driver import Driver
from ridepool_backend.app.models.route_pool import RoutePoolEntry
from ridepool_backend.app.models.vehicle import Vehicle

FAST_RETRY = RetryPolicy(timeout=5.0, max_attempts=3, base_delay=0.01, max_delay=0.02)

PICKUP = datetime(2026, 10, 20, 7, 0)


@pytest.fixture
async def engine(tmp_path):
    """
    File-backed SQLite per test.

    NullPool gives every session its own connection, so concurrent
    operations really interleave like separate store clients.
    """
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ridepool_test.db'}",
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def orchestrator(session_factory):
    return AssignmentOrchestrator(session_factory, retry_policy=FAST_RETRY)


@pytest.fixture
async def client(session_factory):
    """Async client for testing, wired to the per-test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


class Fixtures:
    """Creates and reads records the way the external collaborators would."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def add(self, *objects):
        async with self.session_factory() as db:
            db.add_all(objects)
            await db.commit()

    async def driver(self, driver_id="D1", name="Amina Yusuf", is_active=True):
        await self.add(Driver(id=driver_id, name=name, is_active=is_active))

    async def vehicle(self, vehicle_id="V1", make="Toyota", model="HiAce", plate="KDA 123A", is_active=True):
        await self.add(Vehicle(id=vehicle_id, make=make, model=model, plate_number=plate, is_active=is_active))

    async def route(self, route_id="R1", name=None, waypoints=None):
        await self.add(RoutePoolEntry(
            id=route_id,
            name=name or f"Route {route_id}",
            origin="Westlands",
            destination="Upper Hill",
            waypoints=waypoints if waypoints is not None else ["Museum Hill", "Kenyatta Avenue"],
        ))

    async def booking(self, booking_id, route_id="R1", user_id=None, status=BookingStatus.PENDING,
                      pickup_offset_minutes=0, booked_at=None, user_name=None, driver_id=None, vehicle_id=None):
        user_id = user_id or f"U-{booking_id}"
        await self.add(Booking(
            id=booking_id,
            route_id=route_id,
            route_name=f"Route {route_id}",
            user_id=user_id,
            user_name=user_name or f"Rider {booking_id}",
            user_email=f"{user_id.lower()}@ridepool.dev",
            origin="Westlands",
            destination="Upper Hill",
            pickup_time=PICKUP + timedelta(minutes=pickup_offset_minutes),
            dropoff_time=PICKUP + timedelta(minutes=pickup_offset_minutes + 45),
            booked_at=booked_at or datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc),
            status=status,
            assigned_driver_id=driver_id,
            assigned_vehicle_id=vehicle_id,
        ))

    async def bookings_for(self, route_id):
        async with self.session_factory() as db:
            result = await db.execute(
                select(Booking).where(Booking.route_id == route_id).order_by(Booking.id)
            )
            return list(result.scalars().all())

    async def pool_entry(self, route_id):
        async with self.session_factory() as db:
            return await db.get(RoutePoolEntry, route_id)

    async def assignments_for(self, route_id):
        async with self.session_factory() as db:
            result = await db.execute(select(AssignedRoute).where(AssignedRoute.route_id == route_id))
            return list(result.scalars().all())


@pytest.fixture
def fx(session_factory):
    return Fixtures(session_factory)


@pytest.fixture
async def route_with_bookings(fx):
    """Route R1 with three pending bookings, driver D1 and vehicle V1."""
    await fx.driver("D1")
    await fx.driver("D2", name="Brian Otieno")
    await fx.vehicle("V1")
    await fx.vehicle("V2", make="Nissan", model="Caravan", plate="KDB 456B")
    await fx.route("R1")
    for i, booking_id in enumerate(["B1", "B2", "B3"]):
        await fx.booking(booking_id, "R1", pickup_offset_minutes=i * 10)
    return "R1"
