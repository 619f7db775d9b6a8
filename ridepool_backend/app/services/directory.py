"""
Driver and vehicle directory adapters.

Read-only lookups against directory records owned by other screens. Nothing
is cached: driver and vehicle availability can change between calls, so
every assignment re-resolves both.
"""

from dataclasses import dataclass
from sqlalchemy.ext.asyncio import async_sessionmaker

from ridepool_backend.app.core.exceptions import ResourceNotFoundError
from ridepool_backend.app.models.driver import Driver
from ridepool_backend.app.models.vehicle import Vehicle

UNNAMED_DRIVER = "Unnamed Driver"


@dataclass(frozen=True)
class DriverInfo:
    id: str
    display_name: str


@dataclass(frozen=True)
class VehicleInfo:
    id: str
    make: str
    model: str
    plate_number: str

    @property
    def label(self) -> str:
        """Human-readable vehicle description stored on assignments."""
        return f"{self.make} {self.model} ({self.plate_number})"


class DriverDirectory:

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def resolve(self, driver_id: str) -> DriverInfo:
        """
        Resolve a driver id.

        Raises:
            ResourceNotFoundError: unknown or inactive driver
        """
        async with self._session_factory() as db:
            driver = await db.get(Driver, driver_id)

        if driver is None or not driver.is_active:
            raise ResourceNotFoundError("Driver", driver_id)

        return DriverInfo(id=driver.id, display_name=driver.name or UNNAMED_DRIVER)


class VehicleDirectory:

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def resolve(self, vehicle_id: str) -> VehicleInfo:
        """
        Resolve a vehicle id.

        Raises:
            ResourceNotFoundError: unknown or inactive vehicle
        """
        async with self._session_factory() as db:
            vehicle = await db.get(Vehicle, vehicle_id)

        if vehicle is None or not vehicle.is_active:
            raise ResourceNotFoundError("Vehicle", vehicle_id)

        return VehicleInfo(
            id=vehicle.id,
            make=vehicle.make,
            model=vehicle.model,
            plate_number=vehicle.plate_number,
        )
