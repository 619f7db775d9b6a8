"""
Booking store.

Canonical per-rider booking records. Every write method is a single batch
UPDATE in its own transaction, and every batch filters on the status it
transitions from, so re-running it after partial success is a no-op.
"""

from typing import Iterable, Optional, Sequence
from sqlalchemy import select, update, and_, or_, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from ridepool_backend.app.models.booking import Booking
from ridepool_backend.app.models.booking_enums import BookingStatus
from ridepool_backend.app.services.assigned_route_store import assignment_is_live


def _awaiting_assignment():
    """Bookings an assignment should still stamp: pending, or confirmed without a driver."""
    return or_(
        Booking.status == BookingStatus.PENDING,
        and_(Booking.status == BookingStatus.CONFIRMED, Booking.assigned_driver_id.is_(None)),
    )


class BookingStore:

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, booking_id: str) -> Optional[Booking]:
        async with self._session_factory() as db:
            return await db.get(Booking, booking_id)

    async def list_pending(self) -> list[Booking]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking).where(Booking.status == BookingStatus.PENDING).order_by(Booking.id)
            )
            return list(result.scalars().all())

    async def list_by_route(self, route_id: str, statuses: Optional[Iterable[BookingStatus]] = None) -> list[Booking]:
        query = select(Booking).where(Booking.route_id == route_id)
        if statuses is not None:
            query = query.where(Booking.status.in_(list(statuses)))
        async with self._session_factory() as db:
            result = await db.execute(query.order_by(Booking.booked_at, Booking.id))
            return list(result.scalars().all())

    async def snapshot_for_assignment(self, route_id: str) -> list[Booking]:
        """Bookings that will become the passenger manifest of a new assignment."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking)
                .where(Booking.route_id == route_id, _awaiting_assignment())
                .order_by(Booking.booked_at, Booking.id)
            )
            return list(result.scalars().all())

    async def confirm_pending(self, route_id: str) -> int:
        """Confirm every pending booking on a route. Returns rows transitioned."""
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Booking)
                    .where(Booking.route_id == route_id, Booking.status == BookingStatus.PENDING)
                    .values(status=BookingStatus.CONFIRMED)
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount

    async def confirm_for_assignment(
        self,
        route_id: str,
        user_ids: Sequence[str],
        driver_id: str,
        vehicle_id: str,
        assignment_id: Optional[str] = None
    ) -> int:
        """
        Confirm and stamp the manifest's bookings that are not stamped yet.

        With `assignment_id`, nothing is stamped unless that assignment is
        still ASSIGNED.
        """
        if not user_ids:
            return 0
        criteria = [
            Booking.route_id == route_id,
            Booking.user_id.in_(list(user_ids)),
            _awaiting_assignment(),
        ]
        if assignment_id is not None:
            criteria.append(assignment_is_live(assignment_id))
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Booking)
                    .where(*criteria)
                    .values(
                        status=BookingStatus.CONFIRMED,
                        assigned_driver_id=driver_id,
                        assigned_vehicle_id=vehicle_id,
                    )
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount

    async def count_awaiting_assignment(self, route_id: str, user_ids: Sequence[str]) -> int:
        if not user_ids:
            return 0
        async with self._session_factory() as db:
            result = await db.execute(
                select(func.count(Booking.id)).where(
                    Booking.route_id == route_id,
                    Booking.user_id.in_(list(user_ids)),
                    _awaiting_assignment(),
                )
            )
            return result.scalar()

    async def reset_confirmed(self, route_id: str) -> int:
        """Send every confirmed booking on a route back to pending, clearing the assignment stamp."""
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Booking)
                    .where(Booking.route_id == route_id, Booking.status == BookingStatus.CONFIRMED)
                    .values(
                        status=BookingStatus.PENDING,
                        assigned_driver_id=None,
                        assigned_vehicle_id=None,
                    )
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount

    async def reset_stamped(self, route_id: str) -> int:
        """Like reset_confirmed, but leaves confirmed bookings without a driver alone."""
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Booking)
                    .where(
                        Booking.route_id == route_id,
                        Booking.status == BookingStatus.CONFIRMED,
                        Booking.assigned_driver_id.is_not(None),
                    )
                    .values(
                        status=BookingStatus.PENDING,
                        assigned_driver_id=None,
                        assigned_vehicle_id=None,
                    )
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount

    async def decide(self, booking_id: str, status: BookingStatus) -> int:
        """Move a single pending booking to `status`. Returns 0 if it was no longer pending."""
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Booking)
                    .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING)
                    .values(status=status)
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount

    async def route_ids_with_stamped_bookings(self) -> list[str]:
        """Routes that have confirmed bookings carrying an assigned driver."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking.route_id)
                .where(
                    Booking.status == BookingStatus.CONFIRMED,
                    Booking.assigned_driver_id.is_not(None),
                )
                .distinct()
                .order_by(Booking.route_id)
            )
            return list(result.scalars().all())
