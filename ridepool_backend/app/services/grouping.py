"""
Grouping view over pending bookings.

Pure functions: no I/O and no mutation of the bookings passed in. Accepts
anything with the Booking attribute names (ORM rows or simple namespaces).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from ridepool_backend.app.models.booking_enums import BookingStatus

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
SORT_KEYS = ("bookedAt", "pickupTime", "userName")


@dataclass
class RouteGroup:
    """Pending bookings sharing one route."""
    route_id: str
    route_name: Optional[str]
    origin: Optional[str]
    destination: Optional[str]
    count: int = 0
    bookings: list = field(default_factory=list)
    earliest_pickup: Optional[datetime] = None
    latest_pickup: Optional[datetime] = None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_pending(booking: Any) -> bool:
    return booking.status in (BookingStatus.PENDING, BookingStatus.PENDING.value)


def group_pending(bookings: Iterable[Any]) -> dict[str, RouteGroup]:
    """
    Group pending bookings by route id.

    Bookings that are not pending or carry no route id are ignored. Groups are
    returned in route id order; bookings inside a group keep input order.
    """
    groups: dict[str, RouteGroup] = {}

    for booking in bookings:
        if not booking.route_id or not _is_pending(booking):
            continue

        group = groups.get(booking.route_id)
        if group is None:
            group = RouteGroup(
                route_id=booking.route_id,
                route_name=getattr(booking, "route_name", None),
                origin=booking.origin,
                destination=booking.destination,
            )
            groups[booking.route_id] = group

        group.count += 1
        group.bookings.append(booking)

        pickup = _as_utc(booking.pickup_time)
        if pickup is not None:
            if group.earliest_pickup is None or pickup < group.earliest_pickup:
                group.earliest_pickup = pickup
            if group.latest_pickup is None or pickup > group.latest_pickup:
                group.latest_pickup = pickup

    return {route_id: groups[route_id] for route_id in sorted(groups)}


def filter_bookings(
    bookings: Iterable[Any],
    search: Optional[str] = None,
    booked_from: Optional[datetime] = None,
    booked_to: Optional[datetime] = None,
    sort_by: Optional[str] = None,
    direction: str = "asc"
) -> list:
    """
    Operator-screen filtering of bookings.

    search matches userName, userEmail or routeName case-insensitively;
    booked_from/booked_to are inclusive bounds on bookedAt. sort_by is one
    of bookedAt, pickupTime or userName; missing timestamps sort as the
    epoch and missing names as "".
    """
    if sort_by is not None and sort_by not in SORT_KEYS:
        raise ValueError(f"Unsupported sort key: {sort_by}")

    needle = (search or "").lower()
    booked_from = _as_utc(booked_from)
    booked_to = _as_utc(booked_to)

    def matches(booking: Any) -> bool:
        if needle:
            haystacks = (booking.user_name, booking.user_email, getattr(booking, "route_name", None))
            if not any(needle in (h or "").lower() for h in haystacks):
                return False
        booked_at = _as_utc(booking.booked_at) or EPOCH
        if booked_from is not None and booked_at < booked_from:
            return False
        if booked_to is not None and booked_at > booked_to:
            return False
        return True

    selected = [b for b in bookings if matches(b)]

    if sort_by == "bookedAt":
        selected.sort(key=lambda b: _as_utc(b.booked_at) or EPOCH, reverse=direction == "desc")
    elif sort_by == "pickupTime":
        selected.sort(key=lambda b: _as_utc(b.pickup_time) or EPOCH, reverse=direction == "desc")
    elif sort_by == "userName":
        selected.sort(key=lambda b: b.user_name or "", reverse=direction == "desc")

    return selected
