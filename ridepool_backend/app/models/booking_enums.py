"""
Booking-related enumerations.
"""

import enum


class BookingStatus(str, enum.Enum):
    """
    Booking status enumeration.

    PENDING: Created by booking intake, awaiting operator decision
    CONFIRMED: Confirmed by the operator (and stamped when the route is assigned)
    REJECTED: Rejected by the operator (terminal)
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class BookingDecision(str, enum.Enum):
    """Single-booking operator decision."""
    CONFIRM = "confirm"
    REJECT = "reject"
