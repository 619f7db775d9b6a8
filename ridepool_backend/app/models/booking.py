"""
Booking database model.

A rider's request to travel a predefined route.
"""

import uuid
from sqlalchemy import Column, String, DateTime, Enum, Index
from sqlalchemy.sql import func
from ridepool_backend.app.db.session import Base
from ridepool_backend.app.models.booking_enums import BookingStatus


class Booking(Base):
    """
    Booking model.

    Created as PENDING by booking intake. Only the assignment workflow changes
    its status and assigned driver/vehicle; riders may delete it while pending.
    """
    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)

    # Route reference (stable route identity)
    route_id = Column(String(64), nullable=False, index=True)
    route_name = Column(String(200), nullable=True)

    # Rider
    user_id = Column(String(64), nullable=False, index=True)
    user_name = Column(String(200), nullable=True)
    user_email = Column(String(255), nullable=True)

    # Itinerary (denormalised from the route at booking time)
    origin = Column(String(500), nullable=True)
    destination = Column(String(500), nullable=True)
    pickup_time = Column(DateTime(timezone=True), nullable=True)
    dropoff_time = Column(DateTime(timezone=True), nullable=True)

    # Status
    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False, index=True)
    assigned_driver_id = Column(String(64), nullable=True, index=True)
    assigned_vehicle_id = Column(String(64), nullable=True)

    booked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_bookings_route_status", "route_id", "status"),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, route_id={self.route_id}, status='{self.status.value}')>"
