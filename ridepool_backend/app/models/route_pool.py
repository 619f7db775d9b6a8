"""
Route pool database model.

Routes waiting for a driver and vehicle.
"""

from sqlalchemy import Column, String, DateTime, Enum, JSON
from sqlalchemy.sql import func
from ridepool_backend.app.db.session import Base
from ridepool_backend.app.models.route_enums import RoutePoolStatus


class RoutePoolEntry(Base):
    """
    Route pool entry.

    The id is the route's stable identity: it is removed when the route is
    assigned and restored under the same id when it is unassigned.
    """
    __tablename__ = "routes"

    id = Column(String(64), primary_key=True)

    name = Column(String(200), nullable=False)
    origin = Column(String(500), nullable=True)
    destination = Column(String(500), nullable=True)
    waypoints = Column(JSON, nullable=False, default=list)

    status = Column(Enum(RoutePoolStatus), default=RoutePoolStatus.PENDING, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<RoutePoolEntry(id={self.id}, name='{self.name}')>"
