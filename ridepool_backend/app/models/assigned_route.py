"""
Assigned route database model.

A committed pairing of route, driver, vehicle and passenger manifest.
"""

import uuid
from sqlalchemy import Column, String, DateTime, Enum, JSON
from sqlalchemy.sql import func
from ridepool_backend.app.db.session import Base
from ridepool_backend.app.models.route_enums import AssignmentStatus


class AssignedRoute(Base):
    """
    Assigned route model.

    route_id carries the stable identity of the route pool entry it replaced.
    The unique index allows at most one live assignment per route.
    """
    __tablename__ = "assigned_routes"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    route_id = Column(String(64), nullable=False, unique=True, index=True)

    # Route snapshot
    name = Column(String(200), nullable=False)
    origin = Column(String(500), nullable=True)
    destination = Column(String(500), nullable=True)
    waypoints = Column(JSON, nullable=False, default=list)
    route_created_at = Column(DateTime(timezone=True), nullable=True)

    # Driver / vehicle
    assigned_driver_id = Column(String(64), nullable=False, index=True)
    assigned_driver_name = Column(String(200), nullable=False)
    assigned_vehicle_id = Column(String(64), nullable=False)
    assigned_vehicle_info = Column(String(300), nullable=False)

    # [{userId, userName, userEmail}]
    passengers = Column(JSON, nullable=False, default=list)

    status = Column(Enum(AssignmentStatus), default=AssignmentStatus.ASSIGNED, nullable=False, index=True)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AssignedRoute(id={self.id}, route_id={self.route_id}, driver={self.assigned_driver_id})>"
