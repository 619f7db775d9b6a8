"""
Vehicle directory model.

Owned by vehicle registration; read-only here.
"""

from sqlalchemy import Column, String, Boolean
from ridepool_backend.app.db.session import Base


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(64), primary_key=True)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    plate_number = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Vehicle(id={self.id}, plate='{self.plate_number}')>"
