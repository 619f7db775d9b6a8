"""
Driver directory model.

Owned by the driver management screens; read-only here.
"""

from sqlalchemy import Column, String, Boolean
from ridepool_backend.app.db.session import Base


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Driver(id={self.id}, name='{self.name}')>"
