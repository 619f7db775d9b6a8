"""
Audit Log Database Model.

Tracks completed assignment workflow operations and booking decisions.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from ridepool_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - ROUTE_ASSIGNED / ROUTE_UNASSIGNED
    - BOOKINGS_CONFIRMED (confirm-all)
    - BOOKING_CONFIRMED / BOOKING_REJECTED
    - ROUTE_RECONCILED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action ("system" for the reconciliation sweep)
    actor = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which route it affected
    route_id = Column(String(64), nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', route={self.route_id})>"
