"""
Audit logging service for the assignment workflow.

Audit writes happen after a saga finishes; a failed audit write is logged and
never turns a completed assignment into an error.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy import select, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ridepool_backend.app.models.audit_log import AuditLog

logger = logging.getLogger("ridepool.audit")


class AuditAction:
    """Standardized audit action constants."""
    ROUTE_ASSIGNED = "ROUTE_ASSIGNED"
    ROUTE_UNASSIGNED = "ROUTE_UNASSIGNED"
    BOOKINGS_CONFIRMED = "BOOKINGS_CONFIRMED"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_REJECTED = "BOOKING_REJECTED"
    ROUTE_RECONCILED = "ROUTE_RECONCILED"


async def log_event(
    session_factory: async_sessionmaker,
    action: str,
    actor: Optional[str] = None,
    route_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> Optional[AuditLog]:
    """
    Append an event to the audit log.

    Args:
        session_factory: Factory used to open a dedicated session
        action: Action being recorded (use AuditAction constants)
        actor: Operator performing the action
        route_id: Route the action affected
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance, or None if the write failed
    """
    audit_log = AuditLog(
        actor=actor,
        action=action,
        route_id=route_id,
        meta_data=metadata
    )

    try:
        async with session_factory() as db:
            db.add(audit_log)
            await db.commit()
            await db.refresh(audit_log)
    except SQLAlchemyError:
        logger.exception("Failed to write audit event %s for route %s", action, route_id)
        return None

    return audit_log


async def get_audit_trail(
    session_factory: async_sessionmaker,
    route_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if route_id:
        query = query.where(AuditLog.route_id == route_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    async with session_factory() as db:
        result = await db.execute(query)
        return list(result.scalars().all())
