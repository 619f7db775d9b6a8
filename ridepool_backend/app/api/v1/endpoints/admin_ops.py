"""
Admin Operations API Endpoints.

Endpoints for repairing interrupted assignment workflows and inspecting the
audit trail.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import async_sessionmaker

from ridepool_backend.app.core.dependencies import get_reconciliation_sweep
from ridepool_backend.app.db.session import get_session_factory
from ridepool_backend.app.domain.assignment.reconciliation import ReconciliationSweep
from ridepool_backend.app.schemas.ride_assign import ReconciliationResponse
from ridepool_backend.app.services.audit import get_audit_trail

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.post("/reconcile", response_model=ReconciliationResponse)
async def trigger_reconciliation(
    sweep: ReconciliationSweep = Depends(get_reconciliation_sweep)
):
    """
    Run one reconciliation pass.

    Finishes interrupted assigns and unassigns and releases bookings stamped
    for an assignment that no longer exists.
    """
    report = await sweep.run()
    return ReconciliationResponse(
        assigns_resumed=report.assigns_resumed,
        unassigns_resumed=report.unassigns_resumed,
        orphans_reset=report.orphans_reset,
        failures=report.failures,
        repaired=report.repaired
    )


@router.get("/audit")
async def list_audit_events(
    route_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """Most recent audit events, optionally for one route or action."""
    events = await get_audit_trail(session_factory, route_id=route_id, action=action, limit=limit)
    return {
        "events": [
            {
                "id": e.id,
                "actor": e.actor,
                "action": e.action,
                "routeId": e.route_id,
                "metadata": e.meta_data,
                "timestamp": e.timestamp.isoformat() if e.timestamp else None,
            } for e in events
        ],
        "total": len(events)
    }
