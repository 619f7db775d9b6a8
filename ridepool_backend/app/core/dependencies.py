"""
FastAPI dependencies for the assignment workflow.
"""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import async_sessionmaker

from ridepool_backend.app.db.session import get_session_factory
from ridepool_backend.app.domain.assignment.orchestrator import AssignmentOrchestrator
from ridepool_backend.app.domain.assignment.reconciliation import ReconciliationSweep


async def get_orchestrator(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    x_operator: str = Header("operator", description="Operator name recorded in the audit log"),
) -> AssignmentOrchestrator:
    """
    Build an orchestrator per request.

    Directories are re-resolved on every call, so nothing is shared between
    requests except the session factory.
    """
    return AssignmentOrchestrator(session_factory, actor=x_operator)


async def get_reconciliation_sweep(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> ReconciliationSweep:
    return ReconciliationSweep(AssignmentOrchestrator(session_factory, actor="system"))
