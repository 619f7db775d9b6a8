"""
FastAPI Application Entry Point.

This is the main application file for the Ridepool Backend.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from ridepool_backend.app.core.config import settings
from ridepool_backend.app.api.v1.router import router as api_v1_router
from ridepool_backend.app.db.session import engine, Base, AsyncSessionLocal
from ridepool_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from ridepool_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from ridepool_backend.app.domain.assignment.orchestrator import AssignmentOrchestrator
from ridepool_backend.app.domain.assignment.reconciliation import ReconciliationSweep, run_periodically

# Import models to ensure they are registered with Base
from ridepool_backend.app.models.booking import Booking
from ridepool_backend.app.models.route_pool import RoutePoolEntry
from ridepool_backend.app.models.assigned_route import AssignedRoute
from ridepool_backend.app.models.driver import Driver
from ridepool_backend.app.models.vehicle import Vehicle
from ridepool_backend.app.models.audit_log import AuditLog

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Runs the reconciliation sweep in the background when enabled.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    stop = asyncio.Event()
    sweeper = None
    if settings.reconciliation_enabled:
        sweeper = asyncio.create_task(run_periodically(
            lambda: ReconciliationSweep(AssignmentOrchestrator(AsyncSessionLocal, actor="system")),
            settings.reconciliation_interval_seconds,
            stop,
        ))

    yield

    stop.set()
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Booking consolidation and route assignment for a ride-booking platform",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Ridepool Backend API",
        "docs": "/docs",
        "health": "/health",
    }
