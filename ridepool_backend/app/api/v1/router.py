"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from ridepool_backend.app.api.v1.endpoints import ride_assign, admin_ops

router = APIRouter()

# Booking consolidation and route assignment
router.include_router(ride_assign.router)

# Reconciliation and audit
router.include_router(admin_ops.router)
