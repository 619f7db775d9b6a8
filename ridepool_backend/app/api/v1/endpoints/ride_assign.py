"""
Ride Assignment API Endpoints.

Operators group pending bookings by route, confirm them, and assign or
unassign a driver and vehicle for a route. Errors carried in orchestrator
results are re-raised here and rendered by the global exception handlers.
"""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from ridepool_backend.app.core.dependencies import get_orchestrator
from ridepool_backend.app.domain.assignment.orchestrator import AssignmentOrchestrator
from ridepool_backend.app.models.assigned_route import AssignedRoute
from ridepool_backend.app.models.booking_enums import BookingDecision
from ridepool_backend.app.schemas.ride_assign import (
    AssignmentListResponse,
    AssignmentResponse,
    AssignRequest,
    AssignResponse,
    BookingDecisionResponse,
    BookingListResponse,
    BookingResponse,
    ConfirmAllResponse,
    GroupViewResponse,
    RouteGroupResponse,
    RoutePoolEntryResponse,
    RouteStateResponse,
    UnassignResponse,
)

router = APIRouter(prefix="/ride-assign", tags=["Ride Assignment"])

SortKey = Literal["bookedAt", "pickupTime", "userName"]
SortDirection = Literal["asc", "desc"]


def _assignment_response(assignment: AssignedRoute) -> AssignmentResponse:
    response = AssignmentResponse.model_validate(assignment)
    response.passenger_count = len(assignment.passengers or [])
    return response


@router.get("/bookings", response_model=BookingListResponse)
async def list_pending_bookings(
    search: Optional[str] = Query(None, description="Matches rider name, email or route name"),
    booked_from: Optional[datetime] = Query(None),
    booked_to: Optional[datetime] = Query(None),
    sort_by: Optional[SortKey] = Query(None),
    direction: SortDirection = Query("asc"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """List pending bookings with the operator screen's filters."""
    bookings = await orchestrator.list_pending_bookings(search, booked_from, booked_to, sort_by, direction)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=len(bookings)
    )


@router.get("/groups", response_model=GroupViewResponse)
async def group_pending_bookings(
    search: Optional[str] = Query(None),
    booked_from: Optional[datetime] = Query(None),
    booked_to: Optional[datetime] = Query(None),
    sort_by: Optional[SortKey] = Query(None),
    direction: SortDirection = Query("asc"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """
    Pending bookings grouped by route.

    Groups are ordered by route id; each carries its booking count and
    pickup window.
    """
    groups = await orchestrator.group_pending(
        search=search,
        booked_from=booked_from,
        booked_to=booked_to,
        sort_by=sort_by,
        direction=direction,
    )
    return GroupViewResponse(
        groups=[
            RouteGroupResponse(
                route_id=g.route_id,
                route_name=g.route_name,
                origin=g.origin,
                destination=g.destination,
                count=g.count,
                earliest_pickup=g.earliest_pickup,
                latest_pickup=g.latest_pickup,
                bookings=[BookingResponse.model_validate(b) for b in g.bookings],
            ) for g in groups.values()
        ],
        total_bookings=sum(g.count for g in groups.values())
    )


@router.patch("/bookings/{booking_id}/confirm", response_model=BookingDecisionResponse)
async def confirm_booking(
    booking_id: str = Path(..., description="Booking ID"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """Confirm a single pending booking."""
    new_status = (await orchestrator.decide_booking(booking_id, BookingDecision.CONFIRM)).unwrap()
    return BookingDecisionResponse(booking_id=booking_id, status=new_status)


@router.patch("/bookings/{booking_id}/reject", response_model=BookingDecisionResponse)
async def reject_booking(
    booking_id: str = Path(..., description="Booking ID"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """Reject a single pending booking. Rejection cannot be undone."""
    new_status = (await orchestrator.decide_booking(booking_id, BookingDecision.REJECT)).unwrap()
    return BookingDecisionResponse(booking_id=booking_id, status=new_status)


@router.get("/routes/{route_id}", response_model=RoutePoolEntryResponse)
async def get_route_pool_entry(
    route_id: str = Path(..., description="Route ID"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """Get a route that is waiting for a driver."""
    return RoutePoolEntryResponse.model_validate(await orchestrator.get_route(route_id))


@router.get("/routes/{route_id}/state", response_model=RouteStateResponse)
async def get_route_state(
    route_id: str = Path(..., description="Route ID"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """Where the route stands in the assignment cycle."""
    return RouteStateResponse(route_id=route_id, state=await orchestrator.route_state(route_id))


@router.post("/routes/{route_id}/confirm-all", response_model=ConfirmAllResponse)
async def confirm_all_bookings(
    route_id: str = Path(..., description="Route ID"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """
    Confirm every pending booking on a route without assigning a driver.

    Re-running it confirms nothing new.
    """
    count = (await orchestrator.confirm_all(route_id)).unwrap()
    return ConfirmAllResponse(route_id=route_id, count=count)


@router.post("/routes/{route_id}/assign", response_model=AssignResponse, status_code=status.HTTP_201_CREATED)
async def assign_driver_and_vehicle(
    route_id: str = Path(..., description="Route ID"),
    assignment: AssignRequest = ...,
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """
    Assign a driver and vehicle to a route.

    Creates the assigned route with the route's pending bookings as its
    passengers, confirms those bookings and removes the route from the pool.
    A 500 with ERR_PARTIAL_001 means the same request can be repeated to
    finish the work.
    """
    assignment_id = (await orchestrator.assign(route_id, assignment.driver_id, assignment.vehicle_id)).unwrap()
    created = await orchestrator.get_assignment(assignment_id)
    return AssignResponse(
        assignment_id=assignment_id,
        route_id=route_id,
        passenger_count=len(created.passengers or [])
    )


@router.post("/assignments/{assignment_id}/unassign", response_model=UnassignResponse)
async def unassign_route(
    assignment_id: str = Path(..., description="Assignment ID"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """
    Reverse an assignment.

    The route returns to the pool under its original id and its confirmed
    bookings go back to pending.
    """
    route_id = (await orchestrator.unassign(assignment_id)).unwrap()
    return UnassignResponse(assignment_id=assignment_id, route_id=route_id)


@router.get("/assignments", response_model=AssignmentListResponse)
async def list_assignments(
    driver_id: Optional[str] = Query(None, description="Only routes assigned to this driver"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """List assigned routes (all, or one driver's)."""
    assignments = await orchestrator.list_assignments(driver_id=driver_id)
    return AssignmentListResponse(
        assignments=[_assignment_response(a) for a in assignments],
        total=len(assignments)
    )


@router.get("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: str = Path(..., description="Assignment ID"),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator)
):
    """Get an assigned route with its passenger manifest."""
    return _assignment_response(await orchestrator.get_assignment(assignment_id))
