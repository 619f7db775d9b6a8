"""
Assignment Orchestrator (Domain Logic).

Pairs the pending bookings of a route with a driver and a vehicle, and
reverses that pairing. This is the only component that writes to more than
one store. There is no transaction spanning the Route Pool, the Assigned
Route Store and the Booking Store, so both workflows are sagas: ordered
steps, each idempotent, so that re-running an interrupted operation (or the
reconciliation sweep) resumes it instead of duplicating work.

assign():   snapshot bookings -> persist assignment -> confirm bookings
            -> delete route pool entry
unassign(): read assignment -> mark unassigning -> restore route pool entry
            -> reset bookings -> delete assignment

The assignment exists before any booking is confirmed, and the route pool
entry disappears last, so "pool entry and assignment both present" always
means an assign that still has work to do.

The two sagas never overlap on a route: an assignment can only be marked
UNASSIGNING once its pool entry is gone, and assign's booking stamp and pool
delete only apply while the assignment is still ASSIGNED.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ridepool_backend.app.core.exceptions import (
    AppException,
    ConflictError,
    InvalidSelectionError,
    PartialFailureError,
    ResourceNotFoundError,
)
from ridepool_backend.app.core.reliability import RetryPolicy, call_with_retry
from ridepool_backend.app.domain.assignment.saga import AssignStep, Result, UnassignStep
from ridepool_backend.app.models.assigned_route import AssignedRoute
from ridepool_backend.app.models.booking import Booking
from ridepool_backend.app.models.booking_enums import BookingDecision, BookingStatus
from ridepool_backend.app.models.route_enums import AssignmentStatus, RouteState
from ridepool_backend.app.models.route_pool import RoutePoolEntry
from ridepool_backend.app.services.assigned_route_store import AssignedRouteStore
from ridepool_backend.app.services.audit import AuditAction, log_event
from ridepool_backend.app.services.booking_store import BookingStore
from ridepool_backend.app.services.directory import DriverDirectory, VehicleDirectory
from ridepool_backend.app.services.grouping import RouteGroup, filter_bookings, group_pending
from ridepool_backend.app.services.route_pool_store import RoutePoolStore

logger = logging.getLogger("ridepool.saga")


def build_manifest(bookings: list[Booking]) -> list[dict]:
    """Passenger list for an assignment, one entry per rider."""
    manifest = []
    seen = set()
    for booking in bookings:
        if booking.user_id in seen:
            continue
        seen.add(booking.user_id)
        manifest.append({
            "userId": booking.user_id,
            "userName": booking.user_name,
            "userEmail": booking.user_email,
        })
    return manifest


def passenger_user_ids(assignment: AssignedRoute) -> list[str]:
    return [p["userId"] for p in (assignment.passengers or []) if p.get("userId")]


class AssignmentOrchestrator:
    """
    Saga controller for route assignment.

    Public operations return `Result` values; expected failures are carried
    in `Result.error` rather than raised.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        retry_policy: Optional[RetryPolicy] = None,
        actor: str = "operator",
        bookings: Optional[BookingStore] = None,
        route_pool: Optional[RoutePoolStore] = None,
        assignments: Optional[AssignedRouteStore] = None,
        drivers: Optional[DriverDirectory] = None,
        vehicles: Optional[VehicleDirectory] = None,
    ):
        self.session_factory = session_factory
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.actor = actor
        self.bookings = bookings or BookingStore(session_factory)
        self.route_pool = route_pool or RoutePoolStore(session_factory)
        self.assignments = assignments or AssignedRouteStore(session_factory)
        self.drivers = drivers or DriverDirectory(session_factory)
        self.vehicles = vehicles or VehicleDirectory(session_factory)

    async def io(self, operation: str, func, *args, **kwargs) -> Any:
        return await call_with_retry(func, *args, policy=self.retry_policy, operation=operation, **kwargs)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def group_pending(self, **filters) -> dict[str, RouteGroup]:
        """Pending bookings grouped by route, after optional operator filters."""
        return group_pending(await self.list_pending_bookings(**filters))

    async def list_pending_bookings(
        self,
        search: Optional[str] = None,
        booked_from: Optional[datetime] = None,
        booked_to: Optional[datetime] = None,
        sort_by: Optional[str] = None,
        direction: str = "asc"
    ) -> list[Booking]:
        pending = await self.io("list_pending_bookings", self.bookings.list_pending)
        return filter_bookings(pending, search, booked_from, booked_to, sort_by, direction)

    async def get_route(self, route_id: str) -> RoutePoolEntry:
        entry = await self.io("read_route_pool_entry", self.route_pool.get, route_id)
        if entry is None:
            raise ResourceNotFoundError("Route", route_id)
        return entry

    async def get_assignment(self, assignment_id: str) -> AssignedRoute:
        assignment = await self.io("read_assignment", self.assignments.get, assignment_id)
        if assignment is None:
            raise ResourceNotFoundError("Assignment", assignment_id)
        return assignment

    async def list_assignments(self, driver_id: Optional[str] = None) -> list[AssignedRoute]:
        return await self.io("list_assignments", self.assignments.list_assignments, driver_id=driver_id)

    async def route_state(self, route_id: str) -> RouteState:
        """Where a route stands in UNASSIGNED -> ASSIGNING -> ASSIGNED -> UNASSIGNING."""
        entry = await self.io("read_route_pool_entry", self.route_pool.get, route_id)
        assignment = await self.io("read_assignment", self.assignments.get_by_route, route_id)

        if assignment is None:
            return RouteState.UNASSIGNED if entry is not None else RouteState.UNKNOWN
        if assignment.status == AssignmentStatus.UNASSIGNING:
            return RouteState.UNASSIGNING
        return RouteState.ASSIGNING if entry is not None else RouteState.ASSIGNED

    # ------------------------------------------------------------------
    # assign
    # ------------------------------------------------------------------

    async def assign(self, route_id: str, driver_id: str, vehicle_id: str) -> Result[str]:
        """
        Pair a route's pending bookings with a driver and a vehicle.

        Returns:
            Result carrying the assignment id, or one of: InvalidSelectionError,
            ResourceNotFoundError, ConflictError, TransientError,
            PartialFailureError
        """
        try:
            return Result.success(await self._assign(route_id, driver_id, vehicle_id))
        except AppException as e:
            logger.warning("assign(%s, %s, %s) failed: %s", route_id, driver_id, vehicle_id, e.message)
            return Result.failure(e)

    async def _assign(self, route_id: str, driver_id: str, vehicle_id: str) -> str:
        if not route_id:
            raise InvalidSelectionError("Please select a route")
        if not driver_id or not vehicle_id:
            raise InvalidSelectionError()

        driver = await self.io("resolve_driver", self.drivers.resolve, driver_id)
        vehicle = await self.io("resolve_vehicle", self.vehicles.resolve, vehicle_id)

        entry = await self.io("read_route_pool_entry", self.route_pool.get, route_id)
        existing = await self.io("read_assignment", self.assignments.get_by_route, route_id)

        if existing is not None:
            return await self._resume_assign(existing, entry, driver_id, vehicle_id)
        if entry is None:
            raise ResourceNotFoundError("Route", route_id)

        # Step 1
        snapshot = await self.io("snapshot_bookings", self.bookings.snapshot_for_assignment, route_id)
        logger.info("assign %s: snapshotted %d bookings", route_id, len(snapshot))

        values = dict(
            id=uuid.uuid4().hex,
            route_id=entry.id,
            name=entry.name,
            origin=entry.origin,
            destination=entry.destination,
            waypoints=list(entry.waypoints or []),
            route_created_at=entry.created_at,
            assigned_driver_id=driver.id,
            assigned_driver_name=driver.display_name,
            assigned_vehicle_id=vehicle.id,
            assigned_vehicle_info=vehicle.label,
            passengers=build_manifest(snapshot),
            assigned_at=datetime.now(timezone.utc),
            status=AssignmentStatus.ASSIGNED,
        )

        await self._recheck_assignable(route_id)

        # Step 2
        try:
            assignment = await self.io("persist_assignment", self.assignments.create, values)
        except ConflictError:
            # Our own insert may have committed before a timeout cut the attempt short
            current = await self.io("read_assignment", self.assignments.get_by_route, route_id)
            if current is None or current.id != values["id"]:
                raise
            assignment = current
        logger.info("assign %s: persisted assignment %s", route_id, assignment.id)

        await self.finish_assign(assignment)

        await log_event(
            self.session_factory,
            AuditAction.ROUTE_ASSIGNED,
            actor=self.actor,
            route_id=route_id,
            metadata={
                "assignment_id": assignment.id,
                "driver_id": driver.id,
                "vehicle_id": vehicle.id,
                "passenger_count": len(assignment.passengers),
            }
        )
        return assignment.id

    async def _recheck_assignable(self, route_id: str) -> None:
        """Optimistic precondition check issued right before the first write."""
        entry = await self.io("recheck_route_pool_entry", self.route_pool.get, route_id)
        existing = await self.io("recheck_assignment", self.assignments.get_by_route, route_id)
        if entry is None or existing is not None:
            raise ConflictError(
                f"Route {route_id} changed while it was being assigned",
                details={"routeId": route_id},
            )

    async def _resume_assign(
        self,
        existing: AssignedRoute,
        entry: Optional[RoutePoolEntry],
        driver_id: str,
        vehicle_id: str
    ) -> str:
        route_id = existing.route_id

        if existing.status == AssignmentStatus.UNASSIGNING:
            raise ConflictError(
                f"Route {route_id} is being unassigned",
                details={"routeId": route_id, "assignmentId": existing.id},
            )
        if entry is None:
            raise ConflictError(
                f"Route {route_id} is already assigned",
                details={"routeId": route_id, "assignmentId": existing.id},
            )
        if existing.assigned_driver_id != driver_id or existing.assigned_vehicle_id != vehicle_id:
            raise ConflictError(
                f"Route {route_id} is being assigned to another driver or vehicle",
                details={"routeId": route_id, "assignmentId": existing.id},
            )

        logger.info("assign %s: resuming assignment %s after step %s",
                    route_id, existing.id, AssignStep.ASSIGNMENT_PERSISTED.value)
        await self.finish_assign(existing)
        return existing.id

    async def finish_assign(self, assignment: AssignedRoute) -> int:
        """
        Steps 3 and 4 of assign(). Safe to re-run.

        Returns:
            Number of bookings confirmed by this call
        """
        route_id = assignment.route_id
        step = AssignStep.ASSIGNMENT_PERSISTED
        try:
            await self._ensure_still_assigned(assignment)
            confirmed = await self.io(
                "confirm_bookings",
                self.bookings.confirm_for_assignment,
                route_id,
                passenger_user_ids(assignment),
                assignment.assigned_driver_id,
                assignment.assigned_vehicle_id,
                assignment.id,
            )
            step = AssignStep.BOOKINGS_CONFIRMED
            logger.info("assign %s: confirmed %d bookings", route_id, confirmed)

            await self._ensure_still_assigned(assignment)
            deleted = await self.io("delete_route_pool_entry", self.route_pool.delete, route_id, assignment.id)
            if not deleted:
                # Either a previous run deleted it, or the assignment moved on meanwhile
                await self._ensure_still_assigned(assignment)
            step = AssignStep.ROUTE_POOL_ENTRY_DELETED
        except ConflictError:
            raise
        except (AppException, SQLAlchemyError) as e:
            logger.error("assign %s: stopped after %s: %s", route_id, step.value, e)
            raise PartialFailureError("assign", route_id, step.value, e) from e

        return confirmed

    async def _ensure_still_assigned(self, assignment: AssignedRoute) -> None:
        """
        Re-read the assignment before an assign step writes.

        Raises:
            ConflictError: if it was deleted or unassign() has started on it
        """
        current = await self.io("recheck_assignment", self.assignments.get, assignment.id)
        if current is None or current.status != AssignmentStatus.ASSIGNED:
            logger.warning("assign %s: assignment %s is no longer assigned, stopping",
                           assignment.route_id, assignment.id)
            raise ConflictError(
                f"Route {assignment.route_id} is being unassigned",
                details={"routeId": assignment.route_id, "assignmentId": assignment.id},
            )

    # ------------------------------------------------------------------
    # confirmAll
    # ------------------------------------------------------------------

    async def confirm_all(self, route_id: str) -> Result[int]:
        """
        Confirm every pending booking on a route without assigning a driver.

        Returns:
            Result carrying the number of bookings transitioned
        """
        try:
            count = await self.io("confirm_all", self.bookings.confirm_pending, route_id)
        except AppException as e:
            logger.warning("confirm_all(%s) failed: %s", route_id, e.message)
            return Result.failure(e)

        logger.info("confirm_all %s: confirmed %d bookings", route_id, count)
        if count:
            await log_event(
                self.session_factory,
                AuditAction.BOOKINGS_CONFIRMED,
                actor=self.actor,
                route_id=route_id,
                metadata={"count": count}
            )
        return Result.success(count)

    # ------------------------------------------------------------------
    # unassign
    # ------------------------------------------------------------------

    async def unassign(self, assignment_id: str) -> Result[str]:
        """
        Reverse an assignment, restoring the route pool entry under its
        original route id.

        Returns:
            Result carrying the route id, or one of: ResourceNotFoundError,
            ConflictError, TransientError, PartialFailureError
        """
        try:
            return Result.success(await self._unassign(assignment_id))
        except AppException as e:
            logger.warning("unassign(%s) failed: %s", assignment_id, e.message)
            return Result.failure(e)

    async def _unassign(self, assignment_id: str) -> str:
        if not assignment_id:
            raise InvalidSelectionError("Please select an assignment")

        # Step 1
        assignment = await self.io("read_assignment", self.assignments.get, assignment_id)
        if assignment is None:
            raise ResourceNotFoundError("Assignment", assignment_id)

        if assignment.status == AssignmentStatus.UNASSIGNING:
            logger.info("unassign %s: resuming after step %s",
                        assignment.route_id, UnassignStep.ASSIGNMENT_MARKED.value)
        else:
            # Step 2: the conditional update doubles as the precondition re-check
            marked = await self.io("mark_assignment_unassigning", self.assignments.mark_unassigning, assignment_id)
            if not marked:
                current = await self.io("read_assignment", self.assignments.get, assignment_id)
                if current is not None and current.status == AssignmentStatus.ASSIGNED:
                    # Still ASSIGNED but not markable: its route pool entry is still there
                    raise ConflictError(
                        f"Route {assignment.route_id} is still being assigned",
                        details={"assignmentId": assignment_id, "routeId": assignment.route_id},
                    )
                raise ConflictError(
                    f"Assignment {assignment_id} changed while it was being unassigned",
                    details={"assignmentId": assignment_id, "routeId": assignment.route_id},
                )
            assignment.status = AssignmentStatus.UNASSIGNING

        reset = await self.finish_unassign(assignment)

        await log_event(
            self.session_factory,
            AuditAction.ROUTE_UNASSIGNED,
            actor=self.actor,
            route_id=assignment.route_id,
            metadata={
                "assignment_id": assignment.id,
                "driver_id": assignment.assigned_driver_id,
                "bookings_reset": reset,
            }
        )
        return assignment.route_id

    async def finish_unassign(self, assignment: AssignedRoute) -> int:
        """
        Steps 3 to 5 of unassign(). Safe to re-run.

        Returns:
            Number of bookings reset by this call
        """
        route_id = assignment.route_id
        step = UnassignStep.ASSIGNMENT_MARKED
        try:
            await self.io(
                "restore_route_pool_entry",
                self.route_pool.restore,
                route_id,
                assignment.name,
                assignment.origin,
                assignment.destination,
                assignment.waypoints,
                assignment.route_created_at,
            )
            step = UnassignStep.ROUTE_POOL_ENTRY_RESTORED

            reset = await self.io("reset_bookings", self.bookings.reset_confirmed, route_id)
            step = UnassignStep.BOOKINGS_RESET
            logger.info("unassign %s: reset %d bookings", route_id, reset)

            await self.io("delete_assignment", self.assignments.delete, assignment.id)
            step = UnassignStep.ASSIGNMENT_DELETED
        except (AppException, SQLAlchemyError) as e:
            logger.error("unassign %s: stopped after %s: %s", route_id, step.value, e)
            raise PartialFailureError("unassign", route_id, step.value, e) from e

        return reset

    # ------------------------------------------------------------------
    # Single booking decisions
    # ------------------------------------------------------------------

    async def decide_booking(self, booking_id: str, decision: BookingDecision) -> Result[BookingStatus]:
        """Confirm or reject one pending booking. Rejection is terminal."""
        try:
            booking = await self.io("read_booking", self.bookings.get, booking_id)
            if booking is None:
                raise ResourceNotFoundError("Booking", booking_id)
            if booking.status != BookingStatus.PENDING:
                raise ConflictError(
                    f"Booking already decided with status: {booking.status.value}",
                    details={"bookingId": booking_id},
                )

            new_status = BookingStatus.CONFIRMED if decision == BookingDecision.CONFIRM else BookingStatus.REJECTED
            updated = await self.io("decide_booking", self.bookings.decide, booking_id, new_status)
            if not updated:
                raise ConflictError(
                    f"Booking {booking_id} changed while it was being decided",
                    details={"bookingId": booking_id},
                )
        except AppException as e:
            logger.warning("decide_booking(%s, %s) failed: %s", booking_id, decision.value, e.message)
            return Result.failure(e)

        await log_event(
            self.session_factory,
            AuditAction.BOOKING_CONFIRMED if new_status == BookingStatus.CONFIRMED else AuditAction.BOOKING_REJECTED,
            actor=self.actor,
            route_id=booking.route_id,
            metadata={"booking_id": booking_id, "user_id": booking.user_id}
        )
        return Result.success(new_status)
