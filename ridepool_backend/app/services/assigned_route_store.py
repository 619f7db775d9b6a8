"""
Assigned route store.

Committed route assignments. A unique index on route_id allows one live
assignment per route; losing that race is reported as a conflict.
"""

from typing import Optional
from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ridepool_backend.app.core.exceptions import ConflictError
from ridepool_backend.app.models.assigned_route import AssignedRoute
from ridepool_backend.app.models.route_enums import AssignmentStatus
from ridepool_backend.app.models.route_pool import RoutePoolEntry


def assignment_is_live(assignment_id: str):
    """EXISTS clause: the assignment is still present with status ASSIGNED."""
    return (
        select(AssignedRoute.id)
        .where(
            AssignedRoute.id == assignment_id,
            AssignedRoute.status == AssignmentStatus.ASSIGNED,
        )
        .exists()
    )


class AssignedRouteStore:

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, assignment_id: str) -> Optional[AssignedRoute]:
        async with self._session_factory() as db:
            return await db.get(AssignedRoute, assignment_id)

    async def get_by_route(self, route_id: str) -> Optional[AssignedRoute]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AssignedRoute).where(AssignedRoute.route_id == route_id)
            )
            return result.scalar_one_or_none()

    async def list_assignments(
        self,
        driver_id: Optional[str] = None,
        status: Optional[AssignmentStatus] = None
    ) -> list[AssignedRoute]:
        query = select(AssignedRoute)
        if driver_id:
            query = query.where(AssignedRoute.assigned_driver_id == driver_id)
        if status:
            query = query.where(AssignedRoute.status == status)
        async with self._session_factory() as db:
            result = await db.execute(query.order_by(AssignedRoute.route_id))
            return list(result.scalars().all())

    async def create(self, values: dict) -> AssignedRoute:
        """
        Persist a new assignment built from `values`.

        Raises:
            ConflictError: if the route already has a live assignment
        """
        assignment = AssignedRoute(**values)
        async with self._session_factory() as db:
            db.add(assignment)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise ConflictError(
                    f"Route {assignment.route_id} already has an assignment",
                    details={"routeId": assignment.route_id},
                )
            await db.refresh(assignment)
        return assignment

    async def mark_unassigning(self, assignment_id: str) -> bool:
        """
        Flip ASSIGNED -> UNASSIGNING.

        Returns False if the row was not ASSIGNED, or if its route pool entry
        still exists (assign() has not finished with the route yet).
        """
        assign_in_progress = (
            select(RoutePoolEntry.id)
            .where(RoutePoolEntry.id == AssignedRoute.route_id)
            .correlate(AssignedRoute)
            .exists()
        )
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(AssignedRoute)
                    .where(
                        AssignedRoute.id == assignment_id,
                        AssignedRoute.status == AssignmentStatus.ASSIGNED,
                        ~assign_in_progress,
                    )
                    .values(status=AssignmentStatus.UNASSIGNING)
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount > 0

    async def delete(self, assignment_id: str) -> bool:
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    delete(AssignedRoute)
                    .where(AssignedRoute.id == assignment_id)
                    .execution_options(synchronize_session=False)
                )
            return result.rowcount > 0
