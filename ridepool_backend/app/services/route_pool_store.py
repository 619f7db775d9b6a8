"""
Route pool store.

Routes awaiting a driver and vehicle, keyed by their stable identity.
"""

import logging
from datetime import datetime
from typing import Optional
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ridepool_backend.app.models.route_pool import RoutePoolEntry
from ridepool_backend.app.models.route_enums import RoutePoolStatus
from ridepool_backend.app.services.assigned_route_store import assignment_is_live

logger = logging.getLogger("ridepool.stores.route_pool")


class RoutePoolStore:

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, route_id: str) -> Optional[RoutePoolEntry]:
        async with self._session_factory() as db:
            return await db.get(RoutePoolEntry, route_id)

    async def exists(self, route_id: str) -> bool:
        return await self.get(route_id) is not None

    async def list_all(self) -> list[RoutePoolEntry]:
        async with self._session_factory() as db:
            result = await db.execute(select(RoutePoolEntry).order_by(RoutePoolEntry.id))
            return list(result.scalars().all())

    async def restore(
        self,
        route_id: str,
        name: str,
        origin: Optional[str],
        destination: Optional[str],
        waypoints: Optional[list],
        created_at: Optional[datetime] = None
    ) -> bool:
        """
        Recreate a pool entry under its original id.

        Returns False when the entry is already present (nothing written).
        """
        async with self._session_factory() as db:
            if await db.get(RoutePoolEntry, route_id) is not None:
                return False

            entry = RoutePoolEntry(
                id=route_id,
                name=name,
                origin=origin,
                destination=destination,
                waypoints=list(waypoints or []),
                status=RoutePoolStatus.PENDING,
            )
            if created_at is not None:
                entry.created_at = created_at
            db.add(entry)
            try:
                await db.commit()
            except IntegrityError:
                # Restored concurrently by another caller
                await db.rollback()
                logger.info("Route pool entry %s restored concurrently", route_id)
                return False
        return True

    async def delete(self, route_id: str, assignment_id: Optional[str] = None) -> bool:
        """
        Delete a pool entry. Deleting an absent entry returns False, not an error.

        With `assignment_id`, the entry is only deleted while that assignment
        is still ASSIGNED.
        """
        query = delete(RoutePoolEntry).where(RoutePoolEntry.id == route_id)
        if assignment_id is not None:
            query = query.where(assignment_is_live(assignment_id))
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(query.execution_options(synchronize_session=False))
            return result.rowcount > 0
