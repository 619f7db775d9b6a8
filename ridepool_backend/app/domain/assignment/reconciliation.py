"""
Reconciliation sweep.

Stateless repair pass over the three stores. Every action it takes is one of
the orchestrator's idempotent saga steps, so it can run while operators are
assigning and unassigning routes.

Rules:
1. Assignment marked UNASSIGNING -> finish the unassign.
2. Assignment ASSIGNED whose route pool entry still exists, or whose
   passengers are not all stamped -> finish the assign.
3. Confirmed bookings stamped with a driver on a route that has no live
   assignment -> back to pending.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from ridepool_backend.app.core.exceptions import AppException, ConflictError
from ridepool_backend.app.domain.assignment.orchestrator import AssignmentOrchestrator, passenger_user_ids
from ridepool_backend.app.models.route_enums import AssignmentStatus
from ridepool_backend.app.services.audit import AuditAction, log_event

logger = logging.getLogger("ridepool.reconciliation")


@dataclass
class ReconciliationReport:
    assigns_resumed: list[str] = field(default_factory=list)
    unassigns_resumed: list[str] = field(default_factory=list)
    orphans_reset: dict[str, int] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def repaired(self) -> int:
        return len(self.assigns_resumed) + len(self.unassigns_resumed) + len(self.orphans_reset)

    def as_dict(self) -> dict:
        return {
            "assignsResumed": self.assigns_resumed,
            "unassignsResumed": self.unassigns_resumed,
            "orphansReset": self.orphans_reset,
            "failures": self.failures,
            "repaired": self.repaired,
        }


class ReconciliationSweep:

    def __init__(self, orchestrator: AssignmentOrchestrator):
        self.orchestrator = orchestrator

    async def run(self) -> ReconciliationReport:
        """Run one pass. A failure on one route is recorded and the pass moves on."""
        orch = self.orchestrator
        report = ReconciliationReport()

        listed = await orch.io("list_assignments", orch.assignments.list_assignments)
        for stale in listed:
            route_id = stale.route_id
            try:
                # Operators may have moved the assignment on since it was listed
                assignment = await orch.io("read_assignment", orch.assignments.get, stale.id)
                if assignment is None:
                    continue

                if assignment.status == AssignmentStatus.UNASSIGNING:
                    await orch.finish_unassign(assignment)
                    report.unassigns_resumed.append(route_id)
                    continue

                pool_present = await orch.io("read_route_pool_entry", orch.route_pool.exists, route_id)
                awaiting = await orch.io(
                    "count_awaiting_bookings",
                    orch.bookings.count_awaiting_assignment,
                    route_id,
                    passenger_user_ids(assignment),
                )
                if pool_present or awaiting:
                    await orch.finish_assign(assignment)
                    report.assigns_resumed.append(route_id)
            except ConflictError as e:
                logger.info("Skipping route %s: %s", route_id, e.message)
            except AppException as e:
                logger.error("Reconciliation of route %s failed: %s", route_id, e.message)
                report.failures[route_id] = e.message

        stamped_routes = await orch.io("list_stamped_routes", orch.bookings.route_ids_with_stamped_bookings)
        for route_id in stamped_routes:
            try:
                live = await orch.io("read_assignment", orch.assignments.get_by_route, route_id)
                if live is not None:
                    continue
                reset = await orch.io("reset_orphaned_bookings", orch.bookings.reset_stamped, route_id)
                if reset:
                    report.orphans_reset[route_id] = reset
            except AppException as e:
                logger.error("Orphan reset for route %s failed: %s", route_id, e.message)
                report.failures[route_id] = e.message

        repairs = (
            [(route_id, "assign_resumed") for route_id in report.assigns_resumed]
            + [(route_id, "unassign_resumed") for route_id in report.unassigns_resumed]
            + [(route_id, "orphans_reset") for route_id in report.orphans_reset]
        )
        for route_id, repair in repairs:
            await log_event(
                orch.session_factory,
                AuditAction.ROUTE_RECONCILED,
                actor="system",
                route_id=route_id,
                metadata={"repair": repair}
            )

        if report.repaired or report.failures:
            logger.info("Reconciliation repaired %d routes, %d failures", report.repaired, len(report.failures))
        return report


async def run_periodically(
    sweep_factory: Callable[[], ReconciliationSweep],
    interval_seconds: float,
    stop: asyncio.Event
) -> None:
    """Background loop used by the application lifespan."""
    while not stop.is_set():
        try:
            await sweep_factory().run()
        except (AppException, SQLAlchemyError):
            logger.exception("Reconciliation sweep failed")
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass
