"""
Concurrency Tests.

Validates that racing operators cannot double-assign a route.
"""

import asyncio

import pytest

from ridepool_backend.app.core.exceptions import ConflictError
from ridepool_backend.app.core.reliability import RetryPolicy
from ridepool_backend.app.domain.assignment.orchestrator import AssignmentOrchestrator
from ridepool_backend.app.models.booking_enums import BookingStatus

FAST_RETRY = RetryPolicy(timeout=5.0, max_attempts=3, base_delay=0.01, max_delay=0.02)


@pytest.mark.asyncio
async def test_concurrent_assign_exactly_one_wins(orchestrator, fx, route_with_bookings):
    """Two operators assign R1 to different drivers at the same time."""
    first, second = await asyncio.gather(
        orchestrator.assign("R1", "D1", "V1"),
        orchestrator.assign("R1", "D2", "V2"),
    )

    results = [first, second]
    winners = [r for r in results if r.ok]
    losers = [r for r in results if not r.ok]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0].error, ConflictError)

    [assignment] = await fx.assignments_for("R1")
    assert assignment.id == winners[0].value

    # Bookings carry the winner's driver only
    bookings = await fx.bookings_for("R1")
    assert all(b.status == BookingStatus.CONFIRMED for b in bookings)
    assert {b.assigned_driver_id for b in bookings} == {assignment.assigned_driver_id}
    assert await fx.pool_entry("R1") is None


@pytest.mark.asyncio
async def test_concurrent_unassign_single_restore(orchestrator, fx, route_with_bookings):
    """Two unassigns of the same assignment leave exactly one pool entry and no assignment."""
    assignment_id = (await orchestrator.assign("R1", "D1", "V1")).unwrap()

    results = await asyncio.gather(
        orchestrator.unassign(assignment_id),
        orchestrator.unassign(assignment_id),
    )

    assert any(r.ok for r in results)
    for r in results:
        if not r.ok:
            assert r.error.status_code in (404, 409, 500)

    assert await fx.pool_entry("R1") is not None
    assert await fx.assignments_for("R1") == []
    assert all(b.status == BookingStatus.PENDING for b in await fx.bookings_for("R1"))


@pytest.mark.asyncio
async def test_concurrent_confirm_all_counts_each_booking_once(orchestrator, fx, route_with_bookings):
    results = await asyncio.gather(*(orchestrator.confirm_all("R1") for _ in range(3)))

    assert sum(r.value for r in results) == 3
    assert all(b.status == BookingStatus.CONFIRMED for b in await fx.bookings_for("R1"))


@pytest.mark.asyncio
async def test_identical_concurrent_assigns_leave_one_assignment(orchestrator, fx, route_with_bookings):
    """
    Same route, driver and vehicle from two operators.

    The later request may take the resume path and report the same
    assignment, or lose the insert and get a conflict. Never two assignments.
    """
    results = await asyncio.gather(
        orchestrator.assign("R1", "D1", "V1"),
        orchestrator.assign("R1", "D1", "V1"),
    )

    [assignment] = await fx.assignments_for("R1")
    assert any(r.ok for r in results)
    for r in results:
        if r.ok:
            assert r.value == assignment.id
        else:
            assert isinstance(r.error, ConflictError)

    assert all(b.assigned_driver_id == "D1" for b in await fx.bookings_for("R1"))
    assert await fx.pool_entry("R1") is None


@pytest.mark.asyncio
async def test_unassign_while_assign_in_progress_conflicts(orchestrator, session_factory, fx,
                                                           route_with_bookings, mocker):
    """A second operator unassigns between assign's persist and confirm steps."""
    other_operator = AssignmentOrchestrator(session_factory, retry_policy=FAST_RETRY)
    real_confirm = orchestrator.bookings.confirm_for_assignment
    unassign_results = []

    async def unassign_first(route_id, user_ids, driver_id, vehicle_id, assignment_id=None):
        unassign_results.append(await other_operator.unassign(assignment_id))
        return await real_confirm(route_id, user_ids, driver_id, vehicle_id, assignment_id)

    mocker.patch.object(orchestrator.bookings, "confirm_for_assignment", side_effect=unassign_first)

    result = await orchestrator.assign("R1", "D1", "V1")

    assert result.ok
    [unassigned] = unassign_results
    assert isinstance(unassigned.error, ConflictError)
    assert "still being assigned" in unassigned.error.message

    # The route ends up assigned, with bookings pointing at the live assignment
    [assignment] = await fx.assignments_for("R1")
    assert assignment.id == result.value
    assert await fx.pool_entry("R1") is None
    bookings = await fx.bookings_for("R1")
    assert all(b.status == BookingStatus.CONFIRMED and b.assigned_driver_id == "D1" for b in bookings)
