"""
Ride assignment API tests.

Status codes and error payloads of the HTTP surface.
"""

import pytest

from ridepool_backend.app.models.booking_enums import BookingStatus

BASE = "/v1/ride-assign"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "req-42"})

    assert response.headers["X-Correlation-ID"] == "req-42"


@pytest.mark.asyncio
async def test_group_view(client, fx, route_with_bookings):
    await fx.route("R2")
    await fx.booking("B21", "R2")

    response = await client.get(f"{BASE}/groups")

    assert response.status_code == 200
    data = response.json()
    assert [g["routeId"] for g in data["groups"]] == ["R1", "R2"]
    assert data["groups"][0]["count"] == 3
    assert data["groups"][0]["earliestPickup"] is not None
    assert data["totalBookings"] == 4


@pytest.mark.asyncio
async def test_list_bookings_with_filters(client, fx, route_with_bookings):
    response = await client.get(f"{BASE}/bookings", params={"search": "rider b2"})

    assert response.status_code == 200
    assert [b["id"] for b in response.json()["bookings"]] == ["B2"]


@pytest.mark.asyncio
async def test_list_bookings_rejects_unknown_sort_key(client, route_with_bookings):
    response = await client.get(f"{BASE}/bookings", params={"sort_by": "fare"})

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_assign_and_unassign_round_trip(client, fx, route_with_bookings):
    response = await client.post(
        f"{BASE}/routes/R1/assign",
        json={"driverId": "D1", "vehicleId": "V1"},
        headers={"X-Operator": "dispatch-desk"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["routeId"] == "R1"
    assert body["passengerCount"] == 3
    assignment_id = body["assignmentId"]

    detail = await client.get(f"{BASE}/assignments/{assignment_id}")
    assert detail.status_code == 200
    assert detail.json()["assignedVehicleInfo"] == "Toyota HiAce (KDA 123A)"
    assert len(detail.json()["passengers"]) == 3

    state = await client.get(f"{BASE}/routes/R1/state")
    assert state.json()["state"] == "ASSIGNED"

    listed = await client.get(f"{BASE}/assignments", params={"driver_id": "D1"})
    assert listed.json()["total"] == 1

    undo = await client.post(f"{BASE}/assignments/{assignment_id}/unassign")
    assert undo.status_code == 200
    assert undo.json() == {"assignmentId": assignment_id, "routeId": "R1"}

    route = await client.get(f"{BASE}/routes/R1")
    assert route.status_code == 200
    assert route.json()["waypoints"] == ["Museum Hill", "Kenyatta Avenue"]

    audit = await client.get("/v1/admin/ops/audit", params={"route_id": "R1", "action": "ROUTE_ASSIGNED"})
    assert audit.json()["events"][0]["actor"] == "dispatch-desk"


@pytest.mark.asyncio
async def test_assign_missing_vehicle_is_validation_error(client, route_with_bookings):
    response = await client.post(f"{BASE}/routes/R1/assign", json={"driverId": "D1"})

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION_002"
    assert response.json()["message"] == "Please select both driver and vehicle"


@pytest.mark.asyncio
async def test_assign_unknown_driver_is_not_found(client, route_with_bookings):
    response = await client.post(f"{BASE}/routes/R1/assign", json={"driverId": "D404", "vehicleId": "V1"})

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_assign_twice_is_conflict(client, route_with_bookings):
    first = await client.post(f"{BASE}/routes/R1/assign", json={"driverId": "D1", "vehicleId": "V1"})
    second = await client.post(f"{BASE}/routes/R1/assign", json={"driverId": "D2", "vehicleId": "V2"})

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error_code"] == "ERR_CONFLICT_001"


@pytest.mark.asyncio
async def test_unassign_unknown_assignment(client):
    response = await client.post(f"{BASE}/assignments/nope/unassign")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_confirm_all_endpoint(client, fx, route_with_bookings):
    first = await client.post(f"{BASE}/routes/R1/confirm-all")
    second = await client.post(f"{BASE}/routes/R1/confirm-all")

    assert first.json() == {"routeId": "R1", "count": 3}
    assert second.json()["count"] == 0


@pytest.mark.asyncio
async def test_booking_decisions(client, fx, route_with_bookings):
    confirmed = await client.patch(f"{BASE}/bookings/B1/confirm")
    rejected = await client.patch(f"{BASE}/bookings/B2/reject")
    repeated = await client.patch(f"{BASE}/bookings/B2/confirm")

    assert confirmed.json() == {"bookingId": "B1", "status": BookingStatus.CONFIRMED.value}
    assert rejected.json()["status"] == BookingStatus.REJECTED.value
    assert repeated.status_code == 409


@pytest.mark.asyncio
async def test_reconcile_endpoint(client, fx, route_with_bookings):
    await fx.booking("B31", "R3", status=BookingStatus.CONFIRMED, driver_id="D1", vehicle_id="V1")

    response = await client.post("/v1/admin/ops/reconcile")

    assert response.status_code == 200
    data = response.json()
    assert data["orphansReset"] == {"R3": 1}
    assert data["repaired"] == 1
