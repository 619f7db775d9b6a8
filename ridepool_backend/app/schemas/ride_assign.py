"""
Ride assignment schemas.

Field names serialize in camelCase, matching the record shapes the booking
screens and driver dashboard already read.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, List, Optional

from ridepool_backend.app.models.booking_enums import BookingStatus
from ridepool_backend.app.models.route_enums import AssignmentStatus, RoutePoolStatus, RouteState


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class BookingResponse(CamelModel):
    """Schema for booking response."""
    id: str
    route_id: str
    route_name: Optional[str] = None
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    pickup_time: Optional[datetime] = None
    dropoff_time: Optional[datetime] = None
    booked_at: Optional[datetime] = None
    status: BookingStatus
    assigned_driver_id: Optional[str] = None
    assigned_vehicle_id: Optional[str] = None


class BookingListResponse(CamelModel):
    bookings: List[BookingResponse]
    total: int


class RouteGroupResponse(CamelModel):
    """Pending bookings of one route."""
    route_id: str
    route_name: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    count: int
    earliest_pickup: Optional[datetime] = None
    latest_pickup: Optional[datetime] = None
    bookings: List[BookingResponse]


class GroupViewResponse(CamelModel):
    groups: List[RouteGroupResponse]
    total_bookings: int


class RoutePoolEntryResponse(CamelModel):
    """Schema for route pool entry response."""
    id: str
    name: str
    origin: Optional[str] = None
    destination: Optional[str] = None
    waypoints: List[Any] = []
    status: RoutePoolStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RouteStateResponse(CamelModel):
    route_id: str
    state: RouteState


class Passenger(CamelModel):
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None


class AssignmentResponse(CamelModel):
    """Schema for assigned route response."""
    id: str
    route_id: str
    name: str
    origin: Optional[str] = None
    destination: Optional[str] = None
    waypoints: List[Any] = []
    assigned_driver_id: str
    assigned_driver_name: str
    assigned_vehicle_id: str
    assigned_vehicle_info: str
    passengers: List[Passenger] = []
    passenger_count: int = 0
    assigned_at: Optional[datetime] = None
    status: AssignmentStatus


class AssignmentListResponse(CamelModel):
    assignments: List[AssignmentResponse]
    total: int


class AssignRequest(CamelModel):
    """Driver and vehicle chosen for a route. Both are required."""
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None


class AssignResponse(CamelModel):
    assignment_id: str
    route_id: str
    passenger_count: int


class ConfirmAllResponse(CamelModel):
    route_id: str
    count: int


class UnassignResponse(CamelModel):
    assignment_id: str
    route_id: str


class BookingDecisionResponse(CamelModel):
    booking_id: str
    status: BookingStatus


class ReconciliationResponse(CamelModel):
    assigns_resumed: List[str]
    unassigns_resumed: List[str]
    orphans_reset: Dict[str, int]
    failures: Dict[str, str]
    repaired: int
