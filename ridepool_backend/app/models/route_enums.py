"""
Route-related enumerations.
"""

import enum


class RoutePoolStatus(str, enum.Enum):
    """Route pool entries only ever wait for a driver."""
    PENDING = "pending"


class AssignmentStatus(str, enum.Enum):
    """
    Assigned route status.

    ASSIGNED: Committed pairing (also while assign() is still finishing)
    UNASSIGNING: unassign() has started; the route is on its way back to the pool
    """
    ASSIGNED = "assigned"
    UNASSIGNING = "unassigning"


class RouteState(str, enum.Enum):
    """Per-route saga state, derived from which records exist."""
    UNASSIGNED = "UNASSIGNED"
    ASSIGNING = "ASSIGNING"
    ASSIGNED = "ASSIGNED"
    UNASSIGNING = "UNASSIGNING"
    UNKNOWN = "UNKNOWN"
