"""
Saga step identifiers and explicit operation results.
"""

import enum
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from ridepool_backend.app.core.exceptions import AppException

T = TypeVar("T")


class AssignStep(str, enum.Enum):
    """Steps of assign(), in commit order."""
    NONE = "NONE"
    BOOKINGS_SNAPSHOTTED = "BOOKINGS_SNAPSHOTTED"
    ASSIGNMENT_PERSISTED = "ASSIGNMENT_PERSISTED"
    BOOKINGS_CONFIRMED = "BOOKINGS_CONFIRMED"
    ROUTE_POOL_ENTRY_DELETED = "ROUTE_POOL_ENTRY_DELETED"


class UnassignStep(str, enum.Enum):
    """Steps of unassign(), in commit order."""
    NONE = "NONE"
    ASSIGNMENT_READ = "ASSIGNMENT_READ"
    ASSIGNMENT_MARKED = "ASSIGNMENT_MARKED"
    ROUTE_POOL_ENTRY_RESTORED = "ROUTE_POOL_ENTRY_RESTORED"
    BOOKINGS_RESET = "BOOKINGS_RESET"
    ASSIGNMENT_DELETED = "ASSIGNMENT_DELETED"


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of an orchestrator operation.

    Expected failures (not found, conflict, partial failure...) travel in
    `error` instead of being raised.
    """
    value: Optional[T] = None
    error: Optional[AppException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AppException) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value
