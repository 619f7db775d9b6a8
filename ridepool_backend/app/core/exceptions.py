"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers. The
assignment workflow returns these exceptions inside explicit results; the
HTTP layer re-raises them and the handlers below render them.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, Optional

logger = logging.getLogger("ridepool.errors")


class AppException(Exception):
    """Base application exception."""

    retryable = False

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when a route, driver, vehicle, booking or assignment is missing."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class InvalidSelectionError(AppException):
    """Raised when a required driver or vehicle selection is missing."""

    def __init__(self, message: str = "Please select both driver and vehicle", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_002",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class ConflictError(AppException):
    """
    Raised when a precondition changed between read and write.

    Never retried internally: the caller must re-fetch and decide again.
    """

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class TransientError(AppException):
    """Raised when an I/O call kept timing out after bounded retries."""

    retryable = True

    def __init__(self, operation: str, attempts: int, cause: Optional[BaseException] = None):
        super().__init__(
            message=f"{operation} did not complete after {attempts} attempts",
            error_code="ERR_TRANSIENT_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={
                "operation": operation,
                "attempts": attempts,
                "cause": type(cause).__name__ if cause else None,
            }
        )


class PartialFailureError(AppException):
    """
    Raised when some but not all saga steps committed.

    Carries the last completed step so a retry of the same operation, or a
    reconciliation sweep, resumes at the next one.
    """

    retryable = True

    def __init__(self, operation: str, route_id: str, last_completed_step: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.route_id = route_id
        self.last_completed_step = last_completed_step
        super().__init__(
            message=f"{operation} for route {route_id} stopped after step {last_completed_step}",
            error_code="ERR_PARTIAL_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={
                "operation": operation,
                "routeId": route_id,
                "lastCompletedStep": last_completed_step,
                "cause": getattr(cause, "message", None) or (str(cause) if cause else None),
            }
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
