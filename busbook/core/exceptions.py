"""Booking workflow exceptions modelled on RFC 9457 Problem Details."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class BookingError(Exception):
    """
    Base exception carrying a Problem Details payload.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        code: Optional[str] = None,
        retryable: bool = False,
        extensions: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the exception.

        Args:
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            code: Application-specific error code
            retryable: Whether re-invoking the same operation may succeed
            extensions: Additional problem-specific information
        """
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or "about:blank"
        self.code = code
        self.retryable = retryable
        self.extensions = extensions or {}

        self.problem_details: Dict[str, Any] = {
            "type": self.type_uri,
            "title": self.title,
            "retryable": self.retryable,
        }
        if self.detail:
            self.problem_details["detail"] = self.detail
        if self.code:
            self.problem_details["code"] = self.code
        self.problem_details.update(self.extensions)

        super().__init__(detail or title)

    @property
    def user_message(self) -> str:
        """Message suitable for showing inline next to the failed action."""
        return self.detail or self.title


class ValidationError(BookingError):
    """Locally detected problem that blocks a transition. Never sent to the backend."""

    def __init__(
        self,
        detail: str = "The booking data failed validation",
        violations: Optional[List[Dict[str, str]]] = None,
        code: str = "VALIDATION_FAILED",
    ):
        self.violations = violations or []
        extensions = {}
        if self.violations:
            extensions["violations"] = self.violations

        super().__init__(
            title="Validation Error",
            detail=detail,
            type_uri="https://busbook.dev/problems/validation-error",
            code=code,
            extensions=extensions,
        )


class InvariantViolation(ValidationError):
    """Seat selection and passenger list disagree at submit time."""

    def __init__(self, seat_count: int, passenger_count: int):
        super().__init__(
            detail=(
                f"Selected {seat_count} seat(s) for {passenger_count} passenger(s). "
                "Each passenger needs exactly one seat."
            ),
            violations=[{
                "path": "seats",
                "message": "seat count must equal passenger count",
            }],
            code="SEAT_PASSENGER_MISMATCH",
        )
        self.seat_count = seat_count
        self.passenger_count = passenger_count


class NotFoundError(BookingError):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            title="Resource Not Found",
            detail=detail,
            type_uri="https://busbook.dev/problems/resource-not-found",
            code="NOT_FOUND",
            extensions=extensions,
        )


class ConflictError(BookingError):
    """The request conflicts with the current state of the workflow."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the booking",
        code: str = "CONFLICT",
        extensions: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            title="Conflict",
            detail=detail,
            type_uri="https://busbook.dev/problems/conflict",
            code=code,
            extensions=extensions,
        )


class CancellationNotAllowedError(ConflictError):
    """Booking status or departure time forbids cancellation."""

    def __init__(self, booking_id: str, reason: str):
        super().__init__(
            detail=f"Booking {booking_id} cannot be cancelled: {reason}",
            code="CANCELLATION_NOT_ALLOWED",
            extensions={"booking_id": booking_id},
        )


class BackendError(BookingError):
    """Failure reported by, or while reaching, the backend data service."""

    def __init__(
        self,
        detail: str = "Could not connect to server. Please try again later.",
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = True,
        code: str = "BACKEND_ERROR",
        error_id: Optional[str] = None,
    ):
        extensions: Dict[str, Any] = {
            "error_id": error_id or str(uuid.uuid4()),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if operation:
            extensions["operation"] = operation
        if status_code is not None:
            extensions["status_code"] = status_code

        super().__init__(
            title="Backend Error",
            detail=detail,
            type_uri="https://busbook.dev/problems/backend-error",
            code=code,
            retryable=retryable,
            extensions=extensions,
        )
        self.operation = operation
        self.status_code = status_code


class SeatUnavailableError(BackendError):
    """The backend refused the booking because a seat is already taken."""

    def __init__(self, seats: Optional[List[str]] = None, detail: Optional[str] = None):
        if not detail:
            detail = "One or more selected seats are no longer available"
            if seats:
                detail += f": {', '.join(seats)}"
        super().__init__(
            detail=detail,
            operation="create_booking",
            status_code=409,
            retryable=False,
            code="SEAT_UNAVAILABLE",
        )
        self.seats = seats or []
        if self.seats:
            self.problem_details["seats"] = self.seats


class RouteUnavailableError(BackendError):
    """The backend has no bus matching the offer being booked."""

    def __init__(self, route_offer_id: str):
        super().__init__(
            detail="This bus is no longer available. Please search again.",
            operation="create_booking",
            status_code=404,
            retryable=False,
            code="ROUTE_UNAVAILABLE",
        )
        self.route_offer_id = route_offer_id
        self.problem_details["route_offer_id"] = route_offer_id
