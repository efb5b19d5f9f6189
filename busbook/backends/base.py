"""Interfaces of the external collaborators the booking workflow calls into."""

import secrets
import string
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, List, Optional

from ..schemas.booking import BookingStatus, ConfirmedBooking, CreateBookingRequest
from ..schemas.route import RouteOffer, StructuredLocation

DateRange = tuple[datetime, datetime]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp column; None when missing or malformed."""
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def clock_label(moment: Optional[datetime]) -> Optional[str]:
    """'08:00 AM' style label for a timestamp."""
    if moment is None:
        return None
    return moment.strftime("%I:%M %p")


def format_duration(departure: Optional[datetime], arrival: Optional[datetime]) -> Optional[str]:
    if departure is None or arrival is None:
        return None
    total_minutes = int((arrival - departure).total_seconds() // 60)
    if total_minutes < 0:
        return None
    return f"{total_minutes // 60}h {total_minutes % 60}m"


def generate_booking_reference(length: int = 8) -> str:
    """Generate a random booking reference such as 'BK7Q2M9XA1'."""
    alphabet = string.ascii_uppercase + string.digits
    return "BK" + ''.join(secrets.choice(alphabet) for _ in range(length))


def day_range(travel_date: date, tz: timezone = timezone.utc) -> DateRange:
    """Departure window covering the whole travel day."""
    start = datetime.combine(travel_date, time.min, tzinfo=tz)
    end = start + timedelta(days=1) - timedelta(seconds=1)
    return start, end


class BackendDataService(ABC):
    """
    Hosted data service holding routes and bookings.

    Implementations raise ``BackendError`` (or a subclass) for transport
    failures and constraint violations.
    """

    @abstractmethod
    async def query_routes(
        self,
        origin: str,
        destination: str,
        date_range: Optional[DateRange] = None,
    ) -> List[RouteOffer]:
        """Route offers between two locations departing within ``date_range``."""

    @abstractmethod
    async def create_booking(self, request: CreateBookingRequest) -> ConfirmedBooking:
        """Persist a booking; raises ``SeatUnavailableError`` on a double-booked seat."""

    @abstractmethod
    async def update_booking_status(self, booking_id: str, status: BookingStatus) -> None:
        """Change the status of a booking (used for cancellation)."""

    @abstractmethod
    async def list_bookings(self, user_id: str) -> List[ConfirmedBooking]:
        """Bookings of a user, newest first."""

    async def list_locations(self) -> List[StructuredLocation]:
        """Known locations for search suggestions."""
        return []


class IdentityProvider(ABC):
    """Supplies the stable identifier of the signed-in user."""

    @abstractmethod
    def current_user_id(self) -> str:
        """Return the user ID; raise if nobody is signed in."""


class StaticIdentity(IdentityProvider):
    """Identity fixed at construction time."""

    def __init__(self, user_id: str):
        if not user_id:
            raise ValueError("user_id cannot be empty")
        self.user_id = user_id

    def current_user_id(self) -> str:
        return self.user_id
