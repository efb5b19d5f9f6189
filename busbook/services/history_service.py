"""Booking history and cancellation."""

from datetime import datetime, time, timezone
from typing import Callable, List, Optional

from ..backends.base import BackendDataService, IdentityProvider
from ..core.exceptions import BackendError, BookingError, CancellationNotAllowedError, NotFoundError
from ..core.observability import get_logger, metrics_collector
from ..core.operations import OperationTracker
from ..core.policy import BookingPolicy
from ..schemas.booking import BookingStatus, ConfirmedBooking

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def departure_moment(booking: ConfirmedBooking) -> Optional[datetime]:
    """When the booked trip leaves; falls back to midnight UTC of the travel date."""
    moment = booking.departure_at
    if moment is None and booking.travel_date is not None:
        moment = datetime.combine(booking.travel_date, time.min)
    if moment is not None and moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class BookingHistoryService:
    """The signed-in user's bookings, with cancellation under the booking policy."""

    def __init__(
        self,
        backend: BackendDataService,
        identity: IdentityProvider,
        policy: BookingPolicy,
        tracker: Optional[OperationTracker] = None,
        clock: Optional[Clock] = None,
    ):
        self.backend = backend
        self.identity = identity
        self.policy = policy
        self.tracker = tracker or OperationTracker()
        self.clock = clock or _utcnow
        self.bookings: List[ConfirmedBooking] = []

    @property
    def is_loading(self) -> bool:
        return self.tracker["history"].is_loading

    @property
    def error(self) -> Optional[str]:
        return self.tracker["history"].error

    async def refresh(self) -> Optional[List[ConfirmedBooking]]:
        """Reload the booking list; None when it failed or a newer refresh won."""
        user_id = self.identity.current_user_id()
        status = self.tracker["history"]
        ticket = status.issue()
        status.clear_error()

        try:
            bookings = await self.backend.list_bookings(user_id)
        except BackendError as e:
            if status.is_latest(ticket):
                status.fail(e.user_message)
                logger.warning("Booking history refresh failed", user_id=user_id, code=e.code)
            return None
        finally:
            status.finish()

        if not status.is_latest(ticket):
            metrics_collector.record_stale_response("history")
            return None

        self.bookings = bookings
        return bookings

    def upcoming(self) -> List[ConfirmedBooking]:
        """Confirmed bookings that have not departed yet."""
        now = self.clock()
        return [
            b for b in self.bookings
            if b.status is BookingStatus.CONFIRMED
            and (departure_moment(b) is None or departure_moment(b) > now)
        ]

    def hours_until_departure(self, booking: ConfirmedBooking, now: Optional[datetime] = None) -> Optional[float]:
        departure = departure_moment(booking)
        if departure is None:
            return None
        now = now or self.clock()
        return (departure - now).total_seconds() / 3600

    def cancellation_blocker(self, booking: ConfirmedBooking, now: Optional[datetime] = None) -> Optional[str]:
        """Why the booking cannot be cancelled, or None when it can."""
        if booking.status is not BookingStatus.CONFIRMED:
            return f"booking is {booking.status.value}"

        window = self.policy.cancellation_window_hours
        if window is None:
            return None

        hours = self.hours_until_departure(booking, now)
        if hours is None:
            return "departure time is unknown"
        if hours < window:
            return f"cancellations close {window:g} hours before departure"
        return None

    def is_cancellable(self, booking: ConfirmedBooking, now: Optional[datetime] = None) -> bool:
        return self.cancellation_blocker(booking, now) is None

    def refund_percentage(self, booking: ConfirmedBooking, now: Optional[datetime] = None) -> int:
        """Refund owed if the booking were cancelled now."""
        if booking.status is not BookingStatus.CONFIRMED:
            return 0
        hours = self.hours_until_departure(booking, now)
        if hours is None:
            return 0
        return self.policy.refund_percentage(hours)

    def _find(self, booking_id: str) -> ConfirmedBooking:
        for booking in self.bookings:
            if booking.id == booking_id:
                return booking
        raise NotFoundError(resource_type="booking", resource_id=booking_id)

    async def cancel(self, booking_id: str) -> bool:
        """
        Cancel a booking from the loaded history.

        Returns:
            True when cancelled, False if the backend call failed (see
            ``tracker["cancel"].error``)

        Raises:
            NotFoundError: If the booking is not in the loaded history
            CancellationNotAllowedError: If its status or departure time forbids it
        """
        booking = self._find(booking_id)
        reason = self.cancellation_blocker(booking)
        if reason is not None:
            raise CancellationNotAllowedError(booking_id, reason)

        refund = self.refund_percentage(booking)
        status = self.tracker["cancel"]
        status.issue()
        status.clear_error()
        try:
            await self.backend.update_booking_status(booking_id, BookingStatus.CANCELLED)
        except BookingError as e:
            status.fail(e.user_message)
            logger.warning("Booking cancellation failed", booking_id=booking_id, code=e.code)
            return False
        finally:
            status.finish()

        cancelled = booking.model_copy(update={"status": BookingStatus.CANCELLED})
        self.bookings = [cancelled if b.id == booking_id else b for b in self.bookings]
        metrics_collector.record_booking_cancelled()
        logger.info("Booking cancelled", booking_id=booking_id, refund_percentage=refund)
        return True
