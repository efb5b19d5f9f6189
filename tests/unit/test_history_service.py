"""Unit tests for booking history and cancellation."""

from datetime import datetime, timedelta, timezone

import pytest

from busbook.backends.base import IdentityProvider
from busbook.core.exceptions import BackendError, CancellationNotAllowedError, NotFoundError
from busbook.core.policy import BookingPolicy
from busbook.schemas.booking import BookingStatus
from busbook.services.history_service import BookingHistoryService, departure_moment
from conftest import TRAVEL_DATE, make_confirmed


@pytest.fixture
def history(fake_backend, identity, fixed_now):
    fake_backend.bookings = [
        make_confirmed(id="booking-1"),
        make_confirmed(id="booking-2", status=BookingStatus.COMPLETED),
        make_confirmed(id="booking-3", departure_at=fixed_now + timedelta(hours=6)),
        make_confirmed(id="other", user_id="user-2"),
    ]
    return BookingHistoryService(fake_backend, identity, BookingPolicy(), clock=lambda: fixed_now)


@pytest.mark.asyncio
async def test_refresh_loads_own_bookings(history, fake_backend):
    """Test only the signed-in user's bookings are loaded."""
    bookings = await history.refresh()

    assert [b.id for b in bookings] == ["booking-1", "booking-2", "booking-3"]
    assert fake_backend.calls_to("list_bookings") == [("list_bookings", "user-1")]
    assert history.is_loading is False


@pytest.mark.asyncio
async def test_refresh_failure_keeps_previous_list(history, fake_backend):
    """Test a failed refresh records the error and keeps the old list."""
    await history.refresh()
    fake_backend.errors["list_bookings"] = BackendError()

    assert await history.refresh() is None

    assert len(history.bookings) == 3
    assert history.error is not None


class SignedOutIdentity(IdentityProvider):
    def current_user_id(self) -> str:
        raise RuntimeError("nobody is signed in")


@pytest.mark.asyncio
async def test_refresh_without_user_does_not_stick_loading(fake_backend, fixed_now):
    """Test a failing identity lookup leaves no operation marked as loading."""
    history = BookingHistoryService(fake_backend, SignedOutIdentity(), BookingPolicy(), clock=lambda: fixed_now)

    with pytest.raises(RuntimeError):
        await history.refresh()

    assert history.is_loading is False
    assert history.tracker.is_loading is False
    assert fake_backend.calls_to("list_bookings") == []


@pytest.mark.asyncio
async def test_cancellable_rules(history, fixed_now):
    """Test status and the 24 hour window decide cancellability."""
    await history.refresh()
    upcoming, completed, soon = history.bookings

    assert history.is_cancellable(upcoming) is True
    assert history.is_cancellable(completed) is False
    assert history.is_cancellable(soon) is False
    assert history.refund_percentage(upcoming) == 100
    assert history.refund_percentage(soon) == 0
    assert history.refund_percentage(completed) == 0


@pytest.mark.asyncio
async def test_cancel_updates_local_list(history, fake_backend):
    """Test a cancellation is sent to the backend and reflected locally."""
    await history.refresh()

    assert await history.cancel("booking-1") is True

    assert history.bookings[0].status is BookingStatus.CANCELLED
    assert fake_backend.calls_to("update_booking_status") == [
        ("update_booking_status", "booking-1", BookingStatus.CANCELLED)
    ]
    assert history.is_cancellable(history.bookings[0]) is False


@pytest.mark.asyncio
async def test_cancel_inside_window_refused(history, fake_backend):
    """Test cancelling less than 24 hours before departure is refused locally."""
    await history.refresh()

    with pytest.raises(CancellationNotAllowedError) as exc_info:
        await history.cancel("booking-3")

    assert exc_info.value.code == "CANCELLATION_NOT_ALLOWED"
    assert fake_backend.calls_to("update_booking_status") == []


@pytest.mark.asyncio
async def test_cancel_completed_refused(history):
    """Test only confirmed bookings can be cancelled."""
    await history.refresh()

    with pytest.raises(CancellationNotAllowedError):
        await history.cancel("booking-2")


@pytest.mark.asyncio
async def test_unconditional_policy_ignores_window(fake_backend, identity, fixed_now):
    """Test a policy without a window allows late cancellation."""
    fake_backend.bookings = [make_confirmed(departure_at=fixed_now + timedelta(hours=1))]
    history = BookingHistoryService(
        fake_backend, identity, BookingPolicy(cancellation_window_hours=None), clock=lambda: fixed_now
    )
    await history.refresh()

    assert await history.cancel("booking-1") is True


@pytest.mark.asyncio
async def test_cancel_backend_failure_is_captured(history, fake_backend):
    """Test a backend failure leaves the booking unchanged and sets the cancel error."""
    await history.refresh()
    fake_backend.errors["update_booking_status"] = BackendError(detail="Server unavailable")

    assert await history.cancel("booking-1") is False

    assert history.bookings[0].status is BookingStatus.CONFIRMED
    assert history.tracker["cancel"].error == "Server unavailable"
    assert history.tracker["history"].error is None


@pytest.mark.asyncio
async def test_cancel_unknown_booking(history):
    """Test cancelling a booking that is not loaded raises."""
    await history.refresh()

    with pytest.raises(NotFoundError):
        await history.cancel("nope")


@pytest.mark.asyncio
async def test_upcoming(history):
    """Test upcoming bookings are confirmed and not yet departed."""
    await history.refresh()

    assert [b.id for b in history.upcoming()] == ["booking-1", "booking-3"]


def test_departure_moment_falls_back_to_travel_date():
    """Test the travel date stands in for a missing departure timestamp."""
    booking = make_confirmed(departure_at=None)

    assert departure_moment(booking) == datetime.combine(TRAVEL_DATE, datetime.min.time(), tzinfo=timezone.utc)
    assert departure_moment(make_confirmed(departure_at=None, travel_date=None)) is None


def test_naive_departure_treated_as_utc():
    """Test naive departure timestamps are read as UTC."""
    booking = make_confirmed(departure_at=datetime(2030, 6, 15, 8, 0))

    assert departure_moment(booking).tzinfo is timezone.utc
