"""Unit tests for the booking session end to end against a fake backend."""

from datetime import date
from decimal import Decimal

import pytest

from busbook.core.exceptions import BackendError, ConflictError, ValidationError
from busbook.core.policy import BookingPolicy
from busbook.schemas.payment import CardPaymentDetails, MobileMoneyDetails
from busbook.schemas.route import RouteFilters, SortKey
from busbook.services.submission_service import SubmissionState
from busbook.services.workflow import BookingSession
from conftest import valid_card


@pytest.fixture
def session(fake_backend, identity):
    return BookingSession(fake_backend, identity, BookingPolicy(fixed_fee=Decimal("10")))


async def searched(session):
    session.set_search_params("Accra", "Kumasi", date(2030, 6, 15), 2)
    await session.search()
    return session


@pytest.mark.asyncio
async def test_full_booking_flow(session, fake_backend):
    """Test search, select, seats, passengers, payment and submit."""
    await searched(session)
    offer = session.results_view(sort_key=SortKey.PRICE_HIGH)[0]
    assert offer.id == "bus-1"

    session.select_offer(offer)
    session.toggle_seat("3A")
    session.toggle_seat("3B")
    session.update_passenger_field("1", "name", "Ama Mensah")
    session.update_passenger_field("2", "name", "Kofi Boateng")
    session.choose_payment(valid_card())

    assert session.draft.total_price == Decimal("250")

    booking = await session.submit()

    assert booking is not None
    assert booking.total_amount == Decimal("250")
    assert booking.payment_method == "Card ending 4242"
    assert session.state is SubmissionState.CONFIRMED
    assert session.confirmed == booking
    assert session.draft is None
    assert session.binder is None


@pytest.mark.asyncio
async def test_price_recomputed_after_every_change(session):
    """Test the total follows seat and passenger changes."""
    await searched(session)
    session.select_offer(session.results[0])
    assert session.draft.total_price == Decimal("130")

    session.toggle_seat("3A")
    session.toggle_seat("3B")
    assert session.draft.total_price == Decimal("250")

    session.add_passenger()
    assert session.draft.total_price == Decimal("370")

    session.remove_passenger("3")
    session.toggle_seat("3B")
    assert session.draft.total_price == Decimal("130")

    breakdown = session.price_breakdown
    assert breakdown.count == 1
    assert breakdown.fees == Decimal("10")


@pytest.mark.asyncio
async def test_results_view_filters_without_touching_results(session):
    """Test the view is derived from, and never replaces, the results."""
    await searched(session)

    view = session.results_view(RouteFilters(max_price=Decimal("100")))

    assert [o.id for o in view] == ["bus-2"]
    assert len(session.results) == 2
    assert [o.id for o in session.results_view(sort_key="departure")] == ["bus-2"]

    session.clear_filters()
    assert len(session.results_view()) == 2


@pytest.mark.asyncio
async def test_failed_submit_keeps_draft(session, fake_backend):
    """Test a backend failure leaves the draft for correction."""
    await searched(session)
    session.select_offer(session.results[0])
    session.toggle_seat("3A")
    session.update_passenger_field("1", "name", "Ama Mensah")
    session.choose_payment(MobileMoneyDetails(network="MTN", phone_number="0241234567", name="Ama"))
    fake_backend.errors["create_booking"] = BackendError(detail="Seat 3A was just taken")

    assert await session.submit() is None

    assert session.state is SubmissionState.COMPOSING
    assert session.draft.seats == ["3A"]
    assert session.errors == {"submit": "Seat 3A was just taken"}

    session.toggle_seat("3A")
    session.toggle_seat("4C")
    del fake_backend.errors["create_booking"]
    booking = await session.submit()
    assert booking.seats == ("4C",)


@pytest.mark.asyncio
async def test_invalid_draft_rejected_before_backend(session, fake_backend):
    """Test local validation errors propagate and skip the backend."""
    await searched(session)
    session.select_offer(session.results[0])
    session.toggle_seat("3A")
    session.choose_payment(CardPaymentDetails(card_number="1234"))

    with pytest.raises(ValidationError):
        await session.submit()

    assert fake_backend.calls_to("create_booking") == []
    assert session.draft is not None


def test_editing_without_offer_conflicts(session):
    """Test seat and passenger edits need a selected offer."""
    with pytest.raises(ConflictError):
        session.toggle_seat("3A")
    with pytest.raises(ConflictError):
        session.choose_payment(valid_card())


@pytest.mark.asyncio
async def test_submit_without_draft_conflicts(session):
    """Test there is nothing to submit before selecting an offer."""
    with pytest.raises(ConflictError):
        await session.submit()


@pytest.mark.asyncio
async def test_choose_payment_rejects_unknown_kind(session):
    """Test payment mappings must name a known kind."""
    await searched(session)
    session.select_offer(session.results[0])

    with pytest.raises(ValidationError):
        session.choose_payment({"kind": "crypto"})


@pytest.mark.asyncio
async def test_abandon_clears_draft(session, fake_backend):
    """Test abandoning drops the draft without any backend call."""
    await searched(session)
    session.select_offer(session.results[0])
    session.toggle_seat("3A")

    session.abandon()

    assert session.draft is None
    assert session.notice is None
    assert fake_backend.calls_to("create_booking") == []


@pytest.mark.asyncio
async def test_select_new_offer_after_confirmation(session):
    """Test a confirmed session can start another booking."""
    await searched(session)
    session.select_offer(session.results[0])
    session.toggle_seat("3A")
    session.update_passenger_field("1", "name", "Ama Mensah")
    session.choose_payment(valid_card())
    await session.submit()

    draft = session.select_offer(session.results[1])

    assert session.state is SubmissionState.COMPOSING
    assert draft.offer.id == "bus-2"
    assert len(draft.passengers) == 1


@pytest.mark.asyncio
async def test_history_through_session(session):
    """Test bookings made in the session appear in history and can be cancelled."""
    await searched(session)
    session.select_offer(session.results[0])
    session.toggle_seat("3A")
    session.update_passenger_field("1", "name", "Ama Mensah")
    session.choose_payment(valid_card())
    booking = await session.submit()

    bookings = await session.refresh_history()

    assert [b.id for b in bookings] == [booking.id]
