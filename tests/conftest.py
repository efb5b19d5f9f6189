"""Test configuration and fixtures."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List

import pytest
import pytest_asyncio

from busbook.backends.base import BackendDataService, StaticIdentity
from busbook.backends.sql import SqlDataService
from busbook.core.database import close_db, create_engine_and_session_factory, init_db
from busbook.core.exceptions import NotFoundError
from busbook.core.policy import BookingPolicy
from busbook.models import Bus
from busbook.schemas.booking import BookedPassenger, BookingDraft, BookingStatus, ConfirmedBooking, CreateBookingRequest
from busbook.schemas.route import RouteOffer, SearchParameters, StructuredLocation

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TRAVEL_DATE = date(2030, 6, 15)


def make_offer(**overrides) -> RouteOffer:
    """Route offer with sensible defaults."""
    data = {
        "id": "bus-1",
        "name": "VIP Jeoun",
        "plate_number": "GR-1234-20",
        "origin": "Accra",
        "destination": "Kumasi",
        "departure_time": "08:00 AM",
        "arrival_time": "02:00 PM",
        "duration": "6h 0m",
        "departure_at": datetime(2030, 6, 15, 8, 0, tzinfo=timezone.utc),
        "price": Decimal("120"),
        "rating": 4.5,
        "amenities": ("wifi", "ac"),
        "available_seats": 40,
        "total_seats": 50,
        "unavailable_seats": ("1A", "1B"),
    }
    data.update(overrides)
    return RouteOffer(**data)


def make_confirmed(**overrides) -> ConfirmedBooking:
    data = {
        "id": "booking-1",
        "reference": "BKABC12345",
        "user_id": "user-1",
        "status": BookingStatus.CONFIRMED,
        "route_offer_id": "bus-1",
        "operator": "VIP Jeoun",
        "origin": "Accra",
        "destination": "Kumasi",
        "travel_date": TRAVEL_DATE,
        "departure_time": "08:00 AM",
        "departure_at": datetime(2030, 6, 15, 8, 0, tzinfo=timezone.utc),
        "seats": ("3A",),
        "total_amount": Decimal("130"),
        "created_at": datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return ConfirmedBooking(**data)


class FakeBackend(BackendDataService):
    """
    In-memory backend recording every call.

    Set ``routes``/``bookings``/``locations`` to control results and
    ``errors[operation]`` to an exception to make that operation fail.
    ``gates[operation]`` holds a list of events; each call waits on the next one.
    """

    def __init__(self):
        self.routes: List[RouteOffer] = []
        self.bookings: List[ConfirmedBooking] = []
        self.locations: List[StructuredLocation] = []
        self.errors: Dict[str, Exception] = {}
        self.gates: Dict[str, List[asyncio.Event]] = {}
        self.calls: List[tuple] = []

    async def _enter(self, operation: str, *args):
        self.calls.append((operation, *args))
        gates = self.gates.get(operation)
        if gates:
            await gates.pop(0).wait()
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def calls_to(self, operation: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == operation]

    async def query_routes(self, origin, destination, date_range=None):
        await self._enter("query_routes", origin, destination, date_range)
        return [
            offer for offer in self.routes
            if offer.origin == origin and offer.destination == destination
        ]

    async def create_booking(self, request: CreateBookingRequest) -> ConfirmedBooking:
        await self._enter("create_booking", request)
        booking = ConfirmedBooking(
            id=f"booking-{len(self.bookings) + 1}",
            reference="BKTEST0001",
            user_id=request.user_id,
            route_offer_id=request.route_offer_id,
            operator=request.operator,
            origin=request.origin,
            destination=request.destination,
            travel_date=request.travel_date,
            departure_at=request.departure_at,
            seats=request.seats,
            passengers=request.passengers,
            total_amount=request.total_amount,
            currency=request.currency,
            payment_method=request.payment_method,
            created_at=datetime.now(timezone.utc),
        )
        self.bookings.append(booking)
        return booking

    async def update_booking_status(self, booking_id, status):
        await self._enter("update_booking_status", booking_id, status)
        for index, booking in enumerate(self.bookings):
            if booking.id == booking_id:
                self.bookings[index] = booking.model_copy(update={"status": BookingStatus(status)})
                return
        raise NotFoundError(resource_type="booking", resource_id=booking_id)

    async def list_bookings(self, user_id):
        await self._enter("list_bookings", user_id)
        return [b for b in self.bookings if b.user_id == user_id]

    async def list_locations(self):
        await self._enter("list_locations")
        return list(self.locations)


@pytest.fixture
def offer() -> RouteOffer:
    return make_offer()


@pytest.fixture
def search_params() -> SearchParameters:
    return SearchParameters(origin="Accra", destination="Kumasi", travel_date=TRAVEL_DATE, passengers=1)


@pytest.fixture
def draft(offer, search_params) -> BookingDraft:
    return BookingDraft(offer=offer, search=search_params)


@pytest.fixture
def policy() -> BookingPolicy:
    return BookingPolicy()


@pytest.fixture
def fake_backend() -> FakeBackend:
    backend = FakeBackend()
    backend.routes = [
        make_offer(),
        make_offer(id="bus-2", name="STC", price=Decimal("95"), departure_time="06:30 AM", rating=3.9),
    ]
    return backend


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity("user-1")


@pytest.fixture
def fixed_now() -> datetime:
    """Two days before the default offer departs."""
    return datetime(2030, 6, 13, 8, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def session_factory():
    """Session factory over a fresh in-memory database."""
    engine, factory = create_engine_and_session_factory(TEST_DATABASE_URL, echo=False)
    await init_db(engine)
    yield factory
    await close_db(engine)


@pytest_asyncio.fixture(scope="function")
async def sql_backend(session_factory) -> SqlDataService:
    return SqlDataService(session_factory)


@pytest_asyncio.fixture(scope="function")
async def seeded_bus(session_factory) -> Bus:
    """One Accra -> Kumasi bus departing on the test travel date."""
    departure = datetime(2030, 6, 15, 8, 0, tzinfo=timezone.utc)
    bus = Bus(
        operator="VIP Jeoun",
        plate_number="GR-1234-20",
        departure_location="Accra",
        arrival_location="Kumasi",
        departure_time=departure,
        arrival_time=departure + timedelta(hours=6),
        price_amount=12000,
        price_currency="GHS",
        rating=4.5,
        amenities=["wifi", "ac"],
        total_seats=10,
        seats_available=8,
        unavailable_seats=["1A", "1B"],
    )
    async with session_factory() as db:
        db.add(bus)
        await db.commit()
        await db.refresh(bus)
    return bus


def booking_request(route_offer_id: str, seats=("3A",), user_id: str = "user-1", **overrides) -> CreateBookingRequest:
    data = {
        "user_id": user_id,
        "route_offer_id": route_offer_id,
        "operator": "VIP Jeoun",
        "origin": "Accra",
        "destination": "Kumasi",
        "travel_date": TRAVEL_DATE,
        "seats": tuple(seats),
        "passengers": tuple(BookedPassenger(name=f"Passenger {s}", seat_id=s) for s in seats),
        "total_amount": Decimal("120") * len(seats) + Decimal("10"),
        "payment_method": "Card ending 4242",
    }
    data.update(overrides)
    return CreateBookingRequest(**data)


def valid_card() -> dict:
    return {
        "kind": "card",
        "card_number": "4242 4242 4242 4242",
        "cardholder_name": "Ama Mensah",
        "expiry_date": "12/30",
        "cvv": "123",
    }
