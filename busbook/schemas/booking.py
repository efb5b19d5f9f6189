"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional, Union

from pydantic import BaseModel, Field

from .payment import CardPaymentDetails, MobileMoneyDetails, PaymentMethodReference
from .route import RouteOffer, SearchParameters


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def parse_age(text: Optional[str]) -> Optional[int]:
    """Parse a typed age; None when blank or not a whole number."""
    if text is None:
        return None
    text = str(text).strip()
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


class PassengerDetail(BaseModel):
    """Passenger being composed on the booking step. Mutated by user input."""

    id: str = Field(..., description="Stable passenger ID within the draft")
    seat_id: Optional[str] = Field(None, description="Seat bound to this passenger")
    name: str = ""
    age: Optional[str] = Field(None, description="Age as typed; parsed during validation")
    phone: str = ""
    is_valid: bool = False


class BookedPassenger(BaseModel):
    """Passenger as persisted with a booking."""

    model_config = {"frozen": True}

    name: str
    seat_id: str
    age: Optional[int] = None
    phone: Optional[str] = None


PaymentField = Annotated[
    Union[PaymentMethodReference, CardPaymentDetails, MobileMoneyDetails],
    Field(discriminator="kind"),
]


class BookingDraft(BaseModel):
    """The in-progress, not-yet-persisted booking."""

    offer: RouteOffer
    search: Optional[SearchParameters] = None
    seats: List[str] = Field(default_factory=list, description="Selected seats in selection order")
    passengers: List[PassengerDetail] = Field(default_factory=list)
    total_price: Decimal = Decimal("0")
    payment: Optional[PaymentField] = None

    def passenger(self, passenger_id: str) -> Optional[PassengerDetail]:
        for passenger in self.passengers:
            if passenger.id == passenger_id:
                return passenger
        return None


class CreateBookingRequest(BaseModel):
    """Persistence request assembled from a validated draft."""

    model_config = {"frozen": True}

    user_id: str
    route_offer_id: str
    operator: Optional[str] = None
    plate_number: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    travel_date: Optional[date] = None
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    departure_at: Optional[datetime] = None
    seats: tuple[str, ...] = Field(..., min_length=1)
    passengers: tuple[BookedPassenger, ...] = Field(..., min_length=1)
    total_amount: Decimal = Field(..., ge=0)
    currency: str = "GHS"
    payment_method: str

    @classmethod
    def from_draft(cls, draft: BookingDraft, user_id: str, payment_method: str, currency: str) -> "CreateBookingRequest":
        offer = draft.offer
        search = draft.search
        return cls(
            user_id=user_id,
            route_offer_id=offer.id,
            operator=offer.name,
            plate_number=offer.plate_number,
            origin=search.origin_label if search else offer.origin,
            destination=search.destination_label if search else offer.destination,
            travel_date=search.travel_date if search else None,
            departure_time=offer.departure_time,
            arrival_time=offer.arrival_time,
            departure_at=offer.departure_at,
            seats=tuple(draft.seats),
            passengers=tuple(
                BookedPassenger(
                    name=p.name.strip(),
                    seat_id=p.seat_id,
                    age=parse_age(p.age),
                    phone=p.phone or None,
                )
                for p in draft.passengers
            ),
            total_amount=draft.total_price,
            currency=currency,
            payment_method=payment_method,
        )


class ConfirmedBooking(BaseModel):
    """Immutable booking record returned by the backend."""

    model_config = {"frozen": True}

    id: str = Field(..., description="Unique booking ID")
    reference: Optional[str] = Field(None, description="Booking reference shown to the traveller")
    user_id: str
    status: BookingStatus = BookingStatus.CONFIRMED
    route_offer_id: str
    operator: Optional[str] = None
    plate_number: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    travel_date: Optional[date] = None
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    departure_at: Optional[datetime] = None
    seats: tuple[str, ...] = ()
    passengers: tuple[BookedPassenger, ...] = ()
    total_amount: Decimal = Decimal("0")
    currency: str = "GHS"
    payment_method: Optional[str] = None
    created_at: datetime
