"""Pydantic schemas for the booking workflow."""

from .booking import (
    BookedPassenger,
    BookingDraft,
    BookingStatus,
    ConfirmedBooking,
    CreateBookingRequest,
    PassengerDetail,
    parse_age,
)
from .payment import (
    CardPaymentDetails,
    MobileMoneyDetails,
    PaymentMethodReference,
    PaymentMethodType,
    format_card_number,
    format_expiry_date,
    payment_label,
    payment_violations,
)
from .route import (
    PlainTextLocation,
    RouteFilters,
    RouteOffer,
    SearchParameters,
    SortKey,
    StructuredLocation,
    location_label,
    resolve_location,
)

__all__ = [
    # Routes and search
    "RouteOffer",
    "RouteFilters",
    "SortKey",
    "SearchParameters",
    "PlainTextLocation",
    "StructuredLocation",
    "resolve_location",
    "location_label",

    # Bookings
    "BookingDraft",
    "BookingStatus",
    "BookedPassenger",
    "ConfirmedBooking",
    "CreateBookingRequest",
    "PassengerDetail",
    "parse_age",

    # Payment
    "CardPaymentDetails",
    "MobileMoneyDetails",
    "PaymentMethodReference",
    "PaymentMethodType",
    "format_card_number",
    "format_expiry_date",
    "payment_label",
    "payment_violations",
]
