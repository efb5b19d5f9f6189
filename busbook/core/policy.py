"""Booking policy: the business constants shared by every booking flow."""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .config import Settings


class PriceBasis(str, Enum):
    """Which count the unit price is multiplied by."""
    PASSENGERS = "passengers"
    SEATS = "seats"


class RefundBand(BaseModel):
    """Refund granted when cancelling at least ``min_hours`` before departure."""

    model_config = {"frozen": True}

    min_hours: float = Field(..., ge=0)
    percentage: int = Field(..., ge=0, le=100)


DEFAULT_REFUND_SCHEDULE = (
    RefundBand(min_hours=24, percentage=100),
    RefundBand(min_hours=12, percentage=50),
    RefundBand(min_hours=0, percentage=0),
)


class BookingPolicy(BaseModel):
    """
    Business constants for a booking flow.

    The web and mobile screens of the booking app disagree on the seat cap
    (4 vs 5), the service fee (2 vs 10) and the cancellation window (24h vs
    none). Every such constant lives here so a flow is configured in one place.
    """

    model_config = {"frozen": True}

    max_seats: int = Field(5, ge=1, description="Seat (and passenger) cap for one booking")
    fixed_fee: Decimal = Field(Decimal("10"), ge=0, description="Service fee added once per booking")
    cancellation_window_hours: Optional[float] = Field(
        24.0, ge=0, description="Hours before departure after which cancelling is refused; None disables the check"
    )
    require_age: bool = Field(False, description="Passengers must provide an age")
    min_name_length: int = Field(3, ge=1)
    max_age: int = Field(120, gt=1, description="Exclusive upper bound for passenger age")
    currency: str = Field("GHS", min_length=3, max_length=3)
    price_basis: PriceBasis = PriceBasis.PASSENGERS
    refund_schedule: tuple[RefundBand, ...] = DEFAULT_REFUND_SCHEDULE

    @classmethod
    def web_flow(cls) -> "BookingPolicy":
        """Seat grid flow: four seats, name and age per passenger."""
        return cls(max_seats=4, require_age=True)

    @classmethod
    def mobile_flow(cls) -> "BookingPolicy":
        """Seat map flow: five passengers, name only."""
        return cls(max_seats=5, require_age=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "BookingPolicy":
        return cls(
            max_seats=settings.policy_max_seats,
            fixed_fee=settings.policy_fixed_fee,
            cancellation_window_hours=settings.policy_cancellation_window_hours,
            require_age=settings.policy_require_age,
            min_name_length=settings.policy_min_name_length,
            currency=settings.policy_currency,
            price_basis=PriceBasis(settings.policy_price_basis),
        )

    def refund_percentage(self, hours_until_departure: float) -> int:
        """Refund percentage for a cancellation made ``hours_until_departure`` ahead."""
        for band in sorted(self.refund_schedule, key=lambda b: b.min_hours, reverse=True):
            if hours_until_departure >= band.min_hours:
                return band.percentage
        return 0
