"""Booking price calculation."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from pydantic import BaseModel

from ..core.policy import BookingPolicy, PriceBasis

CURRENCY_SYMBOLS = {
    "GHS": "₵",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

Number = Union[Decimal, int, float, str]


class PriceBreakdown(BaseModel):
    """Lines of the booking summary card."""

    model_config = {"frozen": True}

    unit_price: Decimal
    count: int
    subtotal: Decimal
    fees: Decimal
    total: Decimal
    currency: str


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() avoids binary float artefacts such as 0.1 -> 0.1000000000000000055
    return Decimal(str(value))


class PriceCalculator:
    """Computes ``unit_price * count + fixed_fee`` for a booking policy."""

    def __init__(self, policy: BookingPolicy):
        self.policy = policy

    def count_for(self, passenger_count: int, seat_count: int) -> int:
        """The count the policy prices by."""
        if self.policy.price_basis is PriceBasis.SEATS:
            return seat_count
        return passenger_count

    def breakdown(self, unit_price: Number, count: int) -> PriceBreakdown:
        if count < 0:
            raise ValueError("count cannot be negative")
        unit = _to_decimal(unit_price)
        subtotal = unit * count
        fees = self.policy.fixed_fee
        return PriceBreakdown(
            unit_price=unit,
            count=count,
            subtotal=subtotal,
            fees=fees,
            total=subtotal + fees,
            currency=self.policy.currency,
        )

    def total(self, unit_price: Number, count: int) -> Decimal:
        return self.breakdown(unit_price, count).total


def format_amount(amount: Number, currency: str = "GHS") -> str:
    """Format an amount for display, e.g. ``₵250.00``."""
    value = _to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{value:,.2f}"
    return f"{currency.upper()} {value:,.2f}"
