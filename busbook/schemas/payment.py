"""Payment-related Pydantic schemas. Details are validated locally only."""

import re
from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

CARD_NUMBER_DIGITS = (16, 19)
CVV_DIGITS = (3, 4)
PHONE_DIGITS = (10, 12)
MIN_HOLDER_NAME_LENGTH = 3

EXPIRY_PATTERN = re.compile(r"(0[1-9]|1[0-2])/([0-9]{2})")
DIGITS_PATTERN = re.compile(r"[0-9]+")
PHONE_PATTERN = re.compile(r"\+?[0-9]+")


class PaymentMethodType(str, Enum):
    """Saved payment method kinds."""
    CARD = "card"
    MOBILE_MONEY = "mobile_money"
    BANK = "bank"


class PaymentMethodReference(BaseModel):
    """A payment method the user saved earlier."""

    model_config = {"frozen": True}

    kind: Literal["saved"] = "saved"
    id: str = Field(..., min_length=1)
    type: PaymentMethodType = PaymentMethodType.CARD
    label: str = Field(..., description="Display name, e.g. 'Visa **** 4242'")


class CardPaymentDetails(BaseModel):
    """Card details typed in on the payment step."""

    kind: Literal["card"] = "card"
    card_number: str = ""
    cardholder_name: str = ""
    expiry_date: str = ""
    cvv: str = ""

    def violations(self) -> List[Dict[str, str]]:
        problems = []
        digits = self.card_number.replace(" ", "")
        low, high = CARD_NUMBER_DIGITS
        if not DIGITS_PATTERN.fullmatch(digits) or not low <= len(digits) <= high:
            problems.append({
                "path": "payment.card_number",
                "message": f"Card number must contain {low} to {high} digits",
            })
        if len(self.cardholder_name.strip()) < MIN_HOLDER_NAME_LENGTH:
            problems.append({
                "path": "payment.cardholder_name",
                "message": f"Cardholder name must be at least {MIN_HOLDER_NAME_LENGTH} characters",
            })
        if not EXPIRY_PATTERN.fullmatch(self.expiry_date):
            problems.append({
                "path": "payment.expiry_date",
                "message": "Expiry date must be in MM/YY format",
            })
        low, high = CVV_DIGITS
        if not DIGITS_PATTERN.fullmatch(self.cvv) or not low <= len(self.cvv) <= high:
            problems.append({
                "path": "payment.cvv",
                "message": f"CVV must be {low} or {high} digits",
            })
        return problems

    @property
    def last_four(self) -> str:
        return self.card_number.replace(" ", "")[-4:]


class MobileMoneyDetails(BaseModel):
    """Mobile money wallet details typed in on the payment step."""

    kind: Literal["mobile_money"] = "mobile_money"
    network: str = ""
    phone_number: str = ""
    name: str = ""

    def violations(self) -> List[Dict[str, str]]:
        problems = []
        if not self.network.strip():
            problems.append({"path": "payment.network", "message": "Please select a mobile network"})
        digits = self.phone_number.lstrip("+")
        low, high = PHONE_DIGITS
        if not PHONE_PATTERN.fullmatch(self.phone_number) or not low <= len(digits) <= high:
            problems.append({
                "path": "payment.phone_number",
                "message": f"Phone number must contain {low} to {high} digits",
            })
        if len(self.name.strip()) < MIN_HOLDER_NAME_LENGTH:
            problems.append({
                "path": "payment.name",
                "message": f"Name must be at least {MIN_HOLDER_NAME_LENGTH} characters",
            })
        return problems


NewPaymentDetails = Union[CardPaymentDetails, MobileMoneyDetails]
PaymentChoice = Union[PaymentMethodReference, CardPaymentDetails, MobileMoneyDetails]


def payment_violations(payment: Optional[PaymentChoice]) -> List[Dict[str, str]]:
    """Format problems with the chosen payment; a saved method is always acceptable."""
    if payment is None:
        return [{"path": "payment", "message": "Please choose a payment method or enter payment details"}]
    if isinstance(payment, PaymentMethodReference):
        return []
    return payment.violations()


def payment_label(payment: PaymentChoice) -> str:
    """Label stored with the booking; never contains the full card number."""
    if isinstance(payment, PaymentMethodReference):
        return payment.label
    if isinstance(payment, CardPaymentDetails):
        return f"Card ending {payment.last_four}"
    return f"{payment.network} Mobile Money"


def format_card_number(text: str) -> str:
    """Keep digits only and group them by four: '42424242' -> '4242 4242'."""
    digits = re.sub(r"\D", "", text)
    return re.sub(r"(\d{4})(?=\d)", r"\1 ", digits)


def format_expiry_date(text: str) -> str:
    """Insert the slash as the user types: '1227' -> '12/27'."""
    digits = re.sub(r"\D", "", text)
    if len(digits) > 2:
        return f"{digits[:2]}/{digits[2:4]}"
    return digits
