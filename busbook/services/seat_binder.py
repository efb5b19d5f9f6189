"""Seat selection and passenger binding for a booking draft."""

from itertools import count
from typing import Any, Dict, List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..core.observability import get_logger
from ..core.policy import BookingPolicy
from ..schemas.booking import BookingDraft, PassengerDetail, parse_age

logger = get_logger(__name__)

EDITABLE_FIELDS = ("name", "age", "phone")


def passenger_violations(passenger: PassengerDetail, policy: BookingPolicy) -> List[Dict[str, str]]:
    """Problems with one passenger's details, empty when valid."""
    problems = []
    path = f"passengers.{passenger.id}"
    if len(passenger.name.strip()) < policy.min_name_length:
        problems.append({
            "path": f"{path}.name",
            "message": f"Name must be at least {policy.min_name_length} characters",
        })
    if policy.require_age:
        age = parse_age(passenger.age)
        if age is None or not 0 < age < policy.max_age:
            problems.append({"path": f"{path}.age", "message": "Please enter a valid age"})
    return problems


class SeatPassengerBinder:
    """
    Keeps the draft's seat selection and passenger list consistent.

    Each passenger holds at most one seat through ``PassengerDetail.seat_id``;
    ``draft.seats`` records the selection order. After every operation the
    draft has at least one passenger, no duplicate or unavailable seats, and
    no more seats than passengers.
    """

    def __init__(self, draft: BookingDraft, policy: BookingPolicy):
        self.draft = draft
        self.policy = policy
        self.notice: Optional[str] = None

        existing = [int(p.id) for p in draft.passengers if p.id.isascii() and p.id.isdigit()]
        self._ids = count(max(existing, default=0) + 1)

        if not draft.passengers:
            draft.passengers.append(self._new_passenger())

    @property
    def seats(self) -> tuple[str, ...]:
        return tuple(self.draft.seats)

    @property
    def passengers(self) -> tuple[PassengerDetail, ...]:
        return tuple(self.draft.passengers)

    @property
    def at_capacity(self) -> bool:
        return len(self.draft.passengers) >= self.policy.max_seats

    def _new_passenger(self, seat_id: Optional[str] = None) -> PassengerDetail:
        return PassengerDetail(id=str(next(self._ids)), seat_id=seat_id)

    def passenger_for_seat(self, seat_id: str) -> Optional[PassengerDetail]:
        for passenger in self.draft.passengers:
            if passenger.seat_id == seat_id:
                return passenger
        return None

    def get_passenger(self, passenger_id: str) -> PassengerDetail:
        passenger = self.draft.passenger(passenger_id)
        if passenger is None:
            raise NotFoundError(resource_type="passenger", resource_id=passenger_id)
        return passenger

    def toggle_seat(self, seat_id: str) -> bool:
        """
        Select or deselect a seat.

        Deselecting removes the passenger bound to the seat (the last
        remaining passenger is kept, only unseated). Selecting binds the seat
        to the first passenger without one, or adds a passenger for it while
        under the seat cap.

        Returns:
            True if the selection changed, False when the seat cap was reached

        Raises:
            ValidationError: If the seat ID is blank or the seat is unavailable
        """
        self.notice = None
        seat_id = (seat_id or "").strip()
        if not seat_id:
            raise ValidationError(
                detail="Seat ID cannot be empty",
                violations=[{"path": "seats", "message": "must not be blank"}],
            )

        if seat_id in self.draft.seats:
            self._release_seat(seat_id)
            logger.debug("Seat deselected", seat_id=seat_id, seats=len(self.draft.seats))
            return True

        if not self.draft.offer.is_seat_available(seat_id):
            raise ValidationError(
                detail=f"Seat {seat_id} is not available",
                violations=[{"path": "seats", "message": f"seat {seat_id} is unavailable"}],
                code="SEAT_UNAVAILABLE",
            )

        if len(self.draft.seats) < len(self.draft.passengers):
            passenger = next(p for p in self.draft.passengers if p.seat_id is None)
            passenger.seat_id = seat_id
        elif not self.at_capacity:
            self.draft.passengers.append(self._new_passenger(seat_id))
        else:
            self.notice = f"You can only book up to {self.policy.max_seats} seats at once."
            logger.info("Seat cap reached", seat_id=seat_id, max_seats=self.policy.max_seats)
            return False

        self.draft.seats.append(seat_id)
        logger.debug("Seat selected", seat_id=seat_id, seats=len(self.draft.seats))
        return True

    def _release_seat(self, seat_id: str) -> None:
        self.draft.seats.remove(seat_id)
        passenger = self.passenger_for_seat(seat_id)
        if passenger is None:
            return
        if len(self.draft.passengers) > 1:
            self.draft.passengers.remove(passenger)
        else:
            passenger.seat_id = None

    def add_passenger(self) -> Optional[PassengerDetail]:
        """Append an empty passenger; None (with a notice) when at the cap."""
        self.notice = None
        if self.at_capacity:
            self.notice = f"You can only book up to {self.policy.max_seats} passengers at once."
            return None
        passenger = self._new_passenger()
        self.draft.passengers.append(passenger)
        return passenger

    def remove_passenger(self, passenger_id: str) -> bool:
        """
        Remove a passenger and release the seat bound to it.

        Returns:
            True if removed, False when it is the only passenger

        Raises:
            NotFoundError: If no passenger has this ID
        """
        self.notice = None
        passenger = self.get_passenger(passenger_id)
        if len(self.draft.passengers) == 1:
            self.notice = "At least one passenger is required."
            return False

        self.draft.passengers.remove(passenger)
        if passenger.seat_id is not None and passenger.seat_id in self.draft.seats:
            self.draft.seats.remove(passenger.seat_id)
        return True

    def update_passenger_field(self, passenger_id: str, field: str, value: Any) -> PassengerDetail:
        """
        Set one editable field and recompute the passenger's validity.

        Raises:
            NotFoundError: If no passenger has this ID
            ValidationError: If the field is not editable
        """
        if field not in EDITABLE_FIELDS:
            raise ValidationError(
                detail=f"Passenger field '{field}' cannot be edited",
                violations=[{"path": f"passengers.{field}", "message": "unknown field"}],
            )
        passenger = self.get_passenger(passenger_id)

        text = "" if value is None else str(value)
        if field == "age":
            setattr(passenger, field, text or None)
        else:
            setattr(passenger, field, text)

        passenger.is_valid = not self.passenger_violations(passenger)
        return passenger

    def passenger_violations(self, passenger: PassengerDetail) -> List[Dict[str, str]]:
        return passenger_violations(passenger, self.policy)

    def revalidate(self) -> None:
        """Recompute every passenger's validity, e.g. after a policy change."""
        for passenger in self.draft.passengers:
            passenger.is_valid = not self.passenger_violations(passenger)
