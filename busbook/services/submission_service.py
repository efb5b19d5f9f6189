"""Booking submission: local validation, then a single persistence call."""

from enum import Enum
from typing import Dict, List, Optional

from ..backends.base import BackendDataService, IdentityProvider
from ..core.exceptions import BookingError, ConflictError, InvariantViolation, ValidationError
from ..core.observability import get_logger, metrics_collector
from ..core.operations import OperationStatus, OperationTracker
from ..core.policy import BookingPolicy
from ..schemas.booking import BookingDraft, ConfirmedBooking, CreateBookingRequest
from ..schemas.payment import payment_label, payment_violations
from .seat_binder import passenger_violations

logger = get_logger(__name__)


class SubmissionState(str, Enum):
    """Lifecycle of one booking submission."""
    COMPOSING = "composing"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class BookingSubmissionCoordinator:
    """
    Turns a complete draft into a persisted booking.

    Validation happens entirely before the backend is called; a draft with
    mismatched seats and passengers, an invalid passenger or unusable
    payment details never reaches the backend. A backend failure leaves the
    draft untouched so the user can correct it and retry.
    """

    def __init__(
        self,
        backend: BackendDataService,
        identity: IdentityProvider,
        policy: BookingPolicy,
        tracker: Optional[OperationTracker] = None,
    ):
        self.backend = backend
        self.identity = identity
        self.policy = policy
        self.tracker = tracker or OperationTracker()
        self.state = SubmissionState.COMPOSING
        self.confirmed: Optional[ConfirmedBooking] = None

    @property
    def status(self) -> OperationStatus:
        return self.tracker["submit"]

    @property
    def error(self) -> Optional[str]:
        return self.status.error

    def validate(self, draft: BookingDraft) -> None:
        """
        Check a draft is ready to submit.

        Raises:
            InvariantViolation: If the seat count differs from the passenger count
            ValidationError: If seats, passengers or payment are incomplete
        """
        if not draft.seats:
            raise ValidationError(
                detail="Please select at least one seat",
                violations=[{"path": "seats", "message": "no seat selected"}],
                code="NO_SEATS_SELECTED",
            )

        if len(draft.seats) != len(draft.passengers):
            raise InvariantViolation(len(draft.seats), len(draft.passengers))

        violations: List[Dict[str, str]] = []
        selected = set(draft.seats)
        if len(selected) != len(draft.seats):
            violations.append({"path": "seats", "message": "a seat was selected twice"})

        bound = set()
        for passenger in draft.passengers:
            violations.extend(passenger_violations(passenger, self.policy))
            if passenger.seat_id is None or passenger.seat_id not in selected:
                violations.append({
                    "path": f"passengers.{passenger.id}.seat_id",
                    "message": "passenger has no seat",
                })
            elif passenger.seat_id in bound:
                violations.append({
                    "path": f"passengers.{passenger.id}.seat_id",
                    "message": f"seat {passenger.seat_id} is assigned to two passengers",
                })
            else:
                bound.add(passenger.seat_id)

        violations.extend(payment_violations(draft.payment))

        if violations:
            raise ValidationError(
                detail="Please complete all passenger and payment details",
                violations=violations,
            )

    async def submit(self, draft: BookingDraft) -> Optional[ConfirmedBooking]:
        """
        Validate the draft and persist it.

        Returns:
            The confirmed booking, or None if the backend rejected it (the
            message is in ``error`` and the draft is kept for a retry)

        Raises:
            ConflictError: If a submission is in flight or already confirmed
            ValidationError: If the draft fails local validation
        """
        if self.state is SubmissionState.SUBMITTING:
            raise ConflictError(
                detail="This booking is already being submitted",
                code="SUBMISSION_IN_PROGRESS",
            )
        if self.state is SubmissionState.CONFIRMED:
            raise ConflictError(
                detail="This booking has already been confirmed",
                code="ALREADY_CONFIRMED",
            )

        try:
            self.validate(draft)
        except ValidationError as e:
            metrics_collector.record_validation_rejection(e.code)
            self.status.fail(e.user_message)
            logger.info("Submission blocked by validation", code=e.code, violations=len(e.violations))
            raise

        request = CreateBookingRequest.from_draft(
            draft,
            user_id=self.identity.current_user_id(),
            payment_method=payment_label(draft.payment),
            currency=self.policy.currency,
        )

        log = logger.with_context(route_offer_id=request.route_offer_id, seats=list(request.seats))
        self.state = SubmissionState.SUBMITTING
        self.status.clear_error()
        self.status.issue()
        metrics_collector.record_submission()

        try:
            booking = await self.backend.create_booking(request)
        except BookingError as e:
            self.state = SubmissionState.FAILED
            self.status.fail(e.user_message)
            metrics_collector.record_booking_failed(e.code)
            log.warning("Booking submission failed", code=e.code, retryable=e.retryable)
            # The draft is unchanged; the user may fix it and submit again
            self.state = SubmissionState.COMPOSING
            return None
        else:
            self.state = SubmissionState.CONFIRMED
            self.confirmed = booking
        finally:
            self.status.finish()
            if self.state is SubmissionState.SUBMITTING:
                # Unexpected failure; keep the draft editable before it propagates
                self.state = SubmissionState.COMPOSING

        metrics_collector.record_booking_confirmed(request.route_offer_id)
        log.info("Booking confirmed", booking_id=booking.id, reference=booking.reference)
        return booking

    def reset(self) -> None:
        """Start composing a new booking."""
        self.state = SubmissionState.COMPOSING
        self.confirmed = None
        self.status.clear_error()
