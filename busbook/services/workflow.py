"""Booking session: search, compose and submit a booking in one scoped object."""

from datetime import date
from typing import Any, List, Mapping, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..backends.base import BackendDataService, IdentityProvider
from ..core.exceptions import ConflictError, ValidationError
from ..core.observability import get_logger
from ..core.operations import OperationTracker
from ..core.policy import BookingPolicy
from ..schemas.booking import BookingDraft, ConfirmedBooking, PassengerDetail, PaymentField
from ..schemas.payment import PaymentChoice
from ..schemas.route import RouteFilters, RouteOffer, SearchParameters, SortKey
from .filtering import filter_and_sort
from .history_service import BookingHistoryService, Clock
from .pricing import PriceBreakdown, PriceCalculator
from .search_service import SearchService
from .seat_binder import SeatPassengerBinder
from .submission_service import BookingSubmissionCoordinator, SubmissionState

logger = get_logger(__name__)

_payment_adapter = TypeAdapter(PaymentField)


class BookingSession:
    """
    Everything one user does between searching and a confirmed booking.

    A session owns its draft, its operation statuses and its services; two
    sessions never share state. The total price is recomputed after every
    seat or passenger change.
    """

    def __init__(
        self,
        backend: BackendDataService,
        identity: IdentityProvider,
        policy: Optional[BookingPolicy] = None,
        tracker: Optional[OperationTracker] = None,
        clock: Optional[Clock] = None,
    ):
        self.backend = backend
        self.identity = identity
        self.policy = policy or BookingPolicy()
        self.tracker = tracker or OperationTracker()

        self.searcher = SearchService(backend, self.tracker)
        self.submission = BookingSubmissionCoordinator(backend, identity, self.policy, self.tracker)
        self.history = BookingHistoryService(backend, identity, self.policy, self.tracker, clock)
        self.pricing = PriceCalculator(self.policy)

        self.filters = RouteFilters()
        self.sort_key: Optional[SortKey] = None
        self.draft: Optional[BookingDraft] = None
        self.binder: Optional[SeatPassengerBinder] = None

    # Search

    def set_search_params(
        self,
        origin: Any,
        destination: Any,
        travel_date: Union[date, str],
        passengers: int = 1,
    ) -> SearchParameters:
        return self.searcher.set_search_params(origin, destination, travel_date, passengers)

    async def search(self) -> Optional[List[RouteOffer]]:
        return await self.searcher.search()

    @property
    def results(self) -> List[RouteOffer]:
        return self.searcher.results

    def results_view(
        self,
        filters: Optional[RouteFilters] = None,
        sort_key: Optional[SortKey] = None,
    ) -> List[RouteOffer]:
        """
        Filtered and sorted view of the current results.

        Passing ``filters`` or ``sort_key`` makes them the session's current
        choice; the underlying results are never modified.
        """
        if filters is not None:
            self.filters = filters
        if sort_key is not None:
            self.sort_key = SortKey(sort_key)
        return filter_and_sort(self.searcher.results, self.filters, self.sort_key)

    def clear_filters(self) -> None:
        self.filters = RouteFilters()
        self.sort_key = None

    # Composition

    @property
    def state(self) -> SubmissionState:
        return self.submission.state

    @property
    def notice(self) -> Optional[str]:
        return self.binder.notice if self.binder else None

    def _editable_binder(self) -> SeatPassengerBinder:
        if self.binder is None or self.draft is None:
            raise ConflictError(detail="Select a bus before choosing seats", code="NO_ROUTE_SELECTED")
        if self.submission.state is SubmissionState.SUBMITTING:
            raise ConflictError(
                detail="The booking cannot be changed while it is being submitted",
                code="SUBMISSION_IN_PROGRESS",
            )
        return self.binder

    def _recalculate(self) -> None:
        draft = self.draft
        count = self.pricing.count_for(len(draft.passengers), len(draft.seats))
        draft.total_price = self.pricing.total(draft.offer.price, count)

    def select_offer(self, offer: RouteOffer) -> BookingDraft:
        """Start a new draft for ``offer``, replacing any previous draft."""
        if self.submission.state is SubmissionState.SUBMITTING:
            raise ConflictError(
                detail="Wait for the current booking to finish before starting another",
                code="SUBMISSION_IN_PROGRESS",
            )
        self.submission.reset()
        self.draft = BookingDraft(offer=offer, search=self.searcher.params)
        self.binder = SeatPassengerBinder(self.draft, self.policy)
        self._recalculate()
        logger.info("Route offer selected", route_offer_id=offer.id, max_seats=self.policy.max_seats)
        return self.draft

    def toggle_seat(self, seat_id: str) -> bool:
        changed = self._editable_binder().toggle_seat(seat_id)
        self._recalculate()
        return changed

    def add_passenger(self) -> Optional[PassengerDetail]:
        passenger = self._editable_binder().add_passenger()
        self._recalculate()
        return passenger

    def remove_passenger(self, passenger_id: str) -> bool:
        removed = self._editable_binder().remove_passenger(passenger_id)
        self._recalculate()
        return removed

    def update_passenger_field(self, passenger_id: str, field: str, value: Any) -> PassengerDetail:
        return self._editable_binder().update_passenger_field(passenger_id, field, value)

    @property
    def price_breakdown(self) -> Optional[PriceBreakdown]:
        if self.draft is None:
            return None
        draft = self.draft
        count = self.pricing.count_for(len(draft.passengers), len(draft.seats))
        return self.pricing.breakdown(draft.offer.price, count)

    def choose_payment(self, payment: Union[PaymentChoice, Mapping[str, Any]]) -> PaymentChoice:
        """
        Attach a saved payment method or new payment details to the draft.

        Mappings are parsed by their ``kind`` ("saved", "card" or
        "mobile_money"). Field contents are checked at submission.
        """
        self._editable_binder()
        if isinstance(payment, Mapping):
            try:
                payment = _payment_adapter.validate_python(dict(payment))
            except PydanticValidationError as e:
                raise ValidationError(
                    detail="Unrecognised payment details",
                    violations=[
                        {"path": "payment", "message": err["msg"]} for err in e.errors()
                    ],
                ) from e
        self.draft.payment = payment
        return payment

    # Submission

    async def submit(self) -> Optional[ConfirmedBooking]:
        """
        Submit the draft. On success the draft is cleared; on a backend
        failure it is kept and ``None`` is returned.
        """
        if self.draft is None:
            raise ConflictError(detail="There is no booking to submit", code="NO_ROUTE_SELECTED")

        booking = await self.submission.submit(self.draft)
        if booking is not None:
            self.draft = None
            self.binder = None
        return booking

    @property
    def confirmed(self) -> Optional[ConfirmedBooking]:
        return self.submission.confirmed

    def abandon(self) -> None:
        """Drop the draft without persisting anything."""
        if self.submission.state is SubmissionState.SUBMITTING:
            raise ConflictError(
                detail="The booking cannot be abandoned while it is being submitted",
                code="SUBMISSION_IN_PROGRESS",
            )
        if self.draft is not None:
            logger.info("Draft abandoned", route_offer_id=self.draft.offer.id)
        self.draft = None
        self.binder = None
        self.submission.reset()

    # History

    async def refresh_history(self) -> Optional[List[ConfirmedBooking]]:
        return await self.history.refresh()

    async def cancel_booking(self, booking_id: str) -> bool:
        return await self.history.cancel(booking_id)

    @property
    def errors(self):
        """Current error message per operation."""
        return self.tracker.errors()
