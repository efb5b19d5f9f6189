"""Service layer package."""

from .filtering import apply_filters, departure_minutes, filter_and_sort, sort_offers
from .history_service import BookingHistoryService
from .pricing import PriceBreakdown, PriceCalculator, format_amount
from .search_service import SearchService
from .seat_binder import SeatPassengerBinder
from .submission_service import BookingSubmissionCoordinator, SubmissionState
from .workflow import BookingSession

__all__ = [
    "BookingHistoryService",
    "BookingSession",
    "BookingSubmissionCoordinator",
    "PriceBreakdown",
    "PriceCalculator",
    "SearchService",
    "SeatPassengerBinder",
    "SubmissionState",
    "apply_filters",
    "departure_minutes",
    "filter_and_sort",
    "format_amount",
    "sort_offers",
]
