"""Models module exporting all database models."""

from .booking import BookingRecord
from .bus import Bus

__all__ = [
    "Bus",
    "BookingRecord",
]
