"""Filtering and sorting of route offers held in memory."""

import math
import re
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from ..schemas.route import RouteFilters, RouteOffer, SortKey

_CLOCK_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])?\s*$")


def departure_minutes(text: Optional[str]) -> Optional[int]:
    """
    Convert a clock time to minutes since midnight.

    Accepts "HH:MM AM/PM" (12 AM is midnight, 12 PM is noon) and bare
    24-hour "HH:MM".

    Returns:
        Minutes since midnight, or None when the text is missing or malformed
    """
    if not text:
        return None
    match = _CLOCK_PATTERN.match(text)
    if not match:
        return None

    hours, minutes = int(match.group(1)), int(match.group(2))
    period = match.group(3)
    if minutes > 59:
        return None

    if period:
        if not 1 <= hours <= 12:
            return None
        period = period.upper()
        if period == "PM" and hours < 12:
            hours += 12
        elif period == "AM" and hours == 12:
            hours = 0
    elif hours > 23:
        return None

    return hours * 60 + minutes


def _matches_query(offer: RouteOffer, query: str) -> bool:
    needle = query.lower()
    for value in (offer.name, offer.plate_number, offer.origin, offer.destination):
        if value and needle in value.lower():
            return True
    return False


def matches_filters(offer: RouteOffer, filters: RouteFilters) -> bool:
    """True when the offer passes every filter that is set."""
    if filters.min_price is not None and offer.price < filters.min_price:
        return False
    if filters.max_price is not None and offer.price > filters.max_price:
        return False

    if filters.min_rating is not None:
        if offer.rating is None or offer.rating < filters.min_rating:
            return False

    if filters.amenities:
        if not offer.amenities:
            return False
        if not set(filters.amenities).issubset(offer.amenities):
            return False

    query = (filters.query or "").strip()
    if query and not _matches_query(offer, query):
        return False

    return True


def apply_filters(offers: Iterable[RouteOffer], filters: RouteFilters) -> List[RouteOffer]:
    """Return the offers passing ``filters``, in their original order."""
    return [offer for offer in offers if matches_filters(offer, filters)]


def sort_offers(offers: Sequence[RouteOffer], sort_key: SortKey) -> List[RouteOffer]:
    """
    Return a new list of offers in the requested order.

    Sorting is stable: offers with equal keys keep their relative order.
    Offers missing the sort field (no rating, unparseable departure) go last.
    The input sequence is never mutated.
    """
    sort_key = SortKey(sort_key)

    if sort_key is SortKey.PRICE_LOW:
        return sorted(offers, key=lambda o: o.price)
    if sort_key is SortKey.PRICE_HIGH:
        return sorted(offers, key=lambda o: o.price, reverse=True)
    if sort_key is SortKey.RATING:
        return sorted(
            offers,
            key=lambda o: o.rating if o.rating is not None else -math.inf,
            reverse=True,
        )

    def departure_key(offer: RouteOffer):
        minutes = departure_minutes(offer.departure_time)
        return math.inf if minutes is None else minutes

    return sorted(offers, key=departure_key)


def filter_and_sort(
    offers: Sequence[RouteOffer],
    filters: Optional[RouteFilters] = None,
    sort_key: Optional[SortKey] = None,
) -> List[RouteOffer]:
    """Results view: filter, then sort when a sort key is chosen."""
    visible = apply_filters(offers, filters or RouteFilters())
    if sort_key is None:
        return visible
    return sort_offers(visible, sort_key)


def available_amenities(offers: Iterable[RouteOffer]) -> List[str]:
    """Distinct amenities across ``offers`` in first-seen order, for filter controls."""
    seen = {}
    for offer in offers:
        for amenity in offer.amenities or ():
            seen.setdefault(amenity, None)
    return list(seen)


def price_range(offers: Iterable[RouteOffer]) -> Optional[tuple[Decimal, Decimal]]:
    """Lowest and highest unit price, or None for an empty result set."""
    prices = [offer.price for offer in offers]
    if not prices:
        return None
    return min(prices), max(prices)
