"""Property-based tests for filtering, sorting and seat binding invariants."""

from datetime import date
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from busbook.core.policy import BookingPolicy
from busbook.schemas.booking import BookingDraft
from busbook.schemas.route import RouteFilters, RouteOffer, SearchParameters, SortKey
from busbook.services.filtering import apply_filters, sort_offers
from busbook.services.pricing import PriceCalculator
from busbook.services.seat_binder import SeatPassengerBinder

# Strategies for generating test data
clock_times = st.one_of(
    st.none(),
    st.just("TBA"),
    st.builds(
        lambda h, m, p: f"{h:02d}:{m:02d} {p}",
        st.integers(min_value=1, max_value=12),
        st.integers(min_value=0, max_value=59),
        st.sampled_from(["AM", "PM"]),
    ),
)
amenity_names = st.sampled_from(["wifi", "ac", "usb", "toilet", "snacks"])
prices = st.decimals(min_value=0, max_value=500, places=2, allow_nan=False, allow_infinity=False)

offers = st.builds(
    RouteOffer,
    id=st.uuids().map(str),
    name=st.one_of(st.none(), st.sampled_from(["VIP", "STC", "OA Travel", "Metro Mass"])),
    origin=st.sampled_from(["Accra", "Kumasi", "Tamale"]),
    destination=st.sampled_from(["Cape Coast", "Takoradi", "Ho"]),
    departure_time=clock_times,
    price=prices,
    rating=st.one_of(st.none(), st.floats(min_value=0, max_value=5, allow_nan=False)),
    amenities=st.one_of(st.none(), st.lists(amenity_names, unique=True).map(tuple)),
)

filters = st.builds(
    RouteFilters,
    min_price=st.one_of(st.none(), prices),
    max_price=st.one_of(st.none(), prices),
    min_rating=st.one_of(st.none(), st.floats(min_value=0, max_value=5, allow_nan=False)),
    amenities=st.lists(amenity_names, unique=True, max_size=2).map(tuple),
    query=st.one_of(st.none(), st.sampled_from(["", "a", "stc", "KUM", "zzz"])),
)

seat_ids = st.sampled_from(["1A", "1B", "2A", "2B", "3A", "3B", "4A", "4B", "5A", "5B", "6A"])
actions = st.one_of(
    st.tuples(st.just("toggle"), seat_ids),
    st.tuples(st.just("add"), st.none()),
    st.tuples(st.just("remove"), st.integers(min_value=0, max_value=5)),
)


def is_subsequence(small, large):
    it = iter(large)
    return all(any(item is candidate for candidate in it) for item in small)


def new_binder(max_seats=4):
    offer = RouteOffer(id="bus-1", price=Decimal("120"), unavailable_seats=("1A",))
    search = SearchParameters(origin="Accra", destination="Kumasi", travel_date=date(2030, 6, 15))
    return SeatPassengerBinder(BookingDraft(offer=offer, search=search), BookingPolicy(max_seats=max_seats))


def apply_action(binder, action):
    kind, arg = action
    if kind == "toggle":
        if binder.draft.offer.is_seat_available(arg):
            binder.toggle_seat(arg)
    elif kind == "add":
        binder.add_passenger()
    else:
        passengers = binder.passengers
        binder.remove_passenger(passengers[arg % len(passengers)].id)


@given(offers=st.lists(offers, max_size=15), filters=filters)
def test_filter_output_is_subsequence(offers, filters):
    """Test filtering only drops offers and never reorders them."""
    result = apply_filters(offers, filters)

    assert is_subsequence(result, offers)


@given(offers=st.lists(offers, max_size=15), sort_key=st.sampled_from(list(SortKey)))
def test_sort_is_idempotent_and_a_permutation(offers, sort_key):
    """Test sorting twice equals sorting once, and keeps every offer."""
    once = sort_offers(offers, sort_key)
    twice = sort_offers(once, sort_key)

    assert [o.id for o in once] == [o.id for o in twice]
    assert sorted(o.id for o in once) == sorted(o.id for o in offers)


@given(actions=st.lists(actions, max_size=25), seat=seat_ids.filter(lambda s: s != "1A"))
def test_toggle_twice_round_trips_seat_set(actions, seat):
    """Test toggling the same seat twice restores the seat set."""
    binder = new_binder(max_seats=11)
    for action in actions:
        apply_action(binder, action)
    before = set(binder.seats)

    binder.toggle_seat(seat)
    binder.toggle_seat(seat)

    assert set(binder.seats) == before


@settings(max_examples=200)
@given(actions=st.lists(actions, max_size=40), max_seats=st.integers(min_value=1, max_value=6))
def test_binder_invariants_hold_after_any_sequence(actions, max_seats):
    """Test passenger and seat invariants after arbitrary edits."""
    binder = new_binder(max_seats=max_seats)

    for action in actions:
        apply_action(binder, action)

        seats = binder.seats
        passengers = binder.passengers
        assert len(passengers) >= 1
        assert len(seats) <= len(passengers) <= max_seats
        assert len(set(seats)) == len(seats)
        assert "1A" not in seats
        bound = [p.seat_id for p in passengers if p.seat_id is not None]
        assert sorted(bound) == sorted(seats)


@given(unit=prices, count=st.integers(min_value=0, max_value=10), fee=prices)
def test_total_is_linear_in_count(unit, count, fee):
    """Test each extra passenger adds exactly one unit price."""
    calculator = PriceCalculator(BookingPolicy(fixed_fee=fee))

    assert calculator.total(unit, count + 1) - calculator.total(unit, count) == unit
    assert calculator.total(unit, 0) == fee
