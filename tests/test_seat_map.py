"""
Tests for the seat map calculator.
"""

from types import SimpleNamespace

import pytest

from busreserve.core.metrics import seat_map_violations
from busreserve.services.seat_map import compute_seat_map, seat_layout


def booking(id, seats, status="confirmed"):
    return SimpleNamespace(id=id, seat_numbers=seats, status=status)


@pytest.mark.parametrize(
    "capacity, bookings",
    [
        (1, []),
        (40, [booking("a", [1, 2]), booking("b", [3, 4])]),
        (40, [booking("a", [40]), booking("b", [1], "cancelled"), booking("c", [20], "pending")]),
        (12, [booking("a", [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12])]),
    ],
)
def test_available_and_booked_partition_the_bus(capacity, bookings):
    seat_map = compute_seat_map(capacity, bookings)
    assert seat_map.available | seat_map.booked == frozenset(range(1, capacity + 1))
    assert not seat_map.available & seat_map.booked


def test_booked_is_union_of_holding_bookings():
    seat_map = compute_seat_map(40, [booking("a", [1, 2]), booking("c", [3, 4])])
    assert seat_map.booked == {1, 2, 3, 4}
    assert seat_map.available == set(range(5, 41))
    assert seat_map.available_count == 36


def test_cancelled_bookings_release_their_seats():
    seat_map = compute_seat_map(10, [booking("a", [1, 2], "cancelled"), booking("b", [3])])
    assert seat_map.booked == {3}
    assert {1, 2} <= seat_map.available


def test_pending_and_completed_bookings_hold_seats():
    seat_map = compute_seat_map(10, [booking("a", [1], "pending"), booking("b", [2], "completed")])
    assert seat_map.booked == {1, 2}


def test_excluded_booking_seats_are_available():
    seat_map = compute_seat_map(
        10, [booking("a", [1, 2]), booking("b", [3])], exclude_booking_id="a"
    )
    assert seat_map.booked == {3}
    assert {1, 2} <= seat_map.available


def test_duplicate_seat_is_counted_once_and_reported():
    before = seat_map_violations._value.get()
    seat_map = compute_seat_map(10, [booking("a", [1, 2]), booking("b", [2, 3])])

    assert seat_map.booked == {1, 2, 3}
    assert seat_map.duplicates == {2}
    assert seat_map.available | seat_map.booked == frozenset(range(1, 11))
    assert seat_map_violations._value.get() == before + 1


def test_out_of_range_seats_do_not_leak_into_booked():
    # e.g. a bus re-registered with fewer seats after bookings were taken
    seat_map = compute_seat_map(4, [booking("a", [3, 4, 5, 6])])
    assert seat_map.booked == {3, 4}
    assert seat_map.available == {1, 2}


def test_conflicts_lists_unavailable_requested_seats_sorted():
    seat_map = compute_seat_map(40, [booking("a", [1, 2])])
    assert seat_map.conflicts([3, 2, 1]) == [1, 2]
    assert seat_map.conflicts([5, 6]) == []


def test_seat_layout_rows_of_four():
    assert seat_layout(10) == [[1, 2, 3, 4], [5, 6, 7, 8], [9, 10]]
    assert seat_layout(4) == [[1, 2, 3, 4]]
