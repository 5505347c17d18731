"""
Seat map calculator.

Partitions a bus's seats 1..capacity into available and booked for one
travel date, given the bookings recorded for that bus and date.

Seat release is implicit: cancelled bookings are filtered out here, so
cancelling never has to touch any seat bookkeeping.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol, Sequence

from busreserve.core.logging import get_logger
from busreserve.core.metrics import seat_map_violations
from busreserve.services.policy import holds_seats

logger = get_logger(__name__)


class SeatHolder(Protocol):
    id: str
    status: str
    seat_numbers: Sequence[int]


@dataclass(frozen=True)
class SeatMap:
    capacity: int
    available: frozenset
    booked: frozenset
    # Seats claimed by more than one non-cancelled booking. Always empty unless
    # something wrote to the ledger without going through the coordinator.
    duplicates: frozenset = field(default_factory=frozenset)
    holders: dict = field(default_factory=dict, compare=False, repr=False)

    def conflicts(self, requested: Iterable[int]) -> list[int]:
        return sorted(seat for seat in set(requested) if seat not in self.available)

    @property
    def available_count(self) -> int:
        return len(self.available)


def compute_seat_map(
    capacity: int,
    bookings: Iterable[SeatHolder],
    exclude_booking_id: Optional[str] = None,
) -> SeatMap:
    universe = frozenset(range(1, capacity + 1))
    held: set[int] = set()
    duplicates: set[int] = set()
    out_of_range: set[int] = set()
    holders: dict[int, str] = {}

    for booking in bookings:
        if booking.id == exclude_booking_id or not holds_seats(booking.status):
            continue
        for seat in booking.seat_numbers:
            if seat not in universe:
                out_of_range.add(seat)
                continue
            if seat in held:
                duplicates.add(seat)
                continue
            held.add(seat)
            holders[seat] = booking.id

    if duplicates:
        seat_map_violations.inc(len(duplicates))
        logger.warning(
            "seat_map_consistency_violation",
            seats=sorted(duplicates),
            message="Seat held by multiple non-cancelled bookings",
        )
    if out_of_range:
        logger.warning("seat_map_out_of_range_seats", seats=sorted(out_of_range), capacity=capacity)

    booked = frozenset(held)
    return SeatMap(
        capacity=capacity,
        available=universe - booked,
        booked=booked,
        duplicates=frozenset(duplicates),
        holders=holders,
    )


def seat_layout(capacity: int, seats_per_row: int = 4) -> list[list[int]]:
    """Group seat numbers into rows, 2+2 by default. Rendering only."""
    seats = list(range(1, capacity + 1))
    return [seats[i:i + seats_per_row] for i in range(0, len(seats), seats_per_row)]
