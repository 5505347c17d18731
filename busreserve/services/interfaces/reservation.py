"""
Reservation strategy interface.
Allows swapping between concurrency control approaches for the seat
read-validate-write critical section.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Awaitable, Callable, Iterable, NamedTuple, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from busreserve.core.logging import get_logger
from busreserve.models.booking import SeatInventory

logger = get_logger(__name__)

T = TypeVar("T")

Operation = Callable[[AsyncSession], Awaitable[T]]


class ReservationKey(NamedTuple):
    """One seat map: a bus on a calendar date."""

    bus_id: int
    travel_date: date

    def lock_name(self) -> str:
        return f"seatmap:{self.bus_id}:{self.travel_date.isoformat()}"


class ReservationStrategy(ABC):
    """
    Interface for seat reservation concurrency strategies.

    Implementations:
    - PessimisticReservation: exclusive per-key lock around the operation
    - OptimisticReservation: version compare-and-set on commit, bounded retry

    Either way, `operation` runs in a fresh session, reads occupancy, validates
    and stages its writes; the strategy commits only if no competing write for
    the same keys can have slipped in, and rolls back on every failure path.
    """

    name: str = "abstract"

    @abstractmethod
    async def execute(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        keys: Iterable[ReservationKey],
        operation: Operation,
        contended_seats: Iterable[int] = (),
    ) -> T:
        """
        Run `operation` atomically with respect to every other operation
        touching any of `keys`.

        Args:
            session_factory: Opens the session the operation runs in
            keys: Seat maps read or written by the operation
            operation: Read-validate-write unit; must not commit
            contended_seats: Seats reported if the strategy gives up

        Returns:
            Whatever `operation` returned, after commit
        """


async def ensure_inventory(
    session_factory: async_sessionmaker[AsyncSession],
    keys: Iterable[ReservationKey],
) -> None:
    """Create missing seat_inventory anchor rows, tolerating concurrent creators."""
    for key in keys:
        async with session_factory() as session:
            existing = await session.scalar(
                select(SeatInventory.id).where(
                    SeatInventory.bus_id == key.bus_id,
                    SeatInventory.travel_date == key.travel_date,
                )
            )
            if existing is not None:
                continue
            session.add(SeatInventory(bus_id=key.bus_id, travel_date=key.travel_date, version=0))
            try:
                await session.commit()
                logger.debug("seat_inventory_created", key=key.lock_name())
            except IntegrityError:
                # Another request created the row between our read and insert.
                await session.rollback()
