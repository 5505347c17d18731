"""
Booking ledger: the durable record of every booking and the source of truth
for seat occupancy.

The ledger never commits. It stages reads and writes on the session it is
given; the reservation coordinator owns the transaction and decides when the
unit of work is durable.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from busreserve.core.exceptions import DuplicateId, NotFound, ValidationError
from busreserve.core.logging import get_logger
from busreserve.models.booking import Booking

logger = get_logger(__name__)

# Identity, references and the policy anchor stay fixed for a booking's lifetime.
IMMUTABLE_FIELDS = frozenset({"id", "bus_id", "route_id", "booking_date", "user_id"})

MUTABLE_FIELDS = frozenset({
    "travel_date",
    "seat_numbers",
    "passenger_name",
    "passenger_phone",
    "passenger_email",
    "pickup_location",
    "total_amount",
    "status",
    "payment_status",
    "payment_method",
    "transaction_id",
    "notes",
})


@dataclass
class BookingFilters:
    travel_date: Optional[date] = None
    route_id: Optional[int] = None
    bus_id: Optional[int] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    user_id: Optional[int] = None
    booking_ids: list[str] = field(default_factory=list)


class BookingLedger:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, booking: Booking) -> Booking:
        if booking.id is not None and await self.session.get(Booking, booking.id) is not None:
            raise DuplicateId(f"Booking {booking.id} already exists")
        self.session.add(booking)
        try:
            await self.session.flush()
        except IntegrityError as e:
            # Only the primary key can collide here; other constraints are
            # checked before the coordinator stages the row.
            logger.warning("ledger_insert_conflict", booking_id=booking.id, error=str(e.orig))
            raise DuplicateId(f"Booking {booking.id} already exists") from e
        return booking

    async def get(self, booking_id: str) -> Booking:
        booking = await self.session.get(Booking, booking_id, populate_existing=True)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    async def list_by_bus_and_date(self, bus_id: int, travel_date: date) -> list[Booking]:
        """All bookings of any status; the seat map applies the status filter."""
        result = await self.session.execute(
            select(Booking)
            .where(Booking.bus_id == bus_id, Booking.travel_date == travel_date)
            .order_by(Booking.booking_date.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def update(self, booking_id: str, mutation: dict[str, Any]) -> Booking:
        illegal = set(mutation) - MUTABLE_FIELDS
        if illegal:
            raise ValidationError(f"Fields cannot be modified: {', '.join(sorted(illegal))}")

        booking = await self.get(booking_id)
        for name, value in mutation.items():
            setattr(booking, name, value)
        await self.session.flush()
        return booking

    async def list_by_filter(self, filters: BookingFilters) -> list[Booking]:
        query = select(Booking)

        if filters.booking_ids:
            query = query.where(Booking.id.in_(filters.booking_ids))
        if filters.travel_date:
            query = query.where(Booking.travel_date == filters.travel_date)
        if filters.route_id:
            query = query.where(Booking.route_id == filters.route_id)
        if filters.bus_id:
            query = query.where(Booking.bus_id == filters.bus_id)
        if filters.status:
            query = query.where(Booking.status == filters.status)
        if filters.payment_status:
            query = query.where(Booking.payment_status == filters.payment_status)
        if filters.user_id:
            query = query.where(Booking.user_id == filters.user_id)

        result = await self.session.execute(
            query.order_by(Booking.travel_date.desc(), Booking.created_at.desc())
        )
        return list(result.scalars().all())
