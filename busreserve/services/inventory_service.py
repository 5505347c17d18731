"""
Inventory query service: read-only seat availability for booking screens
and admin edit forms.

Reads take no locks. A result can be stale by the time the client submits;
the reservation coordinator re-validates inside its critical section.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from busreserve.services.catalog import get_bus
from busreserve.services.ledger import BookingLedger
from busreserve.services.seat_map import SeatMap, compute_seat_map, seat_layout


@dataclass(frozen=True)
class Availability:
    total_seats: int
    available_seats: list[int]
    booked_seats: list[int]
    available_count: int

    @classmethod
    def from_seat_map(cls, seat_map: SeatMap) -> "Availability":
        return cls(
            total_seats=seat_map.capacity,
            available_seats=sorted(seat_map.available),
            booked_seats=sorted(seat_map.booked),
            available_count=seat_map.available_count,
        )


class InventoryQueryService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = BookingLedger(db)

    async def seat_map(
        self,
        bus_id: int,
        travel_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> SeatMap:
        bus = await get_bus(self.db, bus_id)
        bookings = await self.ledger.list_by_bus_and_date(bus_id, travel_date)
        return compute_seat_map(bus.capacity, bookings, exclude_booking_id)

    async def get_available_seats(
        self,
        bus_id: int,
        travel_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> Availability:
        seat_map = await self.seat_map(bus_id, travel_date, exclude_booking_id)
        return Availability.from_seat_map(seat_map)

    async def get_seat_layout(self, bus_id: int, travel_date: date) -> dict:
        """Seat grid for the bus dashboard: rows of four, each seat with its holder."""
        seat_map = await self.seat_map(bus_id, travel_date)
        rows = [
            [
                {
                    "seat_number": seat,
                    "is_booked": seat in seat_map.booked,
                    "booking_id": seat_map.holders.get(seat),
                }
                for seat in row
            ]
            for row in seat_layout(seat_map.capacity)
        ]
        return {
            "bus_id": bus_id,
            "travel_date": travel_date,
            "total_seats": seat_map.capacity,
            "booked_count": len(seat_map.booked),
            "available_count": seat_map.available_count,
            "rows": rows,
        }
