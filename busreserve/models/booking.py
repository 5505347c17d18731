"""
Booking model: one passenger's claim on seats of a bus for a travel date.

Key design decisions:
- Bookings are never deleted; cancellation is a status change and the seat
  map ignores cancelled rows, which is what releases their seats
- seat_numbers is stored as a sorted JSON list; conflicts are decided by the
  reservation coordinator, not by a per-seat table
- Composite index on (bus_id, travel_date) serves seat-map computation
- bus_id, route_id, booking_date never change after insert
"""

import enum
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from busreserve.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"
    BANK_TRANSFER = "bank_transfer"


def new_booking_id() -> str:
    return str(uuid4())


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_booking_id)
    user_id = Column(Integer, nullable=True, index=True)
    bus_id = Column(Integer, ForeignKey("buses.id"), nullable=False)
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=False)

    travel_date = Column(Date, nullable=False)
    seat_numbers = Column(JSON, nullable=False)

    passenger_name = Column(String(255), nullable=False)
    passenger_phone = Column(String(50), nullable=False)
    passenger_email = Column(String(255), nullable=True)
    pickup_location = Column(String(255), nullable=True)

    booking_date = Column(DateTime(timezone=True), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    transaction_id = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_bookings_bus_travel_date", "bus_id", "travel_date"),
        Index("ix_bookings_status", "status"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded')",
            name="check_booking_payment_status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, bus={self.bus_id}, date={self.travel_date}, "
            f"seats={self.seat_numbers}, status={self.status})>"
        )


class SeatInventory(Base):
    """
    Concurrency anchor for one (bus, travel date) seat map.

    Holds no seat data. Pessimistic reservations lock this row; optimistic
    reservations bump `version` with a compare-and-set, the same version
    column pattern the event table used for its seat counter.
    """

    __tablename__ = "seat_inventory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bus_id = Column(Integer, ForeignKey("buses.id"), nullable=False)
    travel_date = Column(Date, nullable=False)
    version = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("bus_id", "travel_date", name="uq_seat_inventory_bus_date"),
    )

    def __repr__(self) -> str:
        return f"<SeatInventory(bus={self.bus_id}, date={self.travel_date}, v={self.version})>"
