"""
Reservation coordinator: the only writer of seat occupancy.

CONCURRENCY MODEL
=================

Problem:
  Two passengers pick seat 12 on the same bus and date at the same moment.
  Both read the seat map, both see 12 free, both insert a booking.
  Result: a double-booked seat.

Solution:
  Every create/edit/cancel/refund runs its read-validate-write sequence
  inside a critical section keyed by (bus_id, travel_date), provided by a
  ReservationStrategy:

  - PessimisticReservation: exclusive per-key lock, then read, validate,
    write, commit, release. Default.
  - OptimisticReservation: read the seat_inventory version, validate and
    write, commit only if the version is unchanged, retry otherwise.

  In both cases the commit happens before the section is left, so a
  competing request always validates against committed state. Two requests
  for overlapping seats: one succeeds, the other gets SeatConflict.
  Requests for different buses or dates never contend.

  Seat release is implicit. Cancelling flips the status and the seat map
  stops counting the booking; no seat bookkeeping has to be kept in sync.

  Policy checks (7-day window, status) are evaluated before entering the
  section for a fast answer, and again on the freshly read row inside it.
"""

import time
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from busreserve.core.config import Settings, get_settings
from busreserve.core.exceptions import (
    BookingError,
    NotEditable,
    NotEligible,
    SeatConflict,
    StorageFailure,
    ValidationError,
)
from busreserve.core.logging import get_logger, reservation_context
from busreserve.core.metrics import record_outcome, reservation_latency
from busreserve.models.booking import Booking, BookingStatus, PaymentStatus, new_booking_id
from busreserve.models.catalog import Bus, Route
from busreserve.schemas.booking import BookingCreate, BookingUpdate
from busreserve.services import policy
from busreserve.services.catalog import get_bus, get_route
from busreserve.services.interfaces.reservation import ReservationKey, ReservationStrategy
from busreserve.services.inventory_service import Availability, InventoryQueryService
from busreserve.services.ledger import BookingFilters, BookingLedger
from busreserve.services.seat_map import compute_seat_map
from busreserve.services.strategy_factory import get_reservation_strategy

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_seats(seat_numbers: Iterable[int], capacity: int) -> list[int]:
    """Validate a requested seat set and return it sorted."""
    seats = list(seat_numbers)
    if not seats:
        raise ValidationError("At least one seat must be selected")

    duplicates = sorted({s for s in seats if seats.count(s) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate seat numbers: {', '.join(map(str, duplicates))}")

    invalid = sorted(s for s in seats if s < 1 or s > capacity)
    if invalid:
        raise ValidationError(f"Invalid seat numbers: {', '.join(map(str, invalid))}")

    return sorted(seats)


def _require_text(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{label} is required")
    return value.strip()


def _check_pickup(route: Route, pickup_location: Optional[str]) -> None:
    allowed = route.pickup_locations or []
    if pickup_location and allowed and pickup_location not in allowed:
        raise ValidationError(
            f"Pickup location '{pickup_location}' is not served by route {route.id}"
        )


def _fare(route: Route, seat_count: int) -> Decimal:
    return Decimal(route.price) * seat_count


class ReservationCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        strategy: Optional[ReservationStrategy] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.strategy = strategy or get_reservation_strategy()
        self.window = timedelta(days=self.settings.MODIFICATION_WINDOW_DAYS)
        self.clock = clock

    @asynccontextmanager
    async def _track(self, operation: str):
        """Outcome metrics, latency and storage-error translation for one operation."""
        started = time.perf_counter()
        try:
            yield
        except SeatConflict as e:
            record_outcome(operation, "conflict")
            logger.info("seat_conflict", operation=operation, conflicting_seats=e.conflicting_seats)
            raise
        except BookingError as e:
            record_outcome(operation, "error" if e.status_code >= 500 else "rejected")
            logger.info("reservation_rejected", operation=operation, error=e.code, reason=e.message)
            raise
        except SQLAlchemyError as e:
            record_outcome(operation, "error")
            logger.exception("ledger_failure", operation=operation)
            raise StorageFailure("Booking ledger unavailable; no changes were saved") from e
        else:
            record_outcome(operation, "success")
        finally:
            reservation_latency.labels(operation=operation).observe(time.perf_counter() - started)

    async def _load(self, booking_id: str) -> tuple[Booking, Bus, Route]:
        async with self.session_factory() as db:
            booking = await BookingLedger(db).get(booking_id)
            bus = await get_bus(db, booking.bus_id)
            route = await get_route(db, booking.route_id)
        return booking, bus, route

    async def create_booking(self, data: BookingCreate) -> Booking:
        """
        Reserve seats for one passenger.

        Either the whole seat set is booked or nothing is written; any seat
        already held by a non-cancelled booking fails with SeatConflict.
        """
        async with self._track("create"):
            async with self.session_factory() as db:
                bus = await get_bus(db, data.bus_id)
                route = await get_route(db, data.route_id)

            if not bus.is_active:
                raise ValidationError(f"Bus {bus.id} is not in service")
            if bus.route_id is not None and bus.route_id != route.id:
                raise ValidationError(f"Bus {bus.id} does not run on route {route.id}")

            seats = normalize_seats(data.seat_numbers, bus.capacity)
            passenger_name = _require_text(data.passenger_name, "Passenger name")
            passenger_phone = _require_text(data.passenger_phone, "Passenger phone")
            _check_pickup(route, data.pickup_location)

            key = ReservationKey(bus.id, data.travel_date)

            async def reserve(session: AsyncSession) -> Booking:
                ledger = BookingLedger(session)
                seat_map = compute_seat_map(
                    bus.capacity, await ledger.list_by_bus_and_date(bus.id, data.travel_date)
                )
                conflicts = seat_map.conflicts(seats)
                if conflicts:
                    raise SeatConflict(conflicts)

                booking = Booking(
                    id=new_booking_id(),
                    user_id=data.user_id,
                    bus_id=bus.id,
                    route_id=route.id,
                    travel_date=data.travel_date,
                    seat_numbers=seats,
                    passenger_name=passenger_name,
                    passenger_phone=passenger_phone,
                    passenger_email=data.passenger_email,
                    pickup_location=data.pickup_location,
                    booking_date=self.clock(),
                    total_amount=_fare(route, len(seats)),
                    status=BookingStatus.CONFIRMED.value,
                    payment_status=data.payment_status,
                    payment_method=data.payment_method,
                    transaction_id=data.transaction_id,
                    notes=data.notes,
                )
                return await ledger.insert(booking)

            with reservation_context(key.bus_id, key.travel_date):
                booking = await self.strategy.execute(
                    self.session_factory, [key], reserve, contended_seats=seats
                )
                logger.info(
                    "booking_created",
                    booking_id=booking.id,
                    seats=booking.seat_numbers,
                    total_amount=str(booking.total_amount),
                    strategy=self.strategy.name,
                )
        return booking

    async def edit_booking(self, booking_id: str, changes: BookingUpdate) -> Booking:
        """
        Modify a booking inside its 7-day window.

        Moving seats or dates is validated against the target seat map with
        this booking excluded, so keeping some of its own seats is allowed.
        """
        fields = changes.changes()
        async with self._track("edit"):
            # A concurrent edit may move the booking to a date we did not lock;
            # reload and lock again when that happens.
            for _ in range(self.settings.MAX_RETRY_ATTEMPTS):
                current, bus, route = await self._load(booking_id)
                self._ensure_editable(current)

                new_date: date = fields.get("travel_date", current.travel_date)
                new_seats = None
                if "seat_numbers" in fields:
                    new_seats = normalize_seats(fields["seat_numbers"], bus.capacity)
                if "passenger_name" in fields:
                    fields["passenger_name"] = _require_text(fields["passenger_name"], "Passenger name")
                if "passenger_phone" in fields:
                    fields["passenger_phone"] = _require_text(fields["passenger_phone"], "Passenger phone")
                if fields.get("pickup_location"):
                    _check_pickup(route, fields["pickup_location"])

                keys = [
                    ReservationKey(bus.id, current.travel_date),
                    ReservationKey(bus.id, new_date),
                ]
                seen_date = current.travel_date

                async def apply(session: AsyncSession) -> Optional[Booking]:
                    ledger = BookingLedger(session)
                    booking = await ledger.get(booking_id)
                    if booking.travel_date != seen_date:
                        return None
                    self._ensure_editable(booking)

                    target_status = fields.get("status", booking.status)
                    policy.check_status_transition(booking.status, target_status)
                    if "payment_status" in fields:
                        policy.check_payment_transition(booking.payment_status, fields["payment_status"])

                    reinstated = not policy.holds_seats(booking.status) and policy.holds_seats(target_status)
                    if reinstated and booking.payment_status == PaymentStatus.REFUNDED:
                        raise NotEditable("Refunded bookings cannot be reinstated")

                    seats = new_seats if new_seats is not None else list(booking.seat_numbers)
                    moved = new_date != booking.travel_date or seats != sorted(booking.seat_numbers)
                    if policy.holds_seats(target_status) and (moved or reinstated):
                        seat_map = compute_seat_map(
                            bus.capacity,
                            await ledger.list_by_bus_and_date(bus.id, new_date),
                            exclude_booking_id=booking.id,
                        )
                        conflicts = seat_map.conflicts(seats)
                        if conflicts:
                            raise SeatConflict(conflicts)

                    mutation = dict(fields)
                    if new_seats is not None:
                        mutation["seat_numbers"] = new_seats
                        mutation["total_amount"] = _fare(route, len(new_seats))
                    return await ledger.update(booking.id, mutation)

                with reservation_context(bus.id, new_date):
                    booking = await self.strategy.execute(
                        self.session_factory, keys, apply, contended_seats=new_seats or ()
                    )
                    if booking is not None:
                        logger.info(
                            "booking_updated",
                            booking_id=booking.id,
                            fields=sorted(fields),
                            seats=booking.seat_numbers,
                        )
                        return booking
                    logger.info("booking_moved_concurrently", booking_id=booking_id)

            raise SeatConflict(
                new_seats or current.seat_numbers,
                message="Booking was modified concurrently. Please reload and try again.",
            )

    async def cancel_booking(self, booking_id: str) -> Booking:
        """Cancel a booking; its seats return to the pool. Idempotent."""
        async with self._track("cancel"):
            current, bus, _ = await self._load(booking_id)
            if current.status == BookingStatus.CANCELLED:
                logger.info("booking_already_cancelled", booking_id=booking_id)
                return current

            async def apply(session: AsyncSession) -> Booking:
                ledger = BookingLedger(session)
                booking = await ledger.get(booking_id)
                if booking.status == BookingStatus.CANCELLED:
                    return booking
                if booking.status == BookingStatus.COMPLETED:
                    raise NotEligible("Completed bookings cannot be cancelled")
                return await ledger.update(booking.id, {"status": BookingStatus.CANCELLED.value})

            with reservation_context(bus.id, current.travel_date):
                booking = await self.strategy.execute(
                    self.session_factory, [ReservationKey(bus.id, current.travel_date)], apply
                )
                logger.info("booking_cancelled", booking_id=booking.id, seats_released=booking.seat_numbers)
        return booking

    async def refund_booking(self, booking_id: str) -> Booking:
        """Refund a paid booking inside its window. Refunding always cancels."""
        async with self._track("refund"):
            current, bus, _ = await self._load(booking_id)
            self._ensure_refundable(current)

            async def apply(session: AsyncSession) -> Booking:
                ledger = BookingLedger(session)
                booking = await ledger.get(booking_id)
                now = self._ensure_refundable(booking)
                stamp = f"Refunded on {now.isoformat()}"
                return await ledger.update(booking.id, {
                    "payment_status": PaymentStatus.REFUNDED.value,
                    "status": BookingStatus.CANCELLED.value,
                    "notes": f"{booking.notes}\n\n{stamp}" if booking.notes else stamp,
                })

            with reservation_context(bus.id, current.travel_date):
                booking = await self.strategy.execute(
                    self.session_factory, [ReservationKey(bus.id, current.travel_date)], apply
                )
                logger.info(
                    "booking_refunded",
                    booking_id=booking.id,
                    amount=str(booking.total_amount),
                    seats_released=booking.seat_numbers,
                )
        return booking

    def _ensure_editable(self, booking: Booking) -> None:
        reason = policy.edit_rejection_reason(booking, self.clock(), self.window)
        if reason:
            raise NotEditable(reason)

    def _ensure_refundable(self, booking: Booking) -> datetime:
        now = self.clock()
        reason = policy.refund_ineligibility_reason(booking, now, self.window)
        if reason:
            raise NotEligible(reason)
        return now

    # Read paths: no critical section, snapshot reads.

    async def query_availability(
        self,
        bus_id: int,
        travel_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> Availability:
        async with self.session_factory() as db:
            return await InventoryQueryService(db).get_available_seats(
                bus_id, travel_date, exclude_booking_id
            )

    async def get_booking(self, booking_id: str) -> Booking:
        async with self.session_factory() as db:
            return await BookingLedger(db).get(booking_id)

    async def list_bookings(self, filters: BookingFilters) -> list[Booking]:
        async with self.session_factory() as db:
            return await BookingLedger(db).list_by_filter(filters)
