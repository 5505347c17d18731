"""
Tests for the booking ledger.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from busreserve.core.exceptions import DuplicateId, NotFound, ValidationError
from busreserve.models.booking import Booking
from busreserve.services.ledger import BookingFilters, BookingLedger

TRAVEL_DATE = date(2025, 6, 1)


def make_booking(bus, route, seats, travel_date=TRAVEL_DATE, **fields):
    values = {
        "bus_id": bus.id,
        "route_id": route.id,
        "travel_date": travel_date,
        "seat_numbers": seats,
        "passenger_name": "Kamala Silva",
        "passenger_phone": "0771234567",
        "booking_date": datetime(2025, 5, 20, 9, 0, tzinfo=timezone.utc),
        "total_amount": Decimal("25.00") * len(seats),
        "status": "confirmed",
        "payment_status": "pending",
        "payment_method": "cash",
    }
    values.update(fields)
    return Booking(**values)


@pytest.mark.asyncio
async def test_insert_assigns_id_and_persists(db_session, test_bus, test_route):
    ledger = BookingLedger(db_session)
    booking = await ledger.insert(make_booking(test_bus, test_route, [1, 2]))
    await db_session.commit()

    assert booking.id
    stored = await ledger.get(booking.id)
    assert stored.seat_numbers == [1, 2]


@pytest.mark.asyncio
async def test_insert_duplicate_id(db_session, test_bus, test_route):
    ledger = BookingLedger(db_session)
    await ledger.insert(make_booking(test_bus, test_route, [1], id="fixed-id"))
    await db_session.commit()

    with pytest.raises(DuplicateId):
        await ledger.insert(make_booking(test_bus, test_route, [2], id="fixed-id"))


@pytest.mark.asyncio
async def test_get_missing_booking(db_session):
    with pytest.raises(NotFound):
        await BookingLedger(db_session).get("does-not-exist")


@pytest.mark.asyncio
async def test_list_by_bus_and_date_includes_every_status(db_session, test_bus, test_route):
    ledger = BookingLedger(db_session)
    await ledger.insert(make_booking(test_bus, test_route, [1]))
    await ledger.insert(make_booking(test_bus, test_route, [2], status="cancelled"))
    await ledger.insert(make_booking(test_bus, test_route, [3], travel_date=date(2025, 6, 2)))
    await db_session.commit()

    bookings = await ledger.list_by_bus_and_date(test_bus.id, TRAVEL_DATE)
    assert sorted(b.seat_numbers[0] for b in bookings) == [1, 2]


@pytest.mark.asyncio
async def test_update_mutable_fields(db_session, test_bus, test_route):
    ledger = BookingLedger(db_session)
    booking = await ledger.insert(make_booking(test_bus, test_route, [1]))
    await db_session.commit()

    updated = await ledger.update(booking.id, {"passenger_name": "K. Silva", "seat_numbers": [4, 5]})
    await db_session.commit()

    assert updated.passenger_name == "K. Silva"
    assert (await ledger.get(booking.id)).seat_numbers == [4, 5]


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["bus_id", "route_id", "booking_date", "id"])
async def test_update_rejects_immutable_fields(db_session, test_bus, test_route, field):
    ledger = BookingLedger(db_session)
    booking = await ledger.insert(make_booking(test_bus, test_route, [1]))
    await db_session.commit()

    with pytest.raises(ValidationError):
        await ledger.update(booking.id, {field: None})


@pytest.mark.asyncio
async def test_list_by_filter(db_session, test_bus, test_route):
    ledger = BookingLedger(db_session)
    first = await ledger.insert(make_booking(test_bus, test_route, [1], payment_status="paid"))
    await ledger.insert(make_booking(test_bus, test_route, [2], status="cancelled"))
    await ledger.insert(make_booking(test_bus, test_route, [3], travel_date=date(2025, 7, 1)))
    await db_session.commit()

    assert len(await ledger.list_by_filter(BookingFilters())) == 3
    assert len(await ledger.list_by_filter(BookingFilters(travel_date=TRAVEL_DATE))) == 2
    paid = await ledger.list_by_filter(BookingFilters(payment_status="paid"))
    assert [b.id for b in paid] == [first.id]
    cancelled = await ledger.list_by_filter(BookingFilters(status="cancelled", bus_id=test_bus.id))
    assert [b.seat_numbers for b in cancelled] == [[2]]
    by_id = await ledger.list_by_filter(BookingFilters(booking_ids=[first.id]))
    assert [b.id for b in by_id] == [first.id]


@pytest.mark.asyncio
async def test_list_by_filter_newest_travel_date_first(db_session, test_bus, test_route):
    ledger = BookingLedger(db_session)
    await ledger.insert(make_booking(test_bus, test_route, [1], travel_date=date(2025, 6, 1)))
    await ledger.insert(make_booking(test_bus, test_route, [1], travel_date=date(2025, 8, 1)))
    await db_session.commit()

    bookings = await ledger.list_by_filter(BookingFilters())
    assert [b.travel_date for b in bookings] == [date(2025, 8, 1), date(2025, 6, 1)]
