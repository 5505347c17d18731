"""
Booking endpoints with concurrency-safe seat reservation.
"""

from dataclasses import asdict
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from busreserve.api.dependencies import get_coordinator
from busreserve.db.session import get_db
from busreserve.schemas.booking import (
    AvailabilityResponse,
    BookingCreate,
    BookingResponse,
    BookingStatusValue,
    BookingUpdate,
    PaymentStatusValue,
    ReportRequest,
    ReportResponse,
)
from busreserve.services.booking_service import ReservationCoordinator
from busreserve.services.inventory_service import InventoryQueryService
from busreserve.services.ledger import BookingFilters, BookingLedger
from busreserve.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    """
    Reserve seats on a bus for a travel date.

    All requested seats are booked or none are. If another booking already
    holds any of them, returns 409 with the conflicting seat numbers.
    """
    return await coordinator.create_booking(booking_data)


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    bus_id: int = Query(...),
    travel_date: date = Query(...),
    exclude_booking_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Seat availability for a bus on a date.
    Pass exclude_booking_id when editing so the booking's own seats show as free.
    """
    availability = await InventoryQueryService(db).get_available_seats(
        bus_id, travel_date, exclude_booking_id
    )
    return AvailabilityResponse(bus_id=bus_id, travel_date=travel_date, **asdict(availability))


@router.get("/", response_model=list[BookingResponse])
async def list_bookings(
    travel_date: Optional[date] = Query(None),
    route_id: Optional[int] = Query(None),
    bus_id: Optional[int] = Query(None),
    booking_status: Optional[BookingStatusValue] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatusValue] = Query(None),
    user_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Filtered booking list for admin screens. Newest travel date first."""
    filters = BookingFilters(
        travel_date=travel_date,
        route_id=route_id,
        bus_id=bus_id,
        status=booking_status,
        payment_status=payment_status,
        user_id=user_id,
    )
    return await BookingLedger(db).list_by_filter(filters)


@router.post("/report", response_model=ReportResponse)
async def booking_report(
    report: ReportRequest,
    db: AsyncSession = Depends(get_db),
):
    """Snapshot of bookings for export. Read-only, takes no locks."""
    filters = BookingFilters(booking_ids=report.booking_ids, **report.filters.model_dump())
    bookings = await BookingLedger(db).list_by_filter(filters)
    return ReportResponse(
        generated_at=datetime.now(timezone.utc),
        filters=report.filters,
        count=len(bookings),
        total_amount=float(sum(b.total_amount for b in bookings)),
        bookings=[BookingResponse.model_validate(b) for b in bookings],
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await BookingLedger(db).get(booking_id)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: str,
    changes: BookingUpdate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    """
    Edit a booking within 7 days of booking it.
    Seat or date changes are re-validated against current occupancy.
    """
    return await coordinator.edit_booking(booking_id, changes)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    """Cancel a booking and release its seats. Cancelling twice is a no-op."""
    return await coordinator.cancel_booking(booking_id)


@router.post("/{booking_id}/refund", response_model=BookingResponse)
async def refund_booking(
    booking_id: str,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    """Refund a paid booking within 7 days. The booking is cancelled too."""
    booking = await coordinator.refund_booking(booking_id)
    logger.info("refund_accepted", booking_id=booking.id)
    return booking
