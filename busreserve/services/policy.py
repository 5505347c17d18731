"""
Booking policy rules.

Pure predicates over a booking and an injected `now`. They back the UI
affordances and are re-checked by the reservation coordinator inside its
critical section, so a stale client cannot slip past the window.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from busreserve.core.exceptions import NotEditable
from busreserve.models.booking import BookingStatus, PaymentStatus

MODIFICATION_WINDOW = timedelta(days=7)

STATUS_TRANSITIONS: dict[str, frozenset] = {
    "pending": frozenset({"confirmed", "cancelled", "completed"}),
    "confirmed": frozenset({"cancelled", "completed"}),
    "cancelled": frozenset({"confirmed"}),  # reinstate, seats re-validated
    "completed": frozenset(),
}

# refunded is only reachable through the refund operation.
PAYMENT_TRANSITIONS: dict[str, frozenset] = {
    "pending": frozenset({"paid"}),
    "paid": frozenset({"pending"}),
    "refunded": frozenset(),
}


def holds_seats(status: str) -> bool:
    """Every status except cancelled keeps its seats, pending included."""
    return status != BookingStatus.CANCELLED


def _as_utc(moment: datetime) -> datetime:
    # Some drivers (SQLite) hand back naive datetimes; they were stored as UTC.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def is_within_modification_window(
    booking, now: datetime, window: timedelta = MODIFICATION_WINDOW
) -> bool:
    return _as_utc(now) - _as_utc(booking.booking_date) <= window


def is_editable(booking, now: datetime, window: timedelta = MODIFICATION_WINDOW) -> bool:
    return edit_rejection_reason(booking, now, window) is None


def is_refund_eligible(booking, now: datetime, window: timedelta = MODIFICATION_WINDOW) -> bool:
    return refund_ineligibility_reason(booking, now, window) is None


def edit_rejection_reason(
    booking, now: datetime, window: timedelta = MODIFICATION_WINDOW
) -> Optional[str]:
    if booking.status == BookingStatus.COMPLETED:
        return "Completed bookings cannot be modified"
    if not is_within_modification_window(booking, now, window):
        return f"Booking can only be modified within {window.days} days of booking date"
    return None


def refund_ineligibility_reason(
    booking, now: datetime, window: timedelta = MODIFICATION_WINDOW
) -> Optional[str]:
    """User-facing reason a refund is refused, or None when it is allowed."""
    if booking.payment_status == PaymentStatus.REFUNDED:
        return "Booking is already refunded"
    if booking.payment_status != PaymentStatus.PAID:
        return "Only paid bookings can be refunded"
    if not is_within_modification_window(booking, now, window):
        return f"Refund period of {window.days} days has expired"
    if booking.status == BookingStatus.COMPLETED:
        return "Completed bookings cannot be refunded"
    return None


def check_status_transition(current: str, target: str) -> None:
    if current == target:
        return
    if target not in STATUS_TRANSITIONS.get(current, frozenset()):
        raise NotEditable(f"Status cannot change from {current} to {target}")


def check_payment_transition(current: str, target: str) -> None:
    if current == target:
        return
    if target == PaymentStatus.REFUNDED:
        raise NotEditable("Use the refund operation to refund a booking")
    if target not in PAYMENT_TRANSITIONS.get(current, frozenset()):
        raise NotEditable(f"Payment status cannot change from {current} to {target}")
