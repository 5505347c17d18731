"""
Typed reservation outcomes.

Every expected rejection (bad input, seat conflict, policy window) is a
BookingError subclass carrying its HTTP status and a stable error code.
The API layer renders them through a single exception handler, so services
raise these instead of HTTPException.
"""

from typing import Iterable, Optional


class BookingError(Exception):
    status_code: int = 400
    code: str = "booking_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.code}


class ValidationError(BookingError):
    status_code = 400
    code = "validation_error"


class NotFound(BookingError):
    status_code = 404
    code = "not_found"


class DuplicateId(BookingError):
    status_code = 409
    code = "duplicate_id"


class SeatConflict(BookingError):
    status_code = 409
    code = "seat_conflict"

    def __init__(self, conflicting_seats: Iterable[int], message: Optional[str] = None):
        self.conflicting_seats = sorted(set(conflicting_seats))
        seats = ", ".join(str(s) for s in self.conflicting_seats)
        super().__init__(message or f"Seats {seats} are already booked")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "conflicting_seats": self.conflicting_seats}


class NotEditable(BookingError):
    status_code = 403
    code = "not_editable"


class NotEligible(BookingError):
    status_code = 400
    code = "not_eligible"


class ReservationTimeout(BookingError):
    """The critical section could not be entered in time. Nothing was written."""

    status_code = 503
    code = "reservation_timeout"


class StorageFailure(BookingError):
    """The ledger could not durably commit. Treat the booking as unchanged."""

    status_code = 503
    code = "storage_failure"
