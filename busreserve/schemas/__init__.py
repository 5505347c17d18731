from busreserve.schemas.booking import (
    AvailabilityResponse,
    BookingCreate,
    BookingResponse,
    BookingUpdate,
    ReportFilters,
    ReportRequest,
    ReportResponse,
    SeatLayoutResponse,
)

__all__ = [
    "BookingCreate", "BookingUpdate", "BookingResponse",
    "AvailabilityResponse", "SeatLayoutResponse",
    "ReportFilters", "ReportRequest", "ReportResponse",
]
