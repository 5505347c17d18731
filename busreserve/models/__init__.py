from busreserve.models.catalog import Bus, Route
from busreserve.models.booking import (
    Booking,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    SeatInventory,
)

__all__ = [
    "Bus", "Route",
    "Booking", "BookingStatus", "PaymentMethod", "PaymentStatus", "SeatInventory",
]
