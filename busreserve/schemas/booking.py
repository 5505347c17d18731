"""
Pydantic schemas for booking-related request/response validation.

Seat-set rules (non-empty, in range, no duplicates) are left to the
reservation coordinator so they surface as ValidationError, not a 422.
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

BookingStatusValue = Literal["pending", "confirmed", "cancelled", "completed"]
PaymentStatusValue = Literal["pending", "paid", "refunded"]
PaymentMethodValue = Literal["cash", "card", "online", "bank_transfer"]


class BookingCreate(BaseModel):
    bus_id: int
    route_id: int
    travel_date: date
    seat_numbers: list[int]
    passenger_name: str = Field(..., max_length=255)
    passenger_phone: str = Field(..., max_length=50)
    passenger_email: Optional[EmailStr] = None
    pickup_location: Optional[str] = Field(None, max_length=255)
    payment_method: PaymentMethodValue = "cash"
    payment_status: Literal["pending", "paid"] = "pending"
    transaction_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    user_id: Optional[int] = None


class BookingUpdate(BaseModel):
    travel_date: Optional[date] = None
    seat_numbers: Optional[list[int]] = None
    passenger_name: Optional[str] = Field(None, max_length=255)
    passenger_phone: Optional[str] = Field(None, max_length=50)
    passenger_email: Optional[EmailStr] = None
    pickup_location: Optional[str] = Field(None, max_length=255)
    status: Optional[BookingStatusValue] = None
    payment_status: Optional[PaymentStatusValue] = None
    payment_method: Optional[PaymentMethodValue] = None
    transaction_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)

    def changes(self) -> dict:
        """Fields the client actually sent. Explicit nulls only clear optional fields."""
        required = {
            "travel_date", "seat_numbers", "passenger_name", "passenger_phone",
            "status", "payment_status", "payment_method",
        }
        return {
            name: value
            for name, value in self.model_dump(exclude_unset=True).items()
            if value is not None or name not in required
        }


class BookingResponse(BaseModel):
    id: str
    user_id: Optional[int]
    bus_id: int
    route_id: int
    travel_date: date
    seat_numbers: list[int]
    passenger_name: str
    passenger_phone: str
    passenger_email: Optional[str]
    pickup_location: Optional[str]
    booking_date: datetime
    total_amount: float
    status: str
    payment_status: str
    payment_method: str
    transaction_id: Optional[str]
    notes: Optional[str]

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    bus_id: int
    travel_date: date
    total_seats: int
    available_seats: list[int]
    booked_seats: list[int]
    available_count: int


class SeatCell(BaseModel):
    seat_number: int
    is_booked: bool
    booking_id: Optional[str] = None


class SeatLayoutResponse(BaseModel):
    bus_id: int
    travel_date: date
    total_seats: int
    booked_count: int
    available_count: int
    rows: list[list[SeatCell]]


class ReportFilters(BaseModel):
    travel_date: Optional[date] = None
    route_id: Optional[int] = None
    bus_id: Optional[int] = None
    status: Optional[BookingStatusValue] = None
    payment_status: Optional[PaymentStatusValue] = None


class ReportRequest(BaseModel):
    filters: ReportFilters = Field(default_factory=ReportFilters)
    booking_ids: list[str] = Field(default_factory=list)


class ReportResponse(BaseModel):
    generated_at: datetime
    filters: ReportFilters
    count: int
    total_amount: float
    bookings: list[BookingResponse]
