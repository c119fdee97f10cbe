"""Booking-related Pydantic schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import BookingStatus
from .common import EntityCode, ListLimit, MoneyAmount


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: EntityCode = Field(..., description="Booking to retrieve")


class ConfirmBookingRequest(BaseModel):
    """Request schema for confirming a booking."""

    booking_id: EntityCode = Field(..., description="Booking to confirm")


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: EntityCode = Field(..., description="Booking to cancel")


class ListBookingsRequest(ListLimit):
    """Request schema for listing the caller's bookings, newest first."""


class Booking(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    booking_id: str = Field(..., description="Booking code")
    request_code: str
    quote_id: str
    operator_code: str
    client_code: str
    trip_type: str
    departure_airport: str
    arrival_airport: str
    departure_date: datetime
    return_date: Optional[datetime] = None
    passenger_count: int
    cabin_class: str
    special_requirements: Optional[str] = None
    price: MoneyAmount
    total_price: MoneyAmount
    currency: str
    status: BookingStatus
    is_paid: bool
    created_at: datetime


class BookingList(BaseModel):
    """List of bookings."""

    items: List[Booking]
