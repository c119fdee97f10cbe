"""Passenger manifest schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import EntityCode


class AddPassengerRequest(BaseModel):
    """Request schema for adding a passenger to a booking."""

    booking_id: EntityCode
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    nationality: Optional[str] = Field(None, max_length=64)
    passport_number: Optional[str] = Field(None, max_length=32)


class ListPassengersRequest(BaseModel):
    """Request schema for listing a booking's passengers."""

    booking_id: EntityCode


class Passenger(BaseModel):
    """Passenger response schema."""

    model_config = ConfigDict(from_attributes=True)

    passenger_id: str
    booking_id: str
    added_by_code: str
    first_name: str
    last_name: str
    date_of_birth: Optional[date] = None
    nationality: Optional[str] = None
    passport_number: Optional[str] = None
    created_at: datetime


class PassengerList(BaseModel):
    """List of passengers."""

    items: List[Passenger]
