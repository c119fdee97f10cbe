"""Rating schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import EntityCode


class CreateRatingRequest(BaseModel):
    """Request schema for rating a booking.

    The score range is enforced by the rating recorder.
    """

    booking_id: EntityCode
    rating: int
    comments: Optional[str] = Field(None, max_length=2000)


class GetRatingRequest(BaseModel):
    """Request schema for fetching a booking's rating."""

    booking_id: EntityCode


class Rating(BaseModel):
    """Rating response schema."""

    model_config = ConfigDict(from_attributes=True)

    booking_id: str
    operator_code: str
    customer_user_code: str
    rating: int
    comments: Optional[str] = None
    created_at: datetime
