"""Quote request schemas."""

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.quote_request import CabinClass, RequestStatus, TripType
from .common import EntityCode, ListLimit, PartyCode

AirportCode = Annotated[str, Field(min_length=3, max_length=4, pattern=r"^[A-Z0-9]{3,4}$", description="IATA or ICAO code")]


class CreateRequestRequest(BaseModel):
    """Request schema for submitting a quote request."""

    trip_type: TripType = Field(TripType.ONE_WAY, description="Trip shape")
    departure_airport: AirportCode
    arrival_airport: AirportCode
    departure_date: datetime = Field(..., description="Outbound departure (ISO 8601)")
    return_date: Optional[datetime] = Field(None, description="Return departure for return trips")
    flexible_dates: bool = Field(False)
    passenger_count: int = Field(..., ge=1, le=500)
    cabin_class: CabinClass = Field(CabinClass.STANDARD)
    special_requirements: Optional[str] = Field(None, max_length=2000)
    operator_code: Optional[PartyCode] = Field(None, description="Operator the request is addressed to")

    @model_validator(mode="after")
    def check_itinerary(self) -> "CreateRequestRequest":
        if self.departure_airport == self.arrival_airport:
            raise ValueError("departure and arrival airports must differ")
        if self.trip_type == TripType.RETURN:
            if self.return_date is None:
                raise ValueError("return trips require a return_date")
            if self.return_date < self.departure_date:
                raise ValueError("return_date must not precede departure_date")
        return self


class GetRequestRequest(BaseModel):
    """Request schema for fetching a quote request."""

    request_code: EntityCode


class ViewQuotesRequest(BaseModel):
    """Request schema for marking a request's quotes as viewed."""

    request_code: EntityCode


class CancelRequestRequest(BaseModel):
    """Request schema for cancelling a quote request."""

    request_code: EntityCode


class ListRequestsRequest(ListLimit):
    """Request schema for listing quote requests.

    Operators see the open marketplace; everyone else sees their own requests.
    """

    status: Optional[RequestStatus] = None


class QuoteRequest(BaseModel):
    """Quote request response schema."""

    model_config = ConfigDict(from_attributes=True)

    request_code: str
    client_code: str
    operator_code: Optional[str] = None
    trip_type: TripType
    departure_airport: str
    arrival_airport: str
    departure_date: datetime
    return_date: Optional[datetime] = None
    flexible_dates: bool
    passenger_count: int
    cabin_class: CabinClass
    special_requirements: Optional[str] = None
    status: RequestStatus
    quoted_operator_codes: List[str] = Field(default_factory=list)
    accepted_quote_id: Optional[str] = None
    accepted_operator_code: Optional[str] = None
    created_at: datetime
    expires_at: datetime


class QuoteRequestList(BaseModel):
    """List of quote requests."""

    items: List[QuoteRequest]
