"""Quote (operator offer) schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.quote import QuoteStatus
from .common import CurrencyCode, EntityCode, ListLimit, MoneyAmount


class SubmitQuoteRequest(BaseModel):
    """Request schema for an operator submitting a quote."""

    request_code: EntityCode
    price: MoneyAmount = Field(..., description="Operator price before commission")
    currency: CurrencyCode = "USD"
    notes: Optional[str] = Field(None, max_length=2000)
    response_time_minutes: Optional[int] = Field(None, ge=0)


class AcceptQuoteRequest(BaseModel):
    """Request schema for accepting a quote."""

    quote_id: EntityCode


class RejectQuoteRequest(BaseModel):
    """Request schema for rejecting a quote."""

    quote_id: EntityCode


class ListQuotesRequest(ListLimit):
    """Request schema for listing quotes of a request, or of the calling operator."""

    request_code: Optional[EntityCode] = None


class Quote(BaseModel):
    """Quote response schema."""

    model_config = ConfigDict(from_attributes=True)

    quote_id: str
    request_code: str
    operator_code: str
    client_code: str
    price: MoneyAmount
    commission: MoneyAmount
    total_price: MoneyAmount
    currency: str
    notes: Optional[str] = None
    response_time_minutes: Optional[int] = None
    status: QuoteStatus
    created_at: datetime


class QuoteList(BaseModel):
    """List of quotes."""

    items: List[Quote]
