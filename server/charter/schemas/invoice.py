"""Invoice schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.invoice import InvoiceStatus
from .common import EntityCode, ListLimit, MoneyAmount


class CreateInvoiceRequest(BaseModel):
    """Request schema for raising an invoice against a booking."""

    booking_id: EntityCode
    amount: Optional[MoneyAmount] = Field(None, description="Defaults to the booking total price")


class GetInvoiceRequest(BaseModel):
    """Request schema for fetching an invoice."""

    invoice_id: EntityCode


class ListInvoicesRequest(ListLimit):
    """Request schema for listing invoices of a booking, or of the caller."""

    booking_id: Optional[EntityCode] = None


class Invoice(BaseModel):
    """Invoice response schema."""

    model_config = ConfigDict(from_attributes=True)

    invoice_id: str
    booking_id: str
    client_code: str
    amount: MoneyAmount
    amount_paid: MoneyAmount
    amount_pending: MoneyAmount
    currency: str
    status: InvoiceStatus
    paid_at: Optional[datetime] = None
    created_at: datetime


class InvoiceList(BaseModel):
    """List of invoices."""

    items: List[Invoice]
