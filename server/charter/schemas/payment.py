"""Payment schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.payment import PaymentStatus
from .common import EntityCode, ListLimit, MoneyAmount
from .invoice import Invoice


class RecordPaymentRequest(BaseModel):
    """Request schema for recording a payment against an invoice.

    ``amount`` and ``payment_method`` are checked by the payment processor so
    that missing values are reported the same way for every entry point.
    """

    booking_id: EntityCode
    invoice_id: EntityCode
    amount: Optional[MoneyAmount] = Field(None, gt=0)
    payment_method: Optional[str] = Field(None, max_length=32)
    payment_reference: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = Field(None, max_length=2000)
    payment_date: Optional[datetime] = None
    verified: bool = Field(False, description="Admin-verified payments are recorded as completed")


class ProcessPaymentRequest(BaseModel):
    """Request schema for an admin moving a payment to a new status."""

    payment_id: EntityCode
    status: PaymentStatus
    notes: Optional[str] = Field(None, max_length=2000)


class MarkOperatorPaidRequest(BaseModel):
    """Request schema for recording the operator payout."""

    payment_id: EntityCode
    notes: Optional[str] = Field(None, max_length=2000)


class ListPaymentsRequest(ListLimit):
    """Request schema for listing a booking's payments."""

    booking_id: EntityCode


class PendingPaymentsRequest(ListLimit):
    """Request schema for the admin verification queue."""


class Payment(BaseModel):
    """Payment response schema."""

    model_config = ConfigDict(from_attributes=True)

    payment_id: str
    booking_id: str
    invoice_id: str
    amount: MoneyAmount
    payment_method: str
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    payment_date: datetime
    status: PaymentStatus
    processed_by: Optional[str] = None
    processed_date: Optional[datetime] = None
    operator_paid: bool
    operator_paid_by: Optional[str] = None
    operator_paid_date: Optional[datetime] = None
    operator_payment_notes: Optional[str] = None
    created_at: datetime


class PaymentList(BaseModel):
    """List of payments."""

    items: List[Payment]


class PaymentOutcome(BaseModel):
    """Payment together with the ledger state it produced."""

    payment: Payment
    invoice: Invoice
    booking_is_paid: bool
