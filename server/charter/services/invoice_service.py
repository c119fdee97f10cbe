"""Invoice ledger service."""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.database import advisory_xact_lock
from ..core.exceptions import NotFoundError, ValidationError
from ..core.money import ZERO, to_money
from ..models.invoice import Invoice, InvoiceStatus
from ..models.payment import Payment, PaymentStatus
from .booking_service import BookingService
from .identifier_service import CodeKind, IdentifierService

logger = logging.getLogger(__name__)


def derive_invoice_status(amount: Decimal, amount_pending: Decimal) -> InvoiceStatus:
    """
    Invoice status as a function of the outstanding balance.

    Nothing outstanding is ``paid``, the full amount outstanding is ``open``
    and anything in between is ``balance-due``.
    """
    if amount_pending <= 0:
        return InvoiceStatus.PAID
    if amount_pending >= amount:
        return InvoiceStatus.OPEN
    return InvoiceStatus.BALANCE_DUE


class InvoiceService:
    """Service for invoice-related operations."""

    def __init__(self, db: AsyncSession, identifier_service: IdentifierService | None = None):
        self.db = db
        self.identifiers = identifier_service or IdentifierService(db)
        self.booking_service = BookingService(db, self.identifiers)

    async def create_for_booking(
        self,
        booking_id: str,
        flight_code: str | None = None,
        amount: Decimal | None = None,
        now: datetime | None = None,
    ) -> Invoice:
        """
        Raise an invoice against a booking.

        Args:
            booking_id: Booking being billed
            flight_code: Code namespacing the invoice id, defaults to the booking's quote
            amount: Invoice amount, defaults to the booking total price

        Returns:
            The stored invoice in status ``open``

        Raises:
            NotFoundError: If the booking does not exist
            ValidationError: If the amount is negative
        """
        booking = await self.booking_service.get_booking_or_raise(booking_id)

        amount = to_money(booking.total_price if amount is None else amount)
        if amount < 0:
            raise ValidationError(detail="Invoice amount must not be negative", errors={"amount": str(amount)})

        invoice_id = await self.identifiers.generate(CodeKind.INVOICE, flight_code or booking.quote_id)
        invoice = Invoice(
            invoice_id=invoice_id,
            booking_id=booking_id,
            client_code=booking.client_code,
            amount=amount,
            amount_paid=ZERO,
            amount_pending=amount,
            currency=booking.currency,
            status=derive_invoice_status(amount, amount),
            created_at=now or utcnow(),
        )
        self.db.add(invoice)
        await self.db.commit()

        logger.info(
            "Invoice created",
            extra={
                "invoice_id": invoice_id,
                "booking_id": booking_id,
                "amount": str(amount),
            }
        )
        return invoice

    async def get_invoice(self, invoice_id: str) -> Invoice | None:
        stmt = select(Invoice).where(Invoice.invoice_id == invoice_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_invoice_or_raise(self, invoice_id: str) -> Invoice:
        invoice = await self.get_invoice(invoice_id)
        if not invoice:
            logger.warning("Invoice not found", extra={"invoice_id": invoice_id})
            raise NotFoundError(resource_type="invoice", resource_id=invoice_id)
        return invoice

    async def get_invoice_with_lock(self, invoice_id: str) -> Invoice:
        """Fetch an invoice for a ledger update, serializing concurrent writers."""
        await advisory_xact_lock(self.db, f"invoice:{invoice_id}")

        stmt = (
            select(Invoice)
            .where(Invoice.invoice_id == invoice_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError(resource_type="invoice", resource_id=invoice_id)
        return invoice

    async def list_booking_invoices(self, booking_id: str) -> list[Invoice]:
        """Invoices of a booking, newest first."""
        stmt = (
            select(Invoice)
            .where(Invoice.booking_id == booking_id)
            .order_by(Invoice.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_client_invoices(self, client_code: str, limit: int = 50) -> list[Invoice]:
        stmt = (
            select(Invoice)
            .where(Invoice.client_code == client_code)
            .order_by(Invoice.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def completed_total(self, invoice_id: str) -> Decimal:
        """Sum of completed payments recorded against an invoice."""
        # Pending payment rows must be visible to the sum
        await self.db.flush()
        stmt = select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.invoice_id == invoice_id,
            Payment.status == PaymentStatus.COMPLETED,
        )
        result = await self.db.execute(stmt)
        return to_money(result.scalar_one())

    async def apply_payment(self, invoice: Invoice, now: datetime | None = None) -> Invoice:
        """
        Recompute the ledger from the completed payments, in the caller's transaction.

        The sum is recomputed rather than incremented, so replaying a payment
        never double counts. ``paid_at`` is stamped on the first transition to
        ``paid`` and cleared if a refund reopens the balance.
        """
        amount_paid = await self.completed_total(invoice.invoice_id)
        amount_pending = max(ZERO, to_money(invoice.amount) - amount_paid)
        status = derive_invoice_status(to_money(invoice.amount), amount_pending)

        invoice.amount_paid = amount_paid
        invoice.amount_pending = amount_pending
        invoice.status = status

        if status == InvoiceStatus.PAID:
            if invoice.paid_at is None:
                invoice.paid_at = now or utcnow()
        else:
            invoice.paid_at = None

        logger.debug(
            "Invoice ledger recomputed",
            extra={
                "invoice_id": invoice.invoice_id,
                "amount_paid": str(amount_paid),
                "amount_pending": str(amount_pending),
                "status": status.value,
            }
        )
        return invoice
