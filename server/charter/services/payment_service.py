"""Payment processing service.

Moving a payment into or out of ``completed`` recomputes the invoice ledger
and the booking's paid flag in the same transaction as the status change.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.clock import to_naive_utc, utcnow
from ..core.database import stored_value
from ..core.exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ..core.money import to_money
from ..core.observability import metrics_collector
from ..models.invoice import Invoice, InvoiceStatus
from ..models.notification import NotificationKind
from ..models.payment import PAYMENT_TRANSITIONS, Payment, PaymentStatus
from ..schemas.payment import RecordPaymentRequest
from .booking_service import BookingService
from .identifier_service import CodeKind, IdentifierService
from .invoice_service import InvoiceService
from .notification_service import NotificationOutbox

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for payment-related operations."""

    def __init__(self, db: AsyncSession, identifier_service: IdentifierService | None = None):
        self.db = db
        self.identifiers = identifier_service or IdentifierService(db)
        self.invoice_service = InvoiceService(db, self.identifiers)
        self.booking_service = BookingService(db, self.identifiers)
        self.outbox = NotificationOutbox(db)

    async def record_payment(
        self,
        request: RecordPaymentRequest,
        verified_by: str | None = None,
        now: datetime | None = None,
    ) -> Payment:
        """
        Record a payment against an invoice.

        Client submissions start as ``pending``. When ``verified_by`` names an
        admin the payment is recorded as ``completed`` and applied immediately.

        Raises:
            ValidationError: If amount or payment method is missing, or the invoice
                belongs to another booking
            NotFoundError: If the booking or invoice does not exist
        """
        errors = {}
        amount = to_money(request.amount) if request.amount is not None else None
        if amount is None:
            errors["amount"] = "Amount is required"
        elif amount <= 0:
            errors["amount"] = "Amount must be at least 0.01"
        if not request.payment_method or not request.payment_method.strip():
            errors["payment_method"] = "Payment method is required"
        if errors:
            raise ValidationError(detail="Payment details are incomplete", errors=errors)

        now = now or utcnow()
        booking = await self.booking_service.get_booking_or_raise(request.booking_id)
        invoice = await self.invoice_service.get_invoice_or_raise(request.invoice_id)
        if invoice.booking_id != booking.booking_id:
            raise ValidationError(
                detail=f"Invoice {invoice.invoice_id} does not belong to booking {booking.booking_id}",
                errors={"invoice_id": request.invoice_id, "booking_id": request.booking_id},
            )

        payment_id = await self.identifiers.generate(CodeKind.PAYMENT, invoice.invoice_id)
        status = PaymentStatus.COMPLETED if verified_by else PaymentStatus.PENDING
        payment = Payment(
            payment_id=payment_id,
            booking_id=booking.booking_id,
            invoice_id=invoice.invoice_id,
            amount=amount,
            payment_method=request.payment_method.strip(),
            payment_reference=request.payment_reference,
            notes=request.notes,
            payment_date=to_naive_utc(request.payment_date) or now,
            status=status,
            processed_by=verified_by,
            processed_date=now if verified_by else None,
            operator_paid=False,
            created_at=now,
        )
        self.db.add(payment)

        if status == PaymentStatus.COMPLETED:
            await self._settle(payment, now)

        await self._commit(payment_id)

        if status == PaymentStatus.COMPLETED:
            metrics_collector.record_payment_completed(payment.payment_method)
        logger.info(
            "Payment recorded",
            extra={
                "payment_id": payment_id,
                "invoice_id": payment.invoice_id,
                "amount": str(payment.amount),
                "status": status.value,
                "verified_by": verified_by,
            }
        )
        return payment

    async def process_payment(
        self,
        payment_id: str,
        admin_code: str,
        new_status: PaymentStatus,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Payment:
        """
        Admin transition of a payment's status.

        Entering or leaving ``completed`` recomputes the invoice and the
        booking's paid flag; either all of it lands or none of it does.
        Re-applying the current status is a no-op.

        Raises:
            NotFoundError: If the payment does not exist
            InvalidTransitionError: If the transition is not allowed
            ConflictError: If the invoice or booking changed concurrently
        """
        now = now or utcnow()
        new_status = PaymentStatus(new_status)
        payment = await self.get_payment_or_raise(payment_id)

        # Lock the ledger before re-reading the payment
        await self.invoice_service.get_invoice_with_lock(payment.invoice_id)
        payment = await self._reload_payment(payment_id)
        current = PaymentStatus(stored_value(payment.status))

        if current == new_status:
            logger.info(
                "Payment already in requested status",
                extra={"payment_id": payment_id, "status": current.value}
            )
            return payment

        if new_status not in PAYMENT_TRANSITIONS[current]:
            logger.warning(
                "Rejected payment transition",
                extra={
                    "payment_id": payment_id,
                    "current_status": current.value,
                    "target_status": new_status.value,
                }
            )
            raise InvalidTransitionError(
                entity="payment",
                entity_id=payment_id,
                current_status=current.value,
                target_status=new_status.value,
            )

        payment.status = new_status
        payment.processed_by = admin_code
        payment.processed_date = now
        if notes:
            payment.notes = notes

        touches_ledger = PaymentStatus.COMPLETED in (current, new_status)
        if touches_ledger:
            await self._settle(payment, now)

        await self._commit(payment_id)

        if new_status == PaymentStatus.COMPLETED:
            metrics_collector.record_payment_completed(payment.payment_method)
        logger.info(
            "Payment processed",
            extra={
                "payment_id": payment_id,
                "admin_code": admin_code,
                "from_status": current.value,
                "to_status": new_status.value,
                "ledger_updated": touches_ledger,
            }
        )
        return payment

    async def mark_operator_paid(
        self,
        payment_id: str,
        admin_code: str,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Payment:
        """
        Record that the operator has been paid out for a completed payment.

        Raises:
            NotFoundError: If the payment does not exist
            InvalidTransitionError: If the payment is not completed or was already paid out
            ConflictError: If the payment changed concurrently
        """
        payment = await self.get_payment_or_raise(payment_id)

        # Payouts serialize on the same ledger lock as status changes
        await self.invoice_service.get_invoice_with_lock(payment.invoice_id)
        payment = await self._reload_payment(payment_id)

        if payment.status != PaymentStatus.COMPLETED:
            raise InvalidTransitionError(
                entity="payment",
                entity_id=payment_id,
                current_status=stored_value(payment.status),
                target_status="operator-paid",
                detail=f"Payment {payment_id} must be completed before the operator is paid out",
            )
        if payment.operator_paid:
            raise InvalidTransitionError(
                entity="payment",
                entity_id=payment_id,
                current_status="operator-paid",
                target_status="operator-paid",
                detail=f"Operator payout for payment {payment_id} was already recorded",
            )

        paid_date = now or utcnow()
        result = await self.db.execute(
            update(Payment)
            .where(
                Payment.payment_id == payment_id,
                Payment.status == PaymentStatus.COMPLETED.value,
                Payment.operator_paid.is_(False),
            )
            .values(
                operator_paid=True,
                operator_paid_by=admin_code,
                operator_paid_date=paid_date,
                operator_payment_notes=notes,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            logger.warning("Operator payout lost a race", extra={"payment_id": payment_id, "admin_code": admin_code})
            raise InvalidTransitionError(
                entity="payment",
                entity_id=payment_id,
                current_status="operator-paid",
                target_status="operator-paid",
                detail=f"Operator payout for payment {payment_id} was already recorded",
            )
        await self._commit(payment_id)
        payment = await self._reload_payment(payment_id)

        logger.info(
            "Operator payout recorded",
            extra={"payment_id": payment_id, "admin_code": admin_code}
        )
        return payment

    async def get_payment(self, payment_id: str) -> Payment | None:
        stmt = select(Payment).where(Payment.payment_id == payment_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_payment_or_raise(self, payment_id: str) -> Payment:
        payment = await self.get_payment(payment_id)
        if not payment:
            logger.warning("Payment not found", extra={"payment_id": payment_id})
            raise NotFoundError(resource_type="payment", resource_id=payment_id)
        return payment

    async def list_booking_payments(self, booking_id: str, limit: int = 50) -> list[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.booking_id == booking_id)
            .order_by(Payment.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_pending_payments(self, limit: int = 50) -> list[Payment]:
        """Payments awaiting admin verification, oldest first."""
        stmt = (
            select(Payment)
            .where(Payment.status.in_([PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value]))
            .order_by(Payment.created_at.asc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _settle(self, payment: Payment, now: datetime) -> Invoice:
        """Recompute the ledger and booking flag for ``payment``'s invoice."""
        invoice = await self.invoice_service.get_invoice_with_lock(payment.invoice_id)
        was_paid = invoice.status == InvoiceStatus.PAID
        await self.invoice_service.apply_payment(invoice, now)
        is_paid = invoice.status == InvoiceStatus.PAID

        booking = await self.booking_service.get_booking_with_lock(invoice.booking_id)
        self.booking_service.apply_payment_state(booking, is_paid)

        if payment.status == PaymentStatus.COMPLETED:
            await self.outbox.enqueue(
                NotificationKind.PAYMENT_RECEIVED,
                recipient_code=invoice.client_code,
                aggregate_code=payment.payment_id,
                payload={
                    "payment_id": payment.payment_id,
                    "invoice_id": invoice.invoice_id,
                    "booking_id": invoice.booking_id,
                    "amount": str(payment.amount),
                    "amount_pending": str(invoice.amount_pending),
                    "invoice_status": stored_value(invoice.status),
                },
            )

        if was_paid != is_paid:
            logger.info(
                "Invoice paid state changed",
                extra={
                    "invoice_id": invoice.invoice_id,
                    "booking_id": invoice.booking_id,
                    "paid": is_paid,
                }
            )
        return invoice

    async def _reload_payment(self, payment_id: str) -> Payment:
        stmt = (
            select(Payment)
            .where(Payment.payment_id == payment_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def _commit(self, payment_id: str) -> None:
        try:
            await self.db.commit()
        except (IntegrityError, StaleDataError) as e:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Payment {payment_id} could not be applied because its ledger changed concurrently",
                conflicting_resource={"payment_id": payment_id},
            ) from e
