"""Payment router for recording and verifying payments."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminOnly, DatabaseSession, Principal, RequiredAuth
from ..core.exceptions import AuthorizationError
from ..schemas.invoice import Invoice
from ..schemas.payment import (
    ListPaymentsRequest,
    MarkOperatorPaidRequest,
    Payment,
    PaymentList,
    PaymentOutcome,
    PendingPaymentsRequest,
    ProcessPaymentRequest,
    RecordPaymentRequest,
)
from ..services.payment_service import PaymentService
from .common import IDEMPOTENCY_KEY_DEPENDENCY, ensure_party_access, handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payment", tags=["payment"])


def _convert_payment_to_schema(payment_model) -> Payment:
    """Convert payment model to schema."""
    return Payment.model_validate(payment_model)


async def _build_outcome(payment_service: PaymentService, payment_model) -> PaymentOutcome:
    invoice = await payment_service.invoice_service.get_invoice_or_raise(payment_model.invoice_id)
    booking = await payment_service.booking_service.get_booking_or_raise(payment_model.booking_id)
    return PaymentOutcome(
        payment=_convert_payment_to_schema(payment_model),
        invoice=Invoice.model_validate(invoice),
        booking_is_paid=booking.is_paid,
    )


@router.post("/record", response_model=PaymentOutcome)
async def record_payment(
    request: RecordPaymentRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Record a payment against an invoice.

    Clients submit payments for verification; admins may record them as
    verified, which settles the invoice immediately.
    This operation is idempotent based on the Idempotency-Key header.
    """
    payment_service = PaymentService(db)

    async def operation():
        if request.verified and not principal.is_admin:
            raise AuthorizationError(
                detail="Only an admin may record a verified payment",
                required_permissions=["admin"],
            )
        booking = await payment_service.booking_service.get_booking_or_raise(request.booking_id)
        ensure_party_access(principal, booking.client_code)

        payment = await payment_service.record_payment(
            request,
            verified_by=principal.code if request.verified else None,
        )
        outcome = await _build_outcome(payment_service, payment)
        return outcome.model_dump(mode="json")

    return await handle_idempotent_operation(
        method="payment/record",
        idempotency_key=idempotency_key,
        request_body=request.model_dump(mode="json"),
        operation_func=operation,
        db=db
    )


@router.post("/process", response_model=PaymentOutcome)
async def process_payment(
    request: ProcessPaymentRequest,
    principal: Principal = AdminOnly,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Move a payment to a new status, settling the invoice when it completes or reverses."""
    payment_service = PaymentService(db)
    payment = await payment_service.process_payment(
        request.payment_id,
        admin_code=principal.code,
        new_status=request.status,
        notes=request.notes,
    )
    outcome = await _build_outcome(payment_service, payment)
    return JSONResponse(status_code=200, content=outcome.model_dump(mode="json"))


@router.post("/mark-operator-paid", response_model=Payment)
async def mark_operator_paid(
    request: MarkOperatorPaidRequest,
    principal: Principal = AdminOnly,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Record the operator payout for a completed payment."""
    payment = await PaymentService(db).mark_operator_paid(
        request.payment_id, admin_code=principal.code, notes=request.notes
    )
    return JSONResponse(
        status_code=200,
        content=_convert_payment_to_schema(payment).model_dump(mode="json")
    )


@router.post("/pending", response_model=PaymentList)
async def list_pending_payments(
    request: PendingPaymentsRequest,
    principal: Principal = AdminOnly,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Payments awaiting verification, oldest first."""
    items = await PaymentService(db).list_pending_payments(limit=request.limit)
    response_data = PaymentList(items=[_convert_payment_to_schema(item) for item in items])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/list", response_model=PaymentList)
async def list_payments(
    request: ListPaymentsRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """List the payments recorded against a booking."""
    payment_service = PaymentService(db)
    booking = await payment_service.booking_service.get_booking_or_raise(request.booking_id)
    ensure_party_access(principal, booking.client_code, booking.operator_code)

    items = await payment_service.list_booking_payments(request.booking_id, limit=request.limit)
    response_data = PaymentList(items=[_convert_payment_to_schema(item) for item in items])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
