"""Invoice router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, Principal, RequiredAuth
from ..core.exceptions import AuthorizationError
from ..schemas.invoice import (
    CreateInvoiceRequest,
    GetInvoiceRequest,
    Invoice,
    InvoiceList,
    ListInvoicesRequest,
)
from ..services.booking_service import BookingService
from ..services.invoice_service import InvoiceService
from .common import IDEMPOTENCY_KEY_DEPENDENCY, ensure_party_access, handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/invoice", tags=["invoice"])


def _convert_invoice_to_schema(invoice_model) -> Invoice:
    """Convert invoice model to schema."""
    return Invoice.model_validate(invoice_model)


@router.post("/create", response_model=Invoice)
async def create_invoice(
    request: CreateInvoiceRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Raise an invoice against a booking. Operators bill their own bookings.

    This operation is idempotent based on the Idempotency-Key header.
    """
    invoice_service = InvoiceService(db)

    async def operation():
        booking = await invoice_service.booking_service.get_booking_or_raise(request.booking_id)
        if not (principal.is_admin or principal.code == booking.operator_code):
            raise AuthorizationError(
                detail="Only the booking's operator or an admin may raise an invoice",
                required_permissions=["operator", "admin"],
            )

        invoice = await invoice_service.create_for_booking(request.booking_id, amount=request.amount)
        logger.info(
            "Invoice created via API",
            extra={"invoice_id": invoice.invoice_id, "created_by": principal.code}
        )
        return _convert_invoice_to_schema(invoice).model_dump(mode="json")

    return await handle_idempotent_operation(
        method="invoice/create",
        idempotency_key=idempotency_key,
        request_body=request.model_dump(mode="json"),
        operation_func=operation,
        db=db
    )


@router.post("/get", response_model=Invoice)
async def get_invoice(
    request: GetInvoiceRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Get an invoice with its current balance."""
    invoice_service = InvoiceService(db)
    invoice = await invoice_service.get_invoice_or_raise(request.invoice_id)
    booking = await invoice_service.booking_service.get_booking_or_raise(invoice.booking_id)
    ensure_party_access(principal, booking.client_code, booking.operator_code)

    return JSONResponse(
        status_code=200,
        content=_convert_invoice_to_schema(invoice).model_dump(mode="json")
    )


@router.post("/list", response_model=InvoiceList)
async def list_invoices(
    request: ListInvoicesRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """List invoices of a booking, or the caller's own invoices."""
    invoice_service = InvoiceService(db)

    if request.booking_id:
        booking = await BookingService(db).get_booking_or_raise(request.booking_id)
        ensure_party_access(principal, booking.client_code, booking.operator_code)
        items = (await invoice_service.list_booking_invoices(request.booking_id))[:request.limit]
    else:
        items = await invoice_service.list_client_invoices(principal.code, limit=request.limit)

    response_data = InvoiceList(items=[_convert_invoice_to_schema(item) for item in items])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
