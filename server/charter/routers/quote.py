"""Quote router for operator offers and their acceptance."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, Principal, RequiredAuth
from ..core.exceptions import ValidationError
from ..schemas.booking import Booking
from ..schemas.quote import (
    AcceptQuoteRequest,
    ListQuotesRequest,
    Quote,
    QuoteList,
    RejectQuoteRequest,
    SubmitQuoteRequest,
)
from ..services.quote_service import QuoteService
from ..services.request_service import RequestService
from .common import (
    IDEMPOTENCY_KEY_DEPENDENCY,
    OPERATOR_DEPENDENCY,
    ensure_party_access,
    handle_idempotent_operation,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/quote", tags=["quote"])


def _convert_quote_to_schema(quote_model) -> Quote:
    """Convert quote model to schema."""
    return Quote.model_validate(quote_model)


@router.post("/submit", response_model=Quote)
async def submit_quote(
    request: SubmitQuoteRequest,
    principal: Principal = OPERATOR_DEPENDENCY,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Submit an operator's priced offer against a quote request.

    This operation is idempotent based on the Idempotency-Key header.
    """
    quote_service = QuoteService(db)

    async def operation():
        quote = await quote_service.submit_quote(principal.code, request)
        logger.info(
            "Quote submitted via API",
            extra={
                "quote_id": quote.quote_id,
                "request_code": request.request_code,
                "operator_code": principal.code,
                "idempotency_key": idempotency_key,
            }
        )
        return _convert_quote_to_schema(quote).model_dump(mode="json")

    return await handle_idempotent_operation(
        method="quote/submit",
        idempotency_key=idempotency_key,
        request_body={"operator_code": principal.code, **request.model_dump(mode="json")},
        operation_func=operation,
        db=db
    )


@router.post("/accept", response_model=Booking)
async def accept_quote(
    request: AcceptQuoteRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Accept a quote, creating its booking and rejecting the other quotes.

    This operation is idempotent based on the Idempotency-Key header.
    """
    quote_service = QuoteService(db)

    async def operation():
        quote = await quote_service.get_quote_or_raise(request.quote_id)
        ensure_party_access(principal, quote.client_code)

        booking = await quote_service.accept_quote(request.quote_id)
        logger.info(
            "Quote accepted via API",
            extra={
                "quote_id": request.quote_id,
                "booking_id": booking.booking_id,
                "accepted_by": principal.code,
            }
        )
        return Booking.model_validate(booking).model_dump(mode="json")

    return await handle_idempotent_operation(
        method="quote/accept",
        idempotency_key=idempotency_key,
        request_body=request.model_dump(mode="json"),
        operation_func=operation,
        db=db
    )


@router.post("/reject", response_model=Quote)
async def reject_quote(
    request: RejectQuoteRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Reject a single pending quote."""
    quote_service = QuoteService(db)
    quote = await quote_service.get_quote_or_raise(request.quote_id)
    ensure_party_access(principal, quote.client_code)

    quote = await quote_service.reject_quote(request.quote_id)
    return JSONResponse(
        status_code=200,
        content=_convert_quote_to_schema(quote).model_dump(mode="json")
    )


@router.post("/list", response_model=QuoteList)
async def list_quotes(
    request: ListQuotesRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """
    List quotes.

    With ``request_code`` the request's quotes are returned cheapest first;
    operators only see their own. Without it, operators get their recent quotes.
    """
    quote_service = QuoteService(db)

    if request.request_code:
        if principal.role == "operator":
            items = [
                q for q in await quote_service.list_request_quotes(request.request_code)
                if q.operator_code == principal.code
            ]
        else:
            quote_request = await RequestService(db).get_request_or_raise(request.request_code)
            ensure_party_access(principal, quote_request.client_code)
            items = await quote_service.list_request_quotes(request.request_code)
        items = items[:request.limit]
    elif principal.role == "operator":
        items = await quote_service.list_operator_quotes(principal.code, limit=request.limit)
    else:
        raise ValidationError(
            detail="request_code is required",
            errors={"request_code": "required unless the caller is an operator"},
        )

    response_data = QuoteList(items=[_convert_quote_to_schema(item) for item in items])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
