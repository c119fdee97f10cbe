"""Quote request router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, Principal, RequiredAuth
from ..schemas.request import (
    CancelRequestRequest,
    CreateRequestRequest,
    GetRequestRequest,
    ListRequestsRequest,
    QuoteRequest,
    QuoteRequestList,
    ViewQuotesRequest,
)
from ..services.request_service import RequestService
from .common import CLIENT_DEPENDENCY, IDEMPOTENCY_KEY_DEPENDENCY, ensure_party_access, handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/request", tags=["request"])


def _convert_request_to_schema(request_model) -> QuoteRequest:
    """Convert quote request model to schema."""
    return QuoteRequest.model_validate(request_model)


def _ensure_request_visible(principal: Principal, request_model) -> None:
    # Operators browse the marketplace; requests addressed to another operator stay hidden
    if principal.role == "operator" and request_model.operator_code in (None, principal.code):
        return
    ensure_party_access(principal, request_model.client_code)


@router.post("/create", response_model=QuoteRequest)
async def create_request(
    request: CreateRequestRequest,
    principal: Principal = CLIENT_DEPENDENCY,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Submit a quote request for a charter flight.

    This operation is idempotent based on the Idempotency-Key header.
    """
    request_service = RequestService(db)

    async def operation():
        quote_request = await request_service.create_request(principal.code, request)
        logger.info(
            "Quote request created via API",
            extra={
                "request_code": quote_request.request_code,
                "client_code": principal.code,
                "idempotency_key": idempotency_key,
            }
        )
        return _convert_request_to_schema(quote_request).model_dump(mode="json")

    return await handle_idempotent_operation(
        method="request/create",
        idempotency_key=idempotency_key,
        request_body={"client_code": principal.code, **request.model_dump(mode="json")},
        operation_func=operation,
        db=db
    )


@router.post("/get", response_model=QuoteRequest)
async def get_request(
    request: GetRequestRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Get a quote request by code."""
    quote_request = await RequestService(db).get_request_or_raise(request.request_code)
    _ensure_request_visible(principal, quote_request)

    return JSONResponse(
        status_code=200,
        content=_convert_request_to_schema(quote_request).model_dump(mode="json")
    )


@router.post("/list", response_model=QuoteRequestList)
async def list_requests(
    request: ListRequestsRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """
    List quote requests.

    Operators see open requests they may quote; clients see their own.
    """
    request_service = RequestService(db)

    if principal.role == "operator":
        items = await request_service.list_open_requests(principal.code, limit=request.limit)
    else:
        items = await request_service.list_client_requests(
            principal.code, status=request.status, limit=request.limit
        )

    response_data = QuoteRequestList(items=[_convert_request_to_schema(item) for item in items])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/view", response_model=QuoteRequest)
async def view_quotes(
    request: ViewQuotesRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Record that the client has looked at the quotes received."""
    request_service = RequestService(db)
    quote_request = await request_service.get_request_or_raise(request.request_code)
    ensure_party_access(principal, quote_request.client_code)

    quote_request = await request_service.mark_quotes_viewed(request.request_code)
    return JSONResponse(
        status_code=200,
        content=_convert_request_to_schema(quote_request).model_dump(mode="json")
    )


@router.post("/cancel", response_model=QuoteRequest)
async def cancel_request(
    request: CancelRequestRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Cancel an open quote request."""
    request_service = RequestService(db)
    quote_request = await request_service.get_request_or_raise(request.request_code)
    ensure_party_access(principal, quote_request.client_code)

    quote_request = await request_service.cancel_request(request.request_code)
    logger.info(
        "Quote request cancelled via API",
        extra={"request_code": request.request_code, "cancelled_by": principal.code}
    )
    return JSONResponse(
        status_code=200,
        content=_convert_request_to_schema(quote_request).model_dump(mode="json")
    )
