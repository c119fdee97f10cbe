"""Booking router for booking operations."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, Principal, RequiredAuth
from ..core.exceptions import AuthorizationError
from ..schemas.booking import (
    Booking,
    BookingList,
    CancelBookingRequest,
    ConfirmBookingRequest,
    GetBookingRequest,
    ListBookingsRequest,
)
from ..services.booking_service import BookingService
from .common import ensure_party_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])


def _convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking.model_validate(booking_model)


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Get booking details by booking code."""
    booking = await BookingService(db).get_booking_or_raise(request.booking_id)
    ensure_party_access(principal, booking.client_code, booking.operator_code)

    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/list", response_model=BookingList)
async def list_bookings(
    request: ListBookingsRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """List the caller's bookings, newest first."""
    booking_service = BookingService(db)

    if principal.role == "operator":
        items = await booking_service.list_operator_bookings(principal.code, limit=request.limit)
    else:
        items = await booking_service.list_client_bookings(principal.code, limit=request.limit)

    response_data = BookingList(items=[_convert_booking_to_schema(item) for item in items])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/confirm", response_model=Booking)
async def confirm_booking(
    request: ConfirmBookingRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Confirm a pending booking. Only the operator or an admin may confirm."""
    booking_service = BookingService(db)
    booking = await booking_service.get_booking_or_raise(request.booking_id)
    if not (principal.is_admin or principal.code == booking.operator_code):
        raise AuthorizationError(
            detail="Only the booking's operator or an admin may confirm it",
            required_permissions=["operator", "admin"],
        )

    booking = await booking_service.confirm_booking(request.booking_id)
    logger.info(
        "Booking confirmed via API",
        extra={"booking_id": request.booking_id, "confirmed_by": principal.code}
    )
    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Cancel a pending booking."""
    booking_service = BookingService(db)
    booking = await booking_service.get_booking_or_raise(request.booking_id)
    ensure_party_access(principal, booking.client_code, booking.operator_code)

    booking = await booking_service.cancel_booking(request.booking_id)
    logger.info(
        "Booking cancelled via API",
        extra={"booking_id": request.booking_id, "cancelled_by": principal.code}
    )
    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )
