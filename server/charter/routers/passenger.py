"""Passenger manifest router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, Principal, RequiredAuth
from ..schemas.passenger import AddPassengerRequest, ListPassengersRequest, Passenger, PassengerList
from ..services.booking_service import BookingService
from ..services.passenger_service import PassengerService
from .common import IDEMPOTENCY_KEY_DEPENDENCY, ensure_party_access, handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/passenger", tags=["passenger"])


@router.post("/add", response_model=Passenger)
async def add_passenger(
    request: AddPassengerRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Add a traveller to a booking.

    This operation is idempotent based on the Idempotency-Key header.
    """
    passenger_service = PassengerService(db)

    async def operation():
        booking = await passenger_service.booking_service.get_booking_or_raise(request.booking_id)
        ensure_party_access(principal, booking.client_code)

        passenger = await passenger_service.add_passenger(principal.code, request)
        return Passenger.model_validate(passenger).model_dump(mode="json")

    return await handle_idempotent_operation(
        method="passenger/add",
        idempotency_key=idempotency_key,
        request_body=request.model_dump(mode="json"),
        operation_func=operation,
        db=db
    )


@router.post("/list", response_model=PassengerList)
async def list_passengers(
    request: ListPassengersRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """List the travellers on a booking."""
    booking = await BookingService(db).get_booking_or_raise(request.booking_id)
    ensure_party_access(principal, booking.client_code, booking.operator_code)

    items = await PassengerService(db).list_passengers(request.booking_id)
    response_data = PassengerList(items=[Passenger.model_validate(item) for item in items])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
