"""Rating router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, Principal, RequiredAuth
from ..core.exceptions import NotFoundError
from ..schemas.rating import CreateRatingRequest, GetRatingRequest, Rating
from ..services.rating_service import RatingService
from .common import IDEMPOTENCY_KEY_DEPENDENCY, ensure_party_access, handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/rating", tags=["rating"])


@router.post("/create", response_model=Rating)
async def create_rating(
    request: CreateRatingRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Rate the operator of a booking. Each booking is rated once.

    This operation is idempotent based on the Idempotency-Key header.
    """
    rating_service = RatingService(db)

    async def operation():
        booking = await rating_service.booking_service.get_booking_or_raise(request.booking_id)
        ensure_party_access(principal, booking.client_code)

        rating = await rating_service.create_rating(
            request.booking_id,
            customer_user_code=principal.code,
            rating=request.rating,
            comments=request.comments,
        )
        return Rating.model_validate(rating).model_dump(mode="json")

    return await handle_idempotent_operation(
        method="rating/create",
        idempotency_key=idempotency_key,
        request_body=request.model_dump(mode="json"),
        operation_func=operation,
        db=db
    )


@router.post("/get", response_model=Rating)
async def get_rating(
    request: GetRatingRequest,
    principal: Principal = RequiredAuth,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Get the rating left on a booking."""
    rating_service = RatingService(db)
    booking = await rating_service.booking_service.get_booking_or_raise(request.booking_id)
    ensure_party_access(principal, booking.client_code, booking.operator_code)

    rating = await rating_service.get_rating(request.booking_id)
    if rating is None:
        raise NotFoundError(resource_type="rating", resource_id=request.booking_id)

    return JSONResponse(
        status_code=200,
        content=Rating.model_validate(rating).model_dump(mode="json")
    )
