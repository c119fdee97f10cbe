"""Rating recorder service."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.exceptions import DuplicateRatingError, ValidationError
from ..models.rating import Rating
from .booking_service import BookingService

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class RatingService:
    """Service capturing one rating per booking."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.booking_service = BookingService(db)

    async def create_rating(
        self,
        booking_id: str,
        customer_user_code: str,
        rating: int,
        comments: str | None = None,
        operator_code: str | None = None,
        now: datetime | None = None,
    ) -> Rating:
        """
        Record the customer's rating of a booking.

        Args:
            booking_id: Booking being rated
            customer_user_code: Code of the rating customer
            rating: Score from 1 to 5
            comments: Optional free text
            operator_code: Rated operator, defaults to the booking's operator

        Raises:
            ValidationError: If the score is outside 1..5
            NotFoundError: If the booking does not exist
            DuplicateRatingError: If the booking was already rated
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(
                detail=f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}",
                errors={"rating": rating},
            )

        booking = await self.booking_service.get_booking_or_raise(booking_id)

        if await self.get_rating(booking_id):
            logger.warning("Duplicate rating rejected", extra={"booking_id": booking_id})
            raise DuplicateRatingError(booking_id)

        record = Rating(
            booking_id=booking_id,
            operator_code=operator_code or booking.operator_code,
            customer_user_code=customer_user_code,
            rating=rating,
            comments=comments,
            created_at=now or utcnow(),
        )
        self.db.add(record)

        try:
            await self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent submission for the same booking
            await self.db.rollback()
            raise DuplicateRatingError(booking_id) from e

        logger.info(
            "Rating recorded",
            extra={
                "booking_id": booking_id,
                "operator_code": record.operator_code,
                "rating": rating,
            }
        )
        return record

    async def get_rating(self, booking_id: str) -> Rating | None:
        stmt = select(Rating).where(Rating.booking_id == booking_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_operator_ratings(self, operator_code: str, limit: int = 50) -> list[Rating]:
        stmt = (
            select(Rating)
            .where(Rating.operator_code == operator_code)
            .order_by(Rating.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
