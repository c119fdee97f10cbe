"""Passenger manifest service."""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.database import advisory_xact_lock
from ..core.exceptions import ValidationError
from ..models.passenger import Passenger
from ..schemas.passenger import AddPassengerRequest
from .booking_service import BookingService
from .identifier_service import CodeKind, IdentifierService

logger = logging.getLogger(__name__)


class PassengerService:
    """Service for the travellers listed on a booking."""

    def __init__(self, db: AsyncSession, identifier_service: IdentifierService | None = None):
        self.db = db
        self.identifiers = identifier_service or IdentifierService(db)
        self.booking_service = BookingService(db, self.identifiers)

    async def add_passenger(
        self,
        added_by_code: str,
        request: AddPassengerRequest,
        now: datetime | None = None,
    ) -> Passenger:
        """
        Add a traveller to a booking's manifest.

        The passenger code is namespaced by whoever added the record.

        Raises:
            NotFoundError: If the booking does not exist
            ValidationError: If the manifest is already full
        """
        booking = await self.booking_service.get_booking_or_raise(request.booking_id)
        await advisory_xact_lock(self.db, f"manifest:{booking.booking_id}")

        listed = await self.count_passengers(booking.booking_id)
        if listed >= booking.passenger_count:
            raise ValidationError(
                detail=f"Booking {booking.booking_id} already lists {listed} of {booking.passenger_count} passengers",
                errors={"booking_id": booking.booking_id, "passenger_count": booking.passenger_count},
            )

        passenger_id = await self.identifiers.generate(CodeKind.PASSENGER_RECORD, added_by_code)
        passenger = Passenger(
            passenger_id=passenger_id,
            booking_id=booking.booking_id,
            added_by_code=added_by_code,
            first_name=request.first_name,
            last_name=request.last_name,
            date_of_birth=request.date_of_birth,
            nationality=request.nationality,
            passport_number=request.passport_number,
            created_at=now or utcnow(),
        )
        self.db.add(passenger)
        await self.db.commit()

        logger.info(
            "Passenger added to booking",
            extra={"passenger_id": passenger_id, "booking_id": booking.booking_id}
        )
        return passenger

    async def count_passengers(self, booking_id: str) -> int:
        stmt = select(func.count()).select_from(Passenger).where(Passenger.booking_id == booking_id)
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def list_passengers(self, booking_id: str) -> list[Passenger]:
        stmt = (
            select(Passenger)
            .where(Passenger.booking_id == booking_id)
            .order_by(Passenger.created_at.asc(), Passenger.passenger_id.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
