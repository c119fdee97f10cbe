"""Booking service for business logic operations."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.clock import utcnow
from ..core.database import advisory_xact_lock, stored_value
from ..core.exceptions import ConflictError, InvalidTransitionError, NotFoundError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from ..models.quote import Quote
from ..models.quote_request import QuoteRequest
from .identifier_service import CodeKind, IdentifierService

logger = logging.getLogger(__name__)


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession, identifier_service: IdentifierService | None = None):
        self.db = db
        self.identifiers = identifier_service or IdentifierService(db)

    async def materialize(self, request: QuoteRequest, quote: Quote, now: datetime | None = None) -> Booking:
        """
        Build a booking from an accepted quote inside the caller's transaction.

        Routing and passenger details are copied from the request and pricing
        from the quote; later edits to either are not reflected here.
        """
        booking_id = await self.identifiers.generate(CodeKind.BOOKING, request.client_code)

        booking = Booking(
            booking_id=booking_id,
            request_code=request.request_code,
            quote_id=quote.quote_id,
            operator_code=quote.operator_code,
            client_code=request.client_code,
            trip_type=stored_value(request.trip_type),
            departure_airport=request.departure_airport,
            arrival_airport=request.arrival_airport,
            departure_date=request.departure_date,
            return_date=request.return_date,
            passenger_count=request.passenger_count,
            cabin_class=stored_value(request.cabin_class),
            special_requirements=request.special_requirements,
            price=quote.price,
            total_price=quote.total_price,
            currency=quote.currency,
            status=BookingStatus.PENDING,
            is_paid=False,
            created_at=now or utcnow(),
        )
        self.db.add(booking)
        return booking

    async def create_booking(self, request: QuoteRequest, quote: Quote, now: datetime | None = None) -> Booking:
        """
        Create the booking for an accepted quote, at most once per quote.

        Repeated calls for the same quote return the booking created first.

        Args:
            request: Originating quote request
            quote: Accepted quote

        Returns:
            The booking for ``quote``
        """
        quote_id = quote.quote_id
        existing = await self.get_booking_by_quote(quote_id)
        if existing:
            logger.info(
                "Booking already exists for quote",
                extra={"booking_id": existing.booking_id, "quote_id": quote_id}
            )
            return existing

        booking = await self.materialize(request, quote, now)
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent call created it first
            await self.db.rollback()
            existing = await self.get_booking_by_quote(quote_id)
            if existing is None:
                raise
            return existing

        metrics_collector.record_booking_created()
        logger.info(
            "Booking created",
            extra={
                "booking_id": booking.booking_id,
                "quote_id": quote_id,
                "request_code": request.request_code,
                "total_price": str(booking.total_price),
            }
        )
        return booking

    async def get_booking(self, booking_id: str) -> Booking | None:
        """
        Get booking by code.

        Returns:
            Booking if found, None otherwise
        """
        stmt = select(Booking).where(Booking.booking_id == booking_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_or_raise(self, booking_id: str) -> Booking:
        booking = await self.get_booking(booking_id)
        if not booking:
            logger.warning("Booking not found", extra={"booking_id": booking_id})
            raise NotFoundError(resource_type="booking", resource_id=booking_id)
        return booking

    async def get_booking_by_quote(self, quote_id: str) -> Booking | None:
        stmt = select(Booking).where(Booking.quote_id == quote_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_with_lock(self, booking_id: str) -> Booking:
        """Fetch a booking for modification, serializing concurrent writers."""
        await advisory_xact_lock(self.db, f"booking:{booking_id}")

        stmt = (
            select(Booking)
            .where(Booking.booking_id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=booking_id)
        return booking

    async def list_client_bookings(self, client_code: str, limit: int = 50) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.client_code == client_code)
            .order_by(Booking.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_operator_bookings(self, operator_code: str, limit: int = 50) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.operator_code == operator_code)
            .order_by(Booking.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def confirm_booking(self, booking_id: str) -> Booking:
        """
        Confirm a pending booking. Confirming twice is a no-op.

        Raises:
            NotFoundError: If booking not found
            InvalidTransitionError: If the booking was cancelled
        """
        booking = await self.get_booking_with_lock(booking_id)

        if booking.status == BookingStatus.CONFIRMED:
            return booking
        if booking.status == BookingStatus.CANCELLED:
            self._reject_transition(booking, BookingStatus.CONFIRMED)

        booking.status = BookingStatus.CONFIRMED
        await self._commit(booking_id)

        logger.info("Booking confirmed", extra={"booking_id": booking_id})
        return booking

    async def cancel_booking(self, booking_id: str) -> Booking:
        """
        Cancel a pending booking. Cancelling twice is a no-op.

        Raises:
            NotFoundError: If booking not found
            InvalidTransitionError: If the booking is already confirmed
        """
        booking = await self.get_booking_with_lock(booking_id)

        if booking.status == BookingStatus.CANCELLED:
            return booking
        if booking.status == BookingStatus.CONFIRMED:
            self._reject_transition(booking, BookingStatus.CANCELLED)

        booking.status = BookingStatus.CANCELLED
        await self._commit(booking_id)

        metrics_collector.record_booking_cancelled()
        logger.info("Booking cancelled", extra={"booking_id": booking_id})
        return booking

    def apply_payment_state(self, booking: Booking, invoice_paid: bool) -> None:
        """
        Align the booking's paid flag with its invoice, in the caller's transaction.

        A pending booking becomes confirmed once fully paid.
        """
        booking.is_paid = invoice_paid
        if invoice_paid and booking.status == BookingStatus.PENDING:
            booking.status = BookingStatus.CONFIRMED

    def _reject_transition(self, booking: Booking, target: BookingStatus) -> None:
        logger.warning(
            "Rejected booking transition",
            extra={
                "booking_id": booking.booking_id,
                "current_status": stored_value(booking.status),
                "target_status": target.value,
            }
        )
        raise InvalidTransitionError(
            entity="booking",
            entity_id=booking.booking_id,
            current_status=stored_value(booking.status),
            target_status=target.value,
        )

    async def _commit(self, booking_id: str) -> None:
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Booking {booking_id} was modified concurrently",
                conflicting_resource={"booking_id": booking_id},
            ) from e
