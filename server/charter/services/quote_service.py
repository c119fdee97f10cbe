"""Quote lifecycle service: submission, acceptance and rejection."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.clock import utcnow
from ..core.config import settings
from ..core.database import stored_value
from ..core.exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ..core.money import commission_for, to_money
from ..core.observability import metrics_collector
from ..models.booking import Booking
from ..models.notification import NotificationKind
from ..models.quote import Quote, QuoteStatus
from ..models.quote_request import QUOTABLE_REQUEST_STATUSES, RequestStatus
from ..schemas.quote import SubmitQuoteRequest
from .booking_service import BookingService
from .identifier_service import CodeKind, IdentifierService
from .notification_service import NotificationOutbox
from .request_service import RequestService

logger = logging.getLogger(__name__)

# Request statuses from which a quote may be accepted
ACCEPTABLE_REQUEST_STATUSES = frozenset({
    RequestStatus.QUOTE_RECEIVED,
    RequestStatus.QUOTES_VIEWED,
})


class DuplicateQuoteError(ConflictError):
    """An operator may hold only one quote per request."""

    error_code = "DUPLICATE_QUOTE"
    retryable = False

    def __init__(self, request_code: str, operator_code: str):
        super().__init__(
            detail=f"Operator {operator_code} has already quoted request {request_code}",
            conflicting_resource={
                "request_code": request_code,
                "operator_code": operator_code,
            }
        )


class QuoteService:
    """Service for quote-related operations."""

    def __init__(self, db: AsyncSession, identifier_service: IdentifierService | None = None):
        self.db = db
        self.identifiers = identifier_service or IdentifierService(db)
        self.request_service = RequestService(db, self.identifiers)
        self.booking_service = BookingService(db, self.identifiers)
        self.outbox = NotificationOutbox(db)

    async def submit_quote(
        self,
        operator_code: str,
        request: SubmitQuoteRequest,
        now: datetime | None = None,
    ) -> Quote:
        """
        Attach an operator's priced offer to a quote request.

        Args:
            operator_code: Code of the submitting operator
            request: Quote details
            now: Submission time, defaults to the current UTC time

        Returns:
            The stored quote in status ``pending``

        Raises:
            ValidationError: If the price is not positive or the request no longer accepts quotes
            NotFoundError: If the request does not exist
            DuplicateQuoteError: If this operator already quoted the request
        """
        if request.price is None or request.price <= 0:
            raise ValidationError(
                detail="Quote price must be greater than zero",
                errors={"price": str(request.price)},
            )

        now = now or utcnow()
        request_code = request.request_code

        # Apply any pending expiry before taking the lock
        await self.request_service.get_request_or_raise(request_code, now)
        quote_request = await self.request_service.get_request_with_lock(request_code)

        if quote_request.status not in QUOTABLE_REQUEST_STATUSES:
            logger.warning(
                "Quote submitted against closed request",
                extra={
                    "request_code": request_code,
                    "operator_code": operator_code,
                    "request_status": stored_value(quote_request.status),
                }
            )
            raise ValidationError(
                detail=f"Quote request {request_code} is {stored_value(quote_request.status)} and no longer accepts quotes",
                errors={"request_code": request_code, "status": stored_value(quote_request.status)},
            )

        if quote_request.operator_code and quote_request.operator_code != operator_code:
            raise ValidationError(
                detail=f"Quote request {request_code} is addressed to another operator",
                errors={"operator_code": operator_code},
            )

        if operator_code in (quote_request.quoted_operator_codes or []):
            raise DuplicateQuoteError(request_code, operator_code)

        price = to_money(request.price)
        commission = commission_for(price, settings.commission_rate)
        quote_id = await self.identifiers.generate(CodeKind.QUOTE, operator_code)
        client_code = quote_request.client_code

        quote = Quote(
            quote_id=quote_id,
            request_code=request_code,
            operator_code=operator_code,
            client_code=client_code,
            price=price,
            commission=commission,
            total_price=price + commission,
            currency=request.currency,
            notes=request.notes,
            response_time_minutes=request.response_time_minutes,
            status=QuoteStatus.PENDING,
            created_at=now,
        )
        self.db.add(quote)
        self.request_service.record_quote(quote_request, operator_code, now)

        await self.outbox.enqueue(
            NotificationKind.QUOTE_RECEIVED,
            recipient_code=client_code,
            aggregate_code=quote_id,
            payload={
                "request_code": request_code,
                "quote_id": quote_id,
                "operator_code": operator_code,
                "total_price": str(quote.total_price),
                "currency": request.currency,
            },
        )

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateQuoteError(request_code, operator_code) from e
        except StaleDataError as e:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Quote request {request_code} was modified concurrently",
                conflicting_resource={"request_code": request_code},
            ) from e

        metrics_collector.record_quote_submitted()
        logger.info(
            "Quote submitted",
            extra={
                "quote_id": quote_id,
                "request_code": request_code,
                "operator_code": operator_code,
                "price": str(price),
                "commission": str(commission),
            }
        )
        return quote

    async def accept_quote(self, quote_id: str, now: datetime | None = None) -> Booking:
        """
        Accept one quote and materialize its booking.

        Sibling quotes still pending are rejected, the request moves to
        ``accepted`` and the booking is created, all in one transaction.

        Raises:
            NotFoundError: If the quote does not exist
            InvalidTransitionError: If the quote or its request cannot be accepted
            ConflictError: If another acceptance won a concurrent race
        """
        now = now or utcnow()
        quote = await self.get_quote_or_raise(quote_id)
        request_code = quote.request_code

        await self.request_service.get_request_or_raise(request_code, now)
        quote_request = await self.request_service.get_request_with_lock(request_code)
        quote = await self._reload_quote(quote_id)

        if quote_request.status not in ACCEPTABLE_REQUEST_STATUSES:
            logger.warning(
                "Quote acceptance rejected by request state",
                extra={
                    "quote_id": quote_id,
                    "request_code": request_code,
                    "request_status": stored_value(quote_request.status),
                }
            )
            raise InvalidTransitionError(
                entity="quote request",
                entity_id=request_code,
                current_status=stored_value(quote_request.status),
                target_status=RequestStatus.ACCEPTED.value,
            )

        if quote.status != QuoteStatus.PENDING:
            raise InvalidTransitionError(
                entity="quote",
                entity_id=quote_id,
                current_status=stored_value(quote.status),
                target_status=QuoteStatus.ACCEPTED.value,
            )

        quote.status = QuoteStatus.ACCEPTED

        stmt = select(Quote).where(
            Quote.request_code == request_code,
            Quote.quote_id != quote_id,
            Quote.status == QuoteStatus.PENDING,
        )
        result = await self.db.execute(stmt)
        rejected_siblings = []
        for sibling in result.scalars():
            sibling.status = QuoteStatus.REJECTED
            rejected_siblings.append(sibling.quote_id)

        quote_request.status = RequestStatus.ACCEPTED
        quote_request.accepted_quote_id = quote_id
        quote_request.accepted_operator_code = quote.operator_code

        booking = await self.booking_service.materialize(quote_request, quote, now)
        booking_id = booking.booking_id
        payload = {
            "booking_id": booking_id,
            "quote_id": quote_id,
            "request_code": request_code,
            "total_price": str(booking.total_price),
            "currency": booking.currency,
        }
        for recipient in (quote_request.client_code, quote.operator_code):
            await self.outbox.enqueue(
                NotificationKind.BOOKING_CONFIRMED,
                recipient_code=recipient,
                aggregate_code=booking_id,
                payload=payload,
            )

        try:
            await self.db.commit()
        except (IntegrityError, StaleDataError) as e:
            await self.db.rollback()
            logger.warning(
                "Concurrent acceptance detected",
                extra={"quote_id": quote_id, "request_code": request_code, "error": str(e)}
            )
            raise ConflictError(
                detail=f"Quote request {request_code} was accepted concurrently",
                conflicting_resource={"request_code": request_code, "quote_id": quote_id},
            ) from e

        metrics_collector.record_booking_created()
        logger.info(
            "Quote accepted",
            extra={
                "quote_id": quote_id,
                "request_code": request_code,
                "booking_id": booking_id,
                "rejected_siblings": rejected_siblings,
            }
        )
        return booking

    async def reject_quote(self, quote_id: str) -> Quote:
        """
        Reject a single pending quote. Rejecting twice is a no-op.

        Raises:
            NotFoundError: If the quote does not exist
            InvalidTransitionError: If the quote was already accepted
        """
        quote = await self.get_quote_or_raise(quote_id)

        if quote.status == QuoteStatus.REJECTED:
            return quote
        if quote.status == QuoteStatus.ACCEPTED:
            raise InvalidTransitionError(
                entity="quote",
                entity_id=quote_id,
                current_status=stored_value(quote.status),
                target_status=QuoteStatus.REJECTED.value,
            )

        quote.status = QuoteStatus.REJECTED
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Quote {quote_id} was modified concurrently",
                conflicting_resource={"quote_id": quote_id},
            ) from e

        logger.info("Quote rejected", extra={"quote_id": quote_id})
        return quote

    async def get_quote_by_id(self, quote_id: str) -> Quote | None:
        stmt = select(Quote).where(Quote.quote_id == quote_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_quote_or_raise(self, quote_id: str) -> Quote:
        quote = await self.get_quote_by_id(quote_id)
        if not quote:
            logger.warning("Quote not found", extra={"quote_id": quote_id})
            raise NotFoundError(resource_type="quote", resource_id=quote_id)
        return quote

    async def list_request_quotes(self, request_code: str) -> list[Quote]:
        """Quotes on a request, cheapest first."""
        stmt = (
            select(Quote)
            .where(Quote.request_code == request_code)
            .order_by(Quote.total_price.asc(), Quote.created_at.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_operator_quotes(self, operator_code: str, limit: int = 50) -> list[Quote]:
        stmt = (
            select(Quote)
            .where(Quote.operator_code == operator_code)
            .order_by(Quote.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _reload_quote(self, quote_id: str) -> Quote:
        stmt = (
            select(Quote)
            .where(Quote.quote_id == quote_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one()
