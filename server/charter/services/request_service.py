"""Quote request lifecycle service."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.clock import to_naive_utc, utcnow
from ..core.config import settings
from ..core.database import advisory_xact_lock, stored_value
from ..core.exceptions import ConflictError, InvalidTransitionError, NotFoundError
from ..core.observability import metrics_collector
from ..models.notification import NotificationKind
from ..models.quote import Quote, QuoteStatus
from ..models.quote_request import (
    QUOTABLE_REQUEST_STATUSES,
    TERMINAL_REQUEST_STATUSES,
    QuoteRequest,
    RequestStatus,
)
from ..schemas.request import CreateRequestRequest
from .identifier_service import CodeKind, IdentifierService
from .notification_service import NotificationOutbox

logger = logging.getLogger(__name__)


def is_expiry_due(request: QuoteRequest, now: datetime) -> bool:
    """A non-terminal request past its expiry time is due to expire."""
    return request.status not in TERMINAL_REQUEST_STATUSES and now > request.expires_at


class RequestService:
    """Service owning the quote request state machine."""

    def __init__(self, db: AsyncSession, identifier_service: IdentifierService | None = None):
        self.db = db
        self.identifiers = identifier_service or IdentifierService(db)
        self.outbox = NotificationOutbox(db)
        self.ttl = timedelta(hours=settings.request_ttl_hours)

    async def create_request(
        self,
        client_code: str,
        request: CreateRequestRequest,
        now: datetime | None = None,
    ) -> QuoteRequest:
        """
        Submit a new quote request for ``client_code``.

        Args:
            client_code: Code of the passenger or agent submitting the request
            request: Trip parameters
            now: Creation time, defaults to the current UTC time

        Returns:
            The stored request in status ``submitted``
        """
        now = now or utcnow()
        request_code = await self.identifiers.generate(CodeKind.REQUEST, client_code)

        quote_request = QuoteRequest(
            request_code=request_code,
            client_code=client_code,
            operator_code=request.operator_code,
            trip_type=request.trip_type,
            departure_airport=request.departure_airport,
            arrival_airport=request.arrival_airport,
            departure_date=to_naive_utc(request.departure_date),
            return_date=to_naive_utc(request.return_date),
            flexible_dates=request.flexible_dates,
            passenger_count=request.passenger_count,
            cabin_class=request.cabin_class,
            special_requirements=request.special_requirements,
            status=RequestStatus.SUBMITTED,
            quoted_operator_codes=[],
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.db.add(quote_request)

        await self.outbox.enqueue(
            NotificationKind.REQUEST_SUBMITTED,
            recipient_code=client_code,
            aggregate_code=request_code,
            payload={
                "request_code": request_code,
                "route": f"{request.departure_airport}-{request.arrival_airport}",
                "operator_code": request.operator_code,
            },
        )

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Quote request {request_code} could not be stored",
                conflicting_resource={"request_code": request_code},
            ) from e

        metrics_collector.record_request_submitted(request.trip_type.value)
        logger.info(
            "Quote request submitted",
            extra={
                "request_code": request_code,
                "client_code": client_code,
                "route": f"{request.departure_airport}-{request.arrival_airport}",
                "expires_at": quote_request.expires_at.isoformat(),
            }
        )

        return quote_request

    async def get_request_by_code(self, request_code: str) -> QuoteRequest | None:
        """Fetch a request exactly as stored, without evaluating expiry."""
        stmt = select(QuoteRequest).where(QuoteRequest.request_code == request_code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_request(self, request_code: str, now: datetime | None = None) -> QuoteRequest | None:
        """
        Fetch a request, expiring it first if its window has passed.

        Args:
            request_code: Request to fetch
            now: Evaluation time, defaults to the current UTC time

        Returns:
            The request, or None if it does not exist
        """
        quote_request = await self.get_request_by_code(request_code)
        if quote_request is None:
            return None

        now = now or utcnow()
        if is_expiry_due(quote_request, now):
            await self._expire_on_read([quote_request], now)

        return quote_request

    async def get_request_or_raise(self, request_code: str, now: datetime | None = None) -> QuoteRequest:
        quote_request = await self.get_request(request_code, now)
        if not quote_request:
            logger.warning("Quote request not found", extra={"request_code": request_code})
            raise NotFoundError(resource_type="quote request", resource_id=request_code)
        return quote_request

    async def get_request_with_lock(self, request_code: str) -> QuoteRequest:
        """
        Fetch a request for modification, serializing concurrent writers.

        Raises:
            NotFoundError: If the request does not exist
        """
        await advisory_xact_lock(self.db, f"request:{request_code}")

        stmt = (
            select(QuoteRequest)
            .where(QuoteRequest.request_code == request_code)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        quote_request = result.scalar_one_or_none()
        if not quote_request:
            raise NotFoundError(resource_type="quote request", resource_id=request_code)
        return quote_request

    async def list_client_requests(
        self,
        client_code: str,
        status: RequestStatus | None = None,
        limit: int = 50,
        now: datetime | None = None,
    ) -> list[QuoteRequest]:
        """List a client's requests, newest first, with expiry applied."""
        now = now or utcnow()
        stmt = select(QuoteRequest).where(QuoteRequest.client_code == client_code)
        if status is not None:
            status = RequestStatus(status)
            live = QuoteRequest.status.not_in([s.value for s in TERMINAL_REQUEST_STATUSES])
            if status == RequestStatus.EXPIRED:
                # Rows past expiry that no sweep has flipped yet are expired too
                stmt = stmt.where(
                    or_(QuoteRequest.status == status.value, and_(live, QuoteRequest.expires_at < now))
                )
            elif status in TERMINAL_REQUEST_STATUSES:
                stmt = stmt.where(QuoteRequest.status == status.value)
            else:
                stmt = stmt.where(QuoteRequest.status == status.value, QuoteRequest.expires_at >= now)
        stmt = stmt.order_by(QuoteRequest.created_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        requests = list(result.scalars().all())

        due = [r for r in requests if is_expiry_due(r, now)]
        if due:
            await self._expire_on_read(due, now)

        if status is not None:
            # A concurrent writer may have moved a row on while it was being expired
            requests = [r for r in requests if r.status == status]
        return requests

    async def list_open_requests(
        self,
        operator_code: str | None = None,
        limit: int = 50,
        now: datetime | None = None,
    ) -> list[QuoteRequest]:
        """
        Requests operators may still quote on, oldest expiry first.

        Requests addressed to a specific operator are only shown to that operator.
        """
        now = now or utcnow()
        stmt = select(QuoteRequest).where(
            QuoteRequest.status.in_([s.value for s in QUOTABLE_REQUEST_STATUSES]),
            QuoteRequest.expires_at >= now,
        )
        if operator_code:
            stmt = stmt.where(
                or_(QuoteRequest.operator_code.is_(None), QuoteRequest.operator_code == operator_code)
            )
        else:
            stmt = stmt.where(QuoteRequest.operator_code.is_(None))

        stmt = stmt.order_by(QuoteRequest.expires_at.asc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def mark_quotes_viewed(self, request_code: str, now: datetime | None = None) -> QuoteRequest:
        """
        Record that the passenger has looked at the received quotes.

        Viewing again, or viewing before any quote arrived, changes nothing.

        Raises:
            NotFoundError: If the request does not exist
            InvalidTransitionError: If the request is already terminal
        """
        quote_request = await self.get_request_or_raise(request_code, now)
        self._ensure_not_terminal(quote_request, RequestStatus.QUOTES_VIEWED)

        if quote_request.status != RequestStatus.QUOTE_RECEIVED:
            return quote_request

        quote_request.status = RequestStatus.QUOTES_VIEWED
        await self._commit_transition(request_code, RequestStatus.QUOTES_VIEWED)

        logger.info("Quotes viewed", extra={"request_code": request_code})
        return quote_request

    async def cancel_request(self, request_code: str, now: datetime | None = None) -> QuoteRequest:
        """
        Passenger cancellation: move a non-terminal request to ``rejected``.

        Pending quotes on the request are rejected alongside it.

        Raises:
            NotFoundError: If the request does not exist
            InvalidTransitionError: If the request is already terminal
        """
        await self.get_request_or_raise(request_code, now)
        quote_request = await self.get_request_with_lock(request_code)
        self._ensure_not_terminal(quote_request, RequestStatus.REJECTED)

        quote_request.status = RequestStatus.REJECTED

        stmt = select(Quote).where(
            Quote.request_code == request_code,
            Quote.status == QuoteStatus.PENDING,
        )
        result = await self.db.execute(stmt)
        rejected_quotes = 0
        for quote in result.scalars():
            quote.status = QuoteStatus.REJECTED
            rejected_quotes += 1

        await self._commit_transition(request_code, RequestStatus.REJECTED)

        logger.info(
            "Quote request cancelled",
            extra={"request_code": request_code, "rejected_quotes": rejected_quotes}
        )
        return quote_request

    async def expire_requests(self, now: datetime | None = None, batch_size: int = 500) -> int:
        """
        Periodic sweep moving overdue requests to ``expired``.

        Returns:
            Number of requests expired
        """
        now = now or utcnow()
        stmt = (
            select(QuoteRequest)
            .where(
                QuoteRequest.status.in_([s.value for s in QUOTABLE_REQUEST_STATUSES]),
                QuoteRequest.expires_at < now,
            )
            .order_by(QuoteRequest.expires_at.asc())
            .limit(batch_size)
        )
        result = await self.db.execute(stmt)
        due = list(result.scalars().all())
        if not due:
            return 0

        for quote_request in due:
            quote_request.status = RequestStatus.EXPIRED

        try:
            await self.db.commit()
        except StaleDataError:
            # A concurrent writer touched one of the rows; the next sweep retries
            await self.db.rollback()
            logger.warning(
                "Request expiry sweep lost a race and was rolled back",
                extra={"candidates": len(due)}
            )
            return 0

        metrics_collector.record_requests_expired(len(due))
        logger.info(
            "Expired overdue quote requests",
            extra={"expired_count": len(due), "sweep_time": now.isoformat()}
        )
        return len(due)

    def record_quote(self, quote_request: QuoteRequest, operator_code: str, now: datetime) -> None:
        """
        Apply a newly attached quote to its request.

        The first quote moves ``submitted`` to ``quote-received``; every quote
        keeps the request open for at least another TTL window.
        """
        if quote_request.status == RequestStatus.SUBMITTED:
            quote_request.status = RequestStatus.QUOTE_RECEIVED

        if operator_code not in (quote_request.quoted_operator_codes or []):
            quote_request.quoted_operator_codes = [*(quote_request.quoted_operator_codes or []), operator_code]

        extended = now + self.ttl
        if quote_request.expires_at < extended:
            quote_request.expires_at = extended

    def _ensure_not_terminal(self, quote_request: QuoteRequest, target: RequestStatus) -> None:
        if quote_request.status in TERMINAL_REQUEST_STATUSES:
            logger.warning(
                "Rejected transition on terminal quote request",
                extra={
                    "request_code": quote_request.request_code,
                    "current_status": stored_value(quote_request.status),
                    "target_status": target.value,
                }
            )
            raise InvalidTransitionError(
                entity="quote request",
                entity_id=quote_request.request_code,
                current_status=stored_value(quote_request.status),
                target_status=target.value,
            )

    async def _commit_transition(self, request_code: str, target: RequestStatus) -> None:
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            raise ConflictError(
                detail=f"Quote request {request_code} was modified concurrently",
                conflicting_resource={
                    "request_code": request_code,
                    "target_status": target.value,
                },
            ) from e

    async def _expire_on_read(self, requests: list[QuoteRequest], now: datetime) -> None:
        for quote_request in requests:
            quote_request.status = RequestStatus.EXPIRED

        try:
            await self.db.commit()
        except StaleDataError:
            # Someone else moved the request on; report what is stored now
            await self.db.rollback()
            for quote_request in requests:
                await self.db.refresh(quote_request)
            return

        metrics_collector.record_requests_expired(len(requests))
        logger.info(
            "Quote requests expired on read",
            extra={
                "request_codes": [r.request_code for r in requests],
                "evaluated_at": now.isoformat(),
            }
        )
