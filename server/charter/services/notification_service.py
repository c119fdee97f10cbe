"""Notification outbox and dispatcher.

Lifecycle services append events to the outbox inside their own transaction.
The dispatcher runs separately, so a failed send never rolls back the change
that produced the event.
"""

import logging
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.config import settings
from ..core.database import stored_value
from ..core.observability import metrics_collector
from ..models.notification import NotificationEvent, NotificationKind, NotificationStatus
from .identifier_service import sequence_code

logger = logging.getLogger(__name__)

EVENT_LABEL = "email"


class NotificationSender(Protocol):
    """Delivery channel for rendered notifications."""

    async def send(self, kind: str, recipient: str, payload: dict[str, Any]) -> None:
        ...


class LoggingNotificationSender:
    """Sender that records the notification in the application log."""

    async def send(self, kind: str, recipient: str, payload: dict[str, Any]) -> None:
        logger.info(
            "Notification delivered",
            extra={"kind": kind, "recipient": recipient, "payload": payload}
        )


class NotificationOutbox:
    """Writes notification events as part of the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _next_sequence(self, aggregate_code: str) -> int:
        stmt = select(func.count()).select_from(NotificationEvent).where(
            NotificationEvent.aggregate_code == aggregate_code
        )
        result = await self.db.execute(stmt)
        # Events queued earlier in this transaction are not flushed yet
        queued = sum(
            1 for obj in self.db.new
            if isinstance(obj, NotificationEvent) and obj.aggregate_code == aggregate_code
        )
        return result.scalar_one() + queued + 1

    async def enqueue(
        self,
        kind: NotificationKind,
        recipient_code: str,
        aggregate_code: str,
        payload: dict[str, Any] | None = None,
    ) -> NotificationEvent:
        """
        Add a pending notification event to the session.

        The caller owns the transaction; nothing is committed here.
        """
        sequence = await self._next_sequence(aggregate_code)
        event = NotificationEvent(
            event_id=sequence_code(aggregate_code, EVENT_LABEL, sequence),
            kind=kind,
            recipient_code=recipient_code,
            aggregate_code=aggregate_code,
            payload=payload or {},
            status=NotificationStatus.PENDING,
            attempts=0,
            created_at=utcnow(),
        )
        self.db.add(event)

        logger.debug(
            "Notification queued",
            extra={
                "event_id": event.event_id,
                "kind": stored_value(kind),
                "recipient": recipient_code,
            }
        )
        return event

    async def list_events(self, aggregate_code: str) -> list[NotificationEvent]:
        stmt = (
            select(NotificationEvent)
            .where(NotificationEvent.aggregate_code == aggregate_code)
            .order_by(NotificationEvent.created_at, NotificationEvent.event_id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


class NotificationDispatcher:
    """Delivers pending outbox events through a ``NotificationSender``."""

    def __init__(
        self,
        db: AsyncSession,
        sender: NotificationSender | None = None,
        max_attempts: int | None = None,
    ):
        self.db = db
        self.sender = sender or LoggingNotificationSender()
        self.max_attempts = max_attempts or settings.notification_max_attempts

    async def dispatch_pending(self, batch_size: int = 100) -> dict[str, int]:
        """
        Deliver up to ``batch_size`` pending events, oldest first.

        Returns:
            Counts of events sent, retried later and permanently failed
        """
        stmt = (
            select(NotificationEvent)
            .where(NotificationEvent.status == NotificationStatus.PENDING)
            .order_by(NotificationEvent.created_at, NotificationEvent.event_id)
            .limit(batch_size)
        )
        result = await self.db.execute(stmt)
        events = list(result.scalars().all())

        counts = {"sent": 0, "retrying": 0, "failed": 0}
        for event in events:
            outcome = await self._deliver(event)
            counts[outcome] += 1
            await self.db.commit()

        if events:
            logger.info("Notification batch dispatched", extra=counts)

        return counts

    async def _deliver(self, event: NotificationEvent) -> str:
        kind = stored_value(event.kind)
        event.attempts += 1
        try:
            await self.sender.send(kind, event.recipient_code, event.payload)
        except Exception as e:
            # Delivery failures are recorded on the event and never reach the lifecycle
            event.last_error = str(e)[:1000]
            metrics_collector.record_notification_failed(kind)
            if event.attempts >= self.max_attempts:
                event.status = NotificationStatus.FAILED
                logger.error(
                    "Notification permanently failed",
                    extra={
                        "event_id": event.event_id,
                        "kind": kind,
                        "attempts": event.attempts,
                        "error": event.last_error,
                    }
                )
                return "failed"

            logger.warning(
                "Notification delivery failed, will retry",
                extra={
                    "event_id": event.event_id,
                    "kind": kind,
                    "attempts": event.attempts,
                    "error": event.last_error,
                }
            )
            return "retrying"

        event.status = NotificationStatus.SENT
        event.sent_at = utcnow()
        event.last_error = None
        metrics_collector.record_notification_sent(kind)
        return "sent"
