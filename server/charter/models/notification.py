"""Notification outbox model definition."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class NotificationKind(str, Enum):
    """Lifecycle events that produce a notification."""
    REQUEST_SUBMITTED = "request-submitted"
    QUOTE_RECEIVED = "quote-received"
    BOOKING_CONFIRMED = "booking-confirmed"
    PAYMENT_RECEIVED = "payment-received"


class NotificationStatus(str, Enum):
    """Delivery status of an outbox event."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationEvent(Base):
    """Outbox row written in the same transaction as a lifecycle change."""

    __tablename__ = "notification_events"

    event_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[NotificationKind] = mapped_column(String(32), nullable=False)
    recipient_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    aggregate_code: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[NotificationStatus] = mapped_column(
        String(16),
        nullable=False,
        default=NotificationStatus.PENDING,
        index=True
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<NotificationEvent(id='{self.event_id}', kind={self.kind}, "
            f"recipient='{self.recipient_code}', status={self.status}, attempts={self.attempts})>"
        )
