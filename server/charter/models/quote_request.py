"""Quote request model definition."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..core.database import Base

if TYPE_CHECKING:
    from .quote import Quote


class RequestStatus(str, Enum):
    """Quote request status enumeration."""
    SUBMITTED = "submitted"
    QUOTE_RECEIVED = "quote-received"
    QUOTES_VIEWED = "quotes-viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


TERMINAL_REQUEST_STATUSES = frozenset({
    RequestStatus.ACCEPTED,
    RequestStatus.REJECTED,
    RequestStatus.EXPIRED,
})

# Statuses in which operators may still attach quotes
QUOTABLE_REQUEST_STATUSES = frozenset({
    RequestStatus.SUBMITTED,
    RequestStatus.QUOTE_RECEIVED,
    RequestStatus.QUOTES_VIEWED,
})


class TripType(str, Enum):
    """Trip shape requested by the passenger."""
    ONE_WAY = "oneWay"
    RETURN = "return"
    MULTI_CITY = "multiCity"


class CabinClass(str, Enum):
    """Cabin class enumeration."""
    STANDARD = "standard"
    PREMIUM = "premium"
    VIP = "vip"


class QuoteRequest(Base):
    """A passenger's solicitation for flight pricing on a route and date."""

    __tablename__ = "quote_requests"

    # Primary key is the human-readable request code
    request_code: Mapped[str] = mapped_column(String(40), primary_key=True)

    # Parties
    client_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    operator_code: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    # Trip parameters
    trip_type: Mapped[str] = mapped_column(String(16), nullable=False, default=TripType.ONE_WAY)
    departure_airport: Mapped[str] = mapped_column(String(8), nullable=False)
    arrival_airport: Mapped[str] = mapped_column(String(8), nullable=False)
    departure_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    return_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    flexible_dates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    passenger_count: Mapped[int] = mapped_column(Integer, nullable=False)
    cabin_class: Mapped[str] = mapped_column(String(16), nullable=False, default=CabinClass.STANDARD)
    special_requirements: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Lifecycle
    status: Mapped[RequestStatus] = mapped_column(
        String(20),
        nullable=False,
        default=RequestStatus.SUBMITTED,
        index=True
    )
    quoted_operator_codes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    accepted_quote_id: Mapped[str | None] = mapped_column(String(40), nullable=True)
    accepted_operator_code: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Constraints
    __table_args__ = (
        CheckConstraint("passenger_count > 0", name="ck_quote_request_passenger_count_positive"),
        CheckConstraint("length(client_code) > 0", name="ck_quote_request_client_code_not_empty"),
    )

    # Relationships
    quotes: Mapped[list["Quote"]] = relationship(
        "Quote",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="Quote.created_at"
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_REQUEST_STATUSES

    def __repr__(self) -> str:
        return (
            f"<QuoteRequest(code='{self.request_code}', client='{self.client_code}', "
            f"status={self.status}, expires_at={self.expires_at})>"
        )
