"""Quote (operator offer) model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..core.database import Base

if TYPE_CHECKING:
    from .quote_request import QuoteRequest


class QuoteStatus(str, Enum):
    """Quote status enumeration."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Quote(Base):
    """An operator's priced response to a quote request."""

    __tablename__ = "quotes"

    quote_id: Mapped[str] = mapped_column(String(40), primary_key=True)

    request_code: Mapped[str] = mapped_column(
        String(40),
        ForeignKey("quote_requests.request_code", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    operator_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    client_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # Pricing
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[QuoteStatus] = mapped_column(
        String(20),
        nullable=False,
        default=QuoteStatus.PENDING,
        index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_quote_price_positive"),
        CheckConstraint("commission >= 0", name="ck_quote_commission_non_negative"),
        CheckConstraint("length(currency) = 3", name="ck_quote_currency_length"),
        # One quote per operator per request
        Index("uq_quote_request_operator", "request_code", "operator_code", unique=True),
        # At most one accepted quote per request
        Index(
            "uq_quote_one_accepted_per_request",
            "request_code",
            unique=True,
            postgresql_where=text("status = 'accepted'"),
            sqlite_where=text("status = 'accepted'"),
        ),
    )

    request: Mapped["QuoteRequest"] = relationship("QuoteRequest", back_populates="quotes")

    def __repr__(self) -> str:
        return (
            f"<Quote(id='{self.quote_id}', request='{self.request_code}', "
            f"operator='{self.operator_code}', total={self.total_price}, status={self.status})>"
        )
