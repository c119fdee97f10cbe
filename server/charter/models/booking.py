"""Booking model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Booking(Base):
    """Booking materialized from an accepted quote.

    Routing, passenger and pricing columns are a snapshot taken at acceptance
    time and are never re-synchronized with the originating request.
    """

    __tablename__ = "bookings"

    booking_id: Mapped[str] = mapped_column(String(40), primary_key=True)

    # Origin references
    request_code: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    quote_id: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)

    # Parties
    operator_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    client_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # Routing snapshot
    trip_type: Mapped[str] = mapped_column(String(16), nullable=False)
    departure_airport: Mapped[str] = mapped_column(String(8), nullable=False)
    arrival_airport: Mapped[str] = mapped_column(String(8), nullable=False)
    departure_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    return_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    passenger_count: Mapped[int] = mapped_column(Integer, nullable=False)
    cabin_class: Mapped[str] = mapped_column(String(16), nullable=False)
    special_requirements: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Pricing snapshot
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

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
        CheckConstraint("passenger_count > 0", name="ck_booking_passenger_count_positive"),
        CheckConstraint("total_price >= price", name="ck_booking_total_covers_price"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id='{self.booking_id}', quote='{self.quote_id}', "
            f"status={self.status}, is_paid={self.is_paid})>"
        )
