"""Payment model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# Allowed admin-driven transitions, keyed by current status
PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


class PaymentMethod(str, Enum):
    """Accepted payment methods."""
    BANK_TRANSFER = "bank-transfer"
    CARD = "card"
    WIRE = "wire"
    CHECK = "check"
    OTHER = "other"


class Payment(Base):
    """A single money movement applied against an invoice."""

    __tablename__ = "payments"

    payment_id: Mapped[str] = mapped_column(String(40), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    invoice_id: Mapped[str] = mapped_column(String(40), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True
    )
    processed_by: Mapped[str | None] = mapped_column(String(32), nullable=True)
    processed_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Operator payout annotation
    operator_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    operator_paid_by: Mapped[str | None] = mapped_column(String(32), nullable=True)
    operator_paid_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    operator_payment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        CheckConstraint("length(payment_method) > 0", name="ck_payment_method_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id='{self.payment_id}', invoice='{self.invoice_id}', "
            f"amount={self.amount}, status={self.status})>"
        )
