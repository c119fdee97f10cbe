"""Invoice model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""
    OPEN = "open"
    BALANCE_DUE = "balance-due"
    PAID = "paid"


class Invoice(Base):
    """Billing record for a booking's total price."""

    __tablename__ = "invoices"

    invoice_id: Mapped[str] = mapped_column(String(40), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    client_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # Ledger
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    amount_pending: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.OPEN,
        index=True
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

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
        CheckConstraint("amount >= 0", name="ck_invoice_amount_non_negative"),
        CheckConstraint("amount_paid >= 0", name="ck_invoice_amount_paid_non_negative"),
        CheckConstraint("amount_pending >= 0", name="ck_invoice_amount_pending_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Invoice(id='{self.invoice_id}', booking='{self.booking_id}', amount={self.amount}, "
            f"paid={self.amount_paid}, pending={self.amount_pending}, status={self.status})>"
        )
