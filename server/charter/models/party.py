"""Party (platform user) model definition."""

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class PartyRole(str, Enum):
    """Role of a party on the platform."""
    PASSENGER = "passenger"
    OPERATOR = "operator"
    AGENT = "agent"
    ADMIN = "admin"


class Party(Base):
    """A registered passenger, operator, agent or admin."""

    __tablename__ = "parties"

    user_code: Mapped[str] = mapped_column(String(32), primary_key=True)
    role: Mapped[PartyRole] = mapped_column(String(16), nullable=False, index=True)

    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    company: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("length(email) > 0", name="ck_party_email_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Party(code='{self.user_code}', role={self.role})>"
