"""Rating model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class Rating(Base):
    """One-time post-booking feedback."""

    __tablename__ = "ratings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # A booking can be rated once
    booking_id: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    operator_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    customer_user_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("rating >= 1", name="ck_rating_min"),
        CheckConstraint("rating <= 5", name="ck_rating_max"),
    )

    def __repr__(self) -> str:
        return f"<Rating(booking='{self.booking_id}', operator='{self.operator_code}', rating={self.rating})>"
