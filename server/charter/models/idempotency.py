"""Stored outcome of a mutating RPC call made with an Idempotency-Key."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"
    __table_args__ = (
        UniqueConstraint("idempotency_key", "method", name="uq_idempotency_key_method"),
        CheckConstraint("length(request_body_hash) = 64", name="ck_idempotency_hash_length"),
        CheckConstraint(
            "response_status_code BETWEEN 100 AND 599",
            name="ck_idempotency_status_code_range",
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Keys are scoped to one operation, e.g. "quote/accept"
    idempotency_key: Mapped[str] = mapped_column(String(255), index=True)
    method: Mapped[str] = mapped_column(String(100))
    request_body_hash: Mapped[str] = mapped_column(String(64))

    response_status_code: Mapped[int] = mapped_column(Integer)
    response_body: Mapped[str] = mapped_column(Text)
    response_headers: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)

    def __repr__(self) -> str:
        return f"<IdempotencyRecord {self.method} key={self.idempotency_key!r} status={self.response_status_code}>"
