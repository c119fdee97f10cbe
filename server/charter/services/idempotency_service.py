"""Stored responses for mutating RPC calls made with an Idempotency-Key.

A key is scoped to one operation. Replaying the same body returns the
stored outcome; reusing the key with a different body is rejected.
"""

import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Any, NamedTuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.config import settings
from ..core.exceptions import ProblemDetailsException
from ..models.idempotency import IdempotencyRecord

logger = logging.getLogger(__name__)


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def body_fingerprint(request_body: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form, so key order does not matter."""
    return hashlib.sha256(canonical_json(request_body).encode("utf-8")).hexdigest()


class IdempotencyMismatchError(ProblemDetailsException):
    status = 422
    title = "Idempotency Key Mismatch"
    slug = "idempotency-key-mismatch"
    error_code = "IDEMPOTENCY_KEY_MISMATCH"

    def __init__(self, idempotency_key: str, method: str):
        super().__init__(
            f"Idempotency key '{idempotency_key}' was already used for {method} with a different body",
            {"idempotency_key": idempotency_key, "method": method},
        )


class StoredResponse(NamedTuple):
    status_code: int
    body: dict[str, Any]
    headers: dict[str, str] | None


class IdempotencyService:
    """Looks up and records responses keyed by (Idempotency-Key, operation)."""

    def __init__(self, db: AsyncSession, ttl_seconds: int | None = None):
        self.db = db
        self.ttl = timedelta(seconds=ttl_seconds or settings.idempotency_ttl_seconds)

    async def _live_record(self, idempotency_key: str, method: str) -> IdempotencyRecord | None:
        stmt = select(IdempotencyRecord).where(
            IdempotencyRecord.idempotency_key == idempotency_key,
            IdempotencyRecord.method == method,
            IdempotencyRecord.expires_at > utcnow(),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def check_idempotency(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
    ) -> StoredResponse | None:
        """
        Return the stored response for a replayed call, or None for a new one.

        Raises:
            IdempotencyMismatchError: The key was used for this operation with another body
        """
        record = await self._live_record(idempotency_key, method)
        if record is None:
            return None

        fingerprint = body_fingerprint(request_body)
        if record.request_body_hash != fingerprint:
            logger.warning(
                "Idempotency key reused with a different body",
                extra={
                    "idempotency_key": idempotency_key,
                    "method": method,
                    "stored_hash": record.request_body_hash[:8],
                    "new_hash": fingerprint[:8],
                }
            )
            raise IdempotencyMismatchError(idempotency_key, method)

        logger.info(
            "Replaying stored response",
            extra={
                "idempotency_key": idempotency_key,
                "method": method,
                "status_code": record.response_status_code,
            }
        )
        headers = json.loads(record.response_headers) if record.response_headers else None
        return StoredResponse(record.response_status_code, json.loads(record.response_body), headers)

    async def store_response(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
        status_code: int,
        response_body: dict[str, Any],
        response_headers: dict[str, str] | None = None,
    ) -> None:
        """
        Persist the outcome of a call in its own commit.

        Losing a race to a concurrent call with the same key is not an error;
        the first stored outcome wins.
        """
        expires_at = utcnow() + self.ttl
        self.db.add(
            IdempotencyRecord(
                idempotency_key=idempotency_key,
                method=method,
                request_body_hash=body_fingerprint(request_body),
                response_status_code=status_code,
                response_body=canonical_json(response_body),
                response_headers=canonical_json(response_headers) if response_headers else None,
                expires_at=expires_at,
            )
        )
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(
                "Response for this idempotency key was already stored",
                extra={"idempotency_key": idempotency_key, "method": method}
            )
            return

        logger.debug(
            "Stored idempotent response",
            extra={
                "idempotency_key": idempotency_key,
                "method": method,
                "status_code": status_code,
                "expires_at": expires_at.isoformat(),
            }
        )

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete records past their retention window and return how many went."""
        stmt = delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= (now or utcnow()))
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount or 0
