"""Normalization of legacy quote request status values."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import stored_value
from ..core.exceptions import ValidationError
from ..models.quote_request import QuoteRequest, RequestStatus

logger = logging.getLogger(__name__)

# Legacy values written by earlier clients, plus identity entries for current ones
STATUS_MIGRATION_MAP: dict[str, str] = {
    "pending": RequestStatus.SUBMITTED.value,
    "draft": RequestStatus.SUBMITTED.value,
    "under-operator-review": RequestStatus.QUOTE_RECEIVED.value,
    "under-offer": RequestStatus.QUOTE_RECEIVED.value,
    "quoted": RequestStatus.QUOTE_RECEIVED.value,
    "booked": RequestStatus.ACCEPTED.value,
    "cancelled": RequestStatus.REJECTED.value,
    **{status.value: status.value for status in RequestStatus},
}


def normalize_status(value: str) -> RequestStatus:
    """
    Map a stored status string onto the current request state machine.

    Raises:
        ValidationError: If the value is neither current nor a known legacy value
    """
    try:
        return RequestStatus(STATUS_MIGRATION_MAP[value])
    except KeyError as e:
        raise ValidationError(
            detail=f"Unknown quote request status '{value}'",
            errors={"status": value},
        ) from e


async def migrate_request_statuses(db: AsyncSession, batch_size: int = 500) -> dict[str, int]:
    """
    Rewrite legacy status values on stored quote requests.

    Rows with unrecognized values are left untouched and counted.

    Returns:
        Counts of scanned, migrated, unchanged and unknown rows
    """
    counts = {"scanned": 0, "migrated": 0, "unchanged": 0, "unknown": 0}
    offset = 0

    while True:
        stmt = (
            select(QuoteRequest)
            .order_by(QuoteRequest.request_code)
            .offset(offset)
            .limit(batch_size)
        )
        result = await db.execute(stmt)
        batch = list(result.scalars().all())
        if not batch:
            break

        for quote_request in batch:
            counts["scanned"] += 1
            current = stored_value(quote_request.status)
            target = STATUS_MIGRATION_MAP.get(current)

            if target is None:
                counts["unknown"] += 1
                logger.warning(
                    "Skipping quote request with unknown status",
                    extra={"request_code": quote_request.request_code, "status": current}
                )
            elif target == current:
                counts["unchanged"] += 1
            else:
                quote_request.status = RequestStatus(target)
                counts["migrated"] += 1

        await db.commit()
        offset += batch_size

    logger.info("Quote request status migration finished", extra=counts)
    return counts
