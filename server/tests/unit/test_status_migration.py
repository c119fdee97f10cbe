"""Unit tests for legacy request status normalization."""

import pytest
from sqlalchemy import update

from charter.core.exceptions import ValidationError
from charter.models.quote_request import QuoteRequest, RequestStatus
from charter.services.request_service import RequestService
from charter.services.status_migration import migrate_request_statuses, normalize_status


@pytest.mark.parametrize(
    "legacy, current",
    [
        ("pending", RequestStatus.SUBMITTED),
        ("draft", RequestStatus.SUBMITTED),
        ("under-operator-review", RequestStatus.QUOTE_RECEIVED),
        ("under-offer", RequestStatus.QUOTE_RECEIVED),
        ("quoted", RequestStatus.QUOTE_RECEIVED),
        ("booked", RequestStatus.ACCEPTED),
        ("cancelled", RequestStatus.REJECTED),
        ("quotes-viewed", RequestStatus.QUOTES_VIEWED),
        ("expired", RequestStatus.EXPIRED),
    ],
)
def test_normalize_status(legacy, current):
    assert normalize_status(legacy) is current


def test_normalize_unknown_status():
    with pytest.raises(ValidationError):
        normalize_status("on-hold")


@pytest.mark.asyncio
async def test_migrate_request_statuses(lifecycle, test_session):
    legacy = await lifecycle.request()
    mystery = await lifecycle.request()
    current = await lifecycle.request()

    await test_session.execute(
        update(QuoteRequest).where(QuoteRequest.request_code == legacy.request_code).values(status="booked")
    )
    await test_session.execute(
        update(QuoteRequest).where(QuoteRequest.request_code == mystery.request_code).values(status="on-hold")
    )
    await test_session.commit()

    counts = await migrate_request_statuses(test_session, batch_size=2)

    assert counts == {"scanned": 3, "migrated": 1, "unchanged": 1, "unknown": 1}

    service = RequestService(test_session)
    assert (await service.get_request_by_code(legacy.request_code)).status == RequestStatus.ACCEPTED.value
    assert (await service.get_request_by_code(mystery.request_code)).status == "on-hold"
    assert (await service.get_request_by_code(current.request_code)).status == RequestStatus.SUBMITTED.value

    rerun = await migrate_request_statuses(test_session)
    assert rerun == {"scanned": 3, "migrated": 0, "unchanged": 2, "unknown": 1}
