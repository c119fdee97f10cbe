"""Unit tests for quote submission, acceptance and rejection."""

from datetime import timedelta
from decimal import Decimal

import pytest

from charter.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from charter.models.booking import BookingStatus
from charter.models.notification import NotificationKind
from charter.models.quote import QuoteStatus
from charter.models.quote_request import RequestStatus
from charter.schemas.quote import SubmitQuoteRequest
from charter.services.notification_service import NotificationOutbox
from charter.services.quote_service import DuplicateQuoteError, QuoteService
from charter.services.request_service import RequestService

from conftest import CLIENT_CODE, OPERATOR_CODE, OTHER_OPERATOR_CODE


@pytest.mark.asyncio
async def test_submit_quote_applies_commission(lifecycle, test_session):
    quote_request = await lifecycle.request()

    quote = await lifecycle.quote(quote_request.request_code, price="10000.00")

    assert quote.quote_id.startswith("QT-SKYL-")
    assert quote.client_code == CLIENT_CODE
    assert quote.price == Decimal("10000.00")
    assert quote.commission == Decimal("300.00")
    assert quote.total_price == Decimal("10300.00")
    assert quote.status == QuoteStatus.PENDING

    events = await NotificationOutbox(test_session).list_events(quote.quote_id)
    assert len(events) == 1
    assert events[0].kind == NotificationKind.QUOTE_RECEIVED.value
    assert events[0].recipient_code == CLIENT_CODE


@pytest.mark.asyncio
async def test_commission_rounds_half_up_to_cents(lifecycle):
    quote_request = await lifecycle.request()

    quote = await lifecycle.quote(quote_request.request_code, price="1234.50")

    # 3% of 1234.50 is 37.035
    assert quote.commission == Decimal("37.04")
    assert quote.total_price == Decimal("1271.54")


@pytest.mark.asyncio
@pytest.mark.parametrize("price", ["0", "-150.00"])
async def test_non_positive_price_is_rejected(lifecycle, test_session, now, price):
    quote_request = await lifecycle.request()

    with pytest.raises(ValidationError):
        await QuoteService(test_session).submit_quote(
            OPERATOR_CODE,
            SubmitQuoteRequest(request_code=quote_request.request_code, price=Decimal(price)),
            now=now,
        )


@pytest.mark.asyncio
async def test_operator_cannot_quote_twice(lifecycle):
    quote_request = await lifecycle.request()
    await lifecycle.quote(quote_request.request_code)

    with pytest.raises(DuplicateQuoteError) as exc_info:
        await lifecycle.quote(quote_request.request_code, price="9000.00")

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "DUPLICATE_QUOTE"
    assert exc_info.value.problem_details["retryable"] is False


@pytest.mark.asyncio
async def test_quote_on_closed_request_is_rejected(lifecycle, test_session, now):
    quote_request = await lifecycle.request()
    await RequestService(test_session).cancel_request(quote_request.request_code, now)

    with pytest.raises(ValidationError):
        await lifecycle.quote(quote_request.request_code)


@pytest.mark.asyncio
async def test_quote_on_expired_request_is_rejected(lifecycle, now):
    quote_request = await lifecycle.request()
    lifecycle.now = now + timedelta(hours=25)

    with pytest.raises(ValidationError):
        await lifecycle.quote(quote_request.request_code)


@pytest.mark.asyncio
async def test_addressed_request_only_accepts_its_operator(lifecycle):
    quote_request = await lifecycle.request(operator_code=OTHER_OPERATOR_CODE)

    with pytest.raises(ValidationError):
        await lifecycle.quote(quote_request.request_code, operator_code=OPERATOR_CODE)

    quote = await lifecycle.quote(quote_request.request_code, operator_code=OTHER_OPERATOR_CODE)
    assert quote.operator_code == OTHER_OPERATOR_CODE


@pytest.mark.asyncio
async def test_accept_quote_creates_booking_and_rejects_siblings(lifecycle, test_session, now):
    quote_request = await lifecycle.request(passenger_count=6)
    winner = await lifecycle.quote(quote_request.request_code, price="12000.00")
    loser = await lifecycle.quote(quote_request.request_code, operator_code=OTHER_OPERATOR_CODE)

    booking = await QuoteService(test_session).accept_quote(winner.quote_id, now=now)

    assert booking.booking_id.startswith("BK-SMIT-")
    assert booking.quote_id == winner.quote_id
    assert booking.operator_code == OPERATOR_CODE
    assert booking.client_code == CLIENT_CODE
    assert booking.passenger_count == 6
    assert booking.departure_airport == "TEB"
    assert booking.total_price == winner.total_price
    assert booking.status == BookingStatus.PENDING
    assert booking.is_paid is False

    stored_request = await RequestService(test_session).get_request_by_code(quote_request.request_code)
    assert stored_request.status == RequestStatus.ACCEPTED
    assert stored_request.accepted_quote_id == winner.quote_id
    assert stored_request.accepted_operator_code == OPERATOR_CODE

    await test_session.refresh(loser)
    assert loser.status == QuoteStatus.REJECTED.value

    events = await NotificationOutbox(test_session).list_events(booking.booking_id)
    assert {e.recipient_code for e in events} == {CLIENT_CODE, OPERATOR_CODE}
    assert all(e.kind == NotificationKind.BOOKING_CONFIRMED.value for e in events)


@pytest.mark.asyncio
async def test_second_acceptance_on_request_fails(lifecycle, test_session, now):
    quote_request = await lifecycle.request()
    first = await lifecycle.quote(quote_request.request_code)
    second = await lifecycle.quote(quote_request.request_code, operator_code=OTHER_OPERATOR_CODE)

    service = QuoteService(test_session)
    await service.accept_quote(first.quote_id, now=now)

    with pytest.raises(InvalidTransitionError):
        await service.accept_quote(second.quote_id, now=now)
    with pytest.raises(InvalidTransitionError):
        await service.accept_quote(first.quote_id, now=now)


@pytest.mark.asyncio
async def test_accepting_after_expiry_fails(lifecycle, test_session, now):
    quote_request = await lifecycle.request()
    quote = await lifecycle.quote(quote_request.request_code)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await QuoteService(test_session).accept_quote(quote.quote_id, now=now + timedelta(days=2))

    assert exc_info.value.problem_details["current_status"] == RequestStatus.EXPIRED.value


@pytest.mark.asyncio
async def test_reject_quote(lifecycle, test_session):
    quote_request = await lifecycle.request()
    quote = await lifecycle.quote(quote_request.request_code)
    service = QuoteService(test_session)

    rejected = await service.reject_quote(quote.quote_id)
    assert rejected.status == QuoteStatus.REJECTED

    again = await service.reject_quote(quote.quote_id)
    assert again.status == QuoteStatus.REJECTED


@pytest.mark.asyncio
async def test_accepted_quote_cannot_be_rejected(lifecycle, test_session):
    booking = await lifecycle.booking()

    with pytest.raises(InvalidTransitionError):
        await QuoteService(test_session).reject_quote(booking.quote_id)


@pytest.mark.asyncio
async def test_request_quotes_are_listed_cheapest_first(lifecycle, test_session):
    quote_request = await lifecycle.request()
    expensive = await lifecycle.quote(quote_request.request_code, price="15000.00")
    cheap = await lifecycle.quote(quote_request.request_code, operator_code=OTHER_OPERATOR_CODE, price="8000.00")

    quotes = await QuoteService(test_session).list_request_quotes(quote_request.request_code)

    assert [q.quote_id for q in quotes] == [cheap.quote_id, expensive.quote_id]


@pytest.mark.asyncio
async def test_missing_quote_raises(test_session):
    with pytest.raises(NotFoundError):
        await QuoteService(test_session).accept_quote("QT-NONE-00000")
