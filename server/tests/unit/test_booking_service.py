"""Unit tests for booking status handling."""

import pytest

from charter.core.exceptions import InvalidTransitionError, NotFoundError
from charter.models.booking import BookingStatus
from charter.services.booking_service import BookingService
from charter.services.quote_service import QuoteService
from charter.services.request_service import RequestService

from conftest import CLIENT_CODE, OPERATOR_CODE


@pytest.mark.asyncio
async def test_confirm_booking_is_idempotent(lifecycle, test_session):
    booking = await lifecycle.booking()
    service = BookingService(test_session)

    confirmed = await service.confirm_booking(booking.booking_id)
    assert confirmed.status == BookingStatus.CONFIRMED

    again = await service.confirm_booking(booking.booking_id)
    assert again.status == BookingStatus.CONFIRMED.value


@pytest.mark.asyncio
async def test_cancel_booking_is_idempotent(lifecycle, test_session):
    booking = await lifecycle.booking()
    service = BookingService(test_session)

    cancelled = await service.cancel_booking(booking.booking_id)
    assert cancelled.status == BookingStatus.CANCELLED

    again = await service.cancel_booking(booking.booking_id)
    assert again.status == BookingStatus.CANCELLED.value


@pytest.mark.asyncio
async def test_cancelled_booking_cannot_be_confirmed(lifecycle, test_session):
    booking = await lifecycle.booking()
    service = BookingService(test_session)
    await service.cancel_booking(booking.booking_id)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await service.confirm_booking(booking.booking_id)

    assert exc_info.value.problem_details["current_status"] == "cancelled"


@pytest.mark.asyncio
async def test_confirmed_booking_cannot_be_cancelled(lifecycle, test_session):
    booking = await lifecycle.booking()
    service = BookingService(test_session)
    await service.confirm_booking(booking.booking_id)

    with pytest.raises(InvalidTransitionError):
        await service.cancel_booking(booking.booking_id)


@pytest.mark.asyncio
async def test_create_booking_returns_existing_for_same_quote(lifecycle, test_session, now):
    booking = await lifecycle.booking()
    quote = await QuoteService(test_session).get_quote_or_raise(booking.quote_id)
    quote_request = await RequestService(test_session).get_request_by_code(booking.request_code)

    again = await BookingService(test_session).create_booking(quote_request, quote, now)

    assert again.booking_id == booking.booking_id


def test_apply_payment_state_confirms_pending_booking():
    service = BookingService(db=None, identifier_service=object())

    class Stub:
        status = BookingStatus.PENDING
        is_paid = False

    booking = Stub()
    service.apply_payment_state(booking, invoice_paid=True)
    assert booking.is_paid is True
    assert booking.status == BookingStatus.CONFIRMED

    service.apply_payment_state(booking, invoice_paid=False)
    assert booking.is_paid is False
    assert booking.status == BookingStatus.CONFIRMED


def test_apply_payment_state_leaves_cancelled_booking_cancelled():
    service = BookingService(db=None, identifier_service=object())

    class Stub:
        status = BookingStatus.CANCELLED
        is_paid = False

    booking = Stub()
    service.apply_payment_state(booking, invoice_paid=True)
    assert booking.status == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_bookings_listed_by_party(lifecycle, test_session):
    booking = await lifecycle.booking()
    service = BookingService(test_session)

    assert [b.booking_id for b in await service.list_client_bookings(CLIENT_CODE)] == [booking.booking_id]
    assert [b.booking_id for b in await service.list_operator_bookings(OPERATOR_CODE)] == [booking.booking_id]
    assert await service.list_client_bookings("PA-OTHR-00000") == []


@pytest.mark.asyncio
async def test_missing_booking_raises(test_session):
    with pytest.raises(NotFoundError):
        await BookingService(test_session).confirm_booking("BK-NONE-00000")
