"""End-to-end lifecycle scenarios driven through the services."""

from datetime import timedelta
from decimal import Decimal

import pytest

from charter.core.exceptions import DuplicateRatingError, ValidationError
from charter.models.invoice import InvoiceStatus
from charter.models.quote import QuoteStatus
from charter.models.quote_request import RequestStatus
from charter.services.invoice_service import InvoiceService
from charter.services.quote_service import QuoteService
from charter.services.rating_service import RatingService
from charter.services.request_service import RequestService

from conftest import ADMIN_CODE, CLIENT_CODE, OTHER_OPERATOR_CODE


@pytest.mark.asyncio
async def test_unquoted_request_expires_after_a_day(lifecycle, test_session, now):
    lifecycle.now = now - timedelta(hours=24)
    quote_request = await lifecycle.request()

    stored = await RequestService(test_session).get_request_or_raise(
        quote_request.request_code, now + timedelta(seconds=1)
    )

    assert stored.status == RequestStatus.EXPIRED


@pytest.mark.asyncio
async def test_accepting_cheaper_quote(lifecycle, test_session, now):
    quote_request = await lifecycle.request()
    cheap = await lifecycle.quote(quote_request.request_code, price="1000")
    dear = await lifecycle.quote(quote_request.request_code, operator_code=OTHER_OPERATOR_CODE, price="2000")

    booking = await QuoteService(test_session).accept_quote(cheap.quote_id, now=now)

    assert cheap.commission == Decimal("30.00")
    assert booking.price == Decimal("1000.00")
    assert booking.total_price == Decimal("1030.00")
    assert booking.total_price - booking.price == Decimal("30.00")
    await test_session.refresh(dear)
    assert dear.status == QuoteStatus.REJECTED.value


@pytest.mark.asyncio
async def test_invoice_settles_over_two_payments(lifecycle, test_session):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id, amount="500")
    invoices = InvoiceService(test_session)

    await lifecycle.payment(booking.booking_id, invoice.invoice_id, "300", verified_by=ADMIN_CODE)
    after_first = await invoices.get_invoice_or_raise(invoice.invoice_id)
    assert after_first.status == InvoiceStatus.BALANCE_DUE
    assert after_first.amount_pending == Decimal("200.00")

    await lifecycle.payment(booking.booking_id, invoice.invoice_id, "200", verified_by=ADMIN_CODE)
    after_second = await invoices.get_invoice_or_raise(invoice.invoice_id)
    assert after_second.status == InvoiceStatus.PAID
    assert after_second.amount_pending == Decimal("0.00")
    assert (await lifecycle.reload_booking(booking.booking_id)).is_paid is True


@pytest.mark.asyncio
async def test_rating_bounds_and_single_rating(lifecycle, test_session):
    booking = await lifecycle.booking()
    service = RatingService(test_session)

    with pytest.raises(ValidationError):
        await service.create_rating(booking.booking_id, CLIENT_CODE, 6)

    await service.create_rating(booking.booking_id, CLIENT_CODE, 4)
    with pytest.raises(DuplicateRatingError):
        await service.create_rating(booking.booking_id, CLIENT_CODE, 5)
