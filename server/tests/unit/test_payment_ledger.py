"""Unit tests for invoices, payments and the booking paid flag."""

from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from charter.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from charter.models.booking import BookingStatus
from charter.models.invoice import InvoiceStatus
from charter.models.notification import NotificationKind
from charter.models.payment import PaymentStatus
from charter.schemas.payment import RecordPaymentRequest
from charter.services.invoice_service import InvoiceService, derive_invoice_status
from charter.services.notification_service import NotificationOutbox
from charter.services.payment_service import PaymentService

from conftest import ADMIN_CODE, CLIENT_CODE


@pytest.mark.parametrize(
    "amount, pending, expected",
    [
        ("1000.00", "1000.00", InvoiceStatus.OPEN),
        ("1000.00", "0.01", InvoiceStatus.BALANCE_DUE),
        ("1000.00", "0.00", InvoiceStatus.PAID),
        ("0.00", "0.00", InvoiceStatus.PAID),
    ],
)
def test_derive_invoice_status(amount, pending, expected):
    assert derive_invoice_status(Decimal(amount), Decimal(pending)) == expected


@pytest.mark.asyncio
async def test_invoice_defaults_to_booking_total(lifecycle):
    booking = await lifecycle.booking(price="10000.00")

    invoice = await lifecycle.invoice(booking.booking_id)

    assert invoice.invoice_id.startswith("INV-SKYL-")
    assert invoice.client_code == CLIENT_CODE
    assert invoice.amount == Decimal("10300.00")
    assert invoice.amount_paid == Decimal("0.00")
    assert invoice.amount_pending == Decimal("10300.00")
    assert invoice.status == InvoiceStatus.OPEN


@pytest.mark.asyncio
async def test_invoice_rejects_negative_amount(lifecycle):
    booking = await lifecycle.booking()

    with pytest.raises(ValidationError):
        await lifecycle.invoice(booking.booking_id, amount="-1.00")


@pytest.mark.asyncio
async def test_invoice_for_missing_booking(lifecycle):
    with pytest.raises(NotFoundError):
        await lifecycle.invoice("BK-NONE-00000")


@pytest.mark.asyncio
async def test_partial_then_full_payment(lifecycle, test_session):
    booking = await lifecycle.booking(price="10000.00")
    invoice = await lifecycle.invoice(booking.booking_id)
    invoices = InvoiceService(test_session)

    await lifecycle.payment(booking.booking_id, invoice.invoice_id, "3000.00", verified_by=ADMIN_CODE)

    partial = await invoices.get_invoice_or_raise(invoice.invoice_id)
    assert partial.status == InvoiceStatus.BALANCE_DUE
    assert partial.amount_paid == Decimal("3000.00")
    assert partial.amount_pending == Decimal("7300.00")
    assert partial.paid_at is None
    booking_state = await lifecycle.reload_booking(booking.booking_id)
    assert booking_state.is_paid is False
    assert booking_state.status == BookingStatus.PENDING.value

    await lifecycle.payment(booking.booking_id, invoice.invoice_id, "7300.00", verified_by=ADMIN_CODE)

    paid = await invoices.get_invoice_or_raise(invoice.invoice_id)
    assert paid.status == InvoiceStatus.PAID
    assert paid.amount_pending == Decimal("0.00")
    assert paid.paid_at is not None
    booking_state = await lifecycle.reload_booking(booking.booking_id)
    assert booking_state.is_paid is True
    assert booking_state.status == BookingStatus.CONFIRMED.value


@pytest.mark.asyncio
async def test_overpayment_leaves_nothing_pending(lifecycle, test_session):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id, amount="500.00")

    await lifecycle.payment(booking.booking_id, invoice.invoice_id, "650.00", verified_by=ADMIN_CODE)

    stored = await InvoiceService(test_session).get_invoice_or_raise(invoice.invoice_id)
    assert stored.amount_paid == Decimal("650.00")
    assert stored.amount_pending == Decimal("0.00")
    assert stored.status == InvoiceStatus.PAID


@pytest.mark.asyncio
async def test_pending_payment_waits_for_admin(lifecycle, test_session, now):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id)

    payment = await lifecycle.payment(booking.booking_id, invoice.invoice_id, "10300.00")
    assert payment.status == PaymentStatus.PENDING
    assert payment.payment_id.startswith("PMT-")

    stored = await InvoiceService(test_session).get_invoice_or_raise(invoice.invoice_id)
    assert stored.status == InvoiceStatus.OPEN

    service = PaymentService(test_session)
    pending = await service.list_pending_payments()
    assert [p.payment_id for p in pending] == [payment.payment_id]

    processed = await service.process_payment(payment.payment_id, ADMIN_CODE, PaymentStatus.COMPLETED, now=now)

    assert processed.status == PaymentStatus.COMPLETED
    assert processed.processed_by == ADMIN_CODE
    stored = await InvoiceService(test_session).get_invoice_or_raise(invoice.invoice_id)
    assert stored.status == InvoiceStatus.PAID
    assert (await lifecycle.reload_booking(booking.booking_id)).is_paid is True
    assert await service.list_pending_payments() == []

    events = await NotificationOutbox(test_session).list_events(payment.payment_id)
    assert [e.kind for e in events] == [NotificationKind.PAYMENT_RECEIVED.value]


@pytest.mark.asyncio
async def test_refund_reopens_invoice(lifecycle, test_session, now):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id)
    payment = await lifecycle.payment(booking.booking_id, invoice.invoice_id, "10300.00", verified_by=ADMIN_CODE)

    await PaymentService(test_session).process_payment(payment.payment_id, ADMIN_CODE, PaymentStatus.REFUNDED, now=now)

    stored = await InvoiceService(test_session).get_invoice_or_raise(invoice.invoice_id)
    assert stored.status == InvoiceStatus.OPEN
    assert stored.amount_paid == Decimal("0.00")
    assert stored.paid_at is None
    booking_state = await lifecycle.reload_booking(booking.booking_id)
    assert booking_state.is_paid is False
    assert booking_state.status == BookingStatus.CONFIRMED.value


@pytest.mark.asyncio
async def test_reapplying_current_status_is_noop(lifecycle, test_session, now):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id)
    payment = await lifecycle.payment(booking.booking_id, invoice.invoice_id, "10300.00", verified_by=ADMIN_CODE)

    again = await PaymentService(test_session).process_payment(
        payment.payment_id, ADMIN_CODE, PaymentStatus.COMPLETED, now=now
    )

    assert again.status == PaymentStatus.COMPLETED.value
    stored = await InvoiceService(test_session).get_invoice_or_raise(invoice.invoice_id)
    assert stored.amount_paid == Decimal("10300.00")


@pytest.mark.asyncio
async def test_reapplying_ledger_keeps_paid_at(lifecycle, test_session, now):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id)
    await lifecycle.payment(booking.booking_id, invoice.invoice_id, "10300.00", verified_by=ADMIN_CODE)
    service = InvoiceService(test_session)
    settled = await service.get_invoice_with_lock(invoice.invoice_id)
    paid_at = settled.paid_at
    assert settled.status == InvoiceStatus.PAID.value
    assert paid_at is not None

    await service.apply_payment(settled, now=now + timedelta(days=3))
    await test_session.commit()

    stored = await service.get_invoice_with_lock(invoice.invoice_id)
    assert stored.paid_at == paid_at
    assert stored.amount_paid == Decimal("10300.00")
    assert stored.amount_pending == Decimal("0.00")


@pytest.mark.asyncio
async def test_disallowed_payment_transition(lifecycle, test_session, now):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id)
    payment = await lifecycle.payment(booking.booking_id, invoice.invoice_id, "100.00")

    with pytest.raises(InvalidTransitionError) as exc_info:
        await PaymentService(test_session).process_payment(
            payment.payment_id, ADMIN_CODE, PaymentStatus.REFUNDED, now=now
        )

    assert exc_info.value.problem_details["current_status"] == "pending"
    assert exc_info.value.problem_details["target_status"] == "refunded"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "amount, method, field",
    [
        (None, "wire", "amount"),
        (Decimal("0"), "wire", "amount"),
        (Decimal("0.004"), "wire", "amount"),
        (Decimal("100.00"), None, "payment_method"),
        (Decimal("100.00"), "   ", "payment_method"),
    ],
)
async def test_record_payment_validates_details(lifecycle, test_session, amount, method, field):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id)

    with pytest.raises(ValidationError) as exc_info:
        await PaymentService(test_session).record_payment(
            # Service callers are not bound by the HTTP schema
            RecordPaymentRequest.model_construct(
                booking_id=booking.booking_id,
                invoice_id=invoice.invoice_id,
                amount=amount,
                payment_method=method,
                payment_reference=None,
                notes=None,
                payment_date=None,
                verified=False,
            )
        )

    assert field in exc_info.value.problem_details["errors"]


@pytest.mark.asyncio
@pytest.mark.parametrize("verified_by", [None, ADMIN_CODE])
async def test_sub_cent_amount_is_rejected_before_writing(lifecycle, test_session, verified_by):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id)
    service = PaymentService(test_session)

    with pytest.raises(ValidationError) as exc_info:
        await service.record_payment(
            RecordPaymentRequest.model_construct(
                booking_id=booking.booking_id,
                invoice_id=invoice.invoice_id,
                amount=Decimal("0.004"),
                payment_method="wire",
                payment_reference=None,
                notes=None,
                payment_date=None,
                verified=verified_by is not None,
            ),
            verified_by=verified_by,
        )

    assert exc_info.value.status_code == 400
    assert exc_info.value.problem_details["retryable"] is False
    assert await service.list_booking_payments(booking.booking_id) == []


def test_record_payment_schema_rejects_unpayable_amounts():
    for amount in ("0", "-5.00", "0.004"):
        with pytest.raises(PydanticValidationError):
            RecordPaymentRequest(booking_id="BK-SMIT-00001", invoice_id="INV-SKYL-00001", amount=amount)


@pytest.mark.asyncio
async def test_invoice_must_belong_to_booking(lifecycle):
    first = await lifecycle.booking()
    second = await lifecycle.booking()
    invoice = await lifecycle.invoice(first.booking_id)

    with pytest.raises(ValidationError):
        await lifecycle.payment(second.booking_id, invoice.invoice_id, "100.00")


@pytest.mark.asyncio
async def test_operator_payout(lifecycle, test_session, now):
    booking = await lifecycle.booking()
    invoice = await lifecycle.invoice(booking.booking_id)
    service = PaymentService(test_session)

    unverified = await lifecycle.payment(booking.booking_id, invoice.invoice_id, "100.00")
    with pytest.raises(InvalidTransitionError):
        await service.mark_operator_paid(unverified.payment_id, ADMIN_CODE, now=now)

    verified = await lifecycle.payment(booking.booking_id, invoice.invoice_id, "100.00", verified_by=ADMIN_CODE)
    paid_out = await service.mark_operator_paid(verified.payment_id, ADMIN_CODE, notes="ACH 0042", now=now)

    assert paid_out.operator_paid is True
    assert paid_out.operator_paid_by == ADMIN_CODE
    assert paid_out.operator_payment_notes == "ACH 0042"

    with pytest.raises(InvalidTransitionError):
        await service.mark_operator_paid(verified.payment_id, ADMIN_CODE, now=now)
