"""Property-based tests for lifecycle invariants."""

from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from charter.core.clock import utcnow
from charter.core.database import Base
from charter.core.exceptions import ConflictError, InvalidTransitionError
from charter.core.money import commission_for, to_money
from charter.models.invoice import InvoiceStatus
from charter.models.payment import PaymentStatus
from charter.models.quote import QuoteStatus
from charter.services.identifier_service import CodeKind, build_code, validate_code
from charter.services.invoice_service import InvoiceService, derive_invoice_status
from charter.services.payment_service import PaymentService
from charter.services.quote_service import QuoteService

from conftest import ADMIN_CODE, LifecycleFactory

# Strategies for generating test data
amounts = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("250000.00"), places=2)
operator_codes = st.lists(
    st.text(alphabet="ABCDEFGHJKLMNPQRSTUVWXYZ", min_size=4, max_size=4).map(lambda s: f"OP-{s}-00001"),
    min_size=1,
    max_size=5,
    unique=True,
)

db_settings = settings(max_examples=20, deadline=None, suppress_health_check=[HealthCheck.too_slow])


@asynccontextmanager
async def fresh_session():
    """A throwaway in-memory database for one generated example."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    try:
        async with factory() as session:
            yield session
    finally:
        await engine.dispose()


@given(price=amounts)
def test_total_is_price_plus_rounded_commission(price):
    commission = commission_for(price, Decimal("0.03"))

    assert commission == to_money(price * Decimal("0.03"))
    assert Decimal("0.00") <= commission <= price
    assert commission.as_tuple().exponent == -2


@given(amount=amounts, data=st.data())
def test_invoice_status_is_function_of_pending(amount, data):
    pending = data.draw(st.decimals(min_value=Decimal("0.00"), max_value=amount, places=2))

    status = derive_invoice_status(amount, pending)

    if pending == 0:
        assert status == InvoiceStatus.PAID
    elif pending == amount:
        assert status == InvoiceStatus.OPEN
    else:
        assert status == InvoiceStatus.BALANCE_DUE


@given(kind=st.sampled_from(list(CodeKind)), source=st.one_of(st.none(), st.text(max_size=40)))
def test_generated_codes_are_well_formed(kind, source):
    code = build_code(kind, source)

    assert validate_code(code, kind)
    assert not any(c.islower() for c in code)


@pytest.mark.asyncio
@db_settings
@given(
    invoice_amount=amounts,
    payments=st.lists(
        st.tuples(amounts, st.sampled_from(["pending", "completed", "refunded"])),
        min_size=1,
        max_size=6,
    ),
)
async def test_amount_paid_equals_completed_payments(invoice_amount, payments):
    """The ledger always reflects exactly the completed payments."""
    async with fresh_session() as db:
        now = utcnow().replace(microsecond=0)
        lifecycle = LifecycleFactory(db, now)
        booking = await lifecycle.booking()
        invoice = await lifecycle.invoice(booking.booking_id, amount=str(invoice_amount))
        processor = PaymentService(db)

        completed_total = Decimal("0.00")
        for amount, outcome in payments:
            payment = await lifecycle.payment(
                booking.booking_id,
                invoice.invoice_id,
                str(amount),
                verified_by=ADMIN_CODE if outcome != "pending" else None,
            )
            if outcome == "refunded":
                await processor.process_payment(payment.payment_id, ADMIN_CODE, PaymentStatus.REFUNDED, now=now)
            elif outcome == "completed":
                completed_total += amount

        stored = await InvoiceService(db).get_invoice_or_raise(invoice.invoice_id)
        expected_pending = max(Decimal("0.00"), invoice_amount - completed_total)

        assert stored.amount_paid == completed_total
        assert stored.amount_pending == expected_pending
        assert stored.amount_pending >= 0
        assert stored.status == derive_invoice_status(invoice_amount, expected_pending)

        reloaded = await lifecycle.reload_booking(booking.booking_id)
        assert reloaded.is_paid == (stored.status == InvoiceStatus.PAID)


@pytest.mark.asyncio
@db_settings
@given(operators=operator_codes, data=st.data())
async def test_at_most_one_quote_accepted_per_request(operators, data):
    async with fresh_session() as db:
        now = utcnow().replace(microsecond=0)
        lifecycle = LifecycleFactory(db, now)
        quote_request = await lifecycle.request()
        quotes = [await lifecycle.quote(quote_request.request_code, operator_code=code) for code in operators]

        attempts = data.draw(st.lists(st.sampled_from([q.quote_id for q in quotes]), min_size=1, max_size=6))
        service = QuoteService(db)
        accepted = []
        for quote_id in attempts:
            try:
                await service.accept_quote(quote_id, now=now)
            except (InvalidTransitionError, ConflictError):
                continue
            accepted.append(quote_id)

        assert accepted == attempts[:1]
        statuses = [q.status for q in await service.list_request_quotes(quote_request.request_code)]
        assert statuses.count(QuoteStatus.ACCEPTED) == 1
        assert statuses.count(QuoteStatus.REJECTED) == len(quotes) - 1
