"""Test configuration and fixtures."""

import os

# Settings are read at import time, so the environment must be set first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["WORKERS_ENABLED"] = "false"
os.environ["BEARER_TOKEN_SECRET"] = "test-secret-key"

from datetime import datetime, timedelta
from decimal import Decimal

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from charter.core.clock import utcnow
from charter.core.config import settings
from charter.core.database import Base
from charter.core.dependencies import get_db
from charter.models import *  # noqa: F403 - Import all models
from charter.schemas.payment import RecordPaymentRequest
from charter.schemas.quote import SubmitQuoteRequest
from charter.schemas.request import CreateRequestRequest
from charter.services.booking_service import BookingService
from charter.services.invoice_service import InvoiceService
from charter.services.payment_service import PaymentService
from charter.services.quote_service import QuoteService
from charter.services.request_service import RequestService

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CLIENT_CODE = "PA-SMIT-7Q2ZK"
OPERATOR_CODE = "OP-SKYL-4M8TA"
OTHER_OPERATOR_CODE = "OP-NORT-9XC1B"
ADMIN_CODE = "AD-ADMN-00001"


def make_token(role: str, user_code: str, secret: str | None = None) -> str:
    """Sign a bearer token the way the identity provider would."""
    payload = {
        "sub": f"{role}:{user_code}",
        "role": role,
        "user_code": user_code,
        "exp": utcnow() + timedelta(hours=1),
    }
    return jwt.encode(payload, secret or settings.bearer_token_secret, algorithm="HS256")


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """The real application with its database dependency pointed at the test session."""
    from charter.main import create_app

    app = create_app()

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth():
    """Build request headers for a principal, optionally with an idempotency key."""

    def build(role: str, user_code: str, idempotency_key: str | None = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {make_token(role, user_code)}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    return build


@pytest.fixture
def now() -> datetime:
    return utcnow().replace(microsecond=0)


@pytest.fixture
def sample_request_data():
    """Sample quote request payload."""
    return {
        "trip_type": "oneWay",
        "departure_airport": "TEB",
        "arrival_airport": "MIA",
        "departure_date": (utcnow() + timedelta(days=14)).replace(microsecond=0).isoformat(),
        "passenger_count": 4,
        "cabin_class": "standard",
        "special_requirements": "Pet on board",
    }


class LifecycleFactory:
    """Drives entities through the lifecycle with the real services."""

    def __init__(self, db: AsyncSession, now: datetime):
        self.db = db
        self.now = now

    async def request(self, client_code: str = CLIENT_CODE, passenger_count: int = 4, **overrides):
        data = {
            "trip_type": "oneWay",
            "departure_airport": "TEB",
            "arrival_airport": "MIA",
            "departure_date": self.now + timedelta(days=14),
            "passenger_count": passenger_count,
            **overrides,
        }
        return await RequestService(self.db).create_request(
            client_code, CreateRequestRequest(**data), now=self.now
        )

    async def quote(self, request_code: str, operator_code: str = OPERATOR_CODE, price: str = "10000.00"):
        return await QuoteService(self.db).submit_quote(
            operator_code,
            SubmitQuoteRequest(request_code=request_code, price=Decimal(price)),
            now=self.now,
        )

    async def booking(self, price: str = "10000.00", passenger_count: int = 4):
        quote_request = await self.request(passenger_count=passenger_count)
        quote = await self.quote(quote_request.request_code, price=price)
        return await QuoteService(self.db).accept_quote(quote.quote_id, now=self.now)

    async def invoice(self, booking_id: str, amount: str | None = None):
        return await InvoiceService(self.db).create_for_booking(
            booking_id,
            amount=Decimal(amount) if amount is not None else None,
            now=self.now,
        )

    async def payment(self, booking_id: str, invoice_id: str, amount: str, verified_by: str | None = None):
        return await PaymentService(self.db).record_payment(
            RecordPaymentRequest(
                booking_id=booking_id,
                invoice_id=invoice_id,
                amount=Decimal(amount),
                payment_method="wire",
            ),
            verified_by=verified_by,
            now=self.now,
        )

    async def reload_booking(self, booking_id: str):
        return await BookingService(self.db).get_booking_with_lock(booking_id)


@pytest.fixture
def lifecycle(test_session, now):
    return LifecycleFactory(test_session, now)
