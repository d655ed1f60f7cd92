"""Pytest configuration and fixtures for testing."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from decimal import Decimal
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from quotebook.main import app
from quotebook.database import Base, get_db
from quotebook.models import QuoteRequest, QuoteStatus
from quotebook.services import quote_service
from quotebook.services.booking_orchestrator import BookingOrchestrator
from quotebook.services.booking_store import BookingStore
from quotebook.services.callback_interceptor import payment_sessions
from quotebook.services.payment_gateway import PayFastClient


# In-memory database shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SANDBOX_URL = "https://sandbox.payfast.co.za/eng/process"
RETURN_URL = "https://vibeventz.app/payment/return"
CANCEL_URL = "https://vibeventz.app/payment/cancel"
NOTIFY_URL = "https://vibeventz.app/payment/notify"

CLIENT_ID = 11
VENDOR_ID = 7


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database for each test.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(autouse=True)
def clear_payment_sessions():
    """Payment sessions live in a process-wide registry."""
    payment_sessions.clear()
    yield
    payment_sessions.clear()


@pytest.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create test client with database dependency override.
    """
    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def payfast() -> PayFastClient:
    """Gateway client with explicit sandbox configuration."""
    return PayFastClient(
        merchant_id="10000100",
        merchant_key="46f0cd694581a",
        passphrase="",
        base_url=SANDBOX_URL,
        return_url=RETURN_URL,
        cancel_url=CANCEL_URL,
        notify_url=NOTIFY_URL,
    )


@pytest.fixture
def orchestrator(db: AsyncSession, payfast: PayFastClient) -> BookingOrchestrator:
    return BookingOrchestrator(BookingStore(db), payfast)


@pytest.fixture
async def quote(db: AsyncSession) -> QuoteRequest:
    """
    Quote request #42, pending.
    """
    quote = QuoteRequest(
        id=42,
        client_id=CLIENT_ID,
        vendor_id=VENDOR_ID,
        client_name="Thandi Nkosi",
        client_email="thandi@example.com",
        event_type="wedding",
        details="120 guests, outdoor ceremony",
        budget="R40k - R60k",
        status=QuoteStatus.PENDING,
    )
    db.add(quote)
    await db.commit()
    await db.refresh(quote)
    return quote


@pytest.fixture
async def quoted_quote(db: AsyncSession, quote: QuoteRequest) -> QuoteRequest:
    """
    Quote request #42 with a sent revision of 1500.00.
    """
    await quote_service.send_revision(db, quote.id, VENDOR_ID, amount=Decimal("1500.00"))
    return await quote_service.get_quote_request(db, quote.id)
