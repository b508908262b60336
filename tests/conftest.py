"""
Pytest Configuration and Fixtures

Provides reusable async fixtures for testing the Trendx Backend.

Tests run against a throwaway SQLite database (aiosqlite) so the real
upsert and UPDATE ... RETURNING statements are exercised.
"""

import os

# Must be set before anything imports trendx.core.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from trendx.api.deps import get_email_dispatcher, get_otp_store
from trendx.core.config import settings
from trendx.core.database import Base, get_db
from trendx.core.security import hash_password
from trendx.main import app
from trendx.models.user import User
from trendx.services.email_service import (
    EmailDeliveryError,
    EmailDispatcher,
    EmailMessage,
    EmailTransport,
    StrictDispatchPolicy,
)
from trendx.services.otp_service import OTPStore


TEST_OTP = "123456"
TEST_PASSWORD = "correct-horse-battery"


# ==================== Helpers ====================

class FakeClock:
    """Controllable replacement for utcnow()."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingTransport(EmailTransport):
    """Transport that keeps messages instead of sending them. Set ``fail`` to simulate an outage."""

    name = "recording"

    def __init__(self):
        self.messages: list[EmailMessage] = []
        self.fail = False

    async def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise EmailDeliveryError("SMTP server unreachable")
        self.messages.append(message)


def session_cookie(token: str) -> dict:
    """Cookie header for a session token."""
    return {"Cookie": f"{settings.SESSION_COOKIE_NAME}={token}"}


# ==================== Database Fixtures ====================

@pytest.fixture
def mock_async_session() -> AsyncMock:
    """
    Create a mock async database session.

    Returns:
        AsyncMock configured to behave like AsyncSession.
    """
    session = AsyncMock(spec=AsyncSession)
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.execute = AsyncMock()
    session.scalar = AsyncMock()
    session.scalars = AsyncMock()
    return session


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database with all tables, one per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'trendx-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def user(db_session) -> User:
    """A verified user."""
    user = User(
        email="a@test.com",
        username="alice",
        full_name="Alice Example",
        password_hash=hash_password(TEST_PASSWORD),
        is_email_verified=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


# ==================== HTTP Client Fixtures ====================

@pytest.fixture
def mock_httpx_response():
    """
    Factory fixture to create mock httpx responses.

    Usage:
        response = mock_httpx_response(status_code=200, json_data={"key": "value"})
    """
    def _create_response(status_code: int = 200, json_data: dict = None, text: str = ""):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = json_data or {}
        response.text = text
        return response
    return _create_response


@pytest.fixture
def mock_httpx_client(mock_httpx_response):
    """
    Create a mock httpx.AsyncClient.

    Returns:
        AsyncMock configured for HTTP operations.
    """
    client = AsyncMock()
    client.get = AsyncMock(return_value=mock_httpx_response())
    client.post = AsyncMock(return_value=mock_httpx_response())
    return client


# ==================== App Fixtures ====================

@pytest.fixture
def mail_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def email_dispatcher(mail_transport) -> EmailDispatcher:
    """Production-style dispatcher; tests may swap ``policy``."""
    return EmailDispatcher(mail_transport, StrictDispatchPolicy())


@pytest.fixture
def otp_settings() -> dict:
    """Keyword arguments for the OTPStore used by the app. Tests may mutate it."""
    return {"code_factory": lambda: TEST_OTP}


@pytest_asyncio.fixture
async def client(session_maker, email_dispatcher, otp_settings) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    HTTP client wired to the app with test dependencies.

    Lifespan does not run under ASGITransport, so the database, the OTP store
    and the email dispatcher are all provided through dependency overrides.
    """
    async def _get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _get_otp_store(db: AsyncSession = Depends(get_db)) -> OTPStore:
        return OTPStore(db, **otp_settings)

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_otp_store] = _get_otp_store
    app.dependency_overrides[get_email_dispatcher] = lambda: email_dispatcher

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
