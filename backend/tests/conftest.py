"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="identity-logs-"))
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///" + os.path.join(tempfile.mkdtemp(), "app.db"))

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from datetime import timedelta
from faker import Faker
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from db.base import initialize_database
from db.session import build_engine, build_session_factory
from services.auth_service import IdentityService
from services.otp_service import OtpManager
from services.token_service import TokenIssuer

# Initialize Faker for test data generation
fake = Faker()


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """A fresh SQLite database per test."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await initialize_database(test_engine)
    yield build_session_factory(test_engine)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        async with session.begin():
            yield session


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer(secret_key=settings.SECRET_KEY, algorithm=settings.ALGORITHM, ttl=timedelta(hours=1))


@pytest.fixture
def otp_manager() -> OtpManager:
    return OtpManager(expires_in=timedelta(minutes=15))


@pytest.fixture
def identity_service(session_factory, token_issuer, otp_manager) -> IdentityService:
    return IdentityService(
        token_issuer=token_issuer,
        otp_manager=otp_manager,
        session_factory=session_factory,
        send_email=False,
    )


@pytest_asyncio.fixture
async def async_client(identity_service) -> AsyncGenerator[AsyncClient, None]:
    """ASGI client with the identity service bound to the per-test database."""
    from main import app
    from api.dependencies import get_identity_service

    app.dependency_overrides[get_identity_service] = lambda: identity_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def sample_user_data():
    """Sample registration payload for testing."""
    return {
        "email": fake.unique.email(),
        "password": "secret123",
        "first_name": fake.first_name(),
        "last_name": fake.last_name(),
        "role": "STANDARD",
    }
