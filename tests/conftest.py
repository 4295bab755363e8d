"""
Pytest configuration and shared fixtures for testing.
Sets up a throwaway SQLite database per test and an HTTP test client.
"""

import os

# Set TEST_MODE before any app imports to disable rate limiting
os.environ["TEST_MODE"] = "1"

# Enable metrics endpoint for testing
os.environ["ENABLE_METRICS"] = "true"

# Configure the app from the environment only, before importing app modules
os.environ["SKIP_ENV_FILE"] = "1"
os.environ.setdefault("APP_ENV", "test")
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["BCRYPT_ROUNDS"] = "4"  # Fast hashing for tests
os.environ["LOG_FILE"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from admin_service.main import app
from admin_service.db import Base
from admin_service import db as app_db
from admin_service import models  # noqa: F401
from admin_service.auth import create_access_token


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """Create a file-backed SQLite engine for one test and swap it into the app."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    test_session_maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    # Override the session maker BEFORE creating tables
    original_session = app_db.async_session
    app_db.async_session = test_session_maker

    # Tests create tables directly; production uses Alembic migrations
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    app_db.async_session = original_session
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(test_db_engine):
    """Create a test HTTP client bound to the test database."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=30.0,
    ) as ac:
        yield ac


@pytest.fixture
def sample_user():
    """Registration payload, in the camelCase the dashboard sends."""
    return {
        "email": "test@example.com",
        "password": "password123",
        "firstName": "Test",
        "lastName": "User",
    }


@pytest.fixture
def sample_users():
    """Several accounts for listing, search and filter tests."""
    return [
        {"email": "alice@example.com", "password": "password123", "firstName": "Alice", "lastName": "Smith"},
        {"email": "bob@example.com", "password": "password123", "firstName": "Bob", "lastName": "Jones"},
        {"email": "charlie@sample.org", "password": "password123", "firstName": "Charlie", "lastName": "Smithers"},
        {"email": "diana@example.com", "password": "password123", "firstName": "Diana", "lastName": "Prince"},
        {"email": "eve@sample.org", "password": "password123", "firstName": "Eve", "lastName": "Adams"},
    ]


@pytest_asyncio.fixture
async def registered(client, sample_user):
    """Register sample_user; returns (user, auth headers)."""
    response = await client.post("/auth/register", json=sample_user)
    assert response.status_code == 201
    body = response.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}


@pytest.fixture
def auth_headers_for():
    """Build bearer headers for an arbitrary (id, email)."""
    def _make(user_id: int, email: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, email)}"}
    return _make
