"""
Test fixtures for the Rewards API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - client: Async HTTP test client (unauthenticated)
  - authenticated_client: Test client with a pre-registered USER and JWT
  - admin_client: Test client with a pre-registered ADMIN and JWT
  - superadmin_client: Test client with a pre-registered SUPERADMIN and JWT
  - make_account: Factory that registers an account straight through the
    services with an exact starting balance (for service-level tests)

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database — no state leaks between tests.
  - We override FastAPI's get_db dependency to inject our test session,
    so the application code works exactly as it does in production.
  - The client fixtures register through the real /auth/register endpoint.
    Elevated roles are then set directly in the DB, the way an operator
    provisions the first superadmin.
  - Service-level tests pass `now=` to pin the clock; nothing sleeps.
"""

import os

# Required settings must exist before the app modules are imported
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATA_ENCRYPTION_KEY", "F6nBlXb7TLsQ8u5L8OEsX2Bn6k4gUgQeQINAfijiIoI=")

import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.database import Base, get_db
from app.main import app
from app.models.account import Account, AccountRole
from app.models.ledger_entry import EntryKind
from app.schemas.settings import ReferralSettings
from app.services import auth_service, balance_service, config_service


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"

DEFAULT_PASSWORD = "secret123"


async def register(client: AsyncClient, phone: str, referral_code: str | None = None) -> dict:
    """Register through the API; the body gains a ready-made `headers` dict."""
    payload = {"phone": phone, "password": DEFAULT_PASSWORD}
    if referral_code is not None:
        payload["referral_code"] = referral_code
    response = await client.post("/auth/register", json=payload)
    assert response.status_code == 201, f"Register failed: {response.text}"
    data = response.json()
    data["headers"] = bearer(data["token"])
    return data


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def set_role(db_engine, account_id, role: AccountRole) -> None:
    """Change a role directly in the database."""
    async_session = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        await session.execute(
            update(Account)
            .where(Account.id == uuid.UUID(str(account_id)))
            .values(role=role)
        )
        await session.commit()


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Provide an async session bound to the test engine."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    in-memory test database instead of the real one.
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def authenticated_client(client):
    """
    Test client with a pre-registered USER and JWT token.

    The registration body is kept on `client.account` for assertions.
    """
    data = await register(client, "3001112233")
    client.headers.update(bearer(data["token"]))
    client.account = data
    return client


@pytest_asyncio.fixture
async def admin_client(client, db_engine):
    """
    Test client with a pre-registered ADMIN and JWT token.

    Admins review recharges and withdrawals and manage the catalog, but
    cannot change configuration or roles.
    """
    data = await register(client, "3009990000")
    await set_role(db_engine, data["account_id"], AccountRole.ADMIN)
    client.headers.update(bearer(data["token"]))
    client.account = data
    return client


@pytest_asyncio.fixture
async def superadmin_client(client, db_engine):
    """Test client with a pre-registered SUPERADMIN and JWT token."""
    data = await register(client, "3008880000")
    await set_role(db_engine, data["account_id"], AccountRole.SUPERADMIN)
    client.headers.update(bearer(data["token"]))
    client.account = data
    return client


@pytest.fixture
def register_user(client):
    """Register more users on the shared client; returns the response body."""
    async def _register(phone: str, referral_code: str | None = None) -> dict:
        return await register(client, phone, referral_code)
    return _register


@pytest.fixture
def promote(db_engine):
    """Give an account an elevated role directly in the database."""
    async def _promote(account_id, role: AccountRole = AccountRole.ADMIN) -> None:
        await set_role(db_engine, account_id, role)
    return _promote


@pytest_asyncio.fixture
async def make_account(db_session):
    """
    Factory for service-level tests: register an account with an exact
    starting balance.

    The registration bonus is configured to 0 so `balance` is the whole
    story; the funding is a real ledger credit so balances reconcile.
    """
    await config_service.update_referral_settings(
        db_session, ReferralSettings(commission_percentage=10, registration_bonus=0)
    )
    await db_session.commit()
    counter = {"n": 0}

    async def _make(balance: int = 0, referral_code: str | None = None) -> uuid.UUID:
        counter["n"] += 1
        phone = f"31000000{counter['n']:02d}"
        account, _ = await auth_service.register_account(
            db_session, phone, DEFAULT_PASSWORD, referral_code
        )
        account_id = account.id
        if balance:
            await balance_service.post(
                db_session, account_id, EntryKind.CREDIT, balance, "Test funding"
            )
        await db_session.commit()
        return account_id

    return _make
