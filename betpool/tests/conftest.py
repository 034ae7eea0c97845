"""
Shared pytest configuration for backend tests.

Defaults to a local SQLite file through aiosqlite so the suite runs without a
database server; point TEST_DATABASE_URL at PostgreSQL to run against the
production backend (row locks only apply there).

SAFETY: This module REFUSES to run against any database whose name does not
contain the substring "test".  This prevents accidental data loss in the
development or production database when environment variables are missing
or misconfigured.
"""

import os
import asyncio
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

os.environ.setdefault("ENV", "test")

from betpool.database.db import Base  # noqa: E402
from betpool.database.models import User, UserRole, UserStatus  # noqa: E402
from betpool.services import auth_service, bet_service  # noqa: E402


def _resolve_test_database_url() -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if the resolved URL does not point to a database
    whose name contains "test".
    """
    url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./betpool_test.db")

    # ── Safety gate: database name MUST contain "test" ──────────────────
    db_name = url.rsplit("/", 1)[-1].split("?")[0]  # strip query params
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Resolved URL: {url}\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database, e.g.:\n"
            f"    export TEST_DATABASE_URL=postgresql+asyncpg://.../betpool_test\n"
            f"{'=' * 70}"
        )

    return url


# Validated at import time so pytest fails immediately with a clear message
TEST_DATABASE_URL = _resolve_test_database_url()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine with a fresh schema."""
    # NullPool avoids "Future attached to different loop" errors across tests
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own sessions (bet event delivery) must hit the test database
    from betpool.database import db

    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local

    await asyncio.sleep(0.05)  # Let pending connections finish
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Test database session on a clean schema."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


async def _make_user(session, email, role=UserRole.USER, status=UserStatus.ACTIVE, full_name=None):
    user = User(
        email=email,
        full_name=full_name or email.split("@")[0].title(),
        password_hash=auth_service.hash_password("secret123"),
        role=role.value,
        status=status.value,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    await session.commit()
    return user


@pytest.fixture
def make_user(db_session):
    """Factory creating committed users: await make_user("a@x.com", status=UserStatus.PENDING)."""

    async def factory(email, role=UserRole.USER, status=UserStatus.ACTIVE, full_name=None):
        return await _make_user(db_session, email, role=role, status=status, full_name=full_name)

    return factory


@pytest_asyncio.fixture
async def admin_user(db_session):
    return await _make_user(db_session, "admin@example.com", role=UserRole.ADMIN, full_name="Admin")


@pytest_asyncio.fixture
async def alice(db_session):
    return await _make_user(db_session, "alice@example.com", full_name="Alice")


@pytest_asyncio.fixture
async def bob(db_session):
    return await _make_user(db_session, "bob@example.com", full_name="Bob")


@pytest.fixture
def make_bet(db_session, admin_user):
    """Factory creating bets through bet_service.create_bet (defaults: public, two options)."""

    async def factory(
        title="Who wins the derby?",
        options=("Home", "Away"),
        visibility="public",
        assignees=None,
        amount=100,
    ):
        return await bet_service.create_bet(
            db_session,
            admin_id=admin_user.id,
            title=title,
            description="Friendly wager",
            amount=amount,
            options=list(options),
            visibility=visibility,
            assignees=assignees,
        )

    return factory


# ---------------------------------------------------------------------------
# API route fixtures (services are monkeypatched, no database involved)
# ---------------------------------------------------------------------------


def user_dict(user_id=1, role=UserRole.USER, status=UserStatus.ACTIVE, email=None):
    """User payload as returned by user_service.get_user_by_id."""
    return {
        "id": user_id,
        "email": email or f"user{user_id}@example.com",
        "full_name": f"User {user_id}",
        "role": role.value,
        "status": status.value,
        "has_accepted_terms": False,
        "created_at": "2024-01-01T00:00:00+00:00",
        "updated_at": "2024-01-01T00:00:00+00:00",
    }


@pytest.fixture
def published_events(monkeypatch):
    """Record bet events published by routes instead of delivering them."""
    from betpool.services import bet_events

    events = []
    monkeypatch.setattr(bet_events, "publish", lambda event: events.append(event))
    return events


@pytest.fixture
def api_client(monkeypatch, published_events):
    """
    Factory returning (TestClient, headers) authenticated as the given user dict.

    Pass None for an anonymous client (no Authorization header).
    """
    from fastapi.testclient import TestClient
    from betpool.api.main import app
    from betpool.database.db import get_db_session
    from betpool.services import user_service

    async def fake_db_session():
        yield None

    app.dependency_overrides[get_db_session] = fake_db_session

    def factory(user=None):
        if user is None:
            return TestClient(app), {}

        def fake_verify_token(token):
            return {"user_id": user["id"], "role": user["role"], "status": user["status"]}

        async def fake_get_user_by_id(session, uid):
            return user if uid == user["id"] else None

        monkeypatch.setattr(auth_service, "verify_token", fake_verify_token, raising=True)
        monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)
        return TestClient(app), {"Authorization": "Bearer dummy"}

    yield factory

    app.dependency_overrides.pop(get_db_session, None)


@pytest.fixture
def user_payload():
    """The user_dict builder, for tests that need user payloads."""
    return user_dict
