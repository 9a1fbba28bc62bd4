"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of summit.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, so a custom type compiler renders
# JSONB as TEXT; SQLAlchemy still (de)serialises the values as JSON.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from summit.database.models import Base, Profile  # noqa: E402
from summit.services.context import MemberContext  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


# A fixed trusted clock: 2024-01-02 12:00 UTC (a Tuesday)
NOW = datetime(2024, 1, 2, 12, 0, tzinfo=UTC)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Summit tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by the TestClient threadpool and ``asyncio.to_thread``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def member() -> MemberContext:
    return MemberContext(member_id="member-0001", display_name="Alice")


def add_profile(engine: Engine, member_id: str, *, username: str = "member",
                timezone: str = "UTC") -> None:
    """Insert a bare profile row."""
    with Session(engine) as session:
        session.add(Profile(id=member_id, username=username, timezone=timezone))
        session.commit()


def make_token(
    sub: str = "member-0001",
    username: str = "Alice",
    *,
    is_admin: bool = False,
    tz: str | None = None,
) -> str:
    """Create a member JWT.  Usable as both a fixture helper and a factory."""
    import jwt

    from summit.api.deps import JWT_ALGORITHM, JWT_SECRET

    claims = {"sub": sub, "username": username, "is_admin": is_admin}
    if tz:
        claims["tz"] = tz
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


@pytest.fixture
def admin_token():
    """Generate a valid admin JWT for use in API integration tests."""
    return make_token("admin-0001", "FixtureAdmin", is_admin=True)
