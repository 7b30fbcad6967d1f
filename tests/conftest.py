"""Shared test fixtures — async DB, client, fixed clock, caller headers.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leave_engine.database import Base, get_db
from leave_engine.dependencies import get_clock
from leave_engine.main import create_app

import leave_engine.common.audit  # noqa: F401
import leave_engine.leave.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _configure_sqlite(dbapi_conn, connection_record):
    """Hand transaction control to SQLAlchemy so SAVEPOINTs work, and
    register NOW() for server defaults."""
    dbapi_conn.isolation_level = None
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )


@event.listens_for(engine.sync_engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests."""
    from leave_engine.common.rate_limit import limiter

    limiter.reset()
    yield


# ── Deterministic clock ─────────────────────────────────────────────

SCHOOL_TZ = ZoneInfo("Asia/Kolkata")


class FixedClock:
    """Clock frozen at a given instant in the school's timezone."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def today(self) -> date:
        return self._instant.date()


# 15 June 2025 falls in academic year 2025-2026.
FIXED_NOW = datetime(2025, 6, 15, 10, 0, tzinfo=SCHOOL_TZ)
CURRENT_ACADEMIC_YEAR = "2025-2026"


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FIXED_NOW)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(clock):
    """Create a fresh app instance with DB and clock dependencies overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_clock] = lambda: clock
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct service-level tests) ───────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Tenants & callers ───────────────────────────────────────────────

TENANT = "school-north"
OTHER_TENANT = "school-south"


def caller_headers(
    user_id: str = "teacher-1",
    *,
    tenant_id: str = TENANT,
    name: str = "Asha Rao",
    role: str = "teacher",
) -> dict[str, str]:
    return {
        "X-Tenant-ID": tenant_id,
        "X-User-ID": user_id,
        "X-User-Name": name,
        "X-User-Role": role,
    }


@pytest.fixture
def teacher_headers() -> dict[str, str]:
    return caller_headers()


@pytest.fixture
def principal_headers() -> dict[str, str]:
    return caller_headers("principal-1", name="R. Menon", role="principal")


def new_user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"
