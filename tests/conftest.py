from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import col

from merendels.config import Settings
from merendels.db import create_session_factory
from merendels.main import create_app
from merendels.models import SQLModel
from merendels.models.user import Role, User
from merendels.services.approval import ApprovalEngine
from merendels.services.attendance import AttendanceSequencer
from merendels.services.balance import LeaveBalanceLedger
from merendels.services.credential import CredentialService
from merendels.services.request import RequestLifecycleManager
from merendels.services.role import RoleService
from merendels.services.token import TokenService
from merendels.services.user import UserService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

TEST_JWT_SECRET = "test-signing-secret-that-is-long-enough-for-hs256"


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: cheap bcrypt, in-memory database, no .env lookup."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        environment="testing",
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        transaction_isolation_level=None,
        transaction_retries=1,
    )


@pytest.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    """A fresh in-memory database per test, with every table created."""
    _engine = create_async_engine(
        settings.database_url,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """A session for arranging rows and asserting on what services committed."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def file_session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Sessions on a file-backed database with a real connection pool.

    SQLite ignores FOR UPDATE, so every transaction starts with
    BEGIN IMMEDIATE; concurrent writers then queue on the database lock the
    way they would on a row lock.
    """
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'merendels.db'}", connect_args={"timeout": 30})

    @event.listens_for(_engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(_engine.sync_engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield create_session_factory(_engine)
    await _engine.dispose()


@pytest.fixture
async def async_client(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client bound to an app sharing the test database."""
    app = create_app(settings, session_factory)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def tokens(settings: Settings) -> TokenService:
    return TokenService(settings)


@pytest.fixture
def credentials(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings, tokens: TokenService
) -> CredentialService:
    return CredentialService(session_factory, settings, tokens)


@pytest.fixture
def ledger(session_factory: async_sessionmaker[AsyncSession], settings: Settings) -> LeaveBalanceLedger:
    return LeaveBalanceLedger(session_factory, settings)


@pytest.fixture
def approvals(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings, ledger: LeaveBalanceLedger
) -> ApprovalEngine:
    return ApprovalEngine(session_factory, settings, ledger)


@pytest.fixture
def request_manager(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings, ledger: LeaveBalanceLedger
) -> RequestLifecycleManager:
    return RequestLifecycleManager(session_factory, settings, ledger)


@pytest.fixture
def attendance(session_factory: async_sessionmaker[AsyncSession], settings: Settings) -> AttendanceSequencer:
    return AttendanceSequencer(session_factory, settings)


@pytest.fixture
def roles(session_factory: async_sessionmaker[AsyncSession], settings: Settings) -> RoleService:
    return RoleService(session_factory, settings)


@pytest.fixture
def users(session_factory: async_sessionmaker[AsyncSession], settings: Settings) -> UserService:
    return UserService(session_factory, settings)


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(session_factory: async_sessionmaker[AsyncSession]) -> Callable[..., Awaitable[User]]:
    """Insert a user, creating a role at the requested hierarchy level if needed.

    Pass ``level=None`` for a user without a role.
    """

    async def _make(level: int | None = 2, *, name: str = "Test User", email: str | None = None) -> User:
        async with session_factory() as session, session.begin():
            role_id = None
            if level is not None:
                result = await session.execute(select(Role).where(col(Role.hierarchy_level) == level))
                role = result.scalar_one_or_none()
                if role is None:
                    role = Role(name=f"Level {level}", hierarchy_level=level)
                    session.add(role)
                    await session.flush()
                role_id = role.id
            user = User(name=name, email=email or f"{uuid.uuid4().hex[:10]}@example.com", role_id=role_id)
            session.add(user)
        return user

    return _make


@pytest.fixture
def headers_for(tokens: TokenService) -> Callable[[User, int | None], dict[str, str]]:
    """Build an Authorization header carrying the given hierarchy level."""

    def _headers(user: User, level: int | None) -> dict[str, str]:
        token, _ = tokens.issue(user, level)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def next_monday() -> date:
    """The first Monday strictly after today (UTC), so requests are never in the past."""
    today = datetime.now(UTC).date()
    return today + timedelta(days=7 - today.weekday())
