from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Annotated, Any, TypeVar

from fastapi import Depends, Request
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from merendels.exceptions import InternalError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from merendels.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SERIALIZATION_FAILURE = "40001"
_DEADLOCK_DETECTED = "40P01"


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the async engine (connection pool) for the configured database."""
    connect_args: dict[str, Any] = {}
    if settings.database_url.startswith("postgresql+asyncpg"):
        # Server-side guard so a stuck statement cannot hold row locks forever.
        timeout_ms = int(settings.transaction_timeout_seconds * 1000)
        connect_args["server_settings"] = {"statement_timeout": str(timeout_ms)}
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to the given engine."""
    return async_sessionmaker(engine, expire_on_commit=False)


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency returning the session factory owned by the application."""
    factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    return factory


SessionFactoryDep = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


async def get_session(factory: SessionFactoryDep) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an async database session."""
    async with factory() as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_session)]


def _is_retryable(exc: DBAPIError) -> bool:
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return code in (_SERIALIZATION_FAILURE, _DEADLOCK_DETECTED)


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    isolation_level: str | None = None,
    timeout: float | None = None,
    retries: int = 1,
) -> T:
    """Run ``work`` inside a single transaction and commit it.

    Any exception raised by ``work`` rolls the whole transaction back. When
    ``timeout`` elapses the transaction is cancelled and rolled back and an
    InternalError is raised. Serialization failures and deadlocks are retried
    up to ``retries`` attempts in total.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            async with asyncio.timeout(timeout), session_factory() as session, session.begin():
                if isolation_level is not None:
                    await session.connection(execution_options={"isolation_level": isolation_level})
                return await work(session)
        except TimeoutError as exc:
            logger.error("Transaction timed out after %.1fs and was rolled back", timeout)
            raise InternalError("Transaction timed out") from exc
        except DBAPIError as exc:
            if not _is_retryable(exc) or attempt >= retries:
                raise
            logger.warning("Retrying transaction after serialization failure (attempt %d/%d)", attempt, retries)
