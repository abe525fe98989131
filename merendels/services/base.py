from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from merendels.db import run_in_transaction

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from merendels.config import Settings

T = TypeVar("T")


class TransactionalService:
    """Base for services that own their transactions.

    Services never share a session with their caller; each public mutation
    runs as one transaction with the configured isolation level, timeout and
    retry budget.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings) -> None:
        self._session_factory = session_factory
        self._settings = settings

    async def _transaction(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        return await run_in_transaction(
            self._session_factory,
            work,
            isolation_level=self._settings.transaction_isolation_level,
            timeout=self._settings.transaction_timeout_seconds,
            retries=self._settings.transaction_retries,
        )
