"""Seed script for development data.

Run after migrations with:  python -m merendels.seed

Creates the three standard roles and a small reporting chain. Safe to run
repeatedly: existing roles and accounts are left untouched.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from merendels.config import get_settings
from merendels.db import create_engine, create_session_factory
from merendels.exceptions import ConflictError
from merendels.models.user import Role, User
from merendels.schemas.auth import RegisterPayload
from merendels.schemas.role import RolePayload
from merendels.services.balance import LeaveBalanceLedger
from merendels.services.credential import CredentialService
from merendels.services.role import RoleService
from merendels.services.token import TokenService

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger("merendels.seed")

ROLES = [
    ("Director", 0),
    ("Manager", 1),
    ("Employee", 2),
]

# (name, email, role level, manager email)
USERS = [
    ("Dora Director", "director@merendels.example", 0, None),
    ("Mario Manager", "manager@merendels.example", 1, "director@merendels.example"),
    ("Elena Employee", "elena@merendels.example", 2, "manager@merendels.example"),
    ("Enzo Employee", "enzo@merendels.example", 2, "manager@merendels.example"),
]


async def _role_ids(factory: async_sessionmaker[AsyncSession]) -> dict[int, uuid.UUID]:
    async with factory() as session:
        result = await session.execute(select(col(Role.hierarchy_level), col(Role.id)))
        return {level: role_id for level, role_id in result.all()}


async def _user_id(factory: async_sessionmaker[AsyncSession], email: str) -> uuid.UUID | None:
    async with factory() as session:
        result = await session.execute(select(col(User.id)).where(col(User.email) == email))
        return result.scalar_one_or_none()


async def seed() -> None:
    settings = get_settings()
    password = os.environ.get("SEED_PASSWORD", "merendels-dev")
    engine = create_engine(settings)
    factory = create_session_factory(engine)

    roles = RoleService(factory, settings)
    credentials = CredentialService(factory, settings, TokenService(settings))
    ledger = LeaveBalanceLedger(factory, settings)

    try:
        for name, level in ROLES:
            try:
                await roles.create(None, RolePayload(name=name, hierarchy_level=level))
                logger.info("Created role %s (level %d)", name, level)
            except ConflictError:
                logger.info("Role level %d already present, skipping", level)

        role_ids = await _role_ids(factory)
        for name, email, level, manager_email in USERS:
            if await _user_id(factory, email) is not None:
                logger.info("User %s already present, skipping", email)
                continue
            manager_id = await _user_id(factory, manager_email) if manager_email else None
            registered = await credentials.register(
                RegisterPayload(
                    name=name,
                    email=email,
                    password=password,
                    role_id=role_ids.get(level),
                    manager_id=manager_id,
                )
            )
            await ledger.get_or_initialize(registered.user.id)
            logger.info("Created user %s", email)
    finally:
        await engine.dispose()


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    asyncio.run(seed())
    return 0


if __name__ == "__main__":
    sys.exit(main())
