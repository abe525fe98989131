# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import hashlib
import logging
import secrets
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING

import bcrypt
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from merendels.exceptions import AuthError, ConflictError, NotFoundError, RateLimitError, ValidationError
from merendels.models.base import utc_now
from merendels.models.enums import AuditAction, AuditEntityType, LoginResult
from merendels.models.user import Credential, LoginAttempt, Role, User
from merendels.schemas.auth import ProfileResponse, TokenResponse
from merendels.services.audit import model_to_audit_dict, write_audit_log
from merendels.services.base import TransactionalService
from merendels.services.user import build_user_response, get_role_level, get_user_or_404, normalize_email

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from merendels.config import Settings
    from merendels.schemas.auth import RegisterPayload
    from merendels.services.token import TokenService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_SALT_BYTES = 16


# ---------------------------------------------------------------------------
# Hashing helpers
# ---------------------------------------------------------------------------


def generate_salt() -> str:
    return secrets.token_hex(_SALT_BYTES)


def _prehash(password: str, salt: str) -> bytes:
    # bcrypt only reads the first 72 bytes, so long passwords are digested first.
    return hashlib.sha256((password + salt).encode()).hexdigest().encode()


def hash_password(password: str, salt: str, rounds: int) -> str:
    """Hash ``password`` concatenated with ``salt`` using bcrypt."""
    return bcrypt.hashpw(_prehash(password, salt), bcrypt.gensalt(rounds=rounds)).decode()


def check_password(password: str, salt: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_prehash(password, salt), password_hash.encode())


def _validate_new_password(password: str) -> None:
    if not password:
        raise ValidationError("Password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class CredentialService(TransactionalService):
    """Registration, password verification with lockout, and password changes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        tokens: TokenService,
    ) -> None:
        super().__init__(session_factory, settings)
        self._tokens = tokens
        self._dummy_hash: str | None = None

    def _token_response(self, user: User, hierarchy_level: int | None) -> TokenResponse:
        token, expires_at = self._tokens.issue(user, hierarchy_level)
        return TokenResponse(token=token, expires_at=expires_at, user=build_user_response(user))

    async def _hash(self, password: str, salt: str) -> str:
        # bcrypt is CPU bound; keep it off the event loop.
        return await asyncio.to_thread(hash_password, password, salt, self._settings.bcrypt_rounds)

    async def register(self, payload: RegisterPayload) -> TokenResponse:
        """Create a user with a hashed credential and return a token for it.

        The user and credential rows are inserted in one transaction.
        """
        name = payload.name.strip()
        email = normalize_email(payload.email)
        if not name:
            raise ValidationError("Name is required")
        if not email or "@" not in email:
            raise ValidationError("A valid email is required")
        _validate_new_password(payload.password)

        salt = generate_salt()
        password_hash = await self._hash(payload.password, salt)

        async def work(session: AsyncSession) -> tuple[User, int | None]:
            existing = await session.execute(select(col(User.id)).where(col(User.email) == email))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError("Email already registered")

            hierarchy_level: int | None = None
            if payload.role_id is not None:
                role = await session.get(Role, payload.role_id)
                if role is None:
                    raise ValidationError("Role does not exist")
                hierarchy_level = role.hierarchy_level
            if payload.manager_id is not None and await session.get(User, payload.manager_id) is None:
                raise ValidationError("Manager does not exist")

            user = User(name=name, email=email, role_id=payload.role_id, manager_id=payload.manager_id)
            session.add(user)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ConflictError("Email already registered") from exc

            session.add(Credential(user_id=user.id, password_hash=password_hash, salt=salt))
            await session.flush()

            await write_audit_log(
                session,
                actor_id=user.id,
                entity_type=AuditEntityType.USER,
                entity_id=user.id,
                action=AuditAction.CREATE,
                after_json=model_to_audit_dict(user),
            )
            return user, hierarchy_level

        user, hierarchy_level = await self._transaction(work)
        logger.info("Registered user %s", user.id)
        return self._token_response(user, hierarchy_level)

    async def _dummy_password_hash(self) -> str:
        # Built once at the configured cost so unknown emails pay for a full bcrypt check.
        if self._dummy_hash is None:
            self._dummy_hash = await self._hash(secrets.token_hex(_SALT_BYTES), generate_salt())
        return self._dummy_hash

    async def verify(self, email: str, password: str) -> User:
        """Check a password, enforcing the failed-attempt lockout window.

        Counting recent failures, checking the password and recording the
        attempt happen in one transaction holding the user's row lock, so
        concurrent logins for the same account are decided one at a time.
        The attempt row is committed before any rejection is raised.
        """
        normalized = normalize_email(email)
        window_start = utc_now() - timedelta(minutes=self._settings.login_lockout_window_minutes)

        async def work(session: AsyncSession) -> tuple[User | None, LoginResult | None]:
            result = await session.execute(select(User).where(col(User.email) == normalized).with_for_update())
            user = result.scalar_one_or_none()
            if user is None:
                return None, None

            recent_failures = (
                await session.execute(
                    select(func.count())
                    .select_from(LoginAttempt)
                    .where(
                        col(LoginAttempt.user_id) == user.id,
                        col(LoginAttempt.result) == LoginResult.FAILURE.value,
                        col(LoginAttempt.attempted_at) >= window_start,
                    )
                )
            ).scalar_one()
            if recent_failures >= self._settings.login_lockout_threshold:
                session.add(LoginAttempt(user_id=user.id, result=LoginResult.FAILURE.value))
                return user, None

            credential = (
                await session.execute(select(Credential).where(col(Credential.user_id) == user.id))
            ).scalar_one_or_none()
            if credential is None:
                salt, password_hash = generate_salt(), await self._dummy_password_hash()
            else:
                salt, password_hash = credential.salt, credential.password_hash
            matches = await asyncio.to_thread(check_password, password, salt, password_hash)
            outcome = LoginResult.SUCCESS if matches and credential is not None else LoginResult.FAILURE
            session.add(LoginAttempt(user_id=user.id, result=outcome.value))
            return user, outcome

        user, outcome = await self._transaction(work)

        if user is None:
            await asyncio.to_thread(check_password, password, generate_salt(), await self._dummy_password_hash())
            logger.warning("Login attempt for unknown email")
            raise AuthError("Invalid credentials")
        if outcome is None:
            logger.warning("Login for user %s refused: account temporarily locked", user.id)
            raise RateLimitError("Too many failed login attempts, try again later")
        if outcome == LoginResult.FAILURE:
            logger.warning("Failed password check for user %s", user.id)
            raise AuthError("Invalid credentials")
        return user

    async def login(self, email: str, password: str) -> TokenResponse:
        user = await self.verify(email, password)
        async with self._session_factory() as session:
            hierarchy_level = await get_role_level(session, user.role_id)
        logger.info("User %s logged in", user.id)
        return self._token_response(user, hierarchy_level)

    async def change_password(self, user_id: uuid.UUID, current_password: str, new_password: str) -> None:
        """Replace a user's password after checking the current one."""
        _validate_new_password(new_password)

        async with self._session_factory() as session:
            credential = (
                await session.execute(select(Credential).where(col(Credential.user_id) == user_id))
            ).scalar_one_or_none()
        if credential is None:
            raise NotFoundError("Credential not found")

        if not await asyncio.to_thread(check_password, current_password, credential.salt, credential.password_hash):
            logger.warning("Password change for user %s rejected: wrong current password", user_id)
            raise AuthError("Current password is incorrect")

        salt = generate_salt()
        password_hash = await self._hash(new_password, salt)

        async def work(session: AsyncSession) -> None:
            result = await session.execute(
                select(Credential).where(col(Credential.user_id) == user_id).with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError("Credential not found")
            row.password_hash = password_hash
            row.salt = salt
            row.modified_at = utc_now()
            session.add(row)
            await write_audit_log(
                session,
                actor_id=user_id,
                entity_type=AuditEntityType.USER,
                entity_id=user_id,
                action=AuditAction.UPDATE,
                after_json={"password_changed": True},
            )

        await self._transaction(work)
        logger.info("Password changed for user %s", user_id)

    async def get_profile(self, user_id: uuid.UUID) -> ProfileResponse:
        async with self._session_factory() as session:
            user = await get_user_or_404(session, user_id)
            role = await session.get(Role, user.role_id) if user.role_id is not None else None
        return ProfileResponse(
            id=user.id,
            name=user.name,
            email=user.email,
            role_id=user.role_id,
            role_name=role.name if role is not None else None,
            hierarchy_level=role.hierarchy_level if role is not None else None,
            manager_id=user.manager_id,
            created_at=user.created_at,
        )
