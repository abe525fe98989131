# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from merendels.exceptions import NotFoundError, ValidationError
from merendels.models.enums import AuditAction, AuditEntityType
from merendels.models.user import Role, User
from merendels.schemas.user import UserResponse
from merendels.services.audit import model_to_audit_dict, write_audit_log
from merendels.services.base import TransactionalService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from merendels.schemas.user import UpdateAssignmentPayload

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def build_user_response(user: User) -> UserResponse:
    """Map a user model to its public response schema."""
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role_id=user.role_id,
        manager_id=user.manager_id,
        created_at=user.created_at,
    )


async def get_user_or_404(session: AsyncSession, user_id: uuid.UUID, *, for_update: bool = False) -> User:
    """Fetch a user by ID, optionally locking the row. Raises 404 if absent.

    Locking the owner's user row serializes concurrent writers acting for the
    same user (request submissions, clock events).
    """
    query = select(User).where(col(User.id) == user_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_role_level(session: AsyncSession, role_id: uuid.UUID | None) -> int | None:
    """Return the hierarchy level of a role, or None when there is no role."""
    if role_id is None:
        return None
    result = await session.execute(select(col(Role.hierarchy_level)).where(col(Role.id) == role_id))
    return result.scalar_one_or_none()


class UserService(TransactionalService):
    """Role and manager assignment for existing users."""

    async def get(self, user_id: uuid.UUID) -> UserResponse:
        async with self._session_factory() as session:
            return build_user_response(await get_user_or_404(session, user_id))

    async def update_assignment(
        self,
        actor_id: uuid.UUID,
        user_id: uuid.UUID,
        payload: UpdateAssignmentPayload,
    ) -> UserResponse:
        """Change a user's role and/or manager.

        Only fields explicitly present in the payload are applied, so a
        manager can be cleared by sending ``null``.
        """
        fields = payload.model_dump(exclude_unset=True)

        async def work(session: AsyncSession) -> UserResponse:
            user = await get_user_or_404(session, user_id, for_update=True)
            before = model_to_audit_dict(user)

            if "role_id" in fields:
                role_id = fields["role_id"]
                if role_id is not None and await session.get(Role, role_id) is None:
                    raise ValidationError("Role does not exist")
                user.role_id = role_id

            if "manager_id" in fields:
                manager_id = fields["manager_id"]
                if manager_id is not None:
                    if manager_id == user_id:
                        raise ValidationError("A user cannot be their own manager")
                    if await session.get(User, manager_id) is None:
                        raise ValidationError("Manager does not exist")
                user.manager_id = manager_id

            session.add(user)
            await session.flush()
            await write_audit_log(
                session,
                actor_id=actor_id,
                entity_type=AuditEntityType.USER,
                entity_id=user.id,
                action=AuditAction.UPDATE,
                before_json=before,
                after_json=model_to_audit_dict(user),
            )
            return build_user_response(user)

        response = await self._transaction(work)
        logger.info("User %s assignment updated by %s", user_id, actor_id)
        return response
