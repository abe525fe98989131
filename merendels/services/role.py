# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from merendels.exceptions import ConflictError, NotFoundError, ValidationError
from merendels.models.enums import AuditAction, AuditEntityType
from merendels.models.user import Role, User
from merendels.schemas.role import RoleListResponse, RoleResponse
from merendels.services.audit import model_to_audit_dict, write_audit_log
from merendels.services.base import TransactionalService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from merendels.schemas.role import RolePayload

logger = logging.getLogger(__name__)


def _build_role_response(role: Role) -> RoleResponse:
    return RoleResponse(id=role.id, name=role.name, hierarchy_level=role.hierarchy_level)


def _validate(payload: RolePayload) -> str:
    name = payload.name.strip()
    if not name:
        raise ValidationError("Role name is required")
    if payload.hierarchy_level < 0:
        raise ValidationError("Hierarchy level cannot be negative")
    return name


async def _get_role_or_404(session: AsyncSession, role_id: uuid.UUID) -> Role:
    role = await session.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role not found")
    return role


async def _check_level_free(session: AsyncSession, level: int, exclude_role_id: uuid.UUID | None = None) -> None:
    query = select(col(Role.id)).where(col(Role.hierarchy_level) == level)
    if exclude_role_id is not None:
        query = query.where(col(Role.id) != exclude_role_id)
    if (await session.execute(query)).scalar_one_or_none() is not None:
        raise ConflictError(f"A role with hierarchy level {level} already exists")


class RoleService(TransactionalService):
    """Job roles and their hierarchy levels."""

    async def list_all(self) -> RoleListResponse:
        async with self._session_factory() as session:
            result = await session.execute(select(Role).order_by(col(Role.hierarchy_level)))
            items = [_build_role_response(r) for r in result.scalars().all()]
        return RoleListResponse(items=items, total=len(items))

    async def get(self, role_id: uuid.UUID) -> RoleResponse:
        async with self._session_factory() as session:
            return _build_role_response(await _get_role_or_404(session, role_id))

    async def create(self, actor_id: uuid.UUID | None, payload: RolePayload) -> RoleResponse:
        name = _validate(payload)

        async def work(session: AsyncSession) -> Role:
            await _check_level_free(session, payload.hierarchy_level)
            role = Role(name=name, hierarchy_level=payload.hierarchy_level)
            session.add(role)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ConflictError(f"A role with hierarchy level {payload.hierarchy_level} already exists") from exc
            await write_audit_log(
                session,
                actor_id=actor_id,
                entity_type=AuditEntityType.ROLE,
                entity_id=role.id,
                action=AuditAction.CREATE,
                after_json=model_to_audit_dict(role),
            )
            return role

        role = await self._transaction(work)
        logger.info("Created role %s (%s, level %d)", role.id, role.name, role.hierarchy_level)
        return _build_role_response(role)

    async def update(self, actor_id: uuid.UUID, role_id: uuid.UUID, payload: RolePayload) -> RoleResponse:
        name = _validate(payload)

        async def work(session: AsyncSession) -> Role:
            role = await _get_role_or_404(session, role_id)
            await _check_level_free(session, payload.hierarchy_level, exclude_role_id=role_id)
            before = model_to_audit_dict(role)
            role.name = name
            role.hierarchy_level = payload.hierarchy_level
            session.add(role)
            await session.flush()
            await write_audit_log(
                session,
                actor_id=actor_id,
                entity_type=AuditEntityType.ROLE,
                entity_id=role.id,
                action=AuditAction.UPDATE,
                before_json=before,
                after_json=model_to_audit_dict(role),
            )
            return role

        role = await self._transaction(work)
        logger.info("Updated role %s", role_id)
        return _build_role_response(role)

    async def delete(self, actor_id: uuid.UUID, role_id: uuid.UUID) -> None:
        """Delete a role that no user references."""

        async def work(session: AsyncSession) -> None:
            role = await _get_role_or_404(session, role_id)
            in_use = await session.execute(select(col(User.id)).where(col(User.role_id) == role_id).limit(1))
            if in_use.scalar_one_or_none() is not None:
                raise ConflictError("Role is still assigned to users")
            before = model_to_audit_dict(role)
            await session.delete(role)
            await write_audit_log(
                session,
                actor_id=actor_id,
                entity_type=AuditEntityType.ROLE,
                entity_id=role_id,
                action=AuditAction.DELETE,
                before_json=before,
            )

        await self._transaction(work)
        logger.info("Deleted role %s", role_id)
