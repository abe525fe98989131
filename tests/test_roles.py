"""Role CRUD and user role/manager assignment."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select
from sqlmodel import col

from merendels.exceptions import ConflictError, NotFoundError, ValidationError
from merendels.models.audit import AuditLog
from merendels.schemas.role import RolePayload
from merendels.schemas.user import UpdateAssignmentPayload

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from merendels.models.user import User
    from merendels.services.role import RoleService
    from merendels.services.user import UserService

ACTOR_ID = uuid.uuid4()


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


async def test_create_and_list_roles(roles: RoleService) -> None:
    await roles.create(ACTOR_ID, RolePayload(name="Employee", hierarchy_level=2))
    await roles.create(ACTOR_ID, RolePayload(name=" Director ", hierarchy_level=0))

    listing = await roles.list_all()
    assert listing.total == 2
    assert [r.name for r in listing.items] == ["Director", "Employee"]


async def test_create_role_writes_audit_entry(
    roles: RoleService, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    role = await roles.create(ACTOR_ID, RolePayload(name="Manager", hierarchy_level=1))
    async with session_factory() as session:
        entry = (await session.execute(select(AuditLog).where(col(AuditLog.entity_id) == role.id))).scalar_one()
    assert entry.entity_type == "ROLE"
    assert entry.actor_id == ACTOR_ID


async def test_duplicate_level_conflicts(roles: RoleService) -> None:
    await roles.create(ACTOR_ID, RolePayload(name="Manager", hierarchy_level=1))
    with pytest.raises(ConflictError):
        await roles.create(ACTOR_ID, RolePayload(name="Lead", hierarchy_level=1))


@pytest.mark.parametrize(("name", "level"), [("   ", 1), ("Ghost", -1)])
async def test_invalid_role_rejected(roles: RoleService, name: str, level: int) -> None:
    with pytest.raises(ValidationError):
        await roles.create(ACTOR_ID, RolePayload(name=name, hierarchy_level=level))


async def test_update_role(roles: RoleService) -> None:
    role = await roles.create(ACTOR_ID, RolePayload(name="Manager", hierarchy_level=1))
    updated = await roles.update(ACTOR_ID, role.id, RolePayload(name="Team Lead", hierarchy_level=1))
    assert updated.name == "Team Lead"
    assert (await roles.get(role.id)).name == "Team Lead"


async def test_update_role_to_taken_level_conflicts(roles: RoleService) -> None:
    await roles.create(ACTOR_ID, RolePayload(name="Director", hierarchy_level=0))
    manager = await roles.create(ACTOR_ID, RolePayload(name="Manager", hierarchy_level=1))
    with pytest.raises(ConflictError):
        await roles.update(ACTOR_ID, manager.id, RolePayload(name="Manager", hierarchy_level=0))


async def test_delete_unused_role(roles: RoleService) -> None:
    role = await roles.create(ACTOR_ID, RolePayload(name="Temp", hierarchy_level=5))
    await roles.delete(ACTOR_ID, role.id)
    with pytest.raises(NotFoundError):
        await roles.get(role.id)


async def test_delete_role_in_use_conflicts(
    roles: RoleService, make_user: Callable[..., Awaitable[User]]
) -> None:
    user = await make_user(4)
    assert user.role_id is not None
    with pytest.raises(ConflictError, match="assigned"):
        await roles.delete(ACTOR_ID, user.role_id)
    assert (await roles.get(user.role_id)).hierarchy_level == 4


async def test_get_missing_role(roles: RoleService) -> None:
    with pytest.raises(NotFoundError):
        await roles.get(uuid.uuid4())


# ---------------------------------------------------------------------------
# User assignment
# ---------------------------------------------------------------------------


async def test_assign_role_and_manager(
    users: UserService, roles: RoleService, make_user: Callable[..., Awaitable[User]]
) -> None:
    boss = await make_user(1)
    worker = await make_user(None)
    role = await roles.create(ACTOR_ID, RolePayload(name="Employee", hierarchy_level=2))

    updated = await users.update_assignment(
        boss.id, worker.id, UpdateAssignmentPayload(role_id=role.id, manager_id=boss.id)
    )
    assert updated.role_id == role.id
    assert updated.manager_id == boss.id


async def test_partial_assignment_keeps_other_field(
    users: UserService, make_user: Callable[..., Awaitable[User]]
) -> None:
    boss = await make_user(1)
    worker = await make_user(2)
    await users.update_assignment(boss.id, worker.id, UpdateAssignmentPayload(manager_id=boss.id))

    cleared = await users.update_assignment(boss.id, worker.id, UpdateAssignmentPayload(manager_id=None))
    assert cleared.manager_id is None
    assert cleared.role_id == worker.role_id


async def test_assignment_rejects_bad_references(
    users: UserService, make_user: Callable[..., Awaitable[User]]
) -> None:
    worker = await make_user(2)
    with pytest.raises(ValidationError, match="Role"):
        await users.update_assignment(ACTOR_ID, worker.id, UpdateAssignmentPayload(role_id=uuid.uuid4()))
    with pytest.raises(ValidationError, match="Manager"):
        await users.update_assignment(ACTOR_ID, worker.id, UpdateAssignmentPayload(manager_id=uuid.uuid4()))
    with pytest.raises(ValidationError, match="own manager"):
        await users.update_assignment(ACTOR_ID, worker.id, UpdateAssignmentPayload(manager_id=worker.id))


async def test_assignment_of_missing_user(users: UserService) -> None:
    with pytest.raises(NotFoundError):
        await users.update_assignment(ACTOR_ID, uuid.uuid4(), UpdateAssignmentPayload(role_id=None))


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


async def test_role_crud_over_http(
    async_client: AsyncClient,
    make_user: Callable[..., Awaitable[User]],
    headers_for: Callable[[User, int | None], dict[str, str]],
) -> None:
    admin = await make_user(2)
    headers = headers_for(admin, 2)

    response = await async_client.post(
        "/api/user-roles", json={"name": "Intern", "hierarchy_level": 3}, headers=headers
    )
    assert response.status_code == 201
    role_id = response.json()["id"]

    response = await async_client.put(
        f"/api/user-roles/{role_id}", json={"name": "Trainee", "hierarchy_level": 3}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Trainee"

    response = await async_client.get(f"/api/user-roles/{role_id}", headers=headers)
    assert response.json()["hierarchy_level"] == 3

    response = await async_client.delete(f"/api/user-roles/{role_id}", headers=headers)
    assert response.status_code == 204

    response = await async_client.get(f"/api/user-roles/{role_id}", headers=headers)
    assert response.status_code == 404


async def test_user_endpoints_over_http(
    async_client: AsyncClient,
    make_user: Callable[..., Awaitable[User]],
    headers_for: Callable[[User, int | None], dict[str, str]],
) -> None:
    manager = await make_user(1)
    worker = await make_user(2)

    response = await async_client.put(
        f"/api/users/{worker.id}", json={"manager_id": str(manager.id)}, headers=headers_for(manager, 1)
    )
    assert response.status_code == 200
    assert response.json()["manager_id"] == str(manager.id)

    response = await async_client.get(f"/api/users/{worker.id}", headers=headers_for(manager, 1))
    assert response.status_code == 200
    assert "password_hash" not in response.json()

    response = await async_client.get(f"/api/users/{manager.id}", headers=headers_for(worker, 2))
    assert response.status_code == 403
