# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Response, status

from merendels.api.deps import AuthDep, RoleAdminDep, RoleServiceDep
from merendels.schemas.role import RoleListResponse, RolePayload, RoleResponse

roles_router = APIRouter(prefix="/api/user-roles", tags=["roles"])


@roles_router.get("", response_model=RoleListResponse)
async def list_roles(_auth: AuthDep, roles: RoleServiceDep) -> RoleListResponse:
    return await roles.list_all()


@roles_router.get("/{role_id}", response_model=RoleResponse)
async def get_role(role_id: uuid.UUID, _auth: AuthDep, roles: RoleServiceDep) -> RoleResponse:
    return await roles.get(role_id)


@roles_router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(payload: RolePayload, auth: RoleAdminDep, roles: RoleServiceDep) -> RoleResponse:
    return await roles.create(auth.user_id, payload)


@roles_router.put("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: uuid.UUID,
    payload: RolePayload,
    auth: RoleAdminDep,
    roles: RoleServiceDep,
) -> RoleResponse:
    return await roles.update(auth.user_id, role_id, payload)


@roles_router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(role_id: uuid.UUID, auth: RoleAdminDep, roles: RoleServiceDep) -> Response:
    """Delete a role; refused while any user still holds it."""
    await roles.delete(auth.user_id, role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
