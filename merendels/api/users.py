# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter

from merendels.api.deps import ManagerDep, UserServiceDep
from merendels.schemas.user import UpdateAssignmentPayload, UserResponse

users_router = APIRouter(prefix="/api/users", tags=["users"])


@users_router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: uuid.UUID, _auth: ManagerDep, users: UserServiceDep) -> UserResponse:
    return await users.get(user_id)


@users_router.put("/{user_id}", response_model=UserResponse)
async def update_user_assignment(
    user_id: uuid.UUID,
    payload: UpdateAssignmentPayload,
    auth: ManagerDep,
    users: UserServiceDep,
) -> UserResponse:
    """Assign a role and/or manager to a user (managers only)."""
    return await users.update_assignment(auth.user_id, user_id, payload)
