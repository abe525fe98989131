# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class RolePayload(BaseModel):
    """Request body for creating or replacing a role."""

    name: str = Field(max_length=100)
    hierarchy_level: int


class RoleResponse(BaseModel):
    id: uuid.UUID
    name: str
    hierarchy_level: int


class RoleListResponse(BaseModel):
    items: list[RoleResponse]
    total: int
