# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from merendels.schemas.user import UserResponse


class AuthContext(BaseModel):
    """Identity carried by a verified bearer token."""

    user_id: uuid.UUID
    email: str
    role_id: uuid.UUID | None = None
    hierarchy_level: int | None = None


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class LoginPayload(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(max_length=1024)


class RegisterPayload(BaseModel):
    """Request body for self-registration."""

    name: str = Field(max_length=255)
    email: str = Field(max_length=255)
    password: str = Field(max_length=1024)
    role_id: uuid.UUID | None = None
    manager_id: uuid.UUID | None = None


class ChangePasswordPayload(BaseModel):
    current_password: str = Field(max_length=1024)
    new_password: str = Field(max_length=1024)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """Issued bearer token together with the authenticated user."""

    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class ProfileResponse(BaseModel):
    """The authenticated user with role details resolved."""

    id: uuid.UUID
    name: str
    email: str
    role_id: uuid.UUID | None
    role_name: str | None
    hierarchy_level: int | None
    manager_id: uuid.UUID | None
    created_at: datetime


class TokenValidationResponse(BaseModel):
    valid: bool = True
    user_id: uuid.UUID
    email: str


class MessageResponse(BaseModel):
    message: str
