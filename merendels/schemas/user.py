# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class UserResponse(BaseModel):
    """Public view of a user account. Credentials are never included."""

    id: uuid.UUID
    name: str
    email: str
    role_id: uuid.UUID | None
    manager_id: uuid.UUID | None
    created_at: datetime


class UpdateAssignmentPayload(BaseModel):
    """Request body for changing a user's role or manager.

    Omitted fields are left unchanged.
    """

    role_id: uuid.UUID | None = None
    manager_id: uuid.UUID | None = None
