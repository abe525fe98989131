# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from merendels.models.enums import AttendanceAction, AttendanceLocation


class RecordAttendancePayload(BaseModel):
    """Request body for a clock event. The timestamp is set by the server."""

    action: str = Field(max_length=10, description="ENTER or EXIT")
    location: str = Field(default=AttendanceLocation.OFFICE.value, max_length=20, description="OFFICE or REMOTE")
    geolocation: str | None = Field(default=None, max_length=255)


class AttendanceEventResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    occurred_at: datetime
    action: AttendanceAction
    location: AttendanceLocation
    geolocation: str | None


class AttendanceListResponse(BaseModel):
    items: list[AttendanceEventResponse]
    total: int


class WorkingStatusResponse(BaseModel):
    """Whether the user is currently clocked in, based on their last event."""

    user_id: uuid.UUID
    is_working: bool
    last_event: AttendanceEventResponse | None
