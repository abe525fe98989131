# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from merendels.models.enums import RequestStatus, RequestType

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateLeaveRequestPayload(BaseModel):
    """Request body for submitting a leave request.

    ``request_type`` is checked by the service so that date errors are
    reported before type errors.
    """

    start_date: date
    end_date: date
    request_type: str = Field(max_length=20)
    notes: str | None = Field(default=None, max_length=1000)


class UpdateLeaveRequestPayload(BaseModel):
    """Request body for editing a request that has no decisions yet."""

    start_date: date | None = None
    end_date: date | None = None
    request_type: str | None = Field(default=None, max_length=20)
    notes: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    user_id: uuid.UUID
    start_date: date
    end_date: date
    request_type: RequestType
    notes: str | None
    working_days: int
    status: RequestStatus
    created_at: datetime


class LeaveRequestListResponse(BaseModel):
    """Paginated list of leave requests."""

    items: list[LeaveRequestResponse]
    total: int
