# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from merendels.models.enums import ApprovalStatus, RequestStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateApprovalPayload(BaseModel):
    """Request body for recording a decision on a leave request."""

    request_id: uuid.UUID
    status: str = Field(max_length=20, description="ACCEPTED or REJECTED")
    comment: str | None = Field(default=None, max_length=1000)


class UpdateApprovalStatusPayload(BaseModel):
    status: str = Field(max_length=20)
    comment: str | None = Field(default=None, max_length=1000)


class RevokeApprovalPayload(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ApprovalResponse(BaseModel):
    """A single approver's decision."""

    id: uuid.UUID
    request_id: uuid.UUID
    approver_id: uuid.UUID
    status: ApprovalStatus
    comment: str | None
    decided_at: datetime


class ApprovalListResponse(BaseModel):
    items: list[ApprovalResponse]
    total: int


class ApprovalStatisticsResponse(BaseModel):
    """Decision counts with rates expressed as percentages of the total."""

    total: int
    accepted: int
    rejected: int
    revoked: int
    acceptance_rate: float
    rejection_rate: float
    revocation_rate: float


class RequestApprovalSummary(BaseModel):
    """All decisions on one request and the status derived from them."""

    request_id: uuid.UUID
    total: int
    accepted: int
    rejected: int
    revoked: int
    has_approvals: bool
    is_approved: bool
    is_rejected: bool
    is_revoked: bool
    final_status: RequestStatus
    approvals: list[ApprovalResponse]
