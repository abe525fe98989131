# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """Remaining leave days for a user."""

    user_id: uuid.UUID
    accumulated_holidays: float
    accumulated_permits: float
    modified_at: datetime
    version: int


class BalanceListResponse(BaseModel):
    items: list[BalanceResponse]
    total: int


# ---------------------------------------------------------------------------
# Adjustment request schemas
# ---------------------------------------------------------------------------


class BalanceAdjustmentPayload(BaseModel):
    """Request body for an administrative balance adjustment."""

    holidays_delta: float = Field(default=0.0, description="Signed: positive to add, negative to deduct")
    permits_delta: float = Field(default=0.0, description="Signed: positive to add, negative to deduct")
    reason: str | None = Field(default=None, max_length=1000)


class AnnualLeavePayload(BaseModel):
    """Request body for crediting a user's yearly entitlement."""

    holiday_days: float = Field(ge=0)
    permit_days: float = Field(ge=0)
