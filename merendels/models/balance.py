# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from merendels.models.base import utc_now


class LeaveBalance(SQLModel, table=True):
    """Per-user holiday and permit day counters, updated under a row lock."""

    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.CheckConstraint("accumulated_holidays >= 0", name="ck_balance_holidays_non_negative"),
        sa.CheckConstraint("accumulated_permits >= 0", name="ck_balance_permits_non_negative"),
    )

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    )
    accumulated_holidays: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    accumulated_permits: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    modified_at: datetime = Field(
        default_factory=utc_now,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
