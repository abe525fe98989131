# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from merendels.models.base import TimestampMixin, UUIDBase, utc_now


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """A holiday or permit request covering an inclusive date range."""

    __tablename__ = "requests"
    __table_args__ = (
        sa.Index("ix_request_user_dates", "user_id", "start_date", "end_date"),
        sa.CheckConstraint("start_date <= end_date", name="ck_request_date_order"),
    )

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    start_date: date
    end_date: date
    request_type: str = Field(max_length=20)
    notes: str | None = None


class Approval(UUIDBase, table=True):
    """One approver's decision on a request."""

    __tablename__ = "approvals"
    __table_args__ = (sa.UniqueConstraint("request_id", "approver_id", name="uq_approval_request_approver"),)

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    approver_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("users.id"), nullable=False, index=True),
    )
    status: str = Field(max_length=20, index=True)
    comment: str | None = None
    decided_at: datetime = Field(
        default_factory=utc_now,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
