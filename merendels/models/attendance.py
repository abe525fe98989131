# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from merendels.models.base import UUIDBase, utc_now


class AttendanceEvent(UUIDBase, table=True):
    """A clock-in or clock-out event, timestamped by the server."""

    __tablename__ = "attendance_events"
    __table_args__ = (sa.Index("ix_attendance_user_time", "user_id", "occurred_at"),)

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    )
    occurred_at: datetime = Field(
        default_factory=utc_now,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    action: str = Field(max_length=10)
    location: str = Field(max_length=20)
    geolocation: str | None = Field(default=None, max_length=255)
