# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from merendels.models.base import TimestampMixin, UUIDBase, utc_now


class Role(UUIDBase, table=True):
    """A job role; lower hierarchy levels carry more authority."""

    __tablename__ = "roles"
    __table_args__ = (
        sa.UniqueConstraint("hierarchy_level", name="uq_role_hierarchy_level"),
        sa.CheckConstraint("hierarchy_level >= 0", name="ck_role_hierarchy_level_non_negative"),
    )

    name: str = Field(max_length=100)
    hierarchy_level: int


class User(UUIDBase, TimestampMixin, table=True):
    """An employee account."""

    __tablename__ = "users"

    name: str = Field(max_length=255)
    email: str = Field(max_length=255, unique=True, index=True)
    role_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("roles.id"), nullable=True, index=True),
    )
    manager_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )


class Credential(UUIDBase, TimestampMixin, table=True):
    """Password hash and salt for a user. Never serialized outward."""

    __tablename__ = "credentials"

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
        ),
    )
    password_hash: str = Field(max_length=255)
    salt: str = Field(max_length=64)
    modified_at: datetime = Field(
        default_factory=utc_now,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class LoginAttempt(UUIDBase, table=True):
    """Append-only log of login attempts, used for lockout windows."""

    __tablename__ = "login_attempts"
    __table_args__ = (sa.Index("ix_login_attempt_user_result_time", "user_id", "result", "attempted_at"),)

    user_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    )
    result: str = Field(max_length=20)
    attempted_at: datetime = Field(
        default_factory=utc_now,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
