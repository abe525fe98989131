from sqlmodel import SQLModel

from merendels.models.attendance import AttendanceEvent
from merendels.models.audit import AuditLog
from merendels.models.balance import LeaveBalance
from merendels.models.base import TimestampMixin, UUIDBase
from merendels.models.enums import (
    ApprovalStatus,
    AttendanceAction,
    AttendanceLocation,
    AuditAction,
    AuditEntityType,
    LoginResult,
    RequestStatus,
    RequestType,
)
from merendels.models.request import Approval, LeaveRequest
from merendels.models.user import Credential, LoginAttempt, Role, User

__all__ = [
    "Approval",
    "ApprovalStatus",
    "AttendanceAction",
    "AttendanceEvent",
    "AttendanceLocation",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "Credential",
    "LeaveBalance",
    "LeaveRequest",
    "LoginAttempt",
    "LoginResult",
    "RequestStatus",
    "RequestType",
    "Role",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "User",
]
