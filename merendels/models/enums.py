from __future__ import annotations

import enum


class RequestType(enum.StrEnum):
    """Which balance counter a leave request draws from."""

    HOLIDAY = "HOLIDAY"
    PERMIT = "PERMIT"


class ApprovalStatus(enum.StrEnum):
    """Decision recorded by a single approver."""

    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    REVOKED = "REVOKED"


class RequestStatus(enum.StrEnum):
    """Status of a request derived from its approvals, never stored."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVOKED = "REVOKED"


class LoginResult(enum.StrEnum):
    """Outcome of a login attempt."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class AttendanceAction(enum.StrEnum):
    """Clock event direction."""

    ENTER = "ENTER"
    EXIT = "EXIT"


class AttendanceLocation(enum.StrEnum):
    """Where the employee is working from."""

    OFFICE = "OFFICE"
    REMOTE = "REMOTE"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    REQUEST = "REQUEST"
    APPROVAL = "APPROVAL"
    BALANCE = "BALANCE"
    ROLE = "ROLE"
    USER = "USER"
    ATTENDANCE = "ATTENDANCE"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REVOKE = "REVOKE"
    ADJUST = "ADJUST"
