from __future__ import annotations

import uuid
from datetime import date

from merendels.models import (
    Approval,
    AttendanceEvent,
    AuditLog,
    LeaveBalance,
    LeaveRequest,
    Role,
    SQLModel,
    User,
)
from merendels.models.enums import ApprovalStatus, AttendanceAction, AttendanceLocation, RequestType

EXPECTED_TABLES = {
    "approvals",
    "attendance_events",
    "audit_log",
    "credentials",
    "leave_balances",
    "login_attempts",
    "requests",
    "roles",
    "users",
}


def test_all_tables_registered() -> None:
    table_names = set(SQLModel.metadata.tables.keys())
    assert EXPECTED_TABLES.issubset(table_names)


def test_role_instantiation() -> None:
    role = Role(name="Manager", hierarchy_level=1)
    assert role.id is not None
    assert role.hierarchy_level == 1


def test_user_defaults() -> None:
    user = User(name="Ada", email="ada@example.com")
    assert user.role_id is None
    assert user.manager_id is None
    assert user.created_at is not None


def test_leave_balance_defaults() -> None:
    balance = LeaveBalance(user_id=uuid.uuid4())
    assert balance.accumulated_holidays == 0.0
    assert balance.accumulated_permits == 0.0
    assert balance.version == 1


def test_leave_request_instantiation() -> None:
    request = LeaveRequest(
        user_id=uuid.uuid4(),
        start_date=date(2030, 1, 7),
        end_date=date(2030, 1, 11),
        request_type=RequestType.HOLIDAY.value,
    )
    assert request.notes is None
    assert request.start_date <= request.end_date


def test_approval_instantiation() -> None:
    approval = Approval(request_id=uuid.uuid4(), approver_id=uuid.uuid4(), status=ApprovalStatus.ACCEPTED.value)
    assert approval.comment is None
    assert approval.decided_at is not None


def test_attendance_event_instantiation() -> None:
    event = AttendanceEvent(
        user_id=uuid.uuid4(),
        action=AttendanceAction.ENTER.value,
        location=AttendanceLocation.REMOTE.value,
    )
    assert event.geolocation is None
    assert event.occurred_at.tzinfo is not None


def test_audit_log_allows_system_actor() -> None:
    entry = AuditLog(entity_type="ROLE", entity_id=uuid.uuid4(), action="CREATE")
    assert entry.actor_id is None
    assert entry.before_json is None


def test_unique_approval_per_approver_constraint() -> None:
    table = SQLModel.metadata.tables["approvals"]
    unique_sets = {
        tuple(c.name for c in constraint.columns)
        for constraint in table.constraints
        if constraint.__class__.__name__ == "UniqueConstraint"
    }
    assert ("request_id", "approver_id") in unique_sets
