"""Approval state machine, derived request status and balance settlement."""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from typing import TYPE_CHECKING

import pytest

from merendels.exceptions import (
    ConflictError,
    ForbiddenError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from merendels.models.enums import ApprovalStatus, RequestStatus
from merendels.schemas.approval import CreateApprovalPayload
from merendels.schemas.request import CreateLeaveRequestPayload
from merendels.services.approval import DEFAULT_REVOKE_COMMENT, ApprovalEngine, derive_request_status

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from merendels.config import Settings
    from merendels.models.user import User
    from merendels.schemas.request import LeaveRequestResponse
    from merendels.services.balance import LeaveBalanceLedger
    from merendels.services.request import RequestLifecycleManager


@pytest.fixture
async def week_off(
    request_manager: RequestLifecycleManager,
    make_user: Callable[..., Awaitable[User]],
    next_monday: date,
) -> LeaveRequestResponse:
    """A pending five-working-day holiday request by an employee."""
    employee = await make_user(2, name="Employee")
    return await request_manager.create(
        employee.id,
        CreateLeaveRequestPayload(
            start_date=next_monday, end_date=next_monday + timedelta(days=4), request_type="HOLIDAY"
        ),
    )


@pytest.fixture
async def manager(make_user: Callable[..., Awaitable[User]]) -> User:
    return await make_user(1, name="Manager")


async def _holidays(ledger: LeaveBalanceLedger, user_id: uuid.UUID) -> float:
    balance = await ledger.get(user_id)
    assert balance is not None
    return balance.accumulated_holidays


# ---------------------------------------------------------------------------
# Status derivation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("statuses", "expected"),
    [
        ([], RequestStatus.PENDING),
        (["ACCEPTED"], RequestStatus.APPROVED),
        (["ACCEPTED", "ACCEPTED"], RequestStatus.APPROVED),
        (["REJECTED"], RequestStatus.REJECTED),
        (["ACCEPTED", "REJECTED"], RequestStatus.REJECTED),
        (["REVOKED", "REJECTED"], RequestStatus.REJECTED),
        (["REVOKED"], RequestStatus.REVOKED),
        (["ACCEPTED", "REVOKED"], RequestStatus.REVOKED),
    ],
)
def test_derive_request_status(statuses: list[str], expected: RequestStatus) -> None:
    assert derive_request_status(statuses) == expected


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def test_accept_deducts_balance(
    approvals: ApprovalEngine, ledger: LeaveBalanceLedger, week_off: LeaveRequestResponse, manager: User
) -> None:
    approval = await approvals.create(
        manager.id, CreateApprovalPayload(request_id=week_off.id, status="accepted", comment="enjoy")
    )
    assert approval.status == ApprovalStatus.ACCEPTED
    assert approval.comment == "enjoy"
    assert await _holidays(ledger, week_off.user_id) == 17.0


async def test_second_acceptance_does_not_deduct_again(
    approvals: ApprovalEngine,
    ledger: LeaveBalanceLedger,
    week_off: LeaveRequestResponse,
    manager: User,
    make_user: Callable[..., Awaitable[User]],
) -> None:
    director = await make_user(0, name="Director")
    await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    await approvals.create(director.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    assert await _holidays(ledger, week_off.user_id) == 17.0


async def test_rejection_leaves_balance_untouched(
    approvals: ApprovalEngine, ledger: LeaveBalanceLedger, week_off: LeaveRequestResponse, manager: User
) -> None:
    await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="REJECTED"))
    assert await _holidays(ledger, week_off.user_id) == 22.0


async def test_rejection_after_acceptance_restores_balance(
    approvals: ApprovalEngine,
    ledger: LeaveBalanceLedger,
    week_off: LeaveRequestResponse,
    manager: User,
    make_user: Callable[..., Awaitable[User]],
) -> None:
    director = await make_user(0, name="Director")
    await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    await approvals.create(director.id, CreateApprovalPayload(request_id=week_off.id, status="REJECTED"))
    assert await _holidays(ledger, week_off.user_id) == 22.0
    summary = await approvals.request_summary(week_off.id)
    assert summary.final_status == RequestStatus.REJECTED


async def test_acceptance_fails_when_balance_was_spent(
    approvals: ApprovalEngine, ledger: LeaveBalanceLedger, week_off: LeaveRequestResponse, manager: User
) -> None:
    await ledger.adjust(week_off.user_id, -20.0, 0.0, reason="spent elsewhere")
    with pytest.raises(InsufficientBalanceError):
        await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    assert (await approvals.list_by_request(week_off.id)).total == 0


async def test_no_deduction_when_disabled(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    ledger: LeaveBalanceLedger,
    week_off: LeaveRequestResponse,
    manager: User,
) -> None:
    engine = ApprovalEngine(session_factory, settings.model_copy(update={"deduct_balance_on_approval": False}), ledger)
    await engine.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    assert await _holidays(ledger, week_off.user_id) == 22.0


async def test_self_approval_forbidden(approvals: ApprovalEngine, week_off: LeaveRequestResponse) -> None:
    with pytest.raises(ForbiddenError):
        await approvals.create(week_off.user_id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))


async def test_duplicate_decision_conflicts(
    approvals: ApprovalEngine, week_off: LeaveRequestResponse, manager: User
) -> None:
    await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="REJECTED"))
    with pytest.raises(ConflictError):
        await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))


@pytest.mark.parametrize("status", ["REVOKED", "MAYBE"])
async def test_invalid_initial_status(
    approvals: ApprovalEngine, week_off: LeaveRequestResponse, manager: User, status: str
) -> None:
    with pytest.raises(ValidationError):
        await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status=status))


async def test_decision_on_missing_request(approvals: ApprovalEngine, manager: User) -> None:
    with pytest.raises(NotFoundError):
        await approvals.create(manager.id, CreateApprovalPayload(request_id=uuid.uuid4(), status="ACCEPTED"))


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def test_revoke_restores_balance(
    approvals: ApprovalEngine, ledger: LeaveBalanceLedger, week_off: LeaveRequestResponse, manager: User
) -> None:
    approval = await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    revoked = await approvals.revoke(approval.id, manager.id, "  ")
    assert revoked.status == ApprovalStatus.REVOKED
    assert revoked.comment == DEFAULT_REVOKE_COMMENT
    assert await _holidays(ledger, week_off.user_id) == 22.0

    summary = await approvals.request_summary(week_off.id)
    assert summary.is_revoked
    assert summary.revoked == 1


async def test_revoked_is_final(approvals: ApprovalEngine, week_off: LeaveRequestResponse, manager: User) -> None:
    approval = await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    await approvals.revoke(approval.id, manager.id, "plans changed")
    with pytest.raises(ConflictError):
        await approvals.revoke(approval.id, manager.id)
    with pytest.raises(ConflictError):
        await approvals.update_status(approval.id, manager.id, "ACCEPTED")


async def test_accepted_can_only_be_revoked(
    approvals: ApprovalEngine, week_off: LeaveRequestResponse, manager: User
) -> None:
    approval = await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    with pytest.raises(ConflictError):
        await approvals.update_status(approval.id, manager.id, "REJECTED")


async def test_rejected_cannot_be_revoked(
    approvals: ApprovalEngine, week_off: LeaveRequestResponse, manager: User
) -> None:
    approval = await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="REJECTED"))
    with pytest.raises(ConflictError):
        await approvals.revoke(approval.id, manager.id)


async def test_rejected_can_become_accepted(
    approvals: ApprovalEngine, ledger: LeaveBalanceLedger, week_off: LeaveRequestResponse, manager: User
) -> None:
    approval = await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="REJECTED"))
    updated = await approvals.update_status(approval.id, manager.id, "ACCEPTED", "reconsidered")
    assert updated.status == ApprovalStatus.ACCEPTED
    assert updated.comment == "reconsidered"
    assert await _holidays(ledger, week_off.user_id) == 17.0


async def test_only_original_approver_can_change_decision(
    approvals: ApprovalEngine,
    week_off: LeaveRequestResponse,
    manager: User,
    make_user: Callable[..., Awaitable[User]],
) -> None:
    other = await make_user(0)
    approval = await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    with pytest.raises(ForbiddenError):
        await approvals.revoke(approval.id, other.id)
    with pytest.raises(ForbiddenError):
        await approvals.delete(approval.id, other.id)


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


async def test_accepted_decision_cannot_be_deleted(
    approvals: ApprovalEngine, week_off: LeaveRequestResponse, manager: User
) -> None:
    approval = await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    with pytest.raises(ConflictError, match="revoke"):
        await approvals.delete(approval.id, manager.id)


async def test_deleting_rejection_reapproves_request(
    approvals: ApprovalEngine,
    ledger: LeaveBalanceLedger,
    week_off: LeaveRequestResponse,
    manager: User,
    make_user: Callable[..., Awaitable[User]],
) -> None:
    director = await make_user(0)
    await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="ACCEPTED"))
    rejection = await approvals.create(director.id, CreateApprovalPayload(request_id=week_off.id, status="REJECTED"))
    assert await _holidays(ledger, week_off.user_id) == 22.0

    await approvals.delete(rejection.id, director.id)
    assert await _holidays(ledger, week_off.user_id) == 17.0
    assert (await approvals.request_summary(week_off.id)).final_status == RequestStatus.APPROVED


async def test_deleting_rejection_leaves_request_pending(
    approvals: ApprovalEngine, week_off: LeaveRequestResponse, manager: User
) -> None:
    approval = await approvals.create(manager.id, CreateApprovalPayload(request_id=week_off.id, status="REJECTED"))
    await approvals.delete(approval.id, manager.id)
    summary = await approvals.request_summary(week_off.id)
    assert summary.final_status == RequestStatus.PENDING
    assert not summary.has_approvals


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def test_listings_and_statistics(
    approvals: ApprovalEngine,
    request_manager: RequestLifecycleManager,
    make_user: Callable[..., Awaitable[User]],
    manager: User,
    next_monday: date,
) -> None:
    employees = [await make_user(2) for _ in range(4)]
    requests = [
        await request_manager.create(
            e.id, CreateLeaveRequestPayload(start_date=next_monday, end_date=next_monday, request_type="HOLIDAY")
        )
        for e in employees
    ]
    accepted = await approvals.create(manager.id, CreateApprovalPayload(request_id=requests[0].id, status="ACCEPTED"))
    await approvals.create(manager.id, CreateApprovalPayload(request_id=requests[1].id, status="ACCEPTED"))
    await approvals.create(manager.id, CreateApprovalPayload(request_id=requests[2].id, status="REJECTED"))
    await approvals.create(manager.id, CreateApprovalPayload(request_id=requests[3].id, status="ACCEPTED"))
    await approvals.revoke(accepted.id, manager.id, "cancelled")

    stats = await approvals.statistics()
    assert (stats.total, stats.accepted, stats.rejected, stats.revoked) == (4, 2, 1, 1)
    assert stats.acceptance_rate == 50.0
    assert stats.rejection_rate == 25.0
    assert stats.revocation_rate == 25.0

    assert (await approvals.list_all()).total == 4
    assert (await approvals.list_by_approver(manager.id)).total == 4
    assert (await approvals.list_by_status("accepted")).total == 2
    assert (await approvals.list_by_request(requests[2].id)).items[0].status == ApprovalStatus.REJECTED
    with pytest.raises(ValidationError):
        await approvals.list_by_status("PENDING")


async def test_statistics_without_decisions(approvals: ApprovalEngine) -> None:
    stats = await approvals.statistics()
    assert stats.total == 0
    assert stats.acceptance_rate == 0.0


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


async def test_approval_flow_over_http(
    async_client: AsyncClient,
    headers_for: Callable[[User, int | None], dict[str, str]],
    week_off: LeaveRequestResponse,
    manager: User,
) -> None:
    headers = headers_for(manager, 1)
    response = await async_client.post(
        "/api/approvals", json={"request_id": str(week_off.id), "status": "ACCEPTED"}, headers=headers
    )
    assert response.status_code == 201
    approval_id = response.json()["id"]

    response = await async_client.get(f"/api/requests/{week_off.id}", headers=headers)
    assert response.json()["status"] == "APPROVED"

    response = await async_client.put(
        f"/api/approvals/{approval_id}/status", json={"status": "REJECTED"}, headers=headers
    )
    assert response.status_code == 409

    response = await async_client.post(
        f"/api/approvals/{approval_id}/revoke", json={"reason": "team offsite"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["comment"] == "team offsite"

    response = await async_client.get("/api/approvals/statistics", headers=headers)
    assert response.json()["revoked"] == 1

    response = await async_client.get("/api/approvals/status/REVOKED", headers=headers)
    assert response.json()["total"] == 1


async def test_employee_cannot_decide_over_http(
    async_client: AsyncClient,
    make_user: Callable[..., Awaitable[User]],
    headers_for: Callable[[User, int | None], dict[str, str]],
    week_off: LeaveRequestResponse,
) -> None:
    colleague = await make_user(2)
    response = await async_client.post(
        "/api/approvals",
        json={"request_id": str(week_off.id), "status": "ACCEPTED"},
        headers=headers_for(colleague, 2),
    )
    assert response.status_code == 403
