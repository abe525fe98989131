# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from merendels.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from merendels.models.base import utc_now
from merendels.models.enums import ApprovalStatus, AuditAction, AuditEntityType, RequestStatus, RequestType
from merendels.models.request import Approval, LeaveRequest
from merendels.schemas.approval import (
    ApprovalListResponse,
    ApprovalResponse,
    ApprovalStatisticsResponse,
    RequestApprovalSummary,
)
from merendels.services.audit import model_to_audit_dict, write_audit_log
from merendels.services.balance import deltas_for
from merendels.services.base import TransactionalService
from merendels.services.working_days import count_working_days

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from merendels.config import Settings
    from merendels.schemas.approval import CreateApprovalPayload
    from merendels.services.balance import LeaveBalanceLedger

logger = logging.getLogger(__name__)

DEFAULT_REVOKE_COMMENT = "Approval revoked"

_DECISION_ACTIONS = {
    ApprovalStatus.ACCEPTED: AuditAction.APPROVE,
    ApprovalStatus.REJECTED: AuditAction.REJECT,
    ApprovalStatus.REVOKED: AuditAction.REVOKE,
}


# ---------------------------------------------------------------------------
# Status derivation
# ---------------------------------------------------------------------------


def derive_request_status(statuses: Iterable[str]) -> RequestStatus:
    """Derive a request's status from its approvers' decisions.

    Precedence: any rejection wins; otherwise any acceptance without a
    revocation approves; otherwise any revocation revokes; no decisions at
    all leaves the request pending.
    """
    decided = {ApprovalStatus(s) for s in statuses}
    if ApprovalStatus.REJECTED in decided:
        return RequestStatus.REJECTED
    if ApprovalStatus.ACCEPTED in decided and ApprovalStatus.REVOKED not in decided:
        return RequestStatus.APPROVED
    if ApprovalStatus.REVOKED in decided:
        return RequestStatus.REVOKED
    return RequestStatus.PENDING


def parse_approval_status(value: str) -> ApprovalStatus:
    try:
        return ApprovalStatus(value.strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Invalid approval status: {value}") from exc


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_approval_response(approval: Approval) -> ApprovalResponse:
    """Map an approval model to its response schema."""
    return ApprovalResponse(
        id=approval.id,
        request_id=approval.request_id,
        approver_id=approval.approver_id,
        status=ApprovalStatus(approval.status),
        comment=approval.comment,
        decided_at=approval.decided_at,
    )


async def get_request_or_404(
    session: AsyncSession, request_id: uuid.UUID, *, for_update: bool = False
) -> LeaveRequest:
    """Fetch a leave request by ID, optionally locking it. Raises 404 if absent."""
    query = select(LeaveRequest).where(col(LeaveRequest.id) == request_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Request not found")
    return request


async def _get_approval_or_404(
    session: AsyncSession, approval_id: uuid.UUID, *, for_update: bool = False
) -> Approval:
    query = select(Approval).where(col(Approval.id) == approval_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    approval = result.scalar_one_or_none()
    if approval is None:
        raise NotFoundError("Approval not found")
    return approval


async def load_request_approvals(session: AsyncSession, request_id: uuid.UUID) -> list[Approval]:
    result = await session.execute(
        select(Approval).where(col(Approval.request_id) == request_id).order_by(col(Approval.decided_at))
    )
    return list(result.scalars().all())


async def statuses_by_request(session: AsyncSession, request_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[str]]:
    """Map each request ID to the statuses of its decisions, in one query."""
    grouped: dict[uuid.UUID, list[str]] = defaultdict(list)
    if not request_ids:
        return grouped
    result = await session.execute(
        select(col(Approval.request_id), col(Approval.status)).where(col(Approval.request_id).in_(request_ids))
    )
    for request_id, status in result.all():
        grouped[request_id].append(status)
    return grouped


def _percent(part: int, total: int) -> float:
    return round(part * 100.0 / total, 2) if total else 0.0


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ApprovalEngine(TransactionalService):
    """Per-approver decisions on leave requests.

    Transitions: no decision -> ACCEPTED or REJECTED, ACCEPTED -> REVOKED.
    A REJECTED decision may still be changed by its approver; REVOKED is
    final. Each mutation locks the request row so decisions on the same
    request are applied one at a time, and the balance is settled when the
    derived request status enters or leaves APPROVED.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        ledger: LeaveBalanceLedger,
    ) -> None:
        super().__init__(session_factory, settings)
        self._ledger = ledger

    async def _settle_balance(
        self,
        session: AsyncSession,
        request: LeaveRequest,
        before: RequestStatus,
        after: RequestStatus,
        actor_id: uuid.UUID,
    ) -> None:
        if not self._settings.deduct_balance_on_approval or before == after:
            return
        if RequestStatus.APPROVED not in (before, after):
            return

        days = count_working_days(request.start_date, request.end_date)
        request_type = RequestType(request.request_type)
        if after == RequestStatus.APPROVED:
            await self._ledger.ensure_balance(session, request.user_id, actor_id=actor_id)
            holidays_delta, permits_delta = deltas_for(request_type, -days)
            reason = f"Request {request.id} approved"
        else:
            holidays_delta, permits_delta = deltas_for(request_type, days)
            reason = f"Request {request.id} no longer approved"
        await self._ledger.apply_delta(
            session, request.user_id, holidays_delta, permits_delta, actor_id=actor_id, reason=reason
        )

    # -- mutations ----------------------------------------------------------

    async def create(self, approver_id: uuid.UUID, payload: CreateApprovalPayload) -> ApprovalResponse:
        """Record an approver's first decision on a request."""

        async def work(session: AsyncSession) -> Approval:
            request = await get_request_or_404(session, payload.request_id, for_update=True)
            status = parse_approval_status(payload.status)
            if status == ApprovalStatus.REVOKED:
                raise ValidationError("An approval cannot be created as REVOKED")
            if request.user_id == approver_id:
                raise ForbiddenError("You cannot decide on your own request")

            existing = await load_request_approvals(session, request.id)
            if any(a.approver_id == approver_id for a in existing):
                raise ConflictError("You have already decided on this request")
            before = derive_request_status(a.status for a in existing)

            approval = Approval(
                request_id=request.id,
                approver_id=approver_id,
                status=status.value,
                comment=payload.comment,
            )
            session.add(approval)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ConflictError("You have already decided on this request") from exc

            after = derive_request_status([*(a.status for a in existing), approval.status])
            await self._settle_balance(session, request, before, after, approver_id)
            await write_audit_log(
                session,
                actor_id=approver_id,
                entity_type=AuditEntityType.APPROVAL,
                entity_id=approval.id,
                action=_DECISION_ACTIONS[status],
                after_json=model_to_audit_dict(approval),
            )
            return approval

        approval = await self._transaction(work)
        logger.info("Approver %s recorded %s on request %s", approver_id, approval.status, approval.request_id)
        return build_approval_response(approval)

    async def update_status(
        self,
        approval_id: uuid.UUID,
        approver_id: uuid.UUID,
        new_status: str,
        comment: str | None = None,
    ) -> ApprovalResponse:
        """Change the status of an existing decision, following the state machine."""
        target = parse_approval_status(new_status)

        async def work(session: AsyncSession) -> Approval:
            approval = await _get_approval_or_404(session, approval_id)
            if approval.approver_id != approver_id:
                raise ForbiddenError("Only the original approver can change this decision")

            request = await get_request_or_404(session, approval.request_id, for_update=True)
            approval = await _get_approval_or_404(session, approval_id, for_update=True)
            current = ApprovalStatus(approval.status)
            if current == ApprovalStatus.REVOKED:
                raise ConflictError("A revoked approval cannot be changed")
            if current == ApprovalStatus.ACCEPTED and target != ApprovalStatus.REVOKED:
                raise ConflictError("An accepted approval can only be revoked")
            if target == ApprovalStatus.REVOKED and current != ApprovalStatus.ACCEPTED:
                raise ConflictError("Only accepted approvals can be revoked")

            existing = await load_request_approvals(session, request.id)
            before = derive_request_status(a.status for a in existing)
            after = derive_request_status(target.value if a.id == approval.id else a.status for a in existing)
            before_json = model_to_audit_dict(approval)

            approval.status = target.value
            if comment is not None:
                approval.comment = comment
            approval.decided_at = utc_now()
            session.add(approval)
            await session.flush()

            await self._settle_balance(session, request, before, after, approver_id)
            await write_audit_log(
                session,
                actor_id=approver_id,
                entity_type=AuditEntityType.APPROVAL,
                entity_id=approval.id,
                action=AuditAction.REVOKE if target == ApprovalStatus.REVOKED else AuditAction.UPDATE,
                before_json=before_json,
                after_json=model_to_audit_dict(approval),
            )
            return approval

        approval = await self._transaction(work)
        logger.info("Approval %s moved to %s by %s", approval_id, approval.status, approver_id)
        return build_approval_response(approval)

    async def revoke(
        self, approval_id: uuid.UUID, approver_id: uuid.UUID, reason: str | None = None
    ) -> ApprovalResponse:
        comment = reason.strip() if reason and reason.strip() else DEFAULT_REVOKE_COMMENT
        return await self.update_status(approval_id, approver_id, ApprovalStatus.REVOKED.value, comment)

    async def delete(self, approval_id: uuid.UUID, approver_id: uuid.UUID) -> None:
        """Withdraw a decision that has not been accepted."""

        async def work(session: AsyncSession) -> None:
            approval = await _get_approval_or_404(session, approval_id)
            if approval.approver_id != approver_id:
                raise ForbiddenError("Only the original approver can delete this decision")

            request = await get_request_or_404(session, approval.request_id, for_update=True)
            approval = await _get_approval_or_404(session, approval_id, for_update=True)
            if approval.status == ApprovalStatus.ACCEPTED.value:
                raise ConflictError("An accepted approval cannot be deleted; revoke it instead")

            existing = await load_request_approvals(session, request.id)
            before = derive_request_status(a.status for a in existing)
            after = derive_request_status(a.status for a in existing if a.id != approval.id)

            before_json = model_to_audit_dict(approval)
            await session.delete(approval)
            await session.flush()

            await self._settle_balance(session, request, before, after, approver_id)
            await write_audit_log(
                session,
                actor_id=approver_id,
                entity_type=AuditEntityType.APPROVAL,
                entity_id=approval_id,
                action=AuditAction.DELETE,
                before_json=before_json,
            )

        await self._transaction(work)
        logger.info("Approval %s deleted by %s", approval_id, approver_id)

    # -- reads --------------------------------------------------------------

    async def get(self, approval_id: uuid.UUID) -> ApprovalResponse:
        async with self._session_factory() as session:
            return build_approval_response(await _get_approval_or_404(session, approval_id))

    async def _list(self, *conditions: ColumnElement[bool], offset: int = 0, limit: int = 50) -> ApprovalListResponse:
        async with self._session_factory() as session:
            total = (
                await session.execute(select(func.count()).select_from(Approval).where(*conditions))
            ).scalar_one()
            result = await session.execute(
                select(Approval)
                .where(*conditions)
                .order_by(col(Approval.decided_at).desc())
                .offset(offset)
                .limit(limit)
            )
            items = [build_approval_response(a) for a in result.scalars().all()]
        return ApprovalListResponse(items=items, total=total)

    async def list_all(self, offset: int = 0, limit: int = 50) -> ApprovalListResponse:
        return await self._list(offset=offset, limit=limit)

    async def list_by_status(self, status: str, offset: int = 0, limit: int = 50) -> ApprovalListResponse:
        parsed = parse_approval_status(status)
        return await self._list(col(Approval.status) == parsed.value, offset=offset, limit=limit)

    async def list_by_approver(self, approver_id: uuid.UUID, offset: int = 0, limit: int = 50) -> ApprovalListResponse:
        return await self._list(col(Approval.approver_id) == approver_id, offset=offset, limit=limit)

    async def list_by_request(self, request_id: uuid.UUID) -> ApprovalListResponse:
        async with self._session_factory() as session:
            await get_request_or_404(session, request_id)
            approvals = await load_request_approvals(session, request_id)
        return ApprovalListResponse(items=[build_approval_response(a) for a in approvals], total=len(approvals))

    async def statistics(self) -> ApprovalStatisticsResponse:
        """Count decisions per status across all requests."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(col(Approval.status), func.count()).group_by(col(Approval.status))
            )
            counts = {status: count for status, count in result.all()}

        accepted = counts.get(ApprovalStatus.ACCEPTED.value, 0)
        rejected = counts.get(ApprovalStatus.REJECTED.value, 0)
        revoked = counts.get(ApprovalStatus.REVOKED.value, 0)
        total = accepted + rejected + revoked
        return ApprovalStatisticsResponse(
            total=total,
            accepted=accepted,
            rejected=rejected,
            revoked=revoked,
            acceptance_rate=_percent(accepted, total),
            rejection_rate=_percent(rejected, total),
            revocation_rate=_percent(revoked, total),
        )

    async def request_summary(self, request_id: uuid.UUID) -> RequestApprovalSummary:
        """Summarize all decisions on a request and its derived status."""
        async with self._session_factory() as session:
            await get_request_or_404(session, request_id)
            approvals = await load_request_approvals(session, request_id)

        statuses = [a.status for a in approvals]
        final_status = derive_request_status(statuses)
        return RequestApprovalSummary(
            request_id=request_id,
            total=len(approvals),
            accepted=statuses.count(ApprovalStatus.ACCEPTED.value),
            rejected=statuses.count(ApprovalStatus.REJECTED.value),
            revoked=statuses.count(ApprovalStatus.REVOKED.value),
            has_approvals=bool(approvals),
            is_approved=final_status == RequestStatus.APPROVED,
            is_rejected=final_status == RequestStatus.REJECTED,
            is_revoked=final_status == RequestStatus.REVOKED,
            final_status=final_status,
            approvals=[build_approval_response(a) for a in approvals],
        )
