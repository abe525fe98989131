# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import delete, exists, func, select
from sqlmodel import col

from merendels.exceptions import ConflictError, ForbiddenError, InsufficientBalanceError, ValidationError
from merendels.models.base import utc_now
from merendels.models.enums import ApprovalStatus, AuditAction, AuditEntityType, RequestType
from merendels.models.request import Approval, LeaveRequest
from merendels.schemas.request import LeaveRequestListResponse, LeaveRequestResponse
from merendels.services.approval import (
    derive_request_status,
    get_request_or_404,
    load_request_approvals,
    statuses_by_request,
)
from merendels.services.audit import model_to_audit_dict, write_audit_log
from merendels.services.base import TransactionalService
from merendels.services.user import get_user_or_404
from merendels.services.working_days import MAX_WORKING_DAYS, count_working_days

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from merendels.config import Settings
    from merendels.schemas.request import CreateLeaveRequestPayload, UpdateLeaveRequestPayload
    from merendels.services.balance import LeaveBalanceLedger

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_request_response(request: LeaveRequest, statuses: Iterable[str] = ()) -> LeaveRequestResponse:
    """Map a request model to its response schema with its derived status."""
    return LeaveRequestResponse(
        id=request.id,
        user_id=request.user_id,
        start_date=request.start_date,
        end_date=request.end_date,
        request_type=RequestType(request.request_type),
        notes=request.notes,
        working_days=count_working_days(request.start_date, request.end_date),
        status=derive_request_status(statuses),
        created_at=request.created_at,
    )


def parse_request_type(value: str) -> RequestType:
    try:
        return RequestType(value.strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Invalid request type: {value}") from exc


def _check_dates(start_date: date, end_date: date, today: date) -> None:
    if start_date > end_date:
        raise ValidationError("Start date must be on or before end date")
    if start_date < today:
        raise ValidationError("Start date cannot be in the past")


def _check_working_days(start_date: date, end_date: date, request_type: RequestType) -> int:
    working_days = count_working_days(start_date, end_date)
    if working_days <= 0:
        raise ValidationError("Request covers no working days")
    limit = MAX_WORKING_DAYS[request_type]
    if working_days > limit:
        raise ValidationError(f"{request_type.value} requests are limited to {limit} working days")
    return working_days


async def _check_overlap(
    session: AsyncSession,
    user_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_request_id: uuid.UUID | None = None,
) -> None:
    """Raise 409 if another request of the user shares at least one date.

    Both ranges are inclusive, so they overlap when
    existing.start <= new.end AND existing.end >= new.start.
    """
    query = select(col(LeaveRequest.id)).where(
        col(LeaveRequest.user_id) == user_id,
        col(LeaveRequest.start_date) <= end_date,
        col(LeaveRequest.end_date) >= start_date,
    )
    if exclude_request_id is not None:
        query = query.where(col(LeaveRequest.id) != exclude_request_id)

    result = await session.execute(query.limit(1))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Request overlaps with an existing request")


# ---------------------------------------------------------------------------
# Lifecycle manager
# ---------------------------------------------------------------------------


class RequestLifecycleManager(TransactionalService):
    """Submission, editing and withdrawal of leave requests.

    The owner's user row is locked for the whole create or update
    transaction, so two submissions by the same user cannot both pass the
    overlap check.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        ledger: LeaveBalanceLedger,
    ) -> None:
        super().__init__(session_factory, settings)
        self._ledger = ledger

    async def _check_balance(
        self, session: AsyncSession, user_id: uuid.UUID, request_type: RequestType, working_days: int
    ) -> None:
        balance = await self._ledger.ensure_balance(session, user_id, actor_id=user_id)
        available = (
            balance.accumulated_holidays if request_type == RequestType.HOLIDAY else balance.accumulated_permits
        )
        if available < working_days:
            raise InsufficientBalanceError(
                f"Insufficient {request_type.value.lower()} balance: "
                f"{working_days} days requested, {available:g} available"
            )

    async def create(self, user_id: uuid.UUID, payload: CreateLeaveRequestPayload) -> LeaveRequestResponse:
        """Validate and store a new request. The balance is checked, not deducted.

        Checks run in order and the first failure is reported: date order,
        not in the past, request type, working days, per-type cap, overlap,
        then balance.
        """
        _check_dates(payload.start_date, payload.end_date, utc_now().date())
        request_type = parse_request_type(payload.request_type)
        working_days = _check_working_days(payload.start_date, payload.end_date, request_type)

        async def work(session: AsyncSession) -> LeaveRequest:
            await get_user_or_404(session, user_id, for_update=True)
            await _check_overlap(session, user_id, payload.start_date, payload.end_date)
            await self._check_balance(session, user_id, request_type, working_days)

            request = LeaveRequest(
                user_id=user_id,
                start_date=payload.start_date,
                end_date=payload.end_date,
                request_type=request_type.value,
                notes=payload.notes,
            )
            session.add(request)
            await session.flush()
            await write_audit_log(
                session,
                actor_id=user_id,
                entity_type=AuditEntityType.REQUEST,
                entity_id=request.id,
                action=AuditAction.CREATE,
                after_json=model_to_audit_dict(request),
            )
            return request

        request = await self._transaction(work)
        logger.info(
            "User %s submitted %s request %s for %d working days",
            user_id,
            request.request_type,
            request.id,
            working_days,
        )
        return build_request_response(request)

    async def update(
        self,
        request_id: uuid.UUID,
        user_id: uuid.UUID,
        payload: UpdateLeaveRequestPayload,
    ) -> LeaveRequestResponse:
        """Edit a request that nobody has decided on yet.

        The date checks and the overlap check are re-run against the new
        values; the request itself is excluded from the overlap check. When
        the dates or the type change, the working-day cap and the balance are
        checked again for the resulting request.
        """
        fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        today = utc_now().date()

        async def work(session: AsyncSession) -> LeaveRequest:
            await get_user_or_404(session, user_id, for_update=True)
            request = await get_request_or_404(session, request_id, for_update=True)
            if request.user_id != user_id:
                raise ForbiddenError("You can only modify your own requests")
            if await load_request_approvals(session, request.id):
                raise ConflictError("Requests with decisions cannot be modified")

            start_date = fields.get("start_date", request.start_date)
            end_date = fields.get("end_date", request.end_date)
            _check_dates(start_date, end_date, today)
            request_type = (
                parse_request_type(fields["request_type"])
                if "request_type" in fields
                else RequestType(request.request_type)
            )
            reshaped = fields.keys() & {"start_date", "end_date", "request_type"}
            working_days = _check_working_days(start_date, end_date, request_type) if reshaped else 0
            await _check_overlap(session, user_id, start_date, end_date, exclude_request_id=request.id)
            if reshaped:
                await self._check_balance(session, user_id, request_type, working_days)

            before = model_to_audit_dict(request)
            request.start_date = start_date
            request.end_date = end_date
            request.request_type = request_type.value
            if "notes" in fields:
                request.notes = fields["notes"]
            session.add(request)
            await session.flush()
            await write_audit_log(
                session,
                actor_id=user_id,
                entity_type=AuditEntityType.REQUEST,
                entity_id=request.id,
                action=AuditAction.UPDATE,
                before_json=before,
                after_json=model_to_audit_dict(request),
            )
            return request

        request = await self._transaction(work)
        logger.info("User %s updated request %s", user_id, request_id)
        return build_request_response(request)

    async def delete(self, request_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Hard-delete a request and its decisions unless one was accepted."""

        async def work(session: AsyncSession) -> None:
            request = await get_request_or_404(session, request_id, for_update=True)
            if request.user_id != user_id:
                raise ForbiddenError("You can only delete your own requests")
            approvals = await load_request_approvals(session, request.id)
            if any(a.status == ApprovalStatus.ACCEPTED.value for a in approvals):
                raise ConflictError("Requests with an accepted approval cannot be deleted")

            before = model_to_audit_dict(request)
            await session.execute(delete(Approval).where(col(Approval.request_id) == request.id))
            await session.delete(request)
            await session.flush()
            await write_audit_log(
                session,
                actor_id=user_id,
                entity_type=AuditEntityType.REQUEST,
                entity_id=request_id,
                action=AuditAction.DELETE,
                before_json=before,
            )

        await self._transaction(work)
        logger.info("User %s deleted request %s", user_id, request_id)

    # -- reads --------------------------------------------------------------

    async def get(self, request_id: uuid.UUID) -> LeaveRequestResponse:
        async with self._session_factory() as session:
            request = await get_request_or_404(session, request_id)
            statuses = [a.status for a in await load_request_approvals(session, request_id)]
        return build_request_response(request, statuses)

    async def _list(
        self,
        *conditions: ColumnElement[bool],
        order_by: ColumnElement[object] | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> LeaveRequestListResponse:
        async with self._session_factory() as session:
            total = (
                await session.execute(select(func.count()).select_from(LeaveRequest).where(*conditions))
            ).scalar_one()
            result = await session.execute(
                select(LeaveRequest)
                .where(*conditions)
                .order_by(order_by if order_by is not None else col(LeaveRequest.created_at).desc())
                .offset(offset)
                .limit(limit)
            )
            requests = list(result.scalars().all())
            statuses = await statuses_by_request(session, [r.id for r in requests])
        items = [build_request_response(r, statuses.get(r.id, ())) for r in requests]
        return LeaveRequestListResponse(items=items, total=total)

    async def list_all(self, offset: int = 0, limit: int = 50) -> LeaveRequestListResponse:
        return await self._list(offset=offset, limit=limit)

    async def list_for_user(self, user_id: uuid.UUID, offset: int = 0, limit: int = 50) -> LeaveRequestListResponse:
        """List a user's own requests, newest first."""
        return await self._list(col(LeaveRequest.user_id) == user_id, offset=offset, limit=limit)

    async def list_pending(self, offset: int = 0, limit: int = 50) -> LeaveRequestListResponse:
        """List requests nobody has decided on yet, oldest first."""
        has_decision = exists().where(col(Approval.request_id) == col(LeaveRequest.id))
        return await self._list(
            ~has_decision,
            order_by=col(LeaveRequest.created_at).asc(),
            offset=offset,
            limit=limit,
        )

    async def list_by_date_range(
        self, start_date: date, end_date: date, offset: int = 0, limit: int = 50
    ) -> LeaveRequestListResponse:
        """List requests sharing at least one date with [start_date, end_date]."""
        if start_date > end_date:
            raise ValidationError("Start date must be on or before end date")
        return await self._list(
            col(LeaveRequest.start_date) <= end_date,
            col(LeaveRequest.end_date) >= start_date,
            order_by=col(LeaveRequest.start_date).asc(),
            offset=offset,
            limit=limit,
        )
