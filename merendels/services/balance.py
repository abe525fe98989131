# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlmodel import col

from merendels.exceptions import ConflictError, InsufficientBalanceError, ValidationError
from merendels.models.balance import LeaveBalance
from merendels.models.base import utc_now
from merendels.models.enums import AuditAction, AuditEntityType, RequestType
from merendels.schemas.balance import BalanceListResponse, BalanceResponse
from merendels.services.audit import model_to_audit_dict, write_audit_log
from merendels.services.base import TransactionalService
from merendels.services.user import get_user_or_404

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_balance_response(balance: LeaveBalance) -> BalanceResponse:
    """Map a balance model to its response schema."""
    return BalanceResponse(
        user_id=balance.user_id,
        accumulated_holidays=balance.accumulated_holidays,
        accumulated_permits=balance.accumulated_permits,
        modified_at=balance.modified_at,
        version=balance.version,
    )


def deltas_for(request_type: RequestType, days: float) -> tuple[float, float]:
    """Split a signed day count into (holidays_delta, permits_delta) by type."""
    if request_type == RequestType.HOLIDAY:
        return days, 0.0
    return 0.0, days


async def _get_balance_for_update(session: AsyncSession, user_id: uuid.UUID) -> LeaveBalance | None:
    """Fetch the balance row with a row-level lock held until commit."""
    result = await session.execute(
        select(LeaveBalance).where(col(LeaveBalance.user_id) == user_id).with_for_update()
    )
    return result.scalar_one_or_none()


def _check_floor(holidays: float, permits: float) -> None:
    if holidays < 0:
        raise InsufficientBalanceError("Insufficient holiday balance")
    if permits < 0:
        raise InsufficientBalanceError("Insufficient permit balance")


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class LeaveBalanceLedger(TransactionalService):
    """Holiday and permit counters per user, never allowed below zero.

    Every write locks the balance row first, so concurrent adjustments for
    the same user are applied one after another.
    """

    def _default_balance(self, user_id: uuid.UUID) -> LeaveBalance:
        return LeaveBalance(
            user_id=user_id,
            accumulated_holidays=self._settings.default_holiday_days,
            accumulated_permits=self._settings.default_permit_days,
        )

    async def apply_delta(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        holidays_delta: float,
        permits_delta: float,
        *,
        actor_id: uuid.UUID | None = None,
        reason: str | None = None,
    ) -> LeaveBalance:
        """Adjust both counters inside the caller's transaction.

        A missing balance row is created with the deltas as its opening
        balance. The floor applies in both paths: if either counter would
        drop below zero, InsufficientBalanceError is raised and nothing is
        written.
        """
        balance = await _get_balance_for_update(session, user_id)
        if balance is None:
            _check_floor(holidays_delta, permits_delta)
            before = None
            balance = LeaveBalance(
                user_id=user_id,
                accumulated_holidays=holidays_delta,
                accumulated_permits=permits_delta,
            )
        else:
            new_holidays = balance.accumulated_holidays + holidays_delta
            new_permits = balance.accumulated_permits + permits_delta
            _check_floor(new_holidays, new_permits)
            before = model_to_audit_dict(balance)
            balance.accumulated_holidays = new_holidays
            balance.accumulated_permits = new_permits
            balance.version += 1
            balance.modified_at = utc_now()

        session.add(balance)
        await session.flush()

        after = model_to_audit_dict(balance)
        after["reason"] = reason
        await write_audit_log(
            session,
            actor_id=actor_id,
            entity_type=AuditEntityType.BALANCE,
            entity_id=user_id,
            action=AuditAction.ADJUST,
            before_json=before,
            after_json=after,
        )
        logger.info(
            "Balance of user %s adjusted by %+.2f holidays, %+.2f permits (%s)",
            user_id,
            holidays_delta,
            permits_delta,
            reason or "no reason given",
        )
        return balance

    async def ensure_balance(
        self, session: AsyncSession, user_id: uuid.UUID, *, actor_id: uuid.UUID | None = None
    ) -> LeaveBalance:
        """Return the locked balance row, creating it with the default entitlement."""
        balance = await _get_balance_for_update(session, user_id)
        if balance is None:
            balance = self._default_balance(user_id)
            session.add(balance)
            await session.flush()
            await write_audit_log(
                session,
                actor_id=actor_id,
                entity_type=AuditEntityType.BALANCE,
                entity_id=user_id,
                action=AuditAction.CREATE,
                after_json=model_to_audit_dict(balance),
            )
            logger.info("Initialized default balance for user %s", user_id)
        return balance

    async def adjust(
        self,
        user_id: uuid.UUID,
        holidays_delta: float,
        permits_delta: float,
        *,
        actor_id: uuid.UUID | None = None,
        reason: str | None = None,
    ) -> BalanceResponse:
        """Adjust a user's counters in a transaction of its own."""

        async def work(session: AsyncSession) -> BalanceResponse:
            await get_user_or_404(session, user_id)
            balance = await self.apply_delta(
                session, user_id, holidays_delta, permits_delta, actor_id=actor_id, reason=reason
            )
            return build_balance_response(balance)

        return await self._transaction(work)

    async def deduct(
        self, user_id: uuid.UUID, request_type: RequestType, days: float, *, actor_id: uuid.UUID | None = None
    ) -> BalanceResponse:
        holidays_delta, permits_delta = deltas_for(request_type, -days)
        return await self.adjust(
            user_id, holidays_delta, permits_delta, actor_id=actor_id, reason=f"{request_type.value} deduction"
        )

    async def restore(
        self, user_id: uuid.UUID, request_type: RequestType, days: float, *, actor_id: uuid.UUID | None = None
    ) -> BalanceResponse:
        holidays_delta, permits_delta = deltas_for(request_type, days)
        return await self.adjust(
            user_id, holidays_delta, permits_delta, actor_id=actor_id, reason=f"{request_type.value} restore"
        )

    async def initialize(self, user_id: uuid.UUID, *, actor_id: uuid.UUID | None = None) -> BalanceResponse:
        """Create a balance with the default yearly entitlement.

        Raises ConflictError if the user already has one.
        """

        async def work(session: AsyncSession) -> BalanceResponse:
            await get_user_or_404(session, user_id)
            if await _get_balance_for_update(session, user_id) is not None:
                raise ConflictError("Balance already initialized")
            balance = self._default_balance(user_id)
            session.add(balance)
            await session.flush()
            await write_audit_log(
                session,
                actor_id=actor_id,
                entity_type=AuditEntityType.BALANCE,
                entity_id=user_id,
                action=AuditAction.CREATE,
                after_json=model_to_audit_dict(balance),
            )
            return build_balance_response(balance)

        response = await self._transaction(work)
        logger.info("Initialized balance for user %s", user_id)
        return response

    async def get(self, user_id: uuid.UUID) -> BalanceResponse | None:
        async with self._session_factory() as session:
            balance = await session.get(LeaveBalance, user_id)
        return build_balance_response(balance) if balance is not None else None

    async def get_or_initialize(self, user_id: uuid.UUID) -> BalanceResponse:
        """Return the user's balance, creating the default one on first read."""
        balance = await self.get(user_id)
        if balance is not None:
            return balance
        try:
            return await self.initialize(user_id, actor_id=user_id)
        except ConflictError:
            # Initialized concurrently by another request.
            existing = await self.get(user_id)
            if existing is None:
                raise
            return existing

    async def add_annual_leave(
        self,
        user_id: uuid.UUID,
        holiday_days: float,
        permit_days: float,
        *,
        actor_id: uuid.UUID | None = None,
    ) -> BalanceResponse:
        """Credit a yearly entitlement on top of the current balance."""
        if holiday_days < 0 or permit_days < 0:
            raise ValidationError("Annual leave credit cannot be negative")
        return await self.adjust(
            user_id, holiday_days, permit_days, actor_id=actor_id, reason="Annual leave credit"
        )

    async def list_low_balances(self, holiday_threshold: float, permit_threshold: float) -> BalanceListResponse:
        """List balances where either counter is below its threshold."""
        condition = or_(
            col(LeaveBalance.accumulated_holidays) < holiday_threshold,
            col(LeaveBalance.accumulated_permits) < permit_threshold,
        )
        async with self._session_factory() as session:
            total = (
                await session.execute(select(func.count()).select_from(LeaveBalance).where(condition))
            ).scalar_one()
            result = await session.execute(
                select(LeaveBalance)
                .where(condition)
                .order_by(col(LeaveBalance.accumulated_holidays), col(LeaveBalance.accumulated_permits))
            )
            items = [build_balance_response(b) for b in result.scalars().all()]
        return BalanceListResponse(items=items, total=total)
