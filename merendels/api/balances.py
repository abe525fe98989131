# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from merendels.api.deps import AuthDep, LedgerDep, ManagerDep
from merendels.exceptions import NotFoundError
from merendels.schemas.balance import (
    AnnualLeavePayload,
    BalanceAdjustmentPayload,
    BalanceListResponse,
    BalanceResponse,
)

balances_router = APIRouter(prefix="/api/balances", tags=["balances"])


@balances_router.get("/me", response_model=BalanceResponse)
async def get_my_balance(auth: AuthDep, ledger: LedgerDep) -> BalanceResponse:
    """Return the caller's balance, initializing the default entitlement on first read."""
    return await ledger.get_or_initialize(auth.user_id)


@balances_router.get("/low", response_model=BalanceListResponse)
async def list_low_balances(
    _auth: ManagerDep,
    ledger: LedgerDep,
    holiday_threshold: float = Query(default=5.0, ge=0),
    permit_threshold: float = Query(default=1.0, ge=0),
) -> BalanceListResponse:
    """List users whose holiday or permit counter is below the threshold."""
    return await ledger.list_low_balances(holiday_threshold, permit_threshold)


@balances_router.get("/{user_id}", response_model=BalanceResponse)
async def get_user_balance(user_id: uuid.UUID, _auth: ManagerDep, ledger: LedgerDep) -> BalanceResponse:
    balance = await ledger.get(user_id)
    if balance is None:
        raise NotFoundError("Balance not found")
    return balance


@balances_router.post("/{user_id}/adjustments", response_model=BalanceResponse)
async def adjust_balance(
    user_id: uuid.UUID,
    payload: BalanceAdjustmentPayload,
    auth: ManagerDep,
    ledger: LedgerDep,
) -> BalanceResponse:
    """Apply a signed adjustment; fails if a counter would drop below zero."""
    return await ledger.adjust(
        user_id,
        payload.holidays_delta,
        payload.permits_delta,
        actor_id=auth.user_id,
        reason=payload.reason,
    )


@balances_router.post("/{user_id}/annual-leave", response_model=BalanceResponse)
async def add_annual_leave(
    user_id: uuid.UUID,
    payload: AnnualLeavePayload,
    auth: ManagerDep,
    ledger: LedgerDep,
) -> BalanceResponse:
    """Credit a yearly entitlement on top of the current balance."""
    return await ledger.add_annual_leave(user_id, payload.holiday_days, payload.permit_days, actor_id=auth.user_id)
