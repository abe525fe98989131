# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, Response, status

from merendels.api.deps import ApprovalEngineDep, AuthDep, ManagerDep
from merendels.schemas.approval import (
    ApprovalListResponse,
    ApprovalResponse,
    ApprovalStatisticsResponse,
    CreateApprovalPayload,
    RevokeApprovalPayload,
    UpdateApprovalStatusPayload,
)

approvals_router = APIRouter(prefix="/api/approvals", tags=["approvals"])


@approvals_router.post("", response_model=ApprovalResponse, status_code=status.HTTP_201_CREATED)
async def create_approval(
    payload: CreateApprovalPayload,
    auth: ManagerDep,
    engine: ApprovalEngineDep,
) -> ApprovalResponse:
    """Accept or reject a leave request (managers only)."""
    return await engine.create(auth.user_id, payload)


@approvals_router.get("", response_model=ApprovalListResponse)
async def list_approvals(
    _auth: ManagerDep,
    engine: ApprovalEngineDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> ApprovalListResponse:
    return await engine.list_all(offset, limit)


@approvals_router.get("/me", response_model=ApprovalListResponse)
async def list_my_approvals(
    auth: AuthDep,
    engine: ApprovalEngineDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> ApprovalListResponse:
    """List the decisions made by the authenticated user."""
    return await engine.list_by_approver(auth.user_id, offset, limit)


@approvals_router.get("/statistics", response_model=ApprovalStatisticsResponse)
async def approval_statistics(_auth: ManagerDep, engine: ApprovalEngineDep) -> ApprovalStatisticsResponse:
    return await engine.statistics()


@approvals_router.get("/status/{approval_status}", response_model=ApprovalListResponse)
async def list_approvals_by_status(
    approval_status: str,
    _auth: ManagerDep,
    engine: ApprovalEngineDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> ApprovalListResponse:
    return await engine.list_by_status(approval_status, offset, limit)


@approvals_router.get("/request/{request_id}", response_model=ApprovalListResponse)
async def list_approvals_for_request(
    request_id: uuid.UUID,
    _auth: AuthDep,
    engine: ApprovalEngineDep,
) -> ApprovalListResponse:
    return await engine.list_by_request(request_id)


@approvals_router.get("/{approval_id}", response_model=ApprovalResponse)
async def get_approval(
    approval_id: uuid.UUID,
    _auth: AuthDep,
    engine: ApprovalEngineDep,
) -> ApprovalResponse:
    return await engine.get(approval_id)


@approvals_router.put("/{approval_id}/status", response_model=ApprovalResponse)
async def update_approval_status(
    approval_id: uuid.UUID,
    payload: UpdateApprovalStatusPayload,
    auth: ManagerDep,
    engine: ApprovalEngineDep,
) -> ApprovalResponse:
    """Change a decision; only its original approver may do so."""
    return await engine.update_status(approval_id, auth.user_id, payload.status, payload.comment)


@approvals_router.post("/{approval_id}/revoke", response_model=ApprovalResponse)
async def revoke_approval(
    approval_id: uuid.UUID,
    auth: ManagerDep,
    engine: ApprovalEngineDep,
    payload: RevokeApprovalPayload | None = None,
) -> ApprovalResponse:
    """Revoke an accepted decision."""
    return await engine.revoke(approval_id, auth.user_id, payload.reason if payload else None)


@approvals_router.delete("/{approval_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_approval(
    approval_id: uuid.UUID,
    auth: ManagerDep,
    engine: ApprovalEngineDep,
) -> Response:
    await engine.delete(approval_id, auth.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
