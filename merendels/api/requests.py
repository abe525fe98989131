# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, Response, status

from merendels.api.deps import ApprovalEngineDep, AuthDep, ManagerDep, RequestManagerDep
from merendels.schemas.approval import RequestApprovalSummary
from merendels.schemas.request import (
    CreateLeaveRequestPayload,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    UpdateLeaveRequestPayload,
)

requests_router = APIRouter(prefix="/api/requests", tags=["requests"])


@requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: CreateLeaveRequestPayload,
    auth: AuthDep,
    manager: RequestManagerDep,
) -> LeaveRequestResponse:
    """Submit a new leave request for the authenticated user."""
    return await manager.create(auth.user_id, payload)


@requests_router.get("", response_model=LeaveRequestListResponse)
async def list_requests(
    _auth: ManagerDep,
    manager: RequestManagerDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List every request (managers only)."""
    return await manager.list_all(offset, limit)


@requests_router.get("/me", response_model=LeaveRequestListResponse)
async def list_my_requests(
    auth: AuthDep,
    manager: RequestManagerDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    return await manager.list_for_user(auth.user_id, offset, limit)


@requests_router.get("/pending", response_model=LeaveRequestListResponse)
async def list_pending_requests(
    _auth: ManagerDep,
    manager: RequestManagerDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List requests still waiting for a first decision (managers only)."""
    return await manager.list_pending(offset, limit)


@requests_router.get("/date-range", response_model=LeaveRequestListResponse)
async def list_requests_by_date_range(
    _auth: AuthDep,
    manager: RequestManagerDep,
    start_date: date = Query(),
    end_date: date = Query(),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List requests overlapping the given inclusive date range."""
    return await manager.list_by_date_range(start_date, end_date, offset, limit)


@requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_request(
    request_id: uuid.UUID,
    _auth: AuthDep,
    manager: RequestManagerDep,
) -> LeaveRequestResponse:
    return await manager.get(request_id)


@requests_router.get("/{request_id}/approvals", response_model=RequestApprovalSummary)
async def get_request_approvals(
    request_id: uuid.UUID,
    _auth: AuthDep,
    engine: ApprovalEngineDep,
) -> RequestApprovalSummary:
    """Return a request's decisions together with its derived status."""
    return await engine.request_summary(request_id)


@requests_router.put("/{request_id}", response_model=LeaveRequestResponse)
async def update_request(
    request_id: uuid.UUID,
    payload: UpdateLeaveRequestPayload,
    auth: AuthDep,
    manager: RequestManagerDep,
) -> LeaveRequestResponse:
    """Edit an undecided request owned by the authenticated user."""
    return await manager.update(request_id, auth.user_id, payload)


@requests_router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: uuid.UUID,
    auth: AuthDep,
    manager: RequestManagerDep,
) -> Response:
    await manager.delete(request_id, auth.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
