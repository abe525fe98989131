# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, Response, status

from merendels.api.deps import AttendanceDep, AuthDep, ManagerDep
from merendels.schemas.attendance import (
    AttendanceEventResponse,
    AttendanceListResponse,
    RecordAttendancePayload,
    WorkingStatusResponse,
)
from merendels.services.attendance import DEFAULT_PAGE_SIZE

attendance_router = APIRouter(prefix="/api/attendance", tags=["attendance"])


@attendance_router.post("", response_model=AttendanceEventResponse, status_code=status.HTTP_201_CREATED)
async def record_event(
    payload: RecordAttendancePayload,
    auth: AuthDep,
    sequencer: AttendanceDep,
) -> AttendanceEventResponse:
    """Clock in or out. The server assigns the timestamp."""
    return await sequencer.record(auth.user_id, payload)


@attendance_router.get("", response_model=AttendanceListResponse)
async def list_events(
    _auth: ManagerDep,
    sequencer: AttendanceDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=100),
) -> AttendanceListResponse:
    """List every user's events (managers only)."""
    return await sequencer.list_all(offset, limit)


@attendance_router.get("/me", response_model=AttendanceListResponse)
async def list_my_events(
    auth: AuthDep,
    sequencer: AttendanceDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=100),
) -> AttendanceListResponse:
    return await sequencer.list_for_user(auth.user_id, offset, limit)


@attendance_router.get("/me/today", response_model=AttendanceListResponse)
async def list_my_events_today(auth: AuthDep, sequencer: AttendanceDep) -> AttendanceListResponse:
    return await sequencer.list_today(auth.user_id)


@attendance_router.get("/me/date/{day}", response_model=AttendanceListResponse)
async def list_my_events_on(day: date, auth: AuthDep, sequencer: AttendanceDep) -> AttendanceListResponse:
    return await sequencer.list_for_date(auth.user_id, day)


@attendance_router.get("/me/status", response_model=WorkingStatusResponse)
async def my_working_status(auth: AuthDep, sequencer: AttendanceDep) -> WorkingStatusResponse:
    """Report whether the authenticated user is currently clocked in."""
    return await sequencer.working_status(auth.user_id)


@attendance_router.get("/me/last", response_model=AttendanceEventResponse | None)
async def my_last_event(auth: AuthDep, sequencer: AttendanceDep) -> AttendanceEventResponse | None:
    return await sequencer.last_event(auth.user_id)


@attendance_router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(event_id: uuid.UUID, auth: ManagerDep, sequencer: AttendanceDep) -> Response:
    """Remove an event as an administrative correction."""
    await sequencer.delete(event_id, auth.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
