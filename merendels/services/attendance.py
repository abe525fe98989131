# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from merendels.exceptions import ConflictError, NotFoundError, ValidationError
from merendels.models.attendance import AttendanceEvent
from merendels.models.base import utc_now
from merendels.models.enums import AttendanceAction, AttendanceLocation, AuditAction, AuditEntityType
from merendels.schemas.attendance import AttendanceEventResponse, AttendanceListResponse, WorkingStatusResponse
from merendels.services.audit import model_to_audit_dict, write_audit_log
from merendels.services.base import TransactionalService
from merendels.services.user import get_user_or_404

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

    from merendels.schemas.attendance import RecordAttendancePayload

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


def build_event_response(event: AttendanceEvent) -> AttendanceEventResponse:
    return AttendanceEventResponse(
        id=event.id,
        user_id=event.user_id,
        occurred_at=event.occurred_at,
        action=AttendanceAction(event.action),
        location=AttendanceLocation(event.location),
        geolocation=event.geolocation,
    )


def _parse_action(value: str) -> AttendanceAction:
    try:
        return AttendanceAction(value.strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Invalid attendance action: {value}") from exc


def _parse_location(value: str) -> AttendanceLocation:
    try:
        return AttendanceLocation(value.strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Invalid attendance location: {value}") from exc


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


async def _last_event(session: AsyncSession, user_id: uuid.UUID) -> AttendanceEvent | None:
    result = await session.execute(
        select(AttendanceEvent)
        .where(col(AttendanceEvent.user_id) == user_id)
        .order_by(col(AttendanceEvent.occurred_at).desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


class AttendanceSequencer(TransactionalService):
    """Records clock events, enforcing strict ENTER/EXIT alternation per user."""

    async def record(self, user_id: uuid.UUID, payload: RecordAttendancePayload) -> AttendanceEventResponse:
        """Append a clock event stamped with the server clock.

        The user's first event must be ENTER and an action may never repeat
        the previous one. The user row is locked so concurrent clock events
        for the same user are checked one after another.
        """
        action = _parse_action(payload.action)
        location = _parse_location(payload.location)

        async def work(session: AsyncSession) -> AttendanceEvent:
            await get_user_or_404(session, user_id, for_update=True)
            last = await _last_event(session, user_id)
            if last is None and action != AttendanceAction.ENTER:
                raise ConflictError("The first attendance event must be an ENTER")
            if last is not None and last.action == action.value:
                raise ConflictError(f"Cannot record {action.value} twice in a row")

            event = AttendanceEvent(
                user_id=user_id,
                occurred_at=utc_now(),
                action=action.value,
                location=location.value,
                geolocation=payload.geolocation,
            )
            session.add(event)
            await session.flush()
            await write_audit_log(
                session,
                actor_id=user_id,
                entity_type=AuditEntityType.ATTENDANCE,
                entity_id=event.id,
                action=AuditAction.CREATE,
                after_json=model_to_audit_dict(event),
            )
            return event

        event = await self._transaction(work)
        logger.info("User %s clocked %s (%s)", user_id, event.action, event.location)
        return build_event_response(event)

    async def delete(self, event_id: uuid.UUID, actor_id: uuid.UUID) -> None:
        """Remove an event as an administrative correction."""

        async def work(session: AsyncSession) -> None:
            event = await session.get(AttendanceEvent, event_id)
            if event is None:
                raise NotFoundError("Attendance event not found")
            before = model_to_audit_dict(event)
            await session.delete(event)
            await write_audit_log(
                session,
                actor_id=actor_id,
                entity_type=AuditEntityType.ATTENDANCE,
                entity_id=event_id,
                action=AuditAction.DELETE,
                before_json=before,
            )

        await self._transaction(work)
        logger.info("Attendance event %s deleted by %s", event_id, actor_id)

    # -- reads --------------------------------------------------------------

    async def _list(
        self, *conditions: ColumnElement[bool], offset: int = 0, limit: int = DEFAULT_PAGE_SIZE
    ) -> AttendanceListResponse:
        async with self._session_factory() as session:
            total = (
                await session.execute(select(func.count()).select_from(AttendanceEvent).where(*conditions))
            ).scalar_one()
            result = await session.execute(
                select(AttendanceEvent)
                .where(*conditions)
                .order_by(col(AttendanceEvent.occurred_at).desc())
                .offset(offset)
                .limit(limit)
            )
            items = [build_event_response(e) for e in result.scalars().all()]
        return AttendanceListResponse(items=items, total=total)

    async def list_all(self, offset: int = 0, limit: int = DEFAULT_PAGE_SIZE) -> AttendanceListResponse:
        return await self._list(offset=offset, limit=limit)

    async def list_for_user(
        self, user_id: uuid.UUID, offset: int = 0, limit: int = DEFAULT_PAGE_SIZE
    ) -> AttendanceListResponse:
        return await self._list(col(AttendanceEvent.user_id) == user_id, offset=offset, limit=limit)

    async def list_for_date(self, user_id: uuid.UUID, day: date) -> AttendanceListResponse:
        """All of a user's events on a given (UTC) calendar day."""
        start, end = _day_bounds(day)
        async with self._session_factory() as session:
            result = await session.execute(
                select(AttendanceEvent)
                .where(
                    col(AttendanceEvent.user_id) == user_id,
                    col(AttendanceEvent.occurred_at) >= start,
                    col(AttendanceEvent.occurred_at) < end,
                )
                .order_by(col(AttendanceEvent.occurred_at))
            )
            items = [build_event_response(e) for e in result.scalars().all()]
        return AttendanceListResponse(items=items, total=len(items))

    async def list_today(self, user_id: uuid.UUID) -> AttendanceListResponse:
        return await self.list_for_date(user_id, utc_now().date())

    async def last_event(self, user_id: uuid.UUID) -> AttendanceEventResponse | None:
        async with self._session_factory() as session:
            event = await _last_event(session, user_id)
        return build_event_response(event) if event is not None else None

    async def working_status(self, user_id: uuid.UUID) -> WorkingStatusResponse:
        last = await self.last_event(user_id)
        return WorkingStatusResponse(
            user_id=user_id,
            is_working=last is not None and last.action == AttendanceAction.ENTER,
            last_event=last,
        )
