# huddle/services/calendar_fanout.py
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.models.personal_event import PersonalEvent
from huddle.schemas.schedule import EventSource, Occurrence

logger = logging.getLogger(__name__)


class CalendarFanout(Protocol):
    """
    Propagates committed schedules into participants' personal calendars.

    Every created event is tagged with (meeting_id, source) so the whole set
    can be retracted later; retraction must be idempotent per tag.

    Implementations stage changes on the caller's unit of work; the caller
    decides when to commit.
    """

    async def create_personal_events(
        self,
        meeting_id: str,
        source: EventSource,
        participant_ids: Sequence[str],
        occurrences: Sequence[Occurrence],
        title: str,
    ) -> int: ...

    async def remove_personal_events(self, meeting_id: str, source: EventSource) -> int: ...


class DatabaseCalendarFanout:
    """
    Default fan-out writing rows into the local `personal_events` table.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_personal_events(
        self,
        meeting_id: str,
        source: EventSource,
        participant_ids: Sequence[str],
        occurrences: Sequence[Occurrence],
        title: str,
    ) -> int:
        events = [
            PersonalEvent(
                user_id=user_id,
                meeting_id=meeting_id,
                source=source.value,
                title=title,
                event_date=occ.event_date,
                start_time=occ.start_time,
                end_time=occ.end_time,
                location=occ.location,
            )
            for user_id in participant_ids
            for occ in occurrences
        ]
        self.db.add_all(events)
        await self.db.flush()

        logger.info(
            "Personal events created",
            extra={
                "meeting_id": meeting_id,
                "source": source.value,
                "participants": len(participant_ids),
                "event_count": len(events),
            },
        )
        return len(events)

    async def remove_personal_events(self, meeting_id: str, source: EventSource) -> int:
        result = await self.db.execute(
            delete(PersonalEvent).where(
                PersonalEvent.meeting_id == meeting_id,
                PersonalEvent.source == source.value,
            )
        )
        removed = result.rowcount or 0
        logger.info(
            "Personal events retracted",
            extra={"meeting_id": meeting_id, "source": source.value, "event_count": removed},
        )
        return removed


async def list_user_events(db: AsyncSession, user_id: str) -> list[PersonalEvent]:
    result = await db.execute(
        select(PersonalEvent)
        .where(PersonalEvent.user_id == user_id)
        .order_by(PersonalEvent.event_date.asc(), PersonalEvent.start_time.asc(), PersonalEvent.id.asc())
    )
    return list(result.scalars().all())
