# huddle/services/schedule_committer.py
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.errors import InvalidSchedule, ScheduleAlreadyExists, ScheduleNotFound
from huddle.models.schedule import RecurringSchedule, SuggestedSchedule
from huddle.schemas.schedule import (
    CommitSuggestionRequest,
    EventSource,
    Frequency,
    Occurrence,
    RecurringScheduleIn,
)
from huddle.services.calendar_fanout import CalendarFanout, DatabaseCalendarFanout
from huddle.services.meeting_roster import get_owned_meeting, roster_ids
from huddle.services.slot_grid import SlotGrid, SlotId

logger = logging.getLogger(__name__)


def next_occurrence(day_index: int, start: time, now: datetime) -> date:
    """
    First date strictly after `now` that falls on weekday `day_index`
    (0 = Monday) with the meeting not yet started.
    """
    days_ahead = (day_index - now.weekday()) % 7
    if days_ahead == 0 and start <= now.time():
        days_ahead = 7
    return now.date() + timedelta(days=days_ahead)


def expand_occurrences(
    frequency: Frequency,
    day_of_week: int,
    start_date: date,
    end_date: date,
) -> list[date]:
    """
    Dates matching a weekly / biweekly pattern within [start_date, end_date].

    `day_of_week` counts from 0 = Sunday. Biweekly patterns step 14 days
    from the first matching date.
    """
    if not 0 <= day_of_week <= 6:
        raise InvalidSchedule(f"day_of_week must be within 0..6, got {day_of_week}.")
    if end_date < start_date:
        raise InvalidSchedule("end_date must be greater than or equal to start_date")

    if frequency is Frequency.WEEKLY:
        step = timedelta(days=7)
    elif frequency is Frequency.BIWEEKLY:
        step = timedelta(days=14)
    else:
        raise InvalidSchedule(f"Unsupported frequency: {frequency!r}")

    python_weekday = (day_of_week - 1) % 7
    current = start_date + timedelta(days=(python_weekday - start_date.weekday()) % 7)

    dates: list[date] = []
    while current <= end_date:
        dates.append(current)
        current += step
    return dates


class ScheduleCommitter:
    """
    Turns a chosen suggestion or an owner-defined recurring pattern into
    dated commitments and fans them out to every roster member.

    Retraction always runs before the owning record is deleted, and is
    idempotent per (meeting, source) tag, so a retry after a partial failure
    is safe.
    """

    def __init__(
        self,
        db: AsyncSession,
        grid: SlotGrid,
        fanout: CalendarFanout | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.db = db
        self.grid = grid
        self.fanout = fanout or DatabaseCalendarFanout(db)
        self.clock = clock

    # ------------------------------------------------------------------
    # Suggested schedule
    # ------------------------------------------------------------------
    async def get_suggested_schedule(self, meeting_id: str) -> SuggestedSchedule | None:
        result = await self.db.execute(
            select(SuggestedSchedule).where(SuggestedSchedule.meeting_id == meeting_id)
        )
        return result.scalar_one_or_none()

    async def commit_suggestion(
        self,
        meeting_id: str,
        suggestion: CommitSuggestionRequest,
        actor_id: str,
    ) -> SuggestedSchedule:
        meeting = await get_owned_meeting(self.db, meeting_id, actor_id)

        if await self.get_suggested_schedule(meeting_id) is not None:
            raise ScheduleAlreadyExists()

        first = SlotId(suggestion.day_index, suggestion.start_slot)
        start_time = self.grid.slot_start(first)
        end_time = self.grid.slot_end(first, suggestion.run_length)
        schedule_date = next_occurrence(suggestion.day_index, start_time, self.clock())

        schedule = SuggestedSchedule(
            meeting_id=meeting_id,
            schedule_date=schedule_date,
            start_time=start_time,
            end_time=end_time,
            location=suggestion.location,
            created_by=actor_id,
        )
        self.db.add(schedule)
        await self.db.flush()

        participants = await roster_ids(self.db, meeting_id)
        await self.fanout.create_personal_events(
            meeting_id=meeting_id,
            source=EventSource.SUGGESTED,
            participant_ids=participants,
            occurrences=[
                Occurrence(
                    event_date=schedule_date,
                    start_time=start_time,
                    end_time=end_time,
                    location=suggestion.location,
                )
            ],
            title=meeting.title,
        )
        await self.db.commit()
        await self.db.refresh(schedule)

        logger.info(
            "Suggested schedule committed",
            extra={
                "meeting_id": meeting_id,
                "schedule_date": schedule_date.isoformat(),
                "start_time": start_time.isoformat(),
                "end_time": end_time.isoformat(),
            },
        )
        return schedule

    async def remove_suggested_schedule(self, meeting_id: str, actor_id: str) -> int:
        """
        Retract the fanned-out events, then delete the record.

        Returns how many personal events were removed.
        """
        await get_owned_meeting(self.db, meeting_id, actor_id)

        removed = await self.fanout.remove_personal_events(meeting_id, EventSource.SUGGESTED)
        await self.db.commit()

        schedule = await self.get_suggested_schedule(meeting_id)
        if schedule is None:
            if removed == 0:
                raise ScheduleNotFound("No suggested schedule is set for this meeting.")
            return removed

        await self.db.delete(schedule)
        await self.db.commit()

        logger.info(
            "Suggested schedule removed",
            extra={"meeting_id": meeting_id, "event_count": removed},
        )
        return removed

    # ------------------------------------------------------------------
    # Recurring schedule
    # ------------------------------------------------------------------
    async def get_recurring_schedule(self, meeting_id: str) -> RecurringSchedule | None:
        result = await self.db.execute(
            select(RecurringSchedule).where(RecurringSchedule.meeting_id == meeting_id)
        )
        return result.scalar_one_or_none()

    async def set_recurring_schedule(
        self,
        meeting_id: str,
        pattern: RecurringScheduleIn,
        actor_id: str,
    ) -> RecurringSchedule:
        """
        Create or replace the recurring pattern.

        Events of the previous pattern are retracted and one event per
        occurrence is created for every roster member, in one commit.
        """
        meeting = await get_owned_meeting(self.db, meeting_id, actor_id)

        if pattern.end_time <= pattern.start_time:
            raise InvalidSchedule("end_time must be after start_time")
        dates = expand_occurrences(
            pattern.frequency, pattern.day_of_week, pattern.start_date, pattern.end_date
        )

        await self.fanout.remove_personal_events(meeting_id, EventSource.RECURRING)

        schedule = await self.get_recurring_schedule(meeting_id)
        if schedule is None:
            schedule = RecurringSchedule(meeting_id=meeting_id)
            self.db.add(schedule)

        schedule.frequency = pattern.frequency.value
        schedule.day_of_week = pattern.day_of_week
        schedule.start_time = pattern.start_time
        schedule.end_time = pattern.end_time
        schedule.start_date = pattern.start_date
        schedule.end_date = pattern.end_date
        schedule.location = pattern.location
        schedule.created_by = actor_id
        await self.db.flush()

        participants = await roster_ids(self.db, meeting_id)
        await self.fanout.create_personal_events(
            meeting_id=meeting_id,
            source=EventSource.RECURRING,
            participant_ids=participants,
            occurrences=[
                Occurrence(
                    event_date=d,
                    start_time=pattern.start_time,
                    end_time=pattern.end_time,
                    location=pattern.location,
                )
                for d in dates
            ],
            title=meeting.title,
        )
        await self.db.commit()
        await self.db.refresh(schedule)

        logger.info(
            "Recurring schedule set",
            extra={
                "meeting_id": meeting_id,
                "frequency": pattern.frequency.value,
                "occurrence_count": len(dates),
            },
        )
        return schedule

    async def remove_recurring_schedule(self, meeting_id: str, actor_id: str) -> int:
        await get_owned_meeting(self.db, meeting_id, actor_id)

        removed = await self.fanout.remove_personal_events(meeting_id, EventSource.RECURRING)
        await self.db.commit()

        schedule = await self.get_recurring_schedule(meeting_id)
        if schedule is None:
            if removed == 0:
                raise ScheduleNotFound("No recurring schedule is set for this meeting.")
            return removed

        await self.db.delete(schedule)
        await self.db.commit()

        logger.info(
            "Recurring schedule removed",
            extra={"meeting_id": meeting_id, "event_count": removed},
        )
        return removed
