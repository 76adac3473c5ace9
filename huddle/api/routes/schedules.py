# huddle/api/routes/schedules.py
from collections.abc import Callable
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.dependencies.context import get_actor_id, get_clock, get_grid
from huddle.core.errors import ScheduleNotFound
from huddle.db.session import get_db
from huddle.models.schedule import RecurringSchedule
from huddle.schemas.schedule import (
    CommitSuggestionRequest,
    EventSource,
    Frequency,
    PersonalEventRead,
    RecurringScheduleIn,
    RecurringScheduleRead,
    RetractionResult,
    SuggestedScheduleRead,
)
from huddle.services.calendar_fanout import list_user_events
from huddle.services.schedule_committer import ScheduleCommitter, expand_occurrences
from huddle.services.slot_grid import SlotGrid

router = APIRouter(tags=["Schedules"])


def _committer(
    db: AsyncSession = Depends(get_db),
    grid: SlotGrid = Depends(get_grid),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ScheduleCommitter:
    return ScheduleCommitter(db, grid, clock=clock)


def _recurring_read(schedule: RecurringSchedule) -> RecurringScheduleRead:
    frequency = Frequency(schedule.frequency)
    return RecurringScheduleRead(
        meeting_id=schedule.meeting_id,
        frequency=frequency,
        day_of_week=schedule.day_of_week,
        start_time=schedule.start_time,
        end_time=schedule.end_time,
        start_date=schedule.start_date,
        end_date=schedule.end_date,
        location=schedule.location,
        created_by=schedule.created_by,
        occurrences=expand_occurrences(
            frequency, schedule.day_of_week, schedule.start_date, schedule.end_date
        ),
    )


@router.get(
    "/meetings/{meeting_id}/suggested-schedule",
    response_model=SuggestedScheduleRead,
    summary="Get the committed suggested schedule",
    responses={404: {"description": "No suggested schedule is committed."}},
)
async def get_suggested_schedule(
    meeting_id: str = Path(..., description="Meeting identifier."),
    committer: ScheduleCommitter = Depends(_committer),
) -> SuggestedScheduleRead:
    schedule = await committer.get_suggested_schedule(meeting_id)
    if schedule is None:
        raise ScheduleNotFound("No suggested schedule is set for this meeting.")
    return SuggestedScheduleRead.model_validate(schedule)


@router.post(
    "/meetings/{meeting_id}/suggested-schedule",
    response_model=SuggestedScheduleRead,
    status_code=HTTPStatus.CREATED,
    summary="Commit a suggestion (owner only)",
    description=(
        "Turn the chosen suggestion into a dated schedule on the next occurrence "
        "of its weekday and add it to every approved participant's personal "
        "calendar. Fails with `schedule_already_exists` if one is committed."
    ),
)
async def commit_suggestion(
    payload: CommitSuggestionRequest,
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    committer: ScheduleCommitter = Depends(_committer),
) -> SuggestedScheduleRead:
    schedule = await committer.commit_suggestion(meeting_id, payload, actor_id)
    return SuggestedScheduleRead.model_validate(schedule)


@router.delete(
    "/meetings/{meeting_id}/suggested-schedule",
    response_model=RetractionResult,
    summary="Remove the suggested schedule (owner only)",
    description=(
        "Retracts the personal events created for this schedule, then deletes it. "
        "Safe to retry."
    ),
)
async def remove_suggested_schedule(
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    committer: ScheduleCommitter = Depends(_committer),
) -> RetractionResult:
    removed = await committer.remove_suggested_schedule(meeting_id, actor_id)
    return RetractionResult(meeting_id=meeting_id, source=EventSource.SUGGESTED, events_removed=removed)


@router.get(
    "/meetings/{meeting_id}/recurring-schedule",
    response_model=RecurringScheduleRead,
    summary="Get the recurring schedule",
    responses={404: {"description": "No recurring schedule is set."}},
)
async def get_recurring_schedule(
    meeting_id: str = Path(..., description="Meeting identifier."),
    committer: ScheduleCommitter = Depends(_committer),
) -> RecurringScheduleRead:
    schedule = await committer.get_recurring_schedule(meeting_id)
    if schedule is None:
        raise ScheduleNotFound("No recurring schedule is set for this meeting.")
    return _recurring_read(schedule)


@router.put(
    "/meetings/{meeting_id}/recurring-schedule",
    response_model=RecurringScheduleRead,
    summary="Set or replace the recurring schedule (owner only)",
    description=(
        "Stores the pattern and creates one personal event per occurrence in the "
        "date range for every approved participant. Events from a previous "
        "pattern are retracted first. `day_of_week` counts from 0 = Sunday."
    ),
)
async def set_recurring_schedule(
    payload: RecurringScheduleIn,
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    committer: ScheduleCommitter = Depends(_committer),
) -> RecurringScheduleRead:
    schedule = await committer.set_recurring_schedule(meeting_id, payload, actor_id)
    return _recurring_read(schedule)


@router.delete(
    "/meetings/{meeting_id}/recurring-schedule",
    response_model=RetractionResult,
    summary="Remove the recurring schedule (owner only)",
)
async def remove_recurring_schedule(
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    committer: ScheduleCommitter = Depends(_committer),
) -> RetractionResult:
    removed = await committer.remove_recurring_schedule(meeting_id, actor_id)
    return RetractionResult(meeting_id=meeting_id, source=EventSource.RECURRING, events_removed=removed)


@router.get(
    "/users/{user_id}/events",
    response_model=list[PersonalEventRead],
    summary="List a user's personal calendar events",
)
async def list_personal_events(
    user_id: str = Path(..., description="User whose calendar to list."),
    db: AsyncSession = Depends(get_db),
) -> list[PersonalEventRead]:
    events = await list_user_events(db, user_id)
    return [PersonalEventRead.model_validate(e) for e in events]
