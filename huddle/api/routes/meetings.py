# huddle/api/routes/meetings.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.dependencies.context import get_actor_id
from huddle.db.session import get_db
from huddle.schemas.meeting import (
    MeetingCreate,
    MeetingRead,
    MeetingStatusUpdate,
    ParticipantCreate,
    ParticipantRead,
    ParticipantRoleUpdate,
)
from huddle.services import meeting_roster

router = APIRouter(prefix="/meetings", tags=["Meetings"])


@router.post(
    "",
    response_model=MeetingRead,
    status_code=HTTPStatus.CREATED,
    summary="Create a meeting",
    description=(
        "Create a new meeting. The calling user (`X-User-Id`) becomes its owner "
        "and first participant."
    ),
)
async def create_meeting(
    payload: MeetingCreate,
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> MeetingRead:
    meeting = await meeting_roster.create_meeting(
        db,
        title=payload.title,
        owner_id=actor_id,
        description=payload.description,
        owner_display_name=payload.owner_display_name,
        max_participants=payload.max_participants,
    )
    return await meeting_roster.build_meeting_read(db, meeting)


@router.get(
    "/{meeting_id}",
    response_model=MeetingRead,
    summary="Get meeting details",
    responses={404: {"description": "No meeting exists with the given ID."}},
)
async def get_meeting(
    meeting_id: str = Path(..., description="Meeting identifier."),
    db: AsyncSession = Depends(get_db),
) -> MeetingRead:
    meeting = await meeting_roster.get_meeting(db, meeting_id)
    return await meeting_roster.build_meeting_read(db, meeting)


@router.patch(
    "/{meeting_id}/status",
    response_model=MeetingRead,
    summary="Change recruitment status (owner only)",
)
async def update_meeting_status(
    payload: MeetingStatusUpdate,
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> MeetingRead:
    meeting = await meeting_roster.update_status(db, meeting_id, payload.status, actor_id)
    return await meeting_roster.build_meeting_read(db, meeting)


@router.post(
    "/{meeting_id}/participants",
    response_model=ParticipantRead,
    status_code=HTTPStatus.CREATED,
    summary="Join a meeting or add a participant",
    description=(
        "Without `user_id` the caller requests to join (pending). Adding another "
        "user, or adding anyone directly as `approved`, is reserved for the owner."
    ),
)
async def add_participant(
    payload: ParticipantCreate,
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> ParticipantRead:
    participant = await meeting_roster.add_participant(
        db,
        meeting_id=meeting_id,
        user_id=payload.user_id or actor_id,
        actor_id=actor_id,
        role=payload.role,
        display_name=payload.display_name,
    )
    return ParticipantRead.model_validate(participant)


@router.patch(
    "/{meeting_id}/participants/{user_id}",
    response_model=ParticipantRead,
    summary="Approve or demote a participant (owner only)",
)
async def update_participant_role(
    payload: ParticipantRoleUpdate,
    meeting_id: str = Path(..., description="Meeting identifier."),
    user_id: str = Path(..., description="Participant user id."),
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> ParticipantRead:
    participant = await meeting_roster.set_participant_role(
        db, meeting_id, user_id, payload.role, actor_id
    )
    return ParticipantRead.model_validate(participant)


@router.delete(
    "/{meeting_id}/participants/{user_id}",
    status_code=HTTPStatus.NO_CONTENT,
    summary="Remove a participant (owner only)",
)
async def remove_participant(
    meeting_id: str = Path(..., description="Meeting identifier."),
    user_id: str = Path(..., description="Participant user id."),
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> None:
    await meeting_roster.remove_participant(db, meeting_id, user_id, actor_id)
