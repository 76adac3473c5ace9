# huddle/services/meeting_roster.py
from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.errors import (
    MeetingFull,
    MeetingNotFound,
    NotOwner,
    NotParticipant,
    OwnerRoleImmutable,
)
from huddle.models.availability import Availability
from huddle.models.meeting import Meeting, Participant
from huddle.schemas.meeting import (
    MeetingRead,
    MeetingStatus,
    ParticipantRead,
    ParticipantRole,
)

logger = logging.getLogger(__name__)


async def get_meeting(db: AsyncSession, meeting_id: str) -> Meeting:
    result = await db.execute(select(Meeting).where(Meeting.id == meeting_id))
    meeting = result.scalar_one_or_none()
    if meeting is None:
        raise MeetingNotFound(f"Meeting with id={meeting_id} not found.")
    return meeting


async def get_owned_meeting(db: AsyncSession, meeting_id: str, actor_id: str) -> Meeting:
    """
    Load a meeting and make sure `actor_id` owns it.
    """
    meeting = await get_meeting(db, meeting_id)
    if meeting.owner_id != actor_id:
        raise NotOwner()
    return meeting


async def list_participants(db: AsyncSession, meeting_id: str) -> list[Participant]:
    result = await db.execute(
        select(Participant)
        .where(Participant.meeting_id == meeting_id)
        .order_by(Participant.id.asc())
    )
    return list(result.scalars().all())


async def roster(db: AsyncSession, meeting_id: str) -> list[Participant]:
    """
    Owner + approved participants: the denominator for availability and
    attendance rates.
    """
    return [p for p in await list_participants(db, meeting_id) if ParticipantRole(p.role).on_roster]


async def roster_ids(db: AsyncSession, meeting_id: str) -> list[str]:
    return [p.user_id for p in await roster(db, meeting_id)]


async def require_roster_member(db: AsyncSession, meeting_id: str, user_id: str) -> Participant:
    for participant in await roster(db, meeting_id):
        if participant.user_id == user_id:
            return participant
    raise NotParticipant()


async def build_meeting_read(db: AsyncSession, meeting: Meeting) -> MeetingRead:
    participants = await list_participants(db, meeting.id)
    return MeetingRead(
        id=meeting.id,
        title=meeting.title,
        description=meeting.description,
        owner_id=meeting.owner_id,
        status=MeetingStatus(meeting.status),
        max_participants=meeting.max_participants,
        participant_count=sum(1 for p in participants if ParticipantRole(p.role).on_roster),
        created_at=meeting.created_at,
        participants=[ParticipantRead.model_validate(p) for p in participants],
    )


# --- capacity ----------------------------------------------------------------


async def _ensure_room_for_one_more(db: AsyncSession, meeting: Meeting) -> None:
    if meeting.max_participants is None:
        return
    if len(await roster(db, meeting.id)) >= meeting.max_participants:
        raise MeetingFull(
            f"Meeting already has {meeting.max_participants} approved participants."
        )


async def _sync_capacity_status(db: AsyncSession, meeting: Meeting) -> None:
    """
    Flip open <-> full as the roster reaches or drops below the limit.
    A closed meeting stays closed.
    """
    if meeting.max_participants is None or meeting.status == MeetingStatus.CLOSED.value:
        return

    at_capacity = len(await roster(db, meeting.id)) >= meeting.max_participants
    status = MeetingStatus.FULL if at_capacity else MeetingStatus.OPEN
    if meeting.status != status.value:
        meeting.status = status.value
        logger.info(
            "Meeting capacity status changed",
            extra={"meeting_id": meeting.id, "status": status.value},
        )


# --- commands ----------------------------------------------------------------


async def create_meeting(
    db: AsyncSession,
    title: str,
    owner_id: str,
    description: str | None = None,
    owner_display_name: str | None = None,
    max_participants: int | None = None,
) -> Meeting:
    """
    Create a meeting; the owner is registered as its first participant.

    `max_participants` caps owner + approved members. None means no limit.
    """
    meeting = Meeting(
        title=title,
        description=description,
        owner_id=owner_id,
        max_participants=max_participants,
        status=MeetingStatus.OPEN.value,
    )
    db.add(meeting)
    await db.flush()

    db.add(
        Participant(
            meeting_id=meeting.id,
            user_id=owner_id,
            display_name=owner_display_name,
            role=ParticipantRole.OWNER.value,
        )
    )
    await db.flush()
    await _sync_capacity_status(db, meeting)
    await db.commit()
    await db.refresh(meeting)

    logger.info("Meeting created", extra={"meeting_id": meeting.id, "owner_id": owner_id})
    return meeting


async def add_participant(
    db: AsyncSession,
    meeting_id: str,
    user_id: str,
    actor_id: str,
    role: ParticipantRole = ParticipantRole.PENDING,
    display_name: str | None = None,
) -> Participant:
    """
    Add a member to a meeting.

    Users may request to join themselves (pending). Adding anyone else, or
    adding directly as approved, is owner-only. The owner role is never
    granted this way. Re-adding an existing member returns the current row.
    """
    meeting = await get_meeting(db, meeting_id)

    if role is ParticipantRole.OWNER:
        raise OwnerRoleImmutable("A meeting has exactly one owner.")
    if (user_id != actor_id or role is ParticipantRole.APPROVED) and meeting.owner_id != actor_id:
        raise NotOwner()

    result = await db.execute(
        select(Participant).where(
            Participant.meeting_id == meeting_id,
            Participant.user_id == user_id,
        )
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        return existing

    if role.on_roster:
        await _ensure_room_for_one_more(db, meeting)

    participant = Participant(
        meeting_id=meeting_id,
        user_id=user_id,
        display_name=display_name,
        role=role.value,
    )
    db.add(participant)
    await db.flush()
    await _sync_capacity_status(db, meeting)
    await db.commit()
    await db.refresh(participant)

    logger.info(
        "Participant added",
        extra={"meeting_id": meeting_id, "user_id": user_id, "role": role.value},
    )
    return participant


async def set_participant_role(
    db: AsyncSession,
    meeting_id: str,
    user_id: str,
    role: ParticipantRole,
    actor_id: str,
) -> Participant:
    meeting = await get_owned_meeting(db, meeting_id, actor_id)

    if user_id == meeting.owner_id or role is ParticipantRole.OWNER:
        raise OwnerRoleImmutable("The owner's role cannot be changed.")

    result = await db.execute(
        select(Participant).where(
            Participant.meeting_id == meeting_id,
            Participant.user_id == user_id,
        )
    )
    participant = result.scalar_one_or_none()
    if participant is None:
        raise NotParticipant(f"User {user_id} is not a member of this meeting.")

    if role.on_roster and not ParticipantRole(participant.role).on_roster:
        await _ensure_room_for_one_more(db, meeting)

    participant.role = role.value
    await db.flush()
    await _sync_capacity_status(db, meeting)
    await db.commit()
    await db.refresh(participant)
    return participant


async def remove_participant(
    db: AsyncSession,
    meeting_id: str,
    user_id: str,
    actor_id: str,
) -> None:
    """
    Remove a member together with their availability. Idempotent.
    """
    meeting = await get_owned_meeting(db, meeting_id, actor_id)
    if user_id == meeting.owner_id:
        raise OwnerRoleImmutable("The owner cannot be removed from their meeting.")

    await db.execute(
        delete(Participant).where(
            Participant.meeting_id == meeting_id,
            Participant.user_id == user_id,
        )
    )
    await db.execute(
        delete(Availability).where(
            Availability.meeting_id == meeting_id,
            Availability.user_id == user_id,
        )
    )
    await _sync_capacity_status(db, meeting)
    await db.commit()


async def update_status(
    db: AsyncSession,
    meeting_id: str,
    status: MeetingStatus,
    actor_id: str,
) -> Meeting:
    meeting = await get_owned_meeting(db, meeting_id, actor_id)
    meeting.status = status.value
    await db.commit()
    await db.refresh(meeting)
    return meeting
