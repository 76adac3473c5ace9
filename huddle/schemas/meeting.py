# huddle/schemas/meeting.py
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ParticipantRole(str, Enum):
    """
    Role of a user within a meeting.

    Only OWNER and APPROVED members count toward availability denominators
    and attendance rosters.
    """

    OWNER = "owner"
    APPROVED = "approved"
    PENDING = "pending"

    @property
    def on_roster(self) -> bool:
        if self is ParticipantRole.OWNER:
            return True
        if self is ParticipantRole.APPROVED:
            return True
        if self is ParticipantRole.PENDING:
            return False
        raise ValueError(f"Unhandled participant role: {self!r}")


class MeetingStatus(str, Enum):
    """
    Recruitment status of a meeting.
    """

    OPEN = "open"
    CLOSED = "closed"
    FULL = "full"


class ParticipantRead(BaseModel):
    """
    Public representation of a meeting participant.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(..., description="Opaque user identifier.", examples=["u-alice"])
    display_name: str | None = Field(
        None,
        description="Human-friendly name shown in rosters.",
        examples=["Alice"],
    )
    role: ParticipantRole = Field(..., description="Role within the meeting.", examples=["approved"])
    joined_at: datetime = Field(..., description="When the user joined or requested to join.")


class MeetingCreate(BaseModel):
    """
    Payload for creating a meeting. The caller becomes its owner.
    """

    title: str = Field(..., min_length=1, max_length=200, examples=["Algorithms study group"])
    description: str | None = Field(None, examples=["Weekly problem solving session."])
    owner_display_name: str | None = Field(
        None,
        description="Display name recorded for the owner participant.",
        examples=["Alice"],
    )
    max_participants: int | None = Field(
        None,
        ge=1,
        description="Cap on owner + approved members. Omit for no limit.",
        examples=[6],
    )


class MeetingRead(BaseModel):
    """
    Meeting with its full participant list.
    """

    id: str = Field(..., examples=["5d1f0c7e9b2a4e63a0f1c2d3e4f5a6b7"])
    title: str
    description: str | None = None
    owner_id: str
    status: MeetingStatus
    max_participants: int | None = None
    participant_count: int = Field(0, description="Owner + approved members.")
    created_at: datetime
    participants: list[ParticipantRead] = Field(default_factory=list)


class MeetingStatusUpdate(BaseModel):
    status: MeetingStatus = Field(..., examples=["closed"])


class ParticipantCreate(BaseModel):
    """
    Payload for adding a participant.

    Omitting `user_id` means "the caller joins" (a pending join request);
    adding someone else or adding as approved is owner-only.
    """

    user_id: str | None = Field(None, examples=["u-bob"])
    display_name: str | None = Field(None, examples=["Bob"])
    role: ParticipantRole = Field(ParticipantRole.PENDING, examples=["pending"])


class ParticipantRoleUpdate(BaseModel):
    role: ParticipantRole = Field(..., examples=["approved"])
