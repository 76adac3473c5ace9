# huddle/models/meeting.py
import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from huddle.db.base import Base


def _new_meeting_id() -> str:
    return uuid.uuid4().hex


class Meeting(Base):
    """
    A group that coordinates availability, commits schedules and runs
    attendance checks.
    """

    __tablename__ = "meetings"

    id = Column(String(32), primary_key=True, default=_new_meeting_id)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(String(128), nullable=False, index=True)
    max_participants = Column(Integer, nullable=True)

    status = Column(
        String(16),
        nullable=False,
        default="open",
    )

    created_at = Column(DateTime, nullable=False, default=datetime.now)

    def __repr__(self) -> str:
        return f"<Meeting id={self.id} title={self.title!r} status={self.status}>"


class Participant(Base):
    """
    Membership of a single user in a meeting, with its role
    (owner / approved / pending).
    """

    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, index=True)

    meeting_id = Column(
        String(32),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(128), nullable=False)
    display_name = Column(String(200), nullable=True)

    role = Column(
        String(16),
        nullable=False,
        default="pending",
    )

    joined_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        UniqueConstraint(
            "meeting_id",
            "user_id",
            name="uq_participants_meeting_user",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Participant meeting_id={self.meeting_id} user_id={self.user_id} "
            f"role={self.role}>"
        )
