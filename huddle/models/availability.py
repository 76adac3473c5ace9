# huddle/models/availability.py
from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)

from huddle.db.base import Base


class Availability(Base):
    """
    The full set of slots one participant marked as available for a meeting.

    `slot_keys` holds canonical slot keys (e.g. "0-9-30") and is always
    replaced wholesale on save.
    """

    __tablename__ = "availability"

    id = Column(Integer, primary_key=True, index=True)

    meeting_id = Column(
        String(32),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(128), nullable=False)

    slot_keys = Column(JSON, nullable=False, default=list)

    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.now,
        onupdate=datetime.now,
    )

    __table_args__ = (
        UniqueConstraint(
            "meeting_id",
            "user_id",
            name="uq_availability_meeting_user",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Availability meeting_id={self.meeting_id} user_id={self.user_id} "
            f"slots={len(self.slot_keys or [])}>"
        )
