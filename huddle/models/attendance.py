# huddle/models/attendance.py
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)

from huddle.db.base import Base


class AttendanceSession(Base):
    """
    The current (or most recent) attendance check of a meeting.

    One row per meeting; starting a new session overwrites the previous
    closed one. Finalized outcomes live in `AttendanceRecord`.
    """

    __tablename__ = "attendance_sessions"

    id = Column(Integer, primary_key=True, index=True)

    meeting_id = Column(
        String(32),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    session_date = Column(Date, nullable=False)
    code = Column(String(32), nullable=False, default="")
    started_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False, index=True)
    ttl_seconds = Column(Integer, nullable=False)
    attendee_ids = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    def __repr__(self) -> str:
        return (
            f"<AttendanceSession meeting_id={self.meeting_id} "
            f"date={self.session_date} active={self.is_active}>"
        )


class AttendanceRecord(Base):
    """
    Immutable snapshot written when an attendance session closes.

    Exactly one per (meeting, date); never updated after insert.
    """

    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)

    meeting_id = Column(
        String(32),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    record_date = Column(Date, nullable=False, index=True)
    attendee_ids = Column(JSON, nullable=False, default=list)
    total_participants = Column(Integer, nullable=False, default=0)
    attendance_rate = Column(Integer, nullable=False, default=0)
    closed_by = Column(String(16), nullable=False, default="manual")
    finalized_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "meeting_id",
            "record_date",
            name="uq_attendance_records_meeting_date",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AttendanceRecord meeting_id={self.meeting_id} "
            f"date={self.record_date} rate={self.attendance_rate}>"
        )
