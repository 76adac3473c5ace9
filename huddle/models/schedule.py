# huddle/models/schedule.py
from datetime import datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
)

from huddle.db.base import Base


class SuggestedSchedule(Base):
    """
    A concrete, dated meeting time committed from a suggestion.

    At most one per meeting (enforced by the unique meeting_id).
    """

    __tablename__ = "suggested_schedules"

    id = Column(Integer, primary_key=True, index=True)

    meeting_id = Column(
        String(32),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    schedule_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    location = Column(String(200), nullable=True)

    created_by = Column(String(128), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    def __repr__(self) -> str:
        return (
            f"<SuggestedSchedule meeting_id={self.meeting_id} "
            f"date={self.schedule_date} {self.start_time}-{self.end_time}>"
        )


class RecurringSchedule(Base):
    """
    Owner-defined weekly / biweekly pattern over a date range.

    `day_of_week` counts from 0 = Sunday.
    """

    __tablename__ = "recurring_schedules"

    id = Column(Integer, primary_key=True, index=True)

    meeting_id = Column(
        String(32),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    frequency = Column(String(16), nullable=False, default="weekly")
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    location = Column(String(200), nullable=True)

    created_by = Column(String(128), nullable=False)
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.now,
        onupdate=datetime.now,
    )

    def __repr__(self) -> str:
        return (
            f"<RecurringSchedule meeting_id={self.meeting_id} "
            f"{self.frequency} dow={self.day_of_week}>"
        )
