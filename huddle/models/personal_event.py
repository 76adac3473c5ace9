# huddle/models/personal_event.py
from datetime import datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Integer,
    String,
    Time,
)

from huddle.db.base import Base


class PersonalEvent(Base):
    """
    An entry in a single user's personal calendar.

    Events fanned out from a meeting schedule carry `meeting_id` and `source`
    (suggested / recurring) so they can be retracted as a unit. Events without
    a meeting tag belong to the user alone.
    """

    __tablename__ = "personal_events"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(String(128), nullable=False, index=True)
    meeting_id = Column(String(32), nullable=True, index=True)
    source = Column(String(16), nullable=True)

    title = Column(String(200), nullable=False)
    event_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    location = Column(String(200), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.now)

    def __repr__(self) -> str:
        return (
            f"<PersonalEvent id={self.id} user_id={self.user_id} "
            f"meeting_id={self.meeting_id} date={self.event_date}>"
        )
