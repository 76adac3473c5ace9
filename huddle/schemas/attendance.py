# huddle/schemas/attendance.py
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CloseReason(str, Enum):
    MANUAL = "manual"
    EXPIRY = "expiry"


class AttendanceStartRequest(BaseModel):
    session_date: date | None = Field(
        None,
        description="Calendar date of the check. Defaults to today (server-local).",
        examples=["2026-10-19"],
    )


class AttendanceStartResponse(BaseModel):
    meeting_id: str
    session_date: date
    code: str = Field(..., examples=["7KQ2XD"])
    ends_at: datetime
    ttl_seconds: int = Field(..., examples=[180])


class AttendanceSubmitRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32, examples=["7KQ2XD"])


class AttendanceStatus(BaseModel):
    """
    Live view of a meeting's attendance check, suitable for polling.

    The code is only included for the owner.
    """

    meeting_id: str
    is_active: bool
    session_date: date | None = None
    code: str | None = None
    ends_at: datetime | None = None
    remaining_seconds: int = 0
    attendees: list[str] = Field(default_factory=list)
    total_participants: int = 0
    attendance_rate_percent: int = 0
    completed_today: bool = Field(
        False,
        description="True when a finalized record already exists for today.",
    )


class HistoryRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    record_date: date = Field(..., examples=["2026-10-19"])
    attendee_ids: list[str]
    total_participants: int
    attendance_rate: int = Field(..., description="Percent, rounded half up.", examples=[67])
    closed_by: CloseReason
    finalized_at: datetime


class AttendanceStatistics(BaseModel):
    meeting_id: str
    total_sessions: int = 0
    average_rate_percent: int = 0
    best_rate_percent: int = 0
    total_attendances: int = 0


class UserAttendanceEntry(BaseModel):
    record_date: date
    attended: bool


class UserAttendance(BaseModel):
    meeting_id: str
    user_id: str
    rate_percent: int
    attended_count: int
    total_sessions: int
    history: list[UserAttendanceEntry] = Field(default_factory=list)


class MemberAttendanceRate(BaseModel):
    user_id: str
    display_name: str | None = None
    attendance_count: int
    total_sessions: int
    rate_percent: int


class SweepSummary(BaseModel):
    """
    Summary payload returned by the /internal/sweep-attendance endpoint.
    """

    swept_at: datetime
    sessions_finalized: int
    meeting_ids: list[str] = Field(default_factory=list)
    failed_meeting_ids: list[str] = Field(
        default_factory=list,
        description="Meetings whose expired session could not be finalized this round.",
    )
