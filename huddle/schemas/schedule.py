# huddle/schemas/schedule.py
from datetime import date, datetime, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Frequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"


class EventSource(str, Enum):
    """
    Which committed schedule a fanned-out personal event came from.
    """

    SUGGESTED = "suggested"
    RECURRING = "recurring"


class CommitSuggestionRequest(BaseModel):
    """
    Identifies the suggestion the owner picked.

    Only the grid position matters; counts are recomputed server-side.
    """

    day_index: int = Field(..., ge=0, le=4, examples=[0])
    start_slot: int = Field(..., ge=0, examples=[10])
    run_length: int = Field(1, ge=1, examples=[2])
    location: str | None = Field(None, max_length=200, examples=["Library room 3"])


class SuggestedScheduleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    meeting_id: str
    schedule_date: date = Field(..., examples=["2026-10-19"])
    start_time: time = Field(..., examples=["14:00:00"])
    end_time: time = Field(..., examples=["15:00:00"])
    location: str | None = None
    created_by: str
    created_at: datetime


class RecurringScheduleIn(BaseModel):
    """
    Owner-defined recurring pattern.

    `day_of_week` counts from 0 = Sunday to 6 = Saturday.
    """

    frequency: Frequency = Field(Frequency.WEEKLY, examples=["weekly"])
    day_of_week: int = Field(..., ge=0, le=6, examples=[1])
    start_time: time = Field(..., examples=["14:00"])
    end_time: time = Field(..., examples=["16:00"])
    start_date: date = Field(..., examples=["2026-11-02"])
    end_date: date = Field(..., examples=["2026-12-21"])
    location: str | None = Field(None, max_length=200)

    @model_validator(mode="after")
    def _check_ranges(self) -> "RecurringScheduleIn":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        return self


class RecurringScheduleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    meeting_id: str
    frequency: Frequency
    day_of_week: int
    start_time: time
    end_time: time
    start_date: date
    end_date: date
    location: str | None = None
    created_by: str
    occurrences: list[date] = Field(default_factory=list)


class Occurrence(BaseModel):
    """
    One concrete dated time slot to place into personal calendars.
    """

    event_date: date
    start_time: time
    end_time: time
    location: str | None = None


class PersonalEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    meeting_id: str | None = None
    source: EventSource | None = None
    title: str
    event_date: date
    start_time: time
    end_time: time
    location: str | None = None


class RetractionResult(BaseModel):
    meeting_id: str
    source: EventSource
    events_removed: int
