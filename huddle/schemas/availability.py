# huddle/schemas/availability.py
from datetime import time

from pydantic import BaseModel, Field


class AvailabilityUpdate(BaseModel):
    """
    A participant's complete slot selection. Replaces any previous selection.
    """

    slots: list[str] = Field(
        default_factory=list,
        description="Canonical slot keys in '{day}-{hour}-{minute}' form.",
        examples=[["0-14-0", "0-14-30", "2-19-0"]],
    )


class AvailabilityRead(BaseModel):
    meeting_id: str
    user_id: str
    slots: list[str] = Field(default_factory=list)


class Suggestion(BaseModel):
    """
    Ranked candidate meeting time derived from current availability.

    Never stored; recomputed on every read.
    """

    day_index: int = Field(..., ge=0, le=4, description="0 = Monday ... 4 = Friday.", examples=[0])
    day_label: str = Field(..., examples=["Mon"])
    start_slot: int = Field(..., ge=0, description="Index of the first slot in the day.", examples=[10])
    run_length: int = Field(..., ge=1, description="Number of contiguous slots covered.", examples=[4])
    start_time: time = Field(..., examples=["14:00:00"])
    end_time: time = Field(..., examples=["16:00:00"])
    duration_minutes: int = Field(..., examples=[120])
    available_count: int = Field(..., examples=[3])
    total_participants: int = Field(..., examples=[4])
    availability_rate_percent: int = Field(..., examples=[75])
    is_consecutive: bool = Field(..., examples=[True])
    slot_key: str = Field(..., description="Canonical key of the first slot.", examples=["0-14-0"])


class SuggestionList(BaseModel):
    """
    Suggestions for a meeting.

    When a suggested schedule is already committed, `suggestions` is empty and
    `has_suggested_schedule` is true.
    """

    meeting_id: str
    total_participants: int
    has_suggested_schedule: bool
    suggestions: list[Suggestion] = Field(default_factory=list)


class SlotCount(BaseModel):
    slot_key: str = Field(..., examples=["0-9-0"])
    day_index: int
    slot_index: int
    start_time: time
    available_count: int
    heat: str = Field(..., description="none/low/fair/medium/good/high/all", examples=["high"])


class ParticipantAvailabilitySummary(BaseModel):
    user_id: str
    role: str
    slot_count: int
    availability_rate_percent: int


class AvailabilityGrid(BaseModel):
    """
    Aggregated grid read model for the coordination view.
    """

    meeting_id: str
    day_labels: list[str]
    slot_times: list[time]
    total_participants: int
    coordination_rate_percent: int = Field(
        ...,
        description="Share of roster members that saved at least one slot.",
        examples=[75],
    )
    cells: list[SlotCount] = Field(default_factory=list)
    participants: list[ParticipantAvailabilitySummary] = Field(default_factory=list)
