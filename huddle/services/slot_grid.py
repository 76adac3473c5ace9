# huddle/services/slot_grid.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from functools import lru_cache

from huddle.core.config import get_settings
from huddle.core.errors import InvalidSlot

DAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri")
DAYS_PER_WEEK = len(DAY_LABELS)


@dataclass(frozen=True, order=True)
class SlotId:
    """
    Position in the coordination grid, ordered by (day_index, slot_index).
    """

    day_index: int
    slot_index: int


class SlotGrid:
    """
    The discrete slot space: 5 weekdays x N fixed-size slots covering
    [day_start, day_end).

    Slot keys use the "{day}-{hour}-{minute}" form, e.g. "0-9-30" for Monday
    09:30, and are the identity used everywhere availability is stored.
    """

    def __init__(self, day_start: time, day_end: time, slot_minutes: int) -> None:
        if slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        start_min = day_start.hour * 60 + day_start.minute
        end_min = day_end.hour * 60 + day_end.minute
        if end_min <= start_min:
            raise ValueError("day_end must be after day_start")

        self.day_start = day_start
        self.day_end = day_end
        self.slot_minutes = slot_minutes
        self.slots_per_day = (end_min - start_min) // slot_minutes

        self._times: tuple[time, ...] = tuple(
            _add_minutes(day_start, i * slot_minutes) for i in range(self.slots_per_day)
        )
        self._index_by_time = {(t.hour, t.minute): i for i, t in enumerate(self._times)}

    @property
    def total_slots(self) -> int:
        return DAYS_PER_WEEK * self.slots_per_day

    @property
    def slot_times(self) -> tuple[time, ...]:
        return self._times

    def slots_for_day(self, day: int) -> list[SlotId]:
        self._check_day(day)
        return [SlotId(day, i) for i in range(self.slots_per_day)]

    def all_slots(self) -> list[SlotId]:
        return [slot for day in range(DAYS_PER_WEEK) for slot in self.slots_for_day(day)]

    def contains(self, slot: SlotId) -> bool:
        return 0 <= slot.day_index < DAYS_PER_WEEK and 0 <= slot.slot_index < self.slots_per_day

    def slot_key(self, day: int, slot_index: int) -> str:
        slot = SlotId(day, slot_index)
        if not self.contains(slot):
            raise InvalidSlot(f"Slot ({day}, {slot_index}) lies outside the grid.")
        t = self._times[slot_index]
        return f"{day}-{t.hour}-{t.minute}"

    def key_of(self, slot: SlotId) -> str:
        return self.slot_key(slot.day_index, slot.slot_index)

    def parse_slot_key(self, key: str) -> SlotId:
        """
        Inverse of `slot_key`. Raises InvalidSlot for malformed or
        out-of-grid keys.
        """
        parts = str(key).strip().split("-")
        if len(parts) != 3:
            raise InvalidSlot(f"Malformed slot key {key!r}.")
        try:
            day, hour, minute = (int(p) for p in parts)
        except ValueError:
            raise InvalidSlot(f"Malformed slot key {key!r}.") from None

        index = self._index_by_time.get((hour, minute))
        if index is None or not 0 <= day < DAYS_PER_WEEK:
            raise InvalidSlot(f"Slot {key!r} lies outside the grid.")
        return SlotId(day, index)

    def slot_start(self, slot: SlotId) -> time:
        if not self.contains(slot):
            raise InvalidSlot(f"Slot {slot} lies outside the grid.")
        return self._times[slot.slot_index]

    def slot_end(self, slot: SlotId, run_length: int = 1) -> time:
        """
        End time of a block of `run_length` slots starting at `slot`.
        """
        if run_length < 1 or not self.contains(SlotId(slot.day_index, slot.slot_index + run_length - 1)):
            raise InvalidSlot(f"Block of {run_length} slots from {slot} leaves the grid.")
        return _add_minutes(self.slot_start(slot), run_length * self.slot_minutes)

    def _check_day(self, day: int) -> None:
        if not 0 <= day < DAYS_PER_WEEK:
            raise InvalidSlot(f"Day index {day} lies outside the grid.")


def _add_minutes(t: time, minutes: int) -> time:
    return (datetime.combine(datetime.min, t) + timedelta(minutes=minutes)).time()


@lru_cache()
def get_slot_grid() -> SlotGrid:
    """
    Grid built from settings; cached like `get_settings`.
    """
    settings = get_settings()
    return SlotGrid(
        day_start=settings.SLOT_DAY_START,
        day_end=settings.SLOT_DAY_END,
        slot_minutes=settings.SLOT_MINUTES,
    )
