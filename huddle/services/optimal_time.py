# huddle/services/optimal_time.py
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.rates import rate_percent
from huddle.schemas.availability import Suggestion
from huddle.services.availability_store import AvailabilitySnapshot, AvailabilityStore
from huddle.services.slot_grid import DAY_LABELS, DAYS_PER_WEEK, SlotGrid, SlotId

logger = logging.getLogger(__name__)


def find_runs(counts: list[int]) -> list[tuple[int, int, int]]:
    """
    Split one day's per-slot counts into maximal runs of equal, non-zero count.

    Returns (start_index, length, count) tuples in slot order. A change in
    count always starts a new run, even if both counts are non-zero.
    """
    runs: list[tuple[int, int, int]] = []
    start = 0
    while start < len(counts):
        count = counts[start]
        end = start + 1
        while end < len(counts) and counts[end] == count:
            end += 1
        if count > 0:
            runs.append((start, end - start, count))
        start = end
    return runs


def compute_suggestions(snapshot: AvailabilitySnapshot, grid: SlotGrid) -> list[Suggestion]:
    """
    Merge roster selections into ranked meeting-time suggestions.

    Rules
    -----
    1) No roster members => no suggestions.
    2) Slots nobody on the roster selected are dropped.
    3) Per day, maximal runs of identical count become one suggestion:
       length >= 2 => consecutive block, length 1 => single slot.
    4) Ordering: consecutive blocks first by (rate desc, run length desc),
       then single slots by rate desc; ties fall back to grid order.
    """
    total = snapshot.total_participants
    if total == 0:
        return []

    counts = snapshot.counts()
    if not counts:
        return []

    suggestions: list[Suggestion] = []
    for day in range(DAYS_PER_WEEK):
        day_counts = [counts.get(SlotId(day, i), 0) for i in range(grid.slots_per_day)]
        for start, length, count in find_runs(day_counts):
            first = SlotId(day, start)
            suggestions.append(
                Suggestion(
                    day_index=day,
                    day_label=DAY_LABELS[day],
                    start_slot=start,
                    run_length=length,
                    start_time=grid.slot_start(first),
                    end_time=grid.slot_end(first, length),
                    duration_minutes=length * grid.slot_minutes,
                    available_count=count,
                    total_participants=total,
                    availability_rate_percent=rate_percent(count, total),
                    is_consecutive=length >= 2,
                    slot_key=grid.key_of(first),
                )
            )

    consecutive = sorted(
        (s for s in suggestions if s.is_consecutive),
        key=lambda s: (-s.availability_rate_percent, -s.run_length, s.day_index, s.start_slot),
    )
    singles = sorted(
        (s for s in suggestions if not s.is_consecutive),
        key=lambda s: (-s.availability_rate_percent, s.day_index, s.start_slot),
    )
    return consecutive + singles


class OptimalTimeCalculator:
    """
    Stateless calculator: every call recomputes from current availability.

    Whether to show suggestions once a schedule is committed is left to the
    caller.
    """

    def __init__(self, db: AsyncSession, grid: SlotGrid) -> None:
        self.store = AvailabilityStore(db, grid)
        self.grid = grid

    async def compute_suggestions(self, meeting_id: str) -> list[Suggestion]:
        snapshot = await self.store.snapshot(meeting_id)
        suggestions = compute_suggestions(snapshot, self.grid)
        logger.debug(
            "Computed suggestions",
            extra={
                "meeting_id": meeting_id,
                "total_participants": snapshot.total_participants,
                "suggestion_count": len(suggestions),
            },
        )
        return suggestions
