# huddle/services/availability_store.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.errors import InvalidSlot
from huddle.core.rates import rate_percent
from huddle.models.availability import Availability
from huddle.models.meeting import Participant
from huddle.schemas.availability import (
    AvailabilityGrid,
    ParticipantAvailabilitySummary,
    SlotCount,
)
from huddle.schemas.meeting import ParticipantRole
from huddle.services.meeting_roster import get_meeting, require_roster_member
from huddle.services.slot_grid import DAY_LABELS, SlotGrid, SlotId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """
    Consistent, in-memory view of a meeting's availability.

    `roster` holds owner/approved user ids (in join order); `selections` maps
    every user that saved a selection (roster or not) to their slot set.
    Counting only ever looks at roster members.
    """

    roster: tuple[str, ...]
    selections: Mapping[str, frozenset[SlotId]] = field(default_factory=dict)
    roles: Mapping[str, str] = field(default_factory=dict)

    @property
    def total_participants(self) -> int:
        return len(self.roster)

    def slots_of(self, user_id: str) -> frozenset[SlotId]:
        return self.selections.get(user_id, frozenset())

    def count_at(self, slot: SlotId) -> int:
        return sum(1 for user_id in self.roster if slot in self.slots_of(user_id))

    def counts(self) -> dict[SlotId, int]:
        """
        Non-zero roster counts for every selected slot.
        """
        totals: dict[SlotId, int] = {}
        for user_id in self.roster:
            for slot in self.slots_of(user_id):
                totals[slot] = totals.get(slot, 0) + 1
        return totals

    def participants_with_any_selection(self) -> set[str]:
        return {user_id for user_id in self.roster if self.slots_of(user_id)}


def heat_level(count: int, total: int) -> str:
    """
    Bucket a cell's available count relative to the roster size.
    """
    if count <= 0 or total <= 0:
        return "none"
    if count >= total:
        return "all"
    ratio = count / total
    if ratio >= 0.8:
        return "high"
    if ratio >= 0.6:
        return "good"
    if ratio >= 0.4:
        return "medium"
    if ratio >= 0.2:
        return "fair"
    return "low"


def parse_slots(grid: SlotGrid, keys: Iterable[str]) -> frozenset[SlotId]:
    """
    Validate slot keys against the grid. Any out-of-grid key fails the
    whole selection with InvalidSlot.
    """
    return frozenset(grid.parse_slot_key(key) for key in keys)


def _stored_slots(grid: SlotGrid, keys: Iterable[str], *, meeting_id: str, user_id: str) -> frozenset[SlotId]:
    """
    Decode stored keys, skipping any that no longer fit the grid
    (e.g. after the daily window was narrowed).
    """
    slots: set[SlotId] = set()
    for key in keys or []:
        try:
            slots.add(grid.parse_slot_key(key))
        except InvalidSlot:
            logger.warning(
                "Ignoring stored slot outside current grid",
                extra={"meeting_id": meeting_id, "user_id": user_id, "slot_key": key},
            )
    return frozenset(slots)


class AvailabilityStore:
    """
    Per-meeting mapping of participant -> available slots, backed by the
    `availability` table (one row per participant, replaced wholesale).
    """

    def __init__(self, db: AsyncSession, grid: SlotGrid) -> None:
        self.db = db
        self.grid = grid

    async def set_availability(
        self,
        meeting_id: str,
        participant_id: str,
        slots: Iterable[str],
    ) -> list[str]:
        """
        Replace the participant's whole selection; last write wins.

        Returns the stored canonical keys in grid order.
        """
        await get_meeting(self.db, meeting_id)
        await require_roster_member(self.db, meeting_id, participant_id)

        parsed = parse_slots(self.grid, slots)
        keys = [self.grid.key_of(slot) for slot in sorted(parsed)]

        result = await self.db.execute(
            select(Availability).where(
                Availability.meeting_id == meeting_id,
                Availability.user_id == participant_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = Availability(meeting_id=meeting_id, user_id=participant_id, slot_keys=keys)
            self.db.add(row)
        else:
            # New list object so the JSON column is flagged dirty.
            row.slot_keys = list(keys)

        await self.db.commit()

        logger.info(
            "Availability saved",
            extra={"meeting_id": meeting_id, "user_id": participant_id, "slot_count": len(keys)},
        )
        return keys

    async def get_availability(self, meeting_id: str, participant_id: str) -> list[str]:
        result = await self.db.execute(
            select(Availability.slot_keys).where(
                Availability.meeting_id == meeting_id,
                Availability.user_id == participant_id,
            )
        )
        keys = result.scalar_one_or_none() or []
        slots = _stored_slots(self.grid, keys, meeting_id=meeting_id, user_id=participant_id)
        return [self.grid.key_of(slot) for slot in sorted(slots)]

    async def snapshot(self, meeting_id: str) -> AvailabilitySnapshot:
        """
        Read roster and selections in a single statement so the calculator
        sees one consistent state.
        """
        await get_meeting(self.db, meeting_id)

        stmt = (
            select(Participant.user_id, Participant.role, Availability.slot_keys)
            .outerjoin(
                Availability,
                (Availability.meeting_id == Participant.meeting_id)
                & (Availability.user_id == Participant.user_id),
            )
            .where(Participant.meeting_id == meeting_id)
            .order_by(Participant.id.asc())
        )
        result = await self.db.execute(stmt)

        roster: list[str] = []
        roles: dict[str, str] = {}
        selections: dict[str, frozenset[SlotId]] = {}
        for user_id, role, keys in result.all():
            roles[user_id] = role
            if ParticipantRole(role).on_roster:
                roster.append(user_id)
            selections[user_id] = _stored_slots(
                self.grid, keys or [], meeting_id=meeting_id, user_id=user_id
            )

        return AvailabilitySnapshot(roster=tuple(roster), selections=selections, roles=roles)

    async def count_at(self, meeting_id: str, slot: SlotId) -> int:
        if not self.grid.contains(slot):
            raise InvalidSlot(f"Slot {slot} lies outside the grid.")
        return (await self.snapshot(meeting_id)).count_at(slot)

    async def participants_with_any_selection(self, meeting_id: str) -> set[str]:
        return (await self.snapshot(meeting_id)).participants_with_any_selection()

    async def coordination_rate(self, meeting_id: str) -> int:
        snap = await self.snapshot(meeting_id)
        return rate_percent(len(snap.participants_with_any_selection()), snap.total_participants)

    def _summaries(self, snap: AvailabilitySnapshot) -> list[ParticipantAvailabilitySummary]:
        return [
            ParticipantAvailabilitySummary(
                user_id=user_id,
                role=snap.roles[user_id],
                slot_count=len(snap.slots_of(user_id)),
                availability_rate_percent=rate_percent(
                    len(snap.slots_of(user_id)), self.grid.total_slots
                ),
            )
            for user_id in snap.roster
        ]

    async def participant_summary(self, meeting_id: str) -> list[ParticipantAvailabilitySummary]:
        """
        Per roster member: how many slots they saved, as a share of the grid.
        """
        return self._summaries(await self.snapshot(meeting_id))

    async def grid_view(self, meeting_id: str) -> AvailabilityGrid:
        """
        Per-cell counts and heat buckets plus a per-member summary.
        """
        snap = await self.snapshot(meeting_id)
        counts = snap.counts()
        total = snap.total_participants

        cells = [
            SlotCount(
                slot_key=self.grid.key_of(slot),
                day_index=slot.day_index,
                slot_index=slot.slot_index,
                start_time=self.grid.slot_start(slot),
                available_count=counts.get(slot, 0),
                heat=heat_level(counts.get(slot, 0), total),
            )
            for slot in self.grid.all_slots()
        ]

        return AvailabilityGrid(
            meeting_id=meeting_id,
            day_labels=list(DAY_LABELS),
            slot_times=list(self.grid.slot_times),
            total_participants=total,
            coordination_rate_percent=rate_percent(
                len(snap.participants_with_any_selection()), total
            ),
            cells=cells,
            participants=self._summaries(snap),
        )
