# huddle/api/routes/availability.py
from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.dependencies.context import get_actor_id, get_grid
from huddle.db.session import get_db
from huddle.schemas.availability import (
    AvailabilityGrid,
    AvailabilityRead,
    AvailabilityUpdate,
    SuggestionList,
)
from huddle.services.availability_store import AvailabilityStore
from huddle.services.optimal_time import compute_suggestions
from huddle.services.schedule_committer import ScheduleCommitter
from huddle.services.slot_grid import SlotGrid

router = APIRouter(prefix="/meetings/{meeting_id}", tags=["Availability"])


@router.put(
    "/availability",
    response_model=AvailabilityRead,
    summary="Save the caller's availability",
    description=(
        "Replace the caller's full slot selection for this meeting. "
        "Any slot outside the grid rejects the whole request with `invalid_slot`."
    ),
)
async def set_availability(
    payload: AvailabilityUpdate,
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    grid: SlotGrid = Depends(get_grid),
    db: AsyncSession = Depends(get_db),
) -> AvailabilityRead:
    keys = await AvailabilityStore(db, grid).set_availability(meeting_id, actor_id, payload.slots)
    return AvailabilityRead(meeting_id=meeting_id, user_id=actor_id, slots=keys)


@router.get(
    "/availability/me",
    response_model=AvailabilityRead,
    summary="Get the caller's saved availability",
)
async def get_my_availability(
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    grid: SlotGrid = Depends(get_grid),
    db: AsyncSession = Depends(get_db),
) -> AvailabilityRead:
    keys = await AvailabilityStore(db, grid).get_availability(meeting_id, actor_id)
    return AvailabilityRead(meeting_id=meeting_id, user_id=actor_id, slots=keys)


@router.get(
    "/availability",
    response_model=AvailabilityGrid,
    summary="Aggregated availability grid",
    description=(
        "Per-slot available counts with heat buckets, the coordination rate "
        "(share of roster members who saved any slot) and a per-member summary."
    ),
)
async def get_availability_grid(
    meeting_id: str = Path(..., description="Meeting identifier."),
    grid: SlotGrid = Depends(get_grid),
    db: AsyncSession = Depends(get_db),
) -> AvailabilityGrid:
    return await AvailabilityStore(db, grid).grid_view(meeting_id)


@router.get(
    "/suggestions",
    response_model=SuggestionList,
    summary="Ranked meeting-time suggestions",
    description=(
        "Consecutive blocks (runs of equal availability count) first, then single "
        "slots. Once a suggested schedule is committed, the list is empty and "
        "`has_suggested_schedule` is true."
    ),
)
async def get_suggestions(
    meeting_id: str = Path(..., description="Meeting identifier."),
    grid: SlotGrid = Depends(get_grid),
    db: AsyncSession = Depends(get_db),
) -> SuggestionList:
    snapshot = await AvailabilityStore(db, grid).snapshot(meeting_id)
    existing = await ScheduleCommitter(db, grid).get_suggested_schedule(meeting_id)

    return SuggestionList(
        meeting_id=meeting_id,
        total_participants=snapshot.total_participants,
        has_suggested_schedule=existing is not None,
        suggestions=[] if existing is not None else compute_suggestions(snapshot, grid),
    )
