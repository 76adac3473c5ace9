# huddle/api/routes/attendance.py
from collections.abc import Callable
from datetime import date as date_type, datetime

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.dependencies.context import get_actor_id, get_clock, get_optional_actor_id
from huddle.db.session import get_db
from huddle.schemas.attendance import (
    AttendanceStartRequest,
    AttendanceStartResponse,
    AttendanceStatistics,
    AttendanceStatus,
    AttendanceSubmitRequest,
    HistoryRecordRead,
    MemberAttendanceRate,
    UserAttendance,
)
from huddle.services import attendance_stats
from huddle.services.attendance_service import AttendanceService

router = APIRouter(prefix="/meetings/{meeting_id}/attendance", tags=["Attendance"])


def _service(
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AttendanceService:
    return AttendanceService(db, clock=clock)


@router.get(
    "",
    response_model=AttendanceStatus,
    summary="Current attendance check status",
    description=(
        "Polled by clients to drive the countdown. Reading the status of an "
        "expired session finalizes it. The code is only returned to the owner."
    ),
)
async def get_status(
    meeting_id: str = Path(..., description="Meeting identifier."),
    viewer_id: str | None = Depends(get_optional_actor_id),
    service: AttendanceService = Depends(_service),
) -> AttendanceStatus:
    return await service.observe(meeting_id, viewer_id=viewer_id)


@router.post(
    "/start",
    response_model=AttendanceStartResponse,
    summary="Start an attendance check (owner only)",
    description=(
        "Issues a short-lived code. Only one check per calendar date is allowed: "
        "a date that already has a finalized record fails with "
        "`already_finalized_today`."
    ),
)
async def start_attendance(
    payload: AttendanceStartRequest | None = None,
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    service: AttendanceService = Depends(_service),
) -> AttendanceStartResponse:
    session_date = payload.session_date if payload is not None else None
    return await service.start(meeting_id, actor_id, session_date)


@router.post(
    "/submit",
    response_model=AttendanceStatus,
    summary="Submit an attendance code",
    description="Submitting again after a successful submission is a no-op.",
)
async def submit_code(
    payload: AttendanceSubmitRequest,
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    service: AttendanceService = Depends(_service),
) -> AttendanceStatus:
    return await service.submit(meeting_id, actor_id, payload.code)


@router.post(
    "/end",
    response_model=AttendanceStatus,
    summary="End the attendance check (owner only)",
    description="Finalizes the active check. Ending an already closed check is a no-op.",
)
async def end_attendance(
    meeting_id: str = Path(..., description="Meeting identifier."),
    actor_id: str = Depends(get_actor_id),
    service: AttendanceService = Depends(_service),
) -> AttendanceStatus:
    return await service.end(meeting_id, actor_id)


@router.get(
    "/history",
    response_model=list[HistoryRecordRead],
    summary="Finalized attendance records, newest first",
)
async def get_history(
    meeting_id: str = Path(..., description="Meeting identifier."),
    db: AsyncSession = Depends(get_db),
) -> list[HistoryRecordRead]:
    records = await attendance_stats.history_for(db, meeting_id)
    return [HistoryRecordRead.model_validate(r) for r in records]


@router.get(
    "/history/{record_date}",
    response_model=HistoryRecordRead,
    summary="Attendance record for one date",
)
async def get_history_record(
    meeting_id: str = Path(..., description="Meeting identifier."),
    record_date: date_type = Path(..., description="Date in ISO format (YYYY-MM-DD)."),
    db: AsyncSession = Depends(get_db),
) -> HistoryRecordRead:
    record = await attendance_stats.record_for_date(db, meeting_id, record_date)
    return HistoryRecordRead.model_validate(record)


@router.get(
    "/statistics",
    response_model=AttendanceStatistics,
    summary="Aggregate attendance statistics",
)
async def get_statistics(
    meeting_id: str = Path(..., description="Meeting identifier."),
    db: AsyncSession = Depends(get_db),
) -> AttendanceStatistics:
    return await attendance_stats.statistics(db, meeting_id)


@router.get(
    "/members",
    response_model=list[MemberAttendanceRate],
    summary="Attendance rate per roster member",
)
async def get_member_rates(
    meeting_id: str = Path(..., description="Meeting identifier."),
    db: AsyncSession = Depends(get_db),
) -> list[MemberAttendanceRate]:
    return await attendance_stats.member_rates(db, meeting_id)


@router.get(
    "/users/{user_id}",
    response_model=UserAttendance,
    summary="A single user's attendance history and rate",
)
async def get_user_attendance(
    meeting_id: str = Path(..., description="Meeting identifier."),
    user_id: str = Path(..., description="User identifier."),
    db: AsyncSession = Depends(get_db),
) -> UserAttendance:
    return await attendance_stats.user_attendance(db, meeting_id, user_id)
