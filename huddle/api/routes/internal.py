# huddle/api/routes/internal.py
from collections.abc import Callable
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.dependencies.context import get_clock
from huddle.api.dependencies.internal_auth import verify_internal_api_key
from huddle.db.session import get_db
from huddle.schemas.attendance import SweepSummary
from huddle.services.attendance_service import AttendanceService

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/sweep-attendance",
    response_model=SweepSummary,
    status_code=HTTPStatus.OK,
    summary="Finalize every expired attendance check",
    description=(
        "Finalizes all attendance checks whose code has expired but which no "
        "client has observed yet.\n\n"
        "The service runs the same sweep periodically in-process; this endpoint "
        "lets a cron job or scheduler drive it instead (e.g. when "
        "`ATTENDANCE_SWEEP_INTERVAL_SECONDS=0`). Protected via the "
        "`X-Internal-Api-Key` header when configured."
    ),
    responses={
        200: {
            "description": "Sweep executed. A summary is returned.",
            "content": {
                "application/json": {
                    "example": {
                        "swept_at": "2026-10-19T14:03:05",
                        "sessions_finalized": 1,
                        "meeting_ids": ["5d1f0c7e9b2a4e63a0f1c2d3e4f5a6b7"],
                    }
                }
            },
        },
        401: {
            "description": "Missing or invalid internal API key (if configured).",
        },
    },
)
async def sweep_attendance(
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SweepSummary:
    return await AttendanceService(db, clock=clock).sweep_expired()
