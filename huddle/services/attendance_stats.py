# huddle/services/attendance_stats.py
from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.errors import RecordNotFound
from huddle.core.rates import rate_percent
from huddle.models.attendance import AttendanceRecord
from huddle.schemas.attendance import (
    AttendanceStatistics,
    MemberAttendanceRate,
    UserAttendance,
    UserAttendanceEntry,
)
from huddle.services.meeting_roster import get_meeting, roster


def compute_statistics(meeting_id: str, records: Sequence[AttendanceRecord]) -> AttendanceStatistics:
    """
    Aggregate finalized records.

    - average_rate_percent: mean of per-session rates, rounded half up
    - best_rate_percent:    highest per-session rate
    - total_attendances:    sum of attendees across sessions
    All fields are 0 when there are no sessions.
    """
    total_sessions = len(records)
    if total_sessions == 0:
        return AttendanceStatistics(meeting_id=meeting_id)

    rates = [r.attendance_rate for r in records]
    return AttendanceStatistics(
        meeting_id=meeting_id,
        total_sessions=total_sessions,
        average_rate_percent=rate_percent(sum(rates), total_sessions * 100),
        best_rate_percent=max(rates),
        total_attendances=sum(len(r.attendee_ids or []) for r in records),
    )


def compute_user_attendance(
    meeting_id: str,
    user_id: str,
    records: Sequence[AttendanceRecord],
) -> UserAttendance:
    history = [
        UserAttendanceEntry(record_date=r.record_date, attended=user_id in (r.attendee_ids or []))
        for r in records
    ]
    attended = sum(1 for entry in history if entry.attended)
    return UserAttendance(
        meeting_id=meeting_id,
        user_id=user_id,
        rate_percent=rate_percent(attended, len(history)),
        attended_count=attended,
        total_sessions=len(history),
        history=history,
    )


async def history_for(db: AsyncSession, meeting_id: str) -> list[AttendanceRecord]:
    """
    Finalized records, most recent date first.
    """
    await get_meeting(db, meeting_id)
    result = await db.execute(
        select(AttendanceRecord)
        .where(AttendanceRecord.meeting_id == meeting_id)
        .order_by(AttendanceRecord.record_date.desc())
    )
    return list(result.scalars().all())


async def record_for_date(db: AsyncSession, meeting_id: str, record_date: date) -> AttendanceRecord:
    await get_meeting(db, meeting_id)
    result = await db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.meeting_id == meeting_id,
            AttendanceRecord.record_date == record_date,
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise RecordNotFound(f"No attendance record for {record_date.isoformat()}.")
    return record


async def statistics(db: AsyncSession, meeting_id: str) -> AttendanceStatistics:
    return compute_statistics(meeting_id, await history_for(db, meeting_id))


async def user_history(db: AsyncSession, meeting_id: str, user_id: str) -> list[UserAttendanceEntry]:
    return compute_user_attendance(meeting_id, user_id, await history_for(db, meeting_id)).history


async def user_rate(db: AsyncSession, meeting_id: str, user_id: str) -> int:
    return compute_user_attendance(meeting_id, user_id, await history_for(db, meeting_id)).rate_percent


async def user_attendance(db: AsyncSession, meeting_id: str, user_id: str) -> UserAttendance:
    return compute_user_attendance(meeting_id, user_id, await history_for(db, meeting_id))


async def member_rates(db: AsyncSession, meeting_id: str) -> list[MemberAttendanceRate]:
    """
    Per-roster-member attendance, best attenders first.
    """
    records = await history_for(db, meeting_id)
    members = await roster(db, meeting_id)

    rates = []
    for member in members:
        summary = compute_user_attendance(meeting_id, member.user_id, records)
        rates.append(
            MemberAttendanceRate(
                user_id=member.user_id,
                display_name=member.display_name,
                attendance_count=summary.attended_count,
                total_sessions=summary.total_sessions,
                rate_percent=summary.rate_percent,
            )
        )

    rates.sort(key=lambda m: (-m.rate_percent, m.user_id))
    return rates
