# huddle/services/attendance_service.py
from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable
from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.config import Settings, get_settings
from huddle.core.errors import HuddleError, SessionNotActive
from huddle.core.rates import rate_percent
from huddle.models.attendance import AttendanceRecord, AttendanceSession
from huddle.schemas.attendance import (
    AttendanceStartResponse,
    AttendanceStatus,
    SweepSummary,
)
from huddle.services.attendance_session import (
    AttendeeAdded,
    End,
    Event,
    SessionFinalized,
    SessionOpened,
    SessionPhase,
    SessionState,
    Start,
    Submit,
    Tick,
    Transition,
    transition,
)
from huddle.services.meeting_locks import MeetingLocks, get_meeting_locks
from huddle.services.meeting_roster import get_meeting, roster_ids

logger = logging.getLogger(__name__)

CODE_ALPHABET = "".join(c for c in string.ascii_uppercase + string.digits if c not in "O0I1")


def generate_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class AttendanceService:
    """
    Command handlers for attendance checks.

    Each command runs under the meeting's lock:
    load state -> pure transition -> persist effects -> raise rejection.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = datetime.now,
        locks: MeetingLocks | None = None,
        settings: Settings | None = None,
        code_factory: Callable[[int], str] = generate_code,
    ) -> None:
        self.db = db
        self.clock = clock
        self.locks = locks or get_meeting_locks()
        self.settings = settings or get_settings()
        self.code_factory = code_factory

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def start(
        self,
        meeting_id: str,
        owner_id: str,
        session_date: date | None = None,
    ) -> AttendanceStartResponse:
        now = self.clock()
        event = Start(
            actor_id=owner_id,
            session_date=session_date or now.date(),
            code=self.code_factory(self.settings.ATTENDANCE_CODE_LENGTH),
            ttl_seconds=self.settings.ATTENDANCE_TTL_SECONDS,
        )
        result = await self._dispatch(meeting_id, event, now)
        state = result.state
        return AttendanceStartResponse(
            meeting_id=meeting_id,
            session_date=state.session_date,
            code=state.code,
            ends_at=state.ends_at,
            ttl_seconds=self.settings.ATTENDANCE_TTL_SECONDS,
        )

    async def submit(self, meeting_id: str, participant_id: str, code: str) -> AttendanceStatus:
        now = self.clock()
        result = await self._dispatch(meeting_id, Submit(participant_id=participant_id, code=code), now)
        return self._status(meeting_id, result.state, now, viewer_id=participant_id)

    async def end(self, meeting_id: str, actor_id: str) -> AttendanceStatus:
        now = self.clock()
        result = await self._dispatch(meeting_id, End(actor_id=actor_id), now)
        return self._status(meeting_id, result.state, now, viewer_id=actor_id)

    async def observe(self, meeting_id: str, viewer_id: str | None = None) -> AttendanceStatus:
        """
        Status read for pollers. Finalizes the session if it has expired.
        """
        now = self.clock()
        result = await self._dispatch(meeting_id, Tick(), now)
        return self._status(meeting_id, result.state, now, viewer_id=viewer_id)

    async def sweep_expired(self) -> SweepSummary:
        """
        Finalize every active session whose `ends_at` has passed.
        """
        now = self.clock()
        result = await self.db.execute(
            select(AttendanceSession.meeting_id).where(
                AttendanceSession.is_active.is_(True),
                AttendanceSession.ends_at <= now,
            )
        )
        candidates = list(result.scalars().all())

        finalized: list[str] = []
        failed: list[str] = []
        for meeting_id in candidates:
            try:
                outcome = await self._dispatch(meeting_id, Tick(), now)
            except HuddleError as exc:
                # Skip it; the remaining meetings still get swept.
                await self.db.rollback()
                failed.append(meeting_id)
                logger.warning(
                    "Attendance sweep skipped meeting",
                    extra={"meeting_id": meeting_id, "reason": exc.code},
                )
                continue
            if outcome.finalized:
                finalized.append(meeting_id)

        if finalized:
            logger.info("Attendance sweep finalized sessions", extra={"meeting_ids": finalized})
        return SweepSummary(
            swept_at=now,
            sessions_finalized=len(finalized),
            meeting_ids=finalized,
            failed_meeting_ids=failed,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _dispatch(self, meeting_id: str, event: Event, now: datetime) -> Transition:
        async with self.locks.hold(meeting_id):
            state, row = await self._load(meeting_id)
            result = transition(state, event, now)
            if result.effects:
                await self._apply(meeting_id, row, result)
            else:
                # Release the read transaction before leaving the lock.
                await self.db.commit()

        if result.rejection is not None:
            logger.debug(
                "Attendance command rejected",
                extra={
                    "meeting_id": meeting_id,
                    "event": type(event).__name__,
                    "reason": result.rejection.code,
                },
            )
            raise result.rejection
        return result

    async def _load(self, meeting_id: str) -> tuple[SessionState, AttendanceSession | None]:
        meeting = await get_meeting(self.db, meeting_id)
        roster = tuple(await roster_ids(self.db, meeting_id))

        row_result = await self.db.execute(
            select(AttendanceSession)
            .where(AttendanceSession.meeting_id == meeting_id)
            .execution_options(populate_existing=True)
        )
        row = row_result.scalar_one_or_none()

        dates_result = await self.db.execute(
            select(AttendanceRecord.record_date).where(AttendanceRecord.meeting_id == meeting_id)
        )
        finalized_dates = frozenset(dates_result.scalars().all())

        if row is None:
            return SessionState(owner_id=meeting.owner_id, roster=roster, finalized_dates=finalized_dates), None

        return (
            SessionState(
                owner_id=meeting.owner_id,
                roster=roster,
                phase=SessionPhase.ACTIVE if row.is_active else SessionPhase.CLOSED,
                session_date=row.session_date,
                code=row.code or "",
                started_at=row.started_at,
                ends_at=row.ends_at,
                attendees=tuple(row.attendee_ids or []),
                finalized_dates=finalized_dates,
            ),
            row,
        )

    async def _apply(
        self,
        meeting_id: str,
        row: AttendanceSession | None,
        result: Transition,
    ) -> None:
        for effect in result.effects:
            if isinstance(effect, SessionOpened):
                if row is None:
                    row = AttendanceSession(meeting_id=meeting_id)
                    self.db.add(row)
                row.session_date = effect.session_date
                row.code = effect.code
                row.started_at = effect.started_at
                row.ends_at = effect.ends_at
                row.ttl_seconds = effect.ttl_seconds
                row.attendee_ids = []
                row.is_active = True
                logger.info(
                    "Attendance session started",
                    extra={
                        "meeting_id": meeting_id,
                        "session_date": effect.session_date.isoformat(),
                        "ends_at": effect.ends_at.isoformat(),
                    },
                )

            elif isinstance(effect, AttendeeAdded):
                # Only lands while the row is still active; another worker may
                # have finalized it after we loaded.
                updated = await self.db.execute(
                    update(AttendanceSession)
                    .where(
                        AttendanceSession.id == row.id,
                        AttendanceSession.is_active.is_(True),
                    )
                    .values(attendee_ids=list(effect.attendees))
                    .execution_options(synchronize_session=False)
                )
                if updated.rowcount != 1:
                    await self.db.rollback()
                    logger.warning(
                        "Attendance code arrived after session closed elsewhere",
                        extra={"meeting_id": meeting_id, "user_id": effect.participant_id},
                    )
                    raise SessionNotActive()
                logger.info(
                    "Attendance code accepted",
                    extra={"meeting_id": meeting_id, "user_id": effect.participant_id},
                )

            elif isinstance(effect, SessionFinalized):
                row.is_active = False
                row.code = ""
                if effect.record is not None:
                    self.db.add(
                        AttendanceRecord(
                            meeting_id=meeting_id,
                            record_date=effect.record.record_date,
                            attendee_ids=list(effect.record.attendee_ids),
                            total_participants=effect.record.total_participants,
                            attendance_rate=effect.record.attendance_rate,
                            closed_by=effect.record.closed_by.value,
                            finalized_at=effect.record.finalized_at,
                        )
                    )
                    logger.info(
                        "Attendance session finalized",
                        extra={
                            "meeting_id": meeting_id,
                            "session_date": effect.session_date.isoformat(),
                            "attendee_count": len(effect.record.attendee_ids),
                            "attendance_rate": effect.record.attendance_rate,
                            "closed_by": effect.record.closed_by.value,
                        },
                    )

            else:
                raise TypeError(f"Unhandled attendance effect: {effect!r}")

        try:
            await self.db.commit()
        except IntegrityError:
            # Another process already wrote the record for this date.
            await self.db.rollback()
            logger.warning(
                "Attendance record already exists; closing session only",
                extra={"meeting_id": meeting_id},
            )
            await self._close_only(meeting_id)

    async def _close_only(self, meeting_id: str) -> None:
        result = await self.db.execute(
            select(AttendanceSession).where(AttendanceSession.meeting_id == meeting_id)
        )
        row = result.scalar_one_or_none()
        if row is not None and row.is_active:
            row.is_active = False
            row.code = ""
            await self.db.commit()

    def _status(
        self,
        meeting_id: str,
        state: SessionState,
        now: datetime,
        viewer_id: str | None,
    ) -> AttendanceStatus:
        active = state.phase is SessionPhase.ACTIVE
        attendees = list(state.attendees) if state.phase is not SessionPhase.IDLE else []
        total = len(state.roster)
        return AttendanceStatus(
            meeting_id=meeting_id,
            is_active=active,
            session_date=state.session_date,
            code=state.code if active and viewer_id == state.owner_id else None,
            ends_at=state.ends_at if active else None,
            remaining_seconds=state.remaining_seconds(now),
            attendees=attendees,
            total_participants=total,
            attendance_rate_percent=rate_percent(len(attendees), total),
            completed_today=now.date() in state.finalized_dates,
        )
