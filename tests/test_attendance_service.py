# tests/test_attendance_service.py
import asyncio
from datetime import date, timedelta

import pytest
from sqlalchemy import select

from huddle.core.errors import (
    AlreadyFinalizedToday,
    CodeMismatch,
    MeetingNotFound,
    NotOwner,
    NotParticipant,
    SessionAlreadyActive,
    SessionNotActive,
)
from huddle.models.attendance import AttendanceSession
from huddle.services import attendance_stats
from huddle.services.attendance_service import CODE_ALPHABET, AttendanceService, generate_code


def _service(db, clock, locks, code="ABC123"):
    return AttendanceService(db, clock=clock, locks=locks, code_factory=lambda n: code)


async def test_two_of_three_attend_then_owner_ends(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B", "C"])
    service = _service(db, clock, locks)

    started = await service.start(meeting.id, "A")
    assert started.code == "ABC123"
    assert started.session_date == date(2026, 10, 19)

    clock.advance(10)
    await service.submit(meeting.id, "A", "ABC123")
    clock.advance(10)
    await service.submit(meeting.id, "B", "abc123")
    clock.advance(10)
    status = await service.end(meeting.id, "A")

    assert status.is_active is False
    assert status.completed_today is True

    (record,) = await attendance_stats.history_for(db, meeting.id)
    assert record.record_date == date(2026, 10, 19)
    assert record.attendee_ids == ["A", "B"]
    assert record.total_participants == 3
    assert record.attendance_rate == 67
    assert record.closed_by == "manual"


async def test_end_twice_writes_one_record(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])
    service = _service(db, clock, locks)

    await service.start(meeting.id, "A")
    await service.end(meeting.id, "A")
    await service.end(meeting.id, "A")

    assert len(await attendance_stats.history_for(db, meeting.id)) == 1


async def test_restart_same_day_is_rejected(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A")
    service = _service(db, clock, locks)

    await service.start(meeting.id, "A")
    await service.end(meeting.id, "A")

    with pytest.raises(AlreadyFinalizedToday):
        await service.start(meeting.id, "A")


async def test_start_while_active_is_rejected(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A")
    service = _service(db, clock, locks)
    await service.start(meeting.id, "A")

    with pytest.raises(SessionAlreadyActive):
        await service.start(meeting.id, "A")


async def test_start_next_day_reuses_session_row(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])
    service = _service(db, clock, locks)

    await service.start(meeting.id, "A")
    await service.end(meeting.id, "A")
    clock.advance(24 * 3600)
    started = await service.start(meeting.id, "A")

    assert started.session_date == date(2026, 10, 20)
    status = await service.observe(meeting.id, "A")
    assert status.is_active is True
    assert status.attendees == []


async def test_only_owner_controls_session(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])
    service = _service(db, clock, locks)

    with pytest.raises(NotOwner):
        await service.start(meeting.id, "B")

    await service.start(meeting.id, "A")
    with pytest.raises(NotOwner):
        await service.end(meeting.id, "B")


async def test_submit_rejections(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"], pending=["P"])
    service = _service(db, clock, locks)

    with pytest.raises(SessionNotActive):
        await service.submit(meeting.id, "B", "ABC123")

    await service.start(meeting.id, "A")

    with pytest.raises(CodeMismatch):
        await service.submit(meeting.id, "B", "ZZZ999")
    with pytest.raises(NotParticipant):
        await service.submit(meeting.id, "P", "ABC123")
    with pytest.raises(NotParticipant):
        await service.submit(meeting.id, "stranger", "ABC123")

    status = await service.observe(meeting.id, "A")
    assert status.attendees == []


async def test_duplicate_submit_is_accepted_once(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])
    service = _service(db, clock, locks)
    await service.start(meeting.id, "A")

    await service.submit(meeting.id, "B", "ABC123")
    status = await service.submit(meeting.id, "B", "ABC123")

    assert status.attendees == ["B"]


async def test_submit_after_expiry_is_rejected_and_excluded(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B", "C"])
    service = _service(db, clock, locks)

    await service.start(meeting.id, "A")
    clock.advance(60)
    await service.submit(meeting.id, "B", "ABC123")
    clock.advance(120)

    with pytest.raises(SessionNotActive):
        await service.submit(meeting.id, "C", "ABC123")

    (record,) = await attendance_stats.history_for(db, meeting.id)
    assert record.attendee_ids == ["B"]
    assert record.closed_by == "expiry"
    assert record.attendance_rate == 33


async def test_status_read_finalizes_expired_session(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])
    service = _service(db, clock, locks)
    await service.start(meeting.id, "A")

    clock.advance(100)
    status = await service.observe(meeting.id, "B")
    assert status.is_active is True
    assert status.remaining_seconds == 80

    clock.advance(100)
    status = await service.observe(meeting.id, "B")
    assert status.is_active is False
    assert status.remaining_seconds == 0
    assert status.completed_today is True
    assert len(await attendance_stats.history_for(db, meeting.id)) == 1


async def test_code_is_only_shown_to_owner(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])
    service = _service(db, clock, locks)
    await service.start(meeting.id, "A")

    assert (await service.observe(meeting.id, "A")).code == "ABC123"
    assert (await service.observe(meeting.id, "B")).code is None
    assert (await service.observe(meeting.id)).code is None


async def test_sweep_finalizes_only_expired_sessions(db, clock, locks, make_meeting):
    expired = await make_meeting(owner="A", title="expired")
    fresh = await make_meeting(owner="A", title="fresh")
    service = _service(db, clock, locks)

    await service.start(expired.id, "A")
    clock.advance(120)
    await service.start(fresh.id, "A")
    clock.advance(90)

    summary = await service.sweep_expired()

    assert summary.sessions_finalized == 1
    assert summary.meeting_ids == [expired.id]
    assert (await service.observe(fresh.id, "A")).is_active is True

    again = await service.sweep_expired()
    assert again.sessions_finalized == 0


async def test_concurrent_submits_are_all_recorded(session_factory, db, clock, locks, make_meeting):
    members = ["B", "C", "D", "E"]
    meeting = await make_meeting(owner="A", approved=members)
    await _service(db, clock, locks).start(meeting.id, "A")

    async def submit(user_id):
        async with session_factory() as session:
            await _service(session, clock, locks).submit(meeting.id, user_id, "ABC123")

    await asyncio.gather(*(submit(user_id) for user_id in members))

    status = await _service(db, clock, locks).end(meeting.id, "A")
    assert sorted(status.attendees) == members

    (record,) = await attendance_stats.history_for(db, meeting.id)
    assert sorted(record.attendee_ids) == members
    assert record.attendance_rate == 80


async def test_concurrent_end_and_expiry_write_one_record(session_factory, db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A")
    await _service(db, clock, locks).start(meeting.id, "A")
    clock.advance(180)

    async def end():
        async with session_factory() as session:
            await _service(session, clock, locks).end(meeting.id, "A")

    async def sweep():
        async with session_factory() as session:
            await _service(session, clock, locks).sweep_expired()

    await asyncio.gather(end(), sweep(), end())

    assert len(await attendance_stats.history_for(db, meeting.id)) == 1


async def test_unknown_meeting(db, clock, locks):
    with pytest.raises(MeetingNotFound):
        await _service(db, clock, locks).observe("missing")


def test_generated_codes_avoid_ambiguous_characters():
    code = generate_code(64)
    assert len(code) == 64
    assert set(code) <= set(CODE_ALPHABET)
    assert not set("O0I1") & set(CODE_ALPHABET)


async def test_countdown_only_reaches_zero_when_session_closes(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])
    service = _service(db, clock, locks)
    await service.start(meeting.id, "A")

    clock.advance(179.5)
    status = await service.observe(meeting.id, "B")
    assert status.is_active is True
    assert status.remaining_seconds == 1

    clock.advance(0.5)
    status = await service.observe(meeting.id, "B")
    assert status.is_active is False
    assert status.remaining_seconds == 0
    with pytest.raises(SessionNotActive):
        await service.submit(meeting.id, "B", "ABC123")


async def test_sweep_skips_session_without_meeting_and_finalizes_the_rest(db, clock, locks, make_meeting):
    meeting = await make_meeting(owner="A")
    meeting_id = meeting.id
    service = _service(db, clock, locks)
    await service.start(meeting_id, "A")
    db.add(
        AttendanceSession(
            meeting_id="orphaned",
            session_date=clock().date(),
            code="ZZZ999",
            started_at=clock(),
            ends_at=clock() + timedelta(seconds=10),
            ttl_seconds=10,
            attendee_ids=[],
            is_active=True,
        )
    )
    await db.commit()
    clock.advance(200)

    summary = await service.sweep_expired()

    assert summary.meeting_ids == [meeting_id]
    assert summary.failed_meeting_ids == ["orphaned"]
    assert len(await attendance_stats.history_for(db, meeting_id)) == 1


class _ClosedElsewhereService(AttendanceService):
    """Another worker finalizes the session right after this one loads it."""

    def __init__(self, *args, session_factory, **kwargs):
        super().__init__(*args, **kwargs)
        self.session_factory = session_factory

    async def _load(self, meeting_id):
        loaded = await super()._load(meeting_id)
        async with self.session_factory() as other:
            row = (
                await other.execute(
                    select(AttendanceSession).where(AttendanceSession.meeting_id == meeting_id)
                )
            ).scalar_one()
            row.is_active = False
            await other.commit()
        return loaded


async def test_submit_does_not_write_into_session_closed_elsewhere(
    db, clock, locks, session_factory, make_meeting
):
    meeting = await make_meeting(owner="A", approved=["B"])
    meeting_id = meeting.id
    await _service(db, clock, locks).start(meeting_id, "A")

    racing = _ClosedElsewhereService(
        db, clock=clock, locks=locks, code_factory=lambda n: "ABC123", session_factory=session_factory
    )
    with pytest.raises(SessionNotActive):
        await racing.submit(meeting_id, "B", "ABC123")

    async with session_factory() as fresh:
        row = (
            await fresh.execute(
                select(AttendanceSession).where(AttendanceSession.meeting_id == meeting_id)
            )
        ).scalar_one()
    assert row.is_active is False
    assert row.attendee_ids == []
