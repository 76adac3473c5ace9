# tests/test_attendance_session.py
from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from huddle.core.errors import (
    AlreadyFinalizedToday,
    CodeMismatch,
    NotOwner,
    NotParticipant,
    SessionAlreadyActive,
    SessionNotActive,
)
from huddle.schemas.attendance import CloseReason
from huddle.services.attendance_session import (
    AttendeeAdded,
    End,
    SessionFinalized,
    SessionOpened,
    SessionPhase,
    SessionState,
    Start,
    Submit,
    Tick,
    transition,
)

T0 = datetime(2026, 10, 19, 13, 0, 0)
TODAY = T0.date()


def _idle(**overrides):
    base = dict(owner_id="owner", roster=("owner", "a", "b", "c"))
    base.update(overrides)
    return SessionState(**base)


def _started(now=T0, ttl=180):
    result = transition(_idle(), Start("owner", TODAY, "abc123", ttl), now)
    assert result.rejection is None
    return result.state


def test_start_opens_session_with_normalized_code_and_ttl():
    result = transition(_idle(), Start("owner", TODAY, " abc123 ", 180), T0)

    assert result.rejection is None
    assert result.state.phase is SessionPhase.ACTIVE
    assert result.state.code == "ABC123"
    assert result.state.ends_at == T0 + timedelta(seconds=180)
    (effect,) = result.effects
    assert isinstance(effect, SessionOpened)
    assert effect.session_date == TODAY


def test_start_by_non_owner_rejected():
    result = transition(_idle(), Start("a", TODAY, "ABC123", 180), T0)
    assert isinstance(result.rejection, NotOwner)
    assert result.effects == ()


def test_start_on_finalized_date_rejected():
    state = _idle(phase=SessionPhase.CLOSED, session_date=TODAY, finalized_dates=frozenset({TODAY}))
    result = transition(state, Start("owner", TODAY, "ABC123", 180), T0)
    assert isinstance(result.rejection, AlreadyFinalizedToday)


def test_start_while_active_rejected():
    state = _started()
    result = transition(state, Start("owner", TODAY, "ZZZ999", 180), T0 + timedelta(seconds=10))
    assert isinstance(result.rejection, SessionAlreadyActive)
    assert result.state.code == "ABC123"


def test_start_after_unobserved_expiry_finalizes_then_rejects_same_date():
    state = _started()
    result = transition(state, Start("owner", TODAY, "ZZZ999", 180), T0 + timedelta(seconds=200))

    assert isinstance(result.rejection, AlreadyFinalizedToday)
    assert any(isinstance(e, SessionFinalized) for e in result.effects)


def test_start_after_expiry_for_another_date_finalizes_old_and_opens_new():
    state = _started()
    tomorrow = TODAY + timedelta(days=1)
    later = T0 + timedelta(days=1)

    result = transition(state, Start("owner", tomorrow, "NEW111", 180), later)

    assert result.rejection is None
    kinds = [type(e) for e in result.effects]
    assert kinds == [SessionFinalized, SessionOpened]
    assert result.state.session_date == tomorrow
    assert result.state.attendees == ()


def test_submit_adds_attendee_once():
    state = _started()
    first = transition(state, Submit("a", "abc123"), T0 + timedelta(seconds=5))
    assert first.rejection is None
    assert first.state.attendees == ("a",)
    assert isinstance(first.effects[0], AttendeeAdded)

    again = transition(first.state, Submit("a", "ABC123"), T0 + timedelta(seconds=6))
    assert again.rejection is None
    assert again.effects == ()
    assert again.state.attendees == ("a",)


def test_submit_wrong_code_rejected():
    result = transition(_started(), Submit("a", "WRONG1"), T0 + timedelta(seconds=5))
    assert isinstance(result.rejection, CodeMismatch)


def test_submit_by_non_roster_user_rejected():
    result = transition(_started(), Submit("stranger", "ABC123"), T0 + timedelta(seconds=5))
    assert isinstance(result.rejection, NotParticipant)


def test_submit_without_session_rejected():
    result = transition(_idle(), Submit("a", "ABC123"), T0)
    assert isinstance(result.rejection, SessionNotActive)


@pytest.mark.parametrize("offset", [180, 181, 3600])
def test_submit_at_or_after_expiry_finalizes_without_the_submitter(offset):
    state = _started()
    state = transition(state, Submit("a", "ABC123"), T0 + timedelta(seconds=10)).state

    result = transition(state, Submit("b", "ABC123"), T0 + timedelta(seconds=offset))

    assert isinstance(result.rejection, SessionNotActive)
    assert result.state.phase is SessionPhase.CLOSED
    (finalized,) = result.effects
    assert finalized.record.attendee_ids == ("a",)
    assert finalized.record.closed_by is CloseReason.EXPIRY


def test_submit_just_before_expiry_is_accepted():
    state = _started()
    result = transition(state, Submit("b", "ABC123"), T0 + timedelta(seconds=179, microseconds=999999))
    assert result.rejection is None
    assert result.state.attendees == ("b",)


def test_end_finalizes_with_snapshot_and_rate():
    state = _started()
    state = transition(state, Submit("a", "ABC123"), T0 + timedelta(seconds=1)).state
    state = transition(state, Submit("b", "ABC123"), T0 + timedelta(seconds=2)).state

    result = transition(state, End("owner"), T0 + timedelta(seconds=30))

    assert result.rejection is None
    assert result.state.phase is SessionPhase.CLOSED
    assert result.state.code == ""
    assert TODAY in result.state.finalized_dates
    (finalized,) = result.effects
    record = finalized.record
    assert record.record_date == TODAY
    assert record.attendee_ids == ("a", "b")
    assert record.total_participants == 4
    assert record.attendance_rate == 50
    assert record.closed_by is CloseReason.MANUAL


def test_end_twice_is_noop():
    state = _started()
    closed = transition(state, End("owner"), T0 + timedelta(seconds=30)).state

    again = transition(closed, End("owner"), T0 + timedelta(seconds=31))

    assert again.rejection is None
    assert again.effects == ()


def test_end_at_expiry_boundary_converges_on_single_finalize():
    state = _started()
    result = transition(state, End("owner"), T0 + timedelta(seconds=180))

    assert result.rejection is None
    finals = [e for e in result.effects if isinstance(e, SessionFinalized)]
    assert len(finals) == 1
    assert finals[0].record.closed_by is CloseReason.EXPIRY


def test_end_by_non_owner_rejected():
    result = transition(_started(), End("a"), T0 + timedelta(seconds=5))
    assert isinstance(result.rejection, NotOwner)
    assert result.state.phase is SessionPhase.ACTIVE


def test_tick_before_expiry_is_noop_and_after_expiry_finalizes_once():
    state = _started()
    assert transition(state, Tick(), T0 + timedelta(seconds=100)).effects == ()

    expired = transition(state, Tick(), T0 + timedelta(seconds=181))
    assert len(expired.effects) == 1
    assert expired.finalized

    again = transition(expired.state, Tick(), T0 + timedelta(seconds=182))
    assert again.effects == ()


def test_finalize_for_already_recorded_date_writes_no_record():
    state = _started()
    racing = replace(state, finalized_dates=frozenset({TODAY}))

    result = transition(racing, End("owner"), T0 + timedelta(seconds=5))

    (finalized,) = result.effects
    assert finalized.record is None
    assert result.state.phase is SessionPhase.CLOSED


def test_empty_roster_finalizes_with_zero_rate():
    state = transition(
        SessionState(owner_id="owner", roster=()),
        Start("owner", TODAY, "ABC123", 180),
        T0,
    ).state

    (finalized,) = transition(state, End("owner"), T0 + timedelta(seconds=1)).effects
    assert finalized.record.total_participants == 0
    assert finalized.record.attendance_rate == 0


def test_remaining_seconds_counts_down_to_zero():
    state = _started()
    assert state.remaining_seconds(T0) == 180
    assert state.remaining_seconds(T0 + timedelta(seconds=179, milliseconds=500)) == 1
    assert state.remaining_seconds(T0 + timedelta(seconds=180)) == 0
    assert state.remaining_seconds(T0 + timedelta(seconds=400)) == 0
    assert _idle().remaining_seconds(T0) == 0


def test_date_type_is_preserved():
    assert isinstance(_started().session_date, date)
