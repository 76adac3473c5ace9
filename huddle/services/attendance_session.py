# huddle/services/attendance_session.py
"""
Pure attendance-session state machine.

`transition(state, event, now)` never touches storage or clocks. It returns
the next state, the effects the caller must persist, and optionally an error
the caller must raise *after* persisting those effects. Expiry is always
observed first, so any event arriving at or after `ends_at` finalizes the
session before it is considered.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Union

from huddle.core.errors import (
    AlreadyFinalizedToday,
    CodeMismatch,
    HuddleError,
    NotOwner,
    NotParticipant,
    SessionAlreadyActive,
    SessionNotActive,
)
from huddle.core.rates import rate_percent
from huddle.schemas.attendance import CloseReason


class SessionPhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(frozen=True)
class SessionState:
    """
    Everything the state machine needs to know about one meeting.

    `roster` is the current owner/approved membership and `finalized_dates`
    the dates that already have a history record.
    """

    owner_id: str
    roster: tuple[str, ...] = ()
    phase: SessionPhase = SessionPhase.IDLE
    session_date: date | None = None
    code: str = ""
    started_at: datetime | None = None
    ends_at: datetime | None = None
    attendees: tuple[str, ...] = ()
    finalized_dates: frozenset[date] = frozenset()

    def remaining_seconds(self, now: datetime) -> int:
        if self.phase is not SessionPhase.ACTIVE or self.ends_at is None:
            return 0
        return max(0, math.ceil((self.ends_at - now).total_seconds()))


# --- events ----------------------------------------------------------------


@dataclass(frozen=True)
class Start:
    actor_id: str
    session_date: date
    code: str
    ttl_seconds: int


@dataclass(frozen=True)
class Submit:
    participant_id: str
    code: str


@dataclass(frozen=True)
class End:
    actor_id: str


@dataclass(frozen=True)
class Tick:
    """An observer noticed the clock; only expiry can happen."""


Event = Union[Start, Submit, End, Tick]


# --- effects ---------------------------------------------------------------


@dataclass(frozen=True)
class SessionOpened:
    session_date: date
    code: str
    started_at: datetime
    ends_at: datetime
    ttl_seconds: int


@dataclass(frozen=True)
class AttendeeAdded:
    participant_id: str
    attendees: tuple[str, ...]


@dataclass(frozen=True)
class HistorySnapshot:
    record_date: date
    attendee_ids: tuple[str, ...]
    total_participants: int
    attendance_rate: int
    closed_by: CloseReason
    finalized_at: datetime


@dataclass(frozen=True)
class SessionFinalized:
    """
    The active session closed. `record` is None when the date was already
    recorded (a racing observer got there first); the session still closes.
    """

    session_date: date
    record: HistorySnapshot | None


Effect = Union[SessionOpened, AttendeeAdded, SessionFinalized]


@dataclass(frozen=True)
class Transition:
    state: SessionState
    effects: tuple[Effect, ...] = ()
    rejection: HuddleError | None = None

    @property
    def finalized(self) -> bool:
        return any(isinstance(e, SessionFinalized) for e in self.effects)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _finalize(state: SessionState, now: datetime, reason: CloseReason) -> tuple[SessionState, SessionFinalized]:
    session_date = state.session_date
    if session_date is None:
        raise SessionNotActive()

    record: HistorySnapshot | None = None
    if session_date not in state.finalized_dates:
        attendees = tuple(a for a in state.attendees if a in state.roster)
        total = len(state.roster)
        record = HistorySnapshot(
            record_date=session_date,
            attendee_ids=attendees,
            total_participants=total,
            attendance_rate=rate_percent(len(attendees), total),
            closed_by=reason,
            finalized_at=now,
        )

    closed = replace(
        state,
        phase=SessionPhase.CLOSED,
        code="",
        finalized_dates=state.finalized_dates | {session_date},
    )
    return closed, SessionFinalized(session_date=session_date, record=record)


def transition(state: SessionState, event: Event, now: datetime) -> Transition:
    effects: list[Effect] = []

    if state.phase is SessionPhase.ACTIVE and state.ends_at is not None and now >= state.ends_at:
        state, finalized = _finalize(state, now, CloseReason.EXPIRY)
        effects.append(finalized)

    def reject(error: HuddleError) -> Transition:
        return Transition(state=state, effects=tuple(effects), rejection=error)

    if isinstance(event, Tick):
        return Transition(state=state, effects=tuple(effects))

    if isinstance(event, Start):
        if event.actor_id != state.owner_id:
            return reject(NotOwner())
        if event.session_date in state.finalized_dates:
            return reject(AlreadyFinalizedToday())
        if state.phase is SessionPhase.ACTIVE:
            return reject(SessionAlreadyActive())

        ends_at = now + timedelta(seconds=event.ttl_seconds)
        code = normalize_code(event.code)
        state = replace(
            state,
            phase=SessionPhase.ACTIVE,
            session_date=event.session_date,
            code=code,
            started_at=now,
            ends_at=ends_at,
            attendees=(),
        )
        effects.append(
            SessionOpened(
                session_date=event.session_date,
                code=code,
                started_at=now,
                ends_at=ends_at,
                ttl_seconds=event.ttl_seconds,
            )
        )
        return Transition(state=state, effects=tuple(effects))

    if isinstance(event, Submit):
        if state.phase is not SessionPhase.ACTIVE:
            return reject(SessionNotActive())
        if event.participant_id not in state.roster:
            return reject(NotParticipant())
        if normalize_code(event.code) != state.code:
            return reject(CodeMismatch())
        if event.participant_id in state.attendees:
            return Transition(state=state, effects=tuple(effects))

        attendees = state.attendees + (event.participant_id,)
        state = replace(state, attendees=attendees)
        effects.append(AttendeeAdded(participant_id=event.participant_id, attendees=attendees))
        return Transition(state=state, effects=tuple(effects))

    if isinstance(event, End):
        if event.actor_id != state.owner_id:
            return reject(NotOwner())
        if state.phase is SessionPhase.ACTIVE:
            state, finalized = _finalize(state, now, CloseReason.MANUAL)
            effects.append(finalized)
        return Transition(state=state, effects=tuple(effects))

    raise TypeError(f"Unhandled attendance event: {event!r}")
