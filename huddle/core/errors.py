# huddle/core/errors.py
from __future__ import annotations

from http import HTTPStatus


class HuddleError(Exception):
    """
    Base class for all recoverable, user-surfaceable domain errors.

    Services raise these; the API layer renders them as
    `{"detail": <message>, "error": <code>}` with `status_code`.
    """

    status_code: int = HTTPStatus.BAD_REQUEST
    code: str = "huddle_error"
    default_message: str = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# --- authorization ---------------------------------------------------------


class NotOwner(HuddleError):
    status_code = HTTPStatus.FORBIDDEN
    code = "not_owner"
    default_message = "Only the meeting owner can perform this action."


class NotParticipant(HuddleError):
    status_code = HTTPStatus.FORBIDDEN
    code = "not_participant"
    default_message = "Only approved participants can perform this action."


class OwnerRoleImmutable(HuddleError):
    status_code = HTTPStatus.CONFLICT
    code = "owner_role_immutable"
    default_message = "A meeting has exactly one owner, whose role cannot change."


class MeetingFull(HuddleError):
    status_code = HTTPStatus.CONFLICT
    code = "meeting_full"
    default_message = "The meeting has reached its participant limit."


# --- input ranges ----------------------------------------------------------


class InvalidSlot(HuddleError):
    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    code = "invalid_slot"
    default_message = "Slot lies outside the availability grid."


class InvalidSchedule(HuddleError):
    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    code = "invalid_schedule"
    default_message = "Schedule definition is not valid."


# --- attendance session ----------------------------------------------------


class SessionNotActive(HuddleError):
    status_code = HTTPStatus.CONFLICT
    code = "session_not_active"
    default_message = "No attendance check is currently active."


class SessionAlreadyActive(HuddleError):
    status_code = HTTPStatus.CONFLICT
    code = "session_already_active"
    default_message = "An attendance check is already running for this meeting."


class CodeMismatch(HuddleError):
    status_code = HTTPStatus.BAD_REQUEST
    code = "code_mismatch"
    default_message = "Attendance code does not match."


class AlreadyFinalizedToday(HuddleError):
    status_code = HTTPStatus.CONFLICT
    code = "already_finalized_today"
    default_message = "Attendance has already been completed for this date."


# --- schedules -------------------------------------------------------------


class ScheduleAlreadyExists(HuddleError):
    status_code = HTTPStatus.CONFLICT
    code = "schedule_already_exists"
    default_message = "A suggested schedule is already committed for this meeting."


# --- lookups ---------------------------------------------------------------


class MeetingNotFound(HuddleError):
    status_code = HTTPStatus.NOT_FOUND
    code = "meeting_not_found"
    default_message = "Meeting not found."


class ScheduleNotFound(HuddleError):
    status_code = HTTPStatus.NOT_FOUND
    code = "schedule_not_found"
    default_message = "No schedule is set for this meeting."


class RecordNotFound(HuddleError):
    status_code = HTTPStatus.NOT_FOUND
    code = "record_not_found"
    default_message = "No attendance record exists for this date."
