# tests/test_meeting_roster.py
import pytest

from huddle.core.errors import MeetingFull, MeetingNotFound, NotOwner, NotParticipant, OwnerRoleImmutable
from huddle.schemas.meeting import MeetingStatus, ParticipantRole
from huddle.services import meeting_roster
from huddle.services.availability_store import AvailabilityStore


async def test_owner_is_first_roster_member(db):
    meeting = await meeting_roster.create_meeting(db, title="Compilers", owner_id="A", owner_display_name="Alice")

    (owner,) = await meeting_roster.roster(db, meeting.id)
    assert owner.user_id == "A"
    assert owner.role == ParticipantRole.OWNER.value
    assert owner.display_name == "Alice"
    assert meeting.status == MeetingStatus.OPEN.value


async def test_pending_members_are_not_on_roster_until_approved(db, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"], pending=["P"])

    assert await meeting_roster.roster_ids(db, meeting.id) == ["A", "B"]

    await meeting_roster.set_participant_role(db, meeting.id, "P", ParticipantRole.APPROVED, actor_id="A")
    assert await meeting_roster.roster_ids(db, meeting.id) == ["A", "B", "P"]


async def test_self_join_is_pending_and_idempotent(db, make_meeting):
    meeting = await make_meeting(owner="A")

    first = await meeting_roster.add_participant(db, meeting.id, "B", actor_id="B")
    second = await meeting_roster.add_participant(db, meeting.id, "B", actor_id="B")

    assert first.id == second.id
    assert first.role == ParticipantRole.PENDING.value


async def test_only_owner_adds_others_or_approves(db, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])

    with pytest.raises(NotOwner):
        await meeting_roster.add_participant(db, meeting.id, "C", actor_id="B")
    with pytest.raises(NotOwner):
        await meeting_roster.add_participant(db, meeting.id, "C", actor_id="C", role=ParticipantRole.APPROVED)
    with pytest.raises(NotOwner):
        await meeting_roster.set_participant_role(db, meeting.id, "B", ParticipantRole.PENDING, actor_id="B")


async def test_owner_role_cannot_be_granted_or_changed(db, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])

    with pytest.raises(OwnerRoleImmutable):
        await meeting_roster.add_participant(db, meeting.id, "C", actor_id="A", role=ParticipantRole.OWNER)
    with pytest.raises(OwnerRoleImmutable):
        await meeting_roster.set_participant_role(db, meeting.id, "A", ParticipantRole.PENDING, actor_id="A")
    with pytest.raises(OwnerRoleImmutable):
        await meeting_roster.remove_participant(db, meeting.id, "A", actor_id="A")


async def test_role_change_for_non_member(db, make_meeting):
    meeting = await make_meeting(owner="A")

    with pytest.raises(NotParticipant):
        await meeting_roster.set_participant_role(db, meeting.id, "ghost", ParticipantRole.APPROVED, actor_id="A")


async def test_remove_participant_drops_their_availability(db, grid, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])
    store = AvailabilityStore(db, grid)
    await store.set_availability(meeting.id, "B", ["0-9-0"])

    await meeting_roster.remove_participant(db, meeting.id, "B", actor_id="A")
    await meeting_roster.remove_participant(db, meeting.id, "B", actor_id="A")

    assert await meeting_roster.roster_ids(db, meeting.id) == ["A"]
    assert await store.get_availability(meeting.id, "B") == []


async def test_update_status_owner_only(db, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"])

    updated = await meeting_roster.update_status(db, meeting.id, MeetingStatus.CLOSED, actor_id="A")
    assert updated.status == "closed"

    with pytest.raises(NotOwner):
        await meeting_roster.update_status(db, meeting.id, MeetingStatus.OPEN, actor_id="B")


async def test_build_meeting_read_lists_all_participants(db, make_meeting):
    meeting = await make_meeting(owner="A", approved=["B"], pending=["P"])

    read = await meeting_roster.build_meeting_read(db, meeting)

    assert read.id == meeting.id
    assert [(p.user_id, p.role) for p in read.participants] == [
        ("A", ParticipantRole.OWNER),
        ("B", ParticipantRole.APPROVED),
        ("P", ParticipantRole.PENDING),
    ]


async def test_unknown_meeting(db):
    with pytest.raises(MeetingNotFound):
        await meeting_roster.get_meeting(db, "missing")


async def test_capacity_blocks_approval_and_marks_meeting_full(db):
    meeting = await meeting_roster.create_meeting(db, title="Small group", owner_id="A", max_participants=2)
    meeting_id = meeting.id
    await meeting_roster.add_participant(db, meeting_id, "B", actor_id="A", role=ParticipantRole.APPROVED)

    assert (await meeting_roster.get_meeting(db, meeting_id)).status == "full"

    with pytest.raises(MeetingFull):
        await meeting_roster.add_participant(db, meeting_id, "C", actor_id="A", role=ParticipantRole.APPROVED)

    # joining as pending is still allowed, approving is not
    await meeting_roster.add_participant(db, meeting_id, "C", actor_id="C")
    with pytest.raises(MeetingFull):
        await meeting_roster.set_participant_role(db, meeting_id, "C", ParticipantRole.APPROVED, actor_id="A")


async def test_removing_member_reopens_full_meeting(db):
    meeting = await meeting_roster.create_meeting(db, title="Small group", owner_id="A", max_participants=2)
    meeting_id = meeting.id
    await meeting_roster.add_participant(db, meeting_id, "B", actor_id="A", role=ParticipantRole.APPROVED)

    await meeting_roster.remove_participant(db, meeting_id, "B", actor_id="A")

    assert (await meeting_roster.get_meeting(db, meeting_id)).status == "open"
    await meeting_roster.add_participant(db, meeting_id, "C", actor_id="A", role=ParticipantRole.APPROVED)


async def test_closed_meeting_stays_closed_when_capacity_changes(db):
    meeting = await meeting_roster.create_meeting(db, title="Small group", owner_id="A", max_participants=3)
    meeting_id = meeting.id
    await meeting_roster.update_status(db, meeting_id, MeetingStatus.CLOSED, actor_id="A")

    await meeting_roster.add_participant(db, meeting_id, "B", actor_id="A", role=ParticipantRole.APPROVED)
    await meeting_roster.add_participant(db, meeting_id, "C", actor_id="A", role=ParticipantRole.APPROVED)

    assert (await meeting_roster.get_meeting(db, meeting_id)).status == "closed"


async def test_meeting_read_reports_capacity(db):
    meeting = await meeting_roster.create_meeting(db, title="Capped", owner_id="A", max_participants=5)
    await meeting_roster.add_participant(db, meeting.id, "P", actor_id="P")

    read = await meeting_roster.build_meeting_read(db, meeting)

    assert read.max_participants == 5
    assert read.participant_count == 1
