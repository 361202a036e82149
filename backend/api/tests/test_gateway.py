from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_draft

from campus_events import gateway, repo, workflow
from campus_events.errors import Conflict, InvalidInput, NotFound, ScheduleConflict
from campus_events.models import Decision, EventStatus, NotificationType, Role

START = datetime(2030, 3, 1, 18, 0, tzinfo=timezone.utc)


def approve_all(engine, people, event):
    for user_id in (people.faculty, people.dean, people.deanship):
        event = workflow.decide(engine, event.id, user_id, None, Decision.APPROVE)
    assert event.status is EventStatus.APPROVED
    return event


class TestSubmit:
    def test_creates_pending_event(self, engine, people, submit, inbox):
        event = submit()
        assert event.status is EventStatus.PENDING_FACULTY_APPROVAL
        assert event.college_id == people.eng
        assert event.community_id == people.community
        assert event.created_by == people.creator
        assert event.version == 1

        (note,) = inbox(people.faculty)
        assert note.type is NotificationType.EVENT_SUBMITTED
        assert "Robotics Club" in note.message
        assert inbox(people.faculty_sci) == []

        (log,) = repo.list_history(engine, event.id)
        assert log.action == "SUBMIT"
        assert log.from_status is None
        assert log.notified_at is not None

    def test_title_and_description_are_trimmed(self, submit):
        event = submit(title="  Robotics Night  ", description=" demo ")
        assert event.title == "Robotics Night"
        assert event.description == "demo"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": "   "},
            {"description": ""},
            {"end_at": START - timedelta(minutes=1)},
            {"capacity": -1},
            {"location": None, "location_id": None},
        ],
    )
    def test_rejects_malformed_drafts(self, engine, people, submit, overrides):
        with pytest.raises(InvalidInput):
            submit(**overrides)
        assert repo.list_visible_events(engine, people.creator)[1] == 0

    def test_college_must_match_community(self, people, submit):
        with pytest.raises(InvalidInput):
            submit(college_id=people.sci)
        assert submit(college_id=people.eng).college_id == people.eng

    def test_community_without_college(self, people, submit):
        with pytest.raises(InvalidInput):
            submit(community_id=people.orphan_community)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"community_id": "com-missing"},
            {"creator_id": "u-missing"},
            {"location_id": "loc-missing"},
        ],
    )
    def test_unknown_references(self, submit, overrides):
        with pytest.raises(NotFound):
            submit(**overrides)

    def test_location_name_is_filled_from_directory(self, people, submit):
        event = submit(location_id=people.hall, location=None)
        assert event.location_id == people.hall
        assert event.location == "Main Hall"

    def test_naive_times_are_utc(self, engine, people):
        naive = datetime(2030, 4, 1, 9, 0)
        event = gateway.submit_event(
            engine, people.community, people.creator, make_draft(start_at=naive, end_at=None)
        )
        assert event.start_at.replace(tzinfo=None) == naive
        assert event.end_at is None


class TestScheduleConflicts:
    def test_overlap_with_approved_event(self, engine, people, submit):
        approve_all(engine, people, submit(title="Hackathon", location_id=people.hall))

        with pytest.raises(ScheduleConflict, match="Hackathon"):
            submit(location_id=people.hall, start_at=START + timedelta(hours=1))

    def test_schedule_conflict_is_a_conflict(self):
        assert issubclass(ScheduleConflict, Conflict)

    def test_adjacent_slot_is_free(self, engine, people, submit):
        approve_all(engine, people, submit(title="Hackathon", location_id=people.hall))
        event = submit(location_id=people.hall, start_at=START + timedelta(hours=3), end_at=None)
        assert event.status is EventStatus.PENDING_FACULTY_APPROVAL

    def test_pending_events_do_not_block(self, people, submit):
        submit(location_id=people.hall)
        assert submit(location_id=people.hall).status is EventStatus.PENDING_FACULTY_APPROVAL

    def test_free_text_location_is_not_checked(self, engine, people, submit):
        approve_all(engine, people, submit(location_id=people.hall))
        assert submit(location="Main Hall").location_id is None

    def test_open_ended_event_uses_default_duration(self, engine, people, submit):
        approve_all(engine, people, submit(title="Open Mic", location_id=people.hall, end_at=None))

        with pytest.raises(ScheduleConflict):
            submit(location_id=people.hall, start_at=START + timedelta(hours=1), end_at=None)
        event = submit(location_id=people.hall, start_at=START + timedelta(hours=2), end_at=None)
        assert event.location_id == people.hall


class TestRespondToRevision:
    def test_notifies_only_the_requesting_approver(self, engine, people, submit, inbox):
        event = submit()
        workflow.decide(engine, event.id, people.faculty, Role.FACULTY_LEADER, Decision.APPROVE)
        workflow.decide(engine, event.id, people.dean, Role.DEAN_OF_FACULTY, Decision.REQUEST_REVISION, "budget?")

        event = gateway.respond_to_revision(engine, event.id, people.creator, "budget attached")
        assert event.status is EventStatus.PENDING_DEAN_APPROVAL

        responded = NotificationType.EVENT_REVISION_RESPONDED
        assert [n.type for n in inbox(people.dean)].count(responded) == 1
        for user_id in (people.faculty, people.dean_sci, people.deanship, people.creator):
            assert responded not in [n.type for n in inbox(user_id)]

    def test_unknown_event(self, engine, people):
        with pytest.raises(NotFound):
            gateway.respond_to_revision(engine, "missing", people.creator, "anything")
