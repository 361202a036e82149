from dataclasses import replace
from datetime import datetime, timezone

import pytest

from campus_events import policy
from campus_events.models import Decision, Event, EventStatus, Role, Scope, Tier, User
from campus_events.policy import Verdict

NOW = datetime(2030, 1, 1, tzinfo=timezone.utc)


def make_event(status=EventStatus.PENDING_FACULTY_APPROVAL, college_id="col-eng", created_by="u-creator"):
    return Event(
        id="evt-1",
        title="Robotics Night",
        description="demo",
        start_at=NOW,
        end_at=None,
        capacity=None,
        location_id=None,
        location="Atrium",
        community_id="com-1",
        college_id=college_id,
        created_by=created_by,
        status=status,
        version=1,
        created_at=NOW,
        updated_at=NOW,
    )


class TestModels:
    def test_tier_statuses(self):
        assert Tier.DEAN.pending is EventStatus.PENDING_DEAN_APPROVAL
        assert Tier.DEAN.revision is EventStatus.DEAN_REQUIRES_REVISION
        assert Tier.DEAN.rejected is EventStatus.DEAN_REJECTED
        assert Tier.DEANSHIP.column("approved_by") == "deanship_approved_by"

    def test_status_classification(self):
        assert EventStatus.FACULTY_REQUIRES_REVISION.tier is Tier.FACULTY
        assert EventStatus.APPROVED.tier is None
        assert EventStatus.APPROVED.is_terminal
        assert EventStatus.DEANSHIP_REJECTED.is_terminal
        assert not EventStatus.DEAN_REQUIRES_REVISION.is_terminal
        assert EventStatus.PENDING_DEANSHIP_APPROVAL.is_pending

    def test_list_states_has_all_ten(self):
        assert len(policy.list_states()) == 10
        assert "APPROVED" in policy.list_states()


class TestResolve:
    def test_faculty_pending_is_college_scoped(self):
        e = policy.resolve("col-eng", EventStatus.PENDING_FACULTY_APPROVAL)
        assert e.role is Role.FACULTY_LEADER
        assert e.scope is Scope.COLLEGE
        assert e.college_id == "col-eng"

    def test_deanship_is_university_wide(self):
        e = policy.resolve("col-eng", EventStatus.PENDING_DEANSHIP_APPROVAL)
        assert e.role is Role.DEANSHIP_OF_STUDENT_AFFAIRS
        assert e.scope is Scope.UNIVERSITY
        assert e.college_id is None

    def test_revision_waits_on_submitter(self):
        e = policy.resolve("col-eng", EventStatus.DEAN_REQUIRES_REVISION)
        assert e.role is None
        assert e.scope is Scope.SUBMITTER

    @pytest.mark.parametrize("status", [EventStatus.APPROVED, EventStatus.FACULTY_REJECTED, EventStatus.DEAN_REJECTED])
    def test_terminal_has_no_actor(self, status):
        assert policy.resolve("col-eng", status) is None


class TestTransitions:
    @pytest.mark.parametrize(
        "status, decision, expected",
        [
            (EventStatus.PENDING_FACULTY_APPROVAL, Decision.APPROVE, EventStatus.PENDING_DEAN_APPROVAL),
            (EventStatus.PENDING_DEAN_APPROVAL, Decision.APPROVE, EventStatus.PENDING_DEANSHIP_APPROVAL),
            (EventStatus.PENDING_DEANSHIP_APPROVAL, Decision.APPROVE, EventStatus.APPROVED),
            (EventStatus.PENDING_DEAN_APPROVAL, Decision.REJECT, EventStatus.DEAN_REJECTED),
            (EventStatus.PENDING_DEANSHIP_APPROVAL, Decision.REQUEST_REVISION, EventStatus.DEANSHIP_REQUIRES_REVISION),
            (EventStatus.DEAN_REQUIRES_REVISION, Decision.RESPOND_REVISION, EventStatus.PENDING_DEAN_APPROVAL),
            (EventStatus.FACULTY_REQUIRES_REVISION, Decision.RESPOND_REVISION, EventStatus.PENDING_FACULTY_APPROVAL),
        ],
    )
    def test_next_status(self, status, decision, expected):
        assert policy.next_status(status, decision) is expected

    def test_illegal_decision_has_no_target(self):
        assert policy.next_status(EventStatus.PENDING_FACULTY_APPROVAL, Decision.RESPOND_REVISION) is None
        assert policy.next_status(EventStatus.APPROVED, Decision.APPROVE) is None

    def test_legal_decisions(self):
        assert policy.legal_decisions(EventStatus.PENDING_DEAN_APPROVAL) == [
            Decision.APPROVE,
            Decision.REJECT,
            Decision.REQUEST_REVISION,
        ]
        assert policy.legal_decisions(EventStatus.DEAN_REQUIRES_REVISION) == [Decision.RESPOND_REVISION]
        assert policy.legal_decisions(EventStatus.DEAN_REJECTED) == []


class TestCheckDecision:
    @pytest.mark.parametrize(
        "status, role, actor_college, expected",
        [
            (EventStatus.PENDING_FACULTY_APPROVAL, Role.FACULTY_LEADER, "col-eng", Verdict.ALLOWED),
            (EventStatus.PENDING_FACULTY_APPROVAL, Role.DEAN_OF_FACULTY, "col-eng", Verdict.UNAUTHORIZED),
            (EventStatus.PENDING_FACULTY_APPROVAL, Role.FACULTY_LEADER, "col-sci", Verdict.UNAUTHORIZED),
            (EventStatus.PENDING_FACULTY_APPROVAL, Role.STUDENT, "col-eng", Verdict.UNAUTHORIZED),
            (EventStatus.PENDING_DEAN_APPROVAL, Role.FACULTY_LEADER, "col-eng", Verdict.STALE),
            (EventStatus.FACULTY_REQUIRES_REVISION, Role.FACULTY_LEADER, "col-eng", Verdict.STALE),
            (EventStatus.PENDING_DEANSHIP_APPROVAL, Role.DEANSHIP_OF_STUDENT_AFFAIRS, None, Verdict.ALLOWED),
            (EventStatus.PENDING_DEAN_APPROVAL, Role.DEANSHIP_OF_STUDENT_AFFAIRS, None, Verdict.UNAUTHORIZED),
            (EventStatus.DEAN_REJECTED, Role.DEAN_OF_FACULTY, "col-eng", Verdict.UNAUTHORIZED),
            (EventStatus.DEAN_REJECTED, Role.DEANSHIP_OF_STUDENT_AFFAIRS, None, Verdict.UNAUTHORIZED),
            (EventStatus.APPROVED, Role.DEANSHIP_OF_STUDENT_AFFAIRS, None, Verdict.UNAUTHORIZED),
        ],
    )
    def test_verdicts(self, status, role, actor_college, expected):
        assert policy.check_decision(status, "col-eng", role, actor_college) is expected

    def test_college_approver_without_college(self):
        assert (
            policy.check_decision(EventStatus.PENDING_FACULTY_APPROVAL, "col-eng", Role.FACULTY_LEADER, None)
            is Verdict.UNAUTHORIZED
        )


class TestRevisionResponse:
    def test_creator_and_leader_may_respond(self):
        event = make_event(EventStatus.DEAN_REQUIRES_REVISION)
        assert policy.can_respond_to_revision(event.status, "u-creator", event)
        assert policy.can_respond_to_revision(event.status, "u-lead", event, community_leader_id="u-lead")

    def test_other_users_may_not(self):
        event = make_event(EventStatus.DEAN_REQUIRES_REVISION)
        assert not policy.can_respond_to_revision(event.status, "u-other", event, community_leader_id="u-lead")

    def test_only_in_revision_states(self):
        event = make_event(EventStatus.PENDING_DEAN_APPROVAL)
        assert not policy.can_respond_to_revision(event.status, "u-creator", event)

    def test_answered_round_is_stale(self):
        event = replace(make_event(EventStatus.PENDING_DEAN_APPROVAL), dean_revision_response="venue confirmed")
        assert policy.check_response(event.status, "u-creator", event) is Verdict.STALE

    def test_no_revision_request_is_unauthorized(self):
        assert policy.check_response(EventStatus.PENDING_FACULTY_APPROVAL, "u-creator", make_event()) is Verdict.UNAUTHORIZED
        event = replace(make_event(EventStatus.PENDING_DEAN_APPROVAL), faculty_revision_response="earlier answer")
        assert policy.check_response(event.status, "u-creator", event) is Verdict.UNAUTHORIZED

    def test_check_response(self):
        event = make_event(EventStatus.DEAN_REQUIRES_REVISION)
        assert policy.check_response(event.status, "u-creator", event) is Verdict.ALLOWED
        assert policy.check_response(EventStatus.FACULTY_REJECTED, "u-creator", make_event()) is Verdict.UNAUTHORIZED
        assert (
            policy.check_response(EventStatus.FACULTY_REQUIRES_REVISION, "u-other", make_event())
            is Verdict.UNAUTHORIZED
        )


class TestAllowedDecisions:
    def test_approver_gets_pending_decisions(self):
        user = User(id="u-f", display_name="F", role=Role.FACULTY_LEADER, college_id="col-eng")
        assert policy.allowed_decisions(make_event(), user) == [
            Decision.APPROVE,
            Decision.REJECT,
            Decision.REQUEST_REVISION,
        ]

    def test_submitter_gets_respond_during_revision(self):
        user = User(id="u-creator", display_name="C", role=Role.CLUB_LEADER, college_id="col-eng")
        event = make_event(EventStatus.FACULTY_REQUIRES_REVISION)
        assert policy.allowed_decisions(event, user) == [Decision.RESPOND_REVISION]

    def test_nobody_acts_on_terminal(self):
        user = User(id="u-d", display_name="D", role=Role.DEAN_OF_FACULTY, college_id="col-eng")
        assert policy.allowed_decisions(make_event(EventStatus.DEAN_REJECTED), user) == []
