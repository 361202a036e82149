import pytest

from campus_events import notifications, repo
from campus_events.errors import NotFound
from campus_events.models import NotificationType, Tier


class TestEmit:
    def test_unknown_recipient_is_still_recorded(self, engine, people):
        note = notifications.emit(engine, "u-not-in-directory", NotificationType.GENERAL, None, "Welcome")
        assert note.user_id == "u-not-in-directory"
        assert note.read is False
        assert notifications.unread_count(engine, "u-not-in-directory") == 1

    def test_emit_many_skips_duplicates(self, engine, people):
        out = notifications.emit_many(
            engine,
            [people.creator, people.leader, people.creator, ""],
            NotificationType.GENERAL,
            None,
            "Club fair on Monday",
        )
        assert [n.user_id for n in out] == [people.creator, people.leader]

    def test_same_transition_never_doubles(self, engine, people, submit, inbox):
        event = submit()
        (submitted,) = repo.list_history(engine, event.id)
        first = notifications.emit(
            engine,
            people.faculty,
            NotificationType.EVENT_SUBMITTED,
            event.id,
            "again",
            transition_id=submitted.id,
        )
        assert first.message != "again"
        assert len(inbox(people.faculty)) == 1

    def test_redelivering_a_delivered_transition_is_a_no_op(self, engine, people, submit, inbox):
        event = submit()
        (submitted,) = repo.list_history(engine, event.id)
        assert notifications.deliver_transition(engine, submitted.id) == []
        assert len(inbox(people.faculty)) == 1

    def test_unknown_transition_is_logged_not_raised(self, engine, caplog):
        with caplog.at_level("ERROR", logger="campus_events.notifications"):
            assert notifications.deliver_transition(engine, "no-such-transition") == []
        assert "no-such-transition" in caplog.text


class TestTemplates:
    def test_revision_markers(self):
        msg = notifications.render(
            NotificationType.EVENT_NEEDS_REVISION,
            actor="Dr. Dana",
            label=Tier.DEAN.label,
            title="Robotics Night",
            text="need venue",
        )
        assert msg == 'Dr. Dana (Dean of Faculty) requests revision for event "Robotics Night": need venue'

        msg = notifications.render(
            NotificationType.EVENT_REVISION_RESPONDED, actor="Rana Club", title="Robotics Night", text="ok"
        )
        assert msg.endswith("Response: ok")

    def test_plan_is_json_safe(self):
        payload = notifications.structured_payload(tier=Tier.FACULTY, kind="APPROVAL")
        entries = notifications.plan(["a", "b", "a"], NotificationType.EVENT_APPROVED, "done", payload)
        assert entries == [
            {"user_id": "a", "type": "EVENT_APPROVED", "message": "done", "payload": payload},
            {"user_id": "b", "type": "EVENT_APPROVED", "message": "done", "payload": payload},
        ]
        assert payload["tier"] == "faculty"


class TestReadMarking:
    def test_mark_read_by_owner(self, engine, people, submit, inbox):
        submit()
        (note,) = inbox(people.faculty)
        assert notifications.unread_count(engine, people.faculty) == 1

        notifications.mark_notification_read(engine, note.id, people.faculty)
        assert notifications.unread_count(engine, people.faculty) == 0
        assert inbox(people.faculty)[0].read is True
        assert inbox(people.faculty, unread_only=True) == []

    def test_mark_read_by_someone_else(self, engine, people, submit, inbox):
        submit()
        (note,) = inbox(people.faculty)
        with pytest.raises(NotFound):
            notifications.mark_notification_read(engine, note.id, people.dean)
        assert notifications.unread_count(engine, people.faculty) == 1

    def test_mark_missing(self, engine, people):
        with pytest.raises(NotFound):
            notifications.mark_notification_read(engine, "missing", people.faculty)

    def test_mark_all(self, engine, people, submit):
        submit(title="One")
        submit(title="Two")
        assert notifications.mark_all_notifications_read(engine, people.faculty) == 2
        assert notifications.mark_all_notifications_read(engine, people.faculty) == 0
        assert notifications.unread_count(engine, people.faculty) == 0
