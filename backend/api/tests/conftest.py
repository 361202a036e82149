"""pytest fixtures

- in-memory SQLite engine with the full schema
- a seeded directory: two colleges, their Faculty Leaders and Deans,
  one Deanship user, a club leader, a community and a location
- helpers to submit events and read notifications
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, event, insert
from sqlalchemy.pool import StaticPool

from campus_events import gateway, notifications
from campus_events.models import EventDraft, Role
from campus_events.tables import colleges, communities, locations, metadata, users


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    # pysqlite defers BEGIN on its own; take over so SAVEPOINT (begin_nested) behaves.
    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def people(engine):
    """Directory seed; attribute names are the ids used throughout the tests."""
    ids = SimpleNamespace(
        eng="col-eng",
        sci="col-sci",
        faculty="u-faculty-eng",
        dean="u-dean-eng",
        faculty_sci="u-faculty-sci",
        dean_sci="u-dean-sci",
        deanship="u-deanship",
        creator="u-club-leader",
        leader="u-community-leader",
        student="u-student",
        community="com-robotics",
        orphan_community="com-orphan",
        hall="loc-hall",
    )

    with engine.begin() as conn:
        conn.execute(
            insert(colleges),
            [
                {"id": ids.eng, "name": "College of Engineering", "code": "ENG"},
                {"id": ids.sci, "name": "College of Science", "code": "SCI"},
            ],
        )
        conn.execute(
            insert(users),
            [
                {"id": ids.faculty, "display_name": "Faris Leader", "role": Role.FACULTY_LEADER, "college_id": ids.eng},
                {"id": ids.dean, "display_name": "Dr. Dana", "role": Role.DEAN_OF_FACULTY, "college_id": ids.eng},
                {"id": ids.faculty_sci, "display_name": "Sami Leader", "role": Role.FACULTY_LEADER, "college_id": ids.sci},
                {"id": ids.dean_sci, "display_name": "Dr. Salma", "role": Role.DEAN_OF_FACULTY, "college_id": ids.sci},
                {"id": ids.deanship, "display_name": "Student Affairs", "role": Role.DEANSHIP_OF_STUDENT_AFFAIRS, "college_id": None},
                {"id": ids.creator, "display_name": "Rana Club", "role": Role.CLUB_LEADER, "college_id": ids.eng},
                {"id": ids.leader, "display_name": "Layla Lead", "role": Role.CLUB_LEADER, "college_id": ids.eng},
                {"id": ids.student, "display_name": "Omar Student", "role": Role.STUDENT, "college_id": ids.eng},
            ],
        )
        conn.execute(
            insert(communities),
            [
                {"id": ids.community, "name": "Robotics Club", "college_id": ids.eng, "leader_user_id": ids.leader},
                {"id": ids.orphan_community, "name": "Chess Club", "college_id": None, "leader_user_id": None},
            ],
        )
        conn.execute(
            insert(locations),
            [{"id": ids.hall, "name": "Main Hall", "college_id": ids.eng, "capacity": 200}],
        )

    return ids


def make_draft(**overrides) -> EventDraft:
    start = datetime(2030, 3, 1, 18, 0, tzinfo=timezone.utc)
    values = {
        "title": "Robotics Night",
        "description": "Demo night for the robotics club",
        "start_at": start,
        "end_at": start + timedelta(hours=3),
        "capacity": 120,
        "location_id": None,
        "location": "Engineering Atrium",
    }
    values.update(overrides)
    return EventDraft(**values)


@pytest.fixture
def submit(engine, people):
    def _submit(**overrides):
        community_id = overrides.pop("community_id", people.community)
        creator_id = overrides.pop("creator_id", people.creator)
        return gateway.submit_event(engine, community_id, creator_id, make_draft(**overrides))

    return _submit


@pytest.fixture
def inbox(engine):
    """inbox(user_id) -> that user's notifications, newest first."""

    def _inbox(user_id, **kwargs):
        return notifications.list_notifications(engine, user_id, **kwargs)

    return _inbox
