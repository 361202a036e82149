from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from campus_events import directory, notifications, repo, workflow
from campus_events.config import get_settings
from campus_events.db import Bind
from campus_events.errors import InvalidInput, ScheduleConflict
from campus_events.models import Decision, Event, EventDraft, NotificationType, Tier

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _validate_draft(draft: EventDraft) -> EventDraft:
    title = (draft.title or "").strip()
    description = (draft.description or "").strip()
    if not title or not description:
        raise InvalidInput("Required fields: title, description")

    if not isinstance(draft.start_at, datetime):
        raise InvalidInput("Required field: start_at")
    start_at = _as_utc(draft.start_at)
    end_at = _as_utc(draft.end_at)
    if end_at is not None and end_at < start_at:
        raise InvalidInput("end_at must not be before start_at")

    if draft.capacity is not None and (not isinstance(draft.capacity, int) or draft.capacity < 0):
        raise InvalidInput("capacity must be a non-negative integer")

    location = (draft.location or "").strip() or None
    if not draft.location_id and not location:
        raise InvalidInput("Either location_id or location is required")

    return EventDraft(
        title=title,
        description=description,
        start_at=start_at,
        end_at=end_at,
        capacity=draft.capacity,
        location_id=draft.location_id or None,
        location=location,
        college_id=draft.college_id or None,
    )


def _check_schedule(bind: Bind, draft: EventDraft) -> None:
    duration = timedelta(hours=get_settings().default_event_duration_hours)
    end_at = draft.end_at or draft.start_at + duration
    conflict = repo.find_conflicting_event(bind, draft.location_id, draft.start_at, end_at, duration)
    if conflict is not None:
        raise ScheduleConflict(
            f'This location is already booked for "{conflict.title}" starting {conflict.start_at:%Y-%m-%d %H:%M}. '
            "Please choose a different time or location."
        )


def submit_event(bind: Bind, community_id: str, creator_id: str, draft: EventDraft) -> Event:
    """
    Create an event in PENDING_FACULTY_APPROVAL and notify the Faculty Leader
    of the owning community's college.
    """
    draft = _validate_draft(draft)
    community = directory.get_community(bind, community_id)
    if not community.college_id:
        raise InvalidInput("Community must be assigned to a college")
    if draft.college_id and draft.college_id != community.college_id:
        raise InvalidInput("college_id does not match the community's college")
    creator = directory.get_user(bind, creator_id)

    location_text = draft.location
    if draft.location_id:
        location = directory.get_location(bind, draft.location_id)
        location_text = location_text or location.name
        _check_schedule(bind, draft)

    planned = notifications.plan(
        workflow.tier_pool(bind, Tier.FACULTY, community.college_id),
        NotificationType.EVENT_SUBMITTED,
        notifications.render(NotificationType.EVENT_SUBMITTED, title=draft.title, community=community.name),
        notifications.structured_payload(
            tier=Tier.FACULTY, kind="SUBMISSION", actor_id=creator.id, actor_name=creator.display_name
        ),
    )

    event, record = repo.create_event(
        bind,
        {
            "title": draft.title,
            "description": draft.description,
            "start_at": draft.start_at,
            "end_at": draft.end_at,
            "capacity": draft.capacity,
            "location_id": draft.location_id,
            "location": location_text,
            "community_id": community.id,
            "college_id": community.college_id,
            "created_by": creator.id,
        },
        actor_id=creator.id,
        actor_role=creator.role,
        planned=planned,
    )
    logger.info("event %s submitted by %s for community %s", event.id, creator.id, community.id)

    notifications.deliver_transition(bind, record)
    return event


def respond_to_revision(bind: Bind, event_id: str, acting_user_id: str, response_text: str) -> Event:
    """
    Answer the open revision request and send the event back to the tier that
    asked for it. Only the requesting approver is notified.
    """
    return workflow.decide(
        bind,
        event_id,
        acting_user_id,
        None,
        Decision.RESPOND_REVISION,
        response_text,
    )
