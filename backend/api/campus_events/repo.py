from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, insert, or_, select, update

from campus_events.db import Bind, transaction
from campus_events.errors import Conflict, NotFound
from campus_events.models import (
    Event,
    EventStatus,
    Notification,
    RevisionRound,
    Role,
    Tier,
    TransitionRecord,
)
from campus_events.tables import approval_log, events, notifications, revision_rounds


# ----------------------------
# Helpers (safe + deterministic)
# ----------------------------

def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sort_to_order_by(sort: str):
    """
    Allowed sort values (explicit allow-list):
      - start_at_asc (default)
      - start_at_desc
      - created_at_desc
      - created_at_asc
      - title_asc
      - title_desc
    """
    s = (sort or "").strip().lower()
    if s == "start_at_desc":
        return events.c.start_at.desc()
    if s == "created_at_desc":
        return events.c.created_at.desc()
    if s == "created_at_asc":
        return events.c.created_at.asc()
    if s == "title_asc":
        return events.c.title.asc()
    if s == "title_desc":
        return events.c.title.desc()
    return events.c.start_at.asc()


def _log_values(
    *,
    event_id: str,
    action: str,
    from_status: Optional[EventStatus],
    to_status: EventStatus,
    actor_id: Optional[str],
    actor_role: Optional[Role],
    reason: Optional[str],
    planned: List[Dict[str, Any]],
    now: datetime,
) -> Dict[str, Any]:
    return {
        "id": new_id(),
        "event_id": event_id,
        "action": action,
        "from_status": from_status,
        "to_status": to_status,
        "actor_id": actor_id,
        "actor_role": actor_role,
        "reason": reason,
        "notifications": planned,
        "notified_at": None,
        "created_at": now,
    }


# ----------------------------
# Events
# ----------------------------

def create_event(
    bind: Bind,
    values: Dict[str, Any],
    *,
    actor_id: str,
    actor_role: Optional[Role],
    planned: List[Dict[str, Any]],
) -> Tuple[Event, TransitionRecord]:
    """
    Insert a new event in PENDING_FACULTY_APPROVAL together with its SUBMIT
    log entry (one transaction).
    """
    now = utcnow()
    row = {
        "id": new_id(),
        "status": EventStatus.PENDING_FACULTY_APPROVAL,
        "version": 1,
        "created_at": now,
        "updated_at": now,
        **values,
    }
    log = _log_values(
        event_id=row["id"],
        action="SUBMIT",
        from_status=None,
        to_status=row["status"],
        actor_id=actor_id,
        actor_role=actor_role,
        reason=None,
        planned=planned,
        now=now,
    )

    with transaction(bind) as conn:
        conn.execute(insert(events).values(**row))
        conn.execute(insert(approval_log).values(**log))
        created = conn.execute(select(events).where(events.c.id == row["id"])).mappings().one()

    return Event.from_row(created), TransitionRecord.from_row(log)


def get_event(bind: Bind, event_id: str) -> Event:
    with transaction(bind) as conn:
        row = conn.execute(select(events).where(events.c.id == event_id)).mappings().first()

    if not row:
        raise NotFound(f"Event not found: {event_id}")
    return Event.from_row(row)


def list_events_by_status(
    bind: Bind,
    status: EventStatus,
    college_id: Optional[str] = None,
) -> List[Event]:
    stmt = select(events).where(events.c.status == status)
    if college_id is not None:
        stmt = stmt.where(events.c.college_id == college_id)
    stmt = stmt.order_by(events.c.created_at.desc())

    with transaction(bind) as conn:
        rows = conn.execute(stmt).mappings().all()

    return [Event.from_row(r) for r in rows]


def list_visible_events(
    bind: Bind,
    viewer_id: Optional[str] = None,
    *,
    q: Optional[str] = None,
    community_id: Optional[str] = None,
    upcoming: bool = False,
    limit: int = 20,
    offset: int = 0,
    sort: str = "start_at_asc",
) -> Tuple[List[Event], int]:
    """APPROVED events, plus every event the viewer created (any status)."""
    visible = events.c.status == EventStatus.APPROVED
    if viewer_id:
        visible = or_(visible, events.c.created_by == viewer_id)

    where_parts = [visible]
    if q:
        where_parts.append(
            or_(events.c.title.ilike(f"%{q}%"), events.c.description.ilike(f"%{q}%"))
        )
    if community_id:
        where_parts.append(events.c.community_id == community_id)
    if upcoming:
        where_parts.append(events.c.start_at >= utcnow())

    where_sql = and_(*where_parts)

    stmt_items = (
        select(events)
        .where(where_sql)
        .order_by(_sort_to_order_by(sort))
        .limit(int(limit))
        .offset(int(offset))
    )
    stmt_total = select(func.count()).select_from(events).where(where_sql)

    with transaction(bind) as conn:
        rows = conn.execute(stmt_items).mappings().all()
        total = conn.execute(stmt_total).scalar_one()

    return [Event.from_row(r) for r in rows], int(total)


def find_conflicting_event(
    bind: Bind,
    location_id: str,
    start_at: datetime,
    end_at: datetime,
    default_duration: timedelta,
) -> Optional[Event]:
    """
    First APPROVED event at `location_id` overlapping [start_at, end_at).
    Events without an end time are treated as lasting `default_duration`.
    """
    stmt = (
        select(events)
        .where(
            events.c.location_id == location_id,
            events.c.status == EventStatus.APPROVED,
            events.c.start_at < end_at,
            or_(
                and_(events.c.end_at.is_not(None), events.c.end_at > start_at),
                and_(events.c.end_at.is_(None), events.c.start_at > start_at - default_duration),
            ),
        )
        .order_by(events.c.start_at.asc())
        .limit(1)
    )

    with transaction(bind) as conn:
        row = conn.execute(stmt).mappings().first()

    return Event.from_row(row) if row else None


# ----------------------------
# Governance: conditional transition
# ----------------------------

def apply_transition(
    bind: Bind,
    *,
    event_id: str,
    expected_status: EventStatus,
    to_status: EventStatus,
    action: str,
    actor_id: Optional[str],
    actor_role: Optional[Role],
    reason: Optional[str],
    fields: Dict[str, Any],
    planned: List[Dict[str, Any]],
    open_round: Optional[Tuple[Tier, str]] = None,
    close_round: Optional[Tuple[Tier, str]] = None,
) -> TransitionRecord:
    """
    Move an event from `expected_status` to `to_status`.

    The UPDATE is conditioned on the status still being `expected_status`
    (compare-and-swap). Status, outcome fields, the revision round and the log
    row are written in one transaction; if the status moved underneath us,
    Conflict is raised and nothing is written.

    open_round:  (tier, request_text) appends a new revision round.
    close_round: (tier, response_text) answers the latest open round of that tier.
    """
    now = utcnow()
    log = _log_values(
        event_id=event_id,
        action=action,
        from_status=expected_status,
        to_status=to_status,
        actor_id=actor_id,
        actor_role=actor_role,
        reason=reason,
        planned=planned,
        now=now,
    )

    with transaction(bind) as conn:
        result = conn.execute(
            update(events)
            .where(events.c.id == event_id, events.c.status == expected_status)
            .values(status=to_status, version=events.c.version + 1, updated_at=now, **fields)
        )
        if result.rowcount != 1:
            raise Conflict(
                f"Event {event_id} is no longer {expected_status.value}; re-read and retry"
            )

        if open_round is not None:
            tier, request_text = open_round
            last = conn.execute(
                select(func.coalesce(func.max(revision_rounds.c.round_number), 0)).where(
                    revision_rounds.c.event_id == event_id,
                    revision_rounds.c.tier == tier,
                )
            ).scalar_one()
            conn.execute(
                insert(revision_rounds).values(
                    id=new_id(),
                    event_id=event_id,
                    tier=tier,
                    round_number=int(last) + 1,
                    request_text=request_text,
                    requested_by=actor_id,
                    requested_at=now,
                )
            )

        if close_round is not None:
            tier, response_text = close_round
            open_id = conn.execute(
                select(revision_rounds.c.id)
                .where(
                    revision_rounds.c.event_id == event_id,
                    revision_rounds.c.tier == tier,
                    revision_rounds.c.responded_at.is_(None),
                )
                .order_by(revision_rounds.c.round_number.desc())
                .limit(1)
            ).scalar_one_or_none()
            if open_id is not None:
                conn.execute(
                    update(revision_rounds)
                    .where(revision_rounds.c.id == open_id)
                    .values(response_text=response_text, responded_by=actor_id, responded_at=now)
                )

        conn.execute(insert(approval_log).values(**log))

    return TransitionRecord.from_row(log)


# ----------------------------
# Revision rounds
# ----------------------------

def latest_revision_round(bind: Bind, event_id: str, tier: Tier) -> Optional[RevisionRound]:
    stmt = (
        select(revision_rounds)
        .where(revision_rounds.c.event_id == event_id, revision_rounds.c.tier == tier)
        .order_by(revision_rounds.c.round_number.desc())
        .limit(1)
    )
    with transaction(bind) as conn:
        row = conn.execute(stmt).mappings().first()

    return RevisionRound.from_row(row) if row else None


def list_revision_rounds(bind: Bind, event_id: str, tier: Optional[Tier] = None) -> List[RevisionRound]:
    stmt = select(revision_rounds).where(revision_rounds.c.event_id == event_id)
    if tier is not None:
        stmt = stmt.where(revision_rounds.c.tier == tier)
    stmt = stmt.order_by(revision_rounds.c.requested_at.asc(), revision_rounds.c.round_number.asc())

    with transaction(bind) as conn:
        rows = conn.execute(stmt).mappings().all()

    return [RevisionRound.from_row(r) for r in rows]


# ----------------------------
# Approval log
# ----------------------------

def get_transition(bind: Bind, transition_id: str) -> TransitionRecord:
    with transaction(bind) as conn:
        row = conn.execute(
            select(approval_log).where(approval_log.c.id == transition_id)
        ).mappings().first()

    if not row:
        raise NotFound(f"Transition not found: {transition_id}")
    return TransitionRecord.from_row(row)


def list_history(bind: Bind, event_id: str) -> List[TransitionRecord]:
    stmt = (
        select(approval_log)
        .where(approval_log.c.event_id == event_id)
        .order_by(approval_log.c.created_at.asc())
    )
    with transaction(bind) as conn:
        rows = conn.execute(stmt).mappings().all()

    return [TransitionRecord.from_row(r) for r in rows]


def list_undelivered_transitions(bind: Bind, created_before: datetime, limit: int = 100) -> List[TransitionRecord]:
    stmt = (
        select(approval_log)
        .where(approval_log.c.notified_at.is_(None), approval_log.c.created_at <= created_before)
        .order_by(approval_log.c.created_at.asc())
        .limit(int(limit))
    )
    with transaction(bind) as conn:
        rows = conn.execute(stmt).mappings().all()

    return [TransitionRecord.from_row(r) for r in rows]


def mark_transition_notified(bind: Bind, transition_id: str) -> bool:
    """Stamp notified_at; False when another delivery got there first."""
    with transaction(bind) as conn:
        result = conn.execute(
            update(approval_log)
            .where(approval_log.c.id == transition_id, approval_log.c.notified_at.is_(None))
            .values(notified_at=utcnow())
        )
    return result.rowcount == 1


# ----------------------------
# Notifications
# ----------------------------

def insert_notification(bind: Bind, values: Dict[str, Any]) -> Notification:
    row = {"id": new_id(), "read": False, "created_at": utcnow(), **values}
    with transaction(bind) as conn:
        conn.execute(insert(notifications).values(**row))
    return Notification.from_row(row)


def find_transition_notification(bind: Bind, transition_id: str, user_id: str) -> Optional[Notification]:
    with transaction(bind) as conn:
        row = conn.execute(
            select(notifications).where(
                notifications.c.transition_id == transition_id,
                notifications.c.user_id == user_id,
            )
        ).mappings().first()

    return Notification.from_row(row) if row else None


def list_notifications(
    bind: Bind,
    user_id: str,
    *,
    unread_only: bool = False,
    event_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Notification]:
    stmt = select(notifications).where(notifications.c.user_id == user_id)
    if unread_only:
        stmt = stmt.where(notifications.c.read.is_(False))
    if event_id is not None:
        stmt = stmt.where(notifications.c.event_id == event_id)
    stmt = stmt.order_by(notifications.c.created_at.desc()).limit(int(limit)).offset(int(offset))

    with transaction(bind) as conn:
        rows = conn.execute(stmt).mappings().all()

    return [Notification.from_row(r) for r in rows]


def count_unread(bind: Bind, user_id: str) -> int:
    stmt = select(func.count()).select_from(notifications).where(
        notifications.c.user_id == user_id,
        notifications.c.read.is_(False),
    )
    with transaction(bind) as conn:
        return int(conn.execute(stmt).scalar_one())


def mark_read(bind: Bind, notification_id: str, user_id: str) -> int:
    with transaction(bind) as conn:
        result = conn.execute(
            update(notifications)
            .where(notifications.c.id == notification_id, notifications.c.user_id == user_id)
            .values(read=True)
        )
    return result.rowcount


def mark_all_read(bind: Bind, user_id: str) -> int:
    with transaction(bind) as conn:
        result = conn.execute(
            update(notifications)
            .where(notifications.c.user_id == user_id, notifications.c.read.is_(False))
            .values(read=True)
        )
    return result.rowcount
