"""Notification emitter.

Records in-app notifications; delivery to live clients is a transport concern
handled elsewhere. Transition fan-out goes through the approval log: the planned
notifications are stored with the transition and written here afterwards, so a
failed or repeated delivery never touches the transition itself.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from campus_events import repo
from campus_events.config import get_settings
from campus_events.db import Bind, savepoint, transaction
from campus_events.errors import NotFound
from campus_events.models import Notification, NotificationType, Tier, TransitionRecord

logger = logging.getLogger(__name__)

TEMPLATES: Dict[NotificationType, str] = {
    NotificationType.EVENT_SUBMITTED: 'New event "{title}" from {community} is pending your approval',
    NotificationType.EVENT_PENDING_APPROVAL: (
        'Event "{title}" has been approved by the {label} and is pending your approval'
    ),
    NotificationType.EVENT_APPROVED: (
        'Congratulations! Your event "{title}" has been fully approved and is now published'
    ),
    NotificationType.EVENT_REJECTED: '{actor} ({label}) rejected event "{title}": {text}',
    NotificationType.EVENT_NEEDS_REVISION: '{actor} ({label}) requests revision for event "{title}": {text}',
    NotificationType.EVENT_REVISION_RESPONDED: (
        '{actor} has responded to your revision request for event "{title}" '
        "and resubmitted it for your review. Response: {text}"
    ),
}


def render(type: NotificationType, **fields: Any) -> str:
    return TEMPLATES[NotificationType(type)].format(**fields)


def structured_payload(
    *,
    tier: Optional[Tier],
    kind: str,
    raw_text: Optional[str] = None,
    actor_id: Optional[str] = None,
    actor_name: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "tier": tier.value if tier else None,
        "kind": kind,
        "raw_text": raw_text,
        "actor_id": actor_id,
        "actor_name": actor_name,
    }


def plan(
    recipient_user_ids: Iterable[str],
    type: NotificationType,
    message: str,
    payload: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """JSON-safe outbox entries, one per distinct recipient (order kept)."""
    entries: List[Dict[str, Any]] = []
    seen: set[str] = set()
    for user_id in recipient_user_ids:
        if not user_id or user_id in seen:
            continue
        seen.add(user_id)
        entries.append(
            {"user_id": user_id, "type": NotificationType(type).value, "message": message, "payload": payload}
        )
    return entries


def emit(
    bind: Bind,
    recipient_user_id: str,
    type: NotificationType,
    event_id: Optional[str],
    message: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    transition_id: Optional[str] = None,
) -> Notification:
    """
    Record one notification. The recipient is not checked against the
    directory. With a transition_id, a second emit for the same recipient
    returns the existing record instead of a duplicate.
    """
    if transition_id is not None:
        existing = repo.find_transition_notification(bind, transition_id, recipient_user_id)
        if existing is not None:
            return existing

    return repo.insert_notification(
        bind,
        {
            "user_id": recipient_user_id,
            "type": NotificationType(type),
            "event_id": event_id,
            "message": message,
            "payload": payload,
            "transition_id": transition_id,
        },
    )


def emit_many(
    bind: Bind,
    recipient_user_ids: Iterable[str],
    type: NotificationType,
    event_id: Optional[str],
    message: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    transition_id: Optional[str] = None,
) -> List[Notification]:
    out: List[Notification] = []
    with transaction(bind) as conn:
        for entry in plan(recipient_user_ids, type, message, payload):
            out.append(
                emit(conn, entry["user_id"], type, event_id, message, payload=payload, transition_id=transition_id)
            )
    return out


# ----------------------------
# Outbox delivery
# ----------------------------

def _deliver(bind: Bind, record: TransitionRecord) -> List[Notification]:
    out: List[Notification] = []
    # The stamp and the rows commit or roll back together, even inside a caller's transaction.
    with savepoint(bind) as conn:
        if not repo.mark_transition_notified(conn, record.id):
            return out
        for entry in record.notifications:
            out.append(
                emit(
                    conn,
                    entry["user_id"],
                    NotificationType(entry["type"]),
                    record.event_id,
                    entry["message"],
                    payload=entry.get("payload"),
                    transition_id=record.id,
                )
            )
    return out


def deliver_transition(bind: Bind, record: Union[TransitionRecord, str]) -> List[Notification]:
    """
    Write the notifications planned for a committed transition.

    Failures are logged and swallowed: the transition is already durable and
    the worker picks up anything left undelivered.
    """
    transition_id = record if isinstance(record, str) else record.id
    try:
        if isinstance(record, str):
            record = repo.get_transition(bind, record)
        out = _deliver(bind, record)
    except Exception:
        logger.exception("notification delivery failed for transition %s", transition_id)
        return []

    if out:
        logger.info(
            "delivered %d notification(s) for transition %s (event %s)",
            len(out),
            transition_id,
            record.event_id,
        )
    return out


def redeliver_pending(
    bind: Bind,
    *,
    grace_seconds: Optional[int] = None,
    limit: Optional[int] = None,
) -> int:
    """Deliver transitions still lacking notifications; returns how many were delivered."""
    settings = get_settings()
    grace = settings.notify_retry_grace_sec if grace_seconds is None else grace_seconds
    batch = settings.notify_retry_batch if limit is None else limit

    pending = repo.list_undelivered_transitions(bind, repo.utcnow() - timedelta(seconds=grace), batch)
    delivered = 0
    for record in pending:
        try:
            _deliver(bind, record)
        except Exception:
            logger.exception("redelivery failed for transition %s", record.id)
            continue
        delivered += 1

    if pending:
        logger.info("redelivery sweep: %d/%d transition(s) delivered", delivered, len(pending))
    return delivered


# ----------------------------
# Recipient-facing hooks
# ----------------------------

def list_notifications(
    bind: Bind,
    user_id: str,
    *,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> List[Notification]:
    return repo.list_notifications(bind, user_id, unread_only=unread_only, limit=limit, offset=offset)


def unread_count(bind: Bind, user_id: str) -> int:
    return repo.count_unread(bind, user_id)


def mark_notification_read(bind: Bind, notification_id: str, user_id: str) -> None:
    # Only the owner may mark it; anyone else gets the same answer as a missing id.
    if repo.mark_read(bind, notification_id, user_id) == 0:
        raise NotFound(f"Notification not found: {notification_id}")


def mark_all_notifications_read(bind: Bind, user_id: str) -> int:
    return repo.mark_all_read(bind, user_id)
