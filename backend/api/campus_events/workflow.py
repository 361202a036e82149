from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from campus_events import directory, notifications, policy, repo
from campus_events.db import Bind
from campus_events.errors import Conflict, InvalidInput, Unauthorized
from campus_events.models import (
    Decision,
    Event,
    EventStatus,
    NotificationType,
    RevisionRound,
    Role,
    Scope,
    Tier,
    TransitionRecord,
    User,
)
from campus_events.policy import Verdict

logger = logging.getLogger(__name__)


def _coerce(enum_cls, value, what: str):
    try:
        return enum_cls(value.strip().upper() if isinstance(value, str) else value)
    except ValueError:
        raise InvalidInput(f"Unknown {what}: {value}")


def _require_text(text: Optional[str], decision: Decision) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        what = "a response" if decision is Decision.RESPOND_REVISION else "a reason"
        raise InvalidInput(f"{decision.value} requires {what}")
    return cleaned


def _raise_for(verdict: Verdict, event: Event, actor: User, decision: Decision) -> None:
    if verdict is Verdict.ALLOWED:
        return
    status = event.status.value
    if verdict is Verdict.STALE:
        raise Conflict(f"Event {event.id} has already moved on (now {status}); re-read before acting")

    expected = policy.resolve(event.college_id, event.status)
    if expected is None:
        raise Unauthorized(f"Event {event.id} is {status}; no further decisions are possible")
    if expected.scope is Scope.SUBMITTER:
        raise Unauthorized(f"Event {event.id} is waiting for the submitter to respond to a revision request")
    if decision is Decision.RESPOND_REVISION:
        raise Unauthorized(f"Event {event.id} has no open revision request (now {status})")
    if expected.scope is Scope.COLLEGE and actor.role is expected.role:
        raise Unauthorized("You can only act on events from your college")
    raise Unauthorized(
        f"Only the {event.status.tier.label} can {decision.value} an event in {status}"
    )


def submitter_ids(bind: Bind, event: Event) -> List[str]:
    """Event creator first, then the owning community's leader when different."""
    leader = directory.find_community_leader(bind, event.community_id)
    ids = [event.created_by]
    if leader and leader != event.created_by:
        ids.append(leader)
    return ids


def tier_pool(bind: Bind, tier: Tier, college_id: Optional[str]) -> List[str]:
    """Users able to act at `tier` for an event of `college_id`."""
    scoped_college = college_id if policy.role_scope(tier.role) is Scope.COLLEGE else None
    ids = directory.user_ids_with_role(bind, tier.role, scoped_college)
    if not ids:
        logger.warning("No %s found for college %s", tier.label, college_id)
    return ids


# ----------------------------
# Transition planning
# ----------------------------

def _plan_approve(bind: Bind, event: Event, actor: User, tier: Tier, to_status: EventStatus):
    fields = {
        tier.column("approved_by"): actor.id,
        tier.column("approved_at"): repo.utcnow(),
    }
    if to_status is EventStatus.APPROVED:
        planned = notifications.plan(
            submitter_ids(bind, event),
            NotificationType.EVENT_APPROVED,
            notifications.render(NotificationType.EVENT_APPROVED, title=event.title),
            notifications.structured_payload(
                tier=tier, kind="APPROVAL", actor_id=actor.id, actor_name=actor.display_name
            ),
        )
    else:
        next_tier = to_status.tier
        planned = notifications.plan(
            tier_pool(bind, next_tier, event.college_id),
            NotificationType.EVENT_PENDING_APPROVAL,
            notifications.render(
                NotificationType.EVENT_PENDING_APPROVAL, title=event.title, label=tier.label
            ),
            notifications.structured_payload(
                tier=tier, kind="APPROVAL", actor_id=actor.id, actor_name=actor.display_name
            ),
        )
    return fields, planned


def _plan_outcome(bind: Bind, event: Event, actor: User, tier: Tier, decision: Decision, text: str):
    if decision is Decision.REJECT:
        # Only the rejection is kept on the event; earlier rounds stay in revision history.
        fields = {
            tier.column("rejection_reason"): text,
            tier.column("revision_request"): None,
            tier.column("revision_response"): None,
        }
        ntype, kind = NotificationType.EVENT_REJECTED, "REJECTION"
    else:
        fields = {
            tier.column("revision_request"): text,
            tier.column("revision_response"): None,
        }
        ntype, kind = NotificationType.EVENT_NEEDS_REVISION, "REVISION_REQUEST"

    planned = notifications.plan(
        submitter_ids(bind, event),
        ntype,
        notifications.render(
            ntype, actor=actor.display_name, label=tier.label, title=event.title, text=text
        ),
        notifications.structured_payload(
            tier=tier, kind=kind, raw_text=text, actor_id=actor.id, actor_name=actor.display_name
        ),
    )
    return fields, planned


def _revision_requester(bind: Bind, event: Event, tier: Tier) -> List[str]:
    latest: Optional[RevisionRound] = repo.latest_revision_round(bind, event.id, tier)
    if latest is not None and latest.requested_by:
        return [latest.requested_by]
    return tier_pool(bind, tier, event.college_id)


def _commit(
    bind: Bind,
    event: Event,
    actor: User,
    decision: Decision,
    to_status: EventStatus,
    text: Optional[str],
    fields: Dict[str, Any],
    planned: List[Dict[str, Any]],
    open_round: Optional[Tuple[Tier, str]] = None,
    close_round: Optional[Tuple[Tier, str]] = None,
) -> Event:
    record: TransitionRecord = repo.apply_transition(
        bind,
        event_id=event.id,
        expected_status=event.status,
        to_status=to_status,
        action=decision.value,
        actor_id=actor.id,
        actor_role=actor.role,
        reason=text,
        fields=fields,
        planned=planned,
        open_round=open_round,
        close_round=close_round,
    )
    logger.info(
        "event %s: %s -> %s by %s (%s)",
        event.id,
        event.status.value,
        to_status.value,
        actor.id,
        decision.value,
    )

    notifications.deliver_transition(bind, record)
    return repo.get_event(bind, event.id)


# ----------------------------
# Public operations
# ----------------------------

def decide(
    bind: Bind,
    event_id: str,
    acting_user_id: str,
    acting_role: Optional[Role | str],
    decision: Decision | str,
    reason: Optional[str] = None,
) -> Event:
    """
    Apply one approval decision to an event.

    Raises NotFound, Unauthorized, InvalidInput or Conflict; on any of them
    nothing is written. `acting_role`, when given, must match the directory.
    A reason passed with APPROVE is ignored.
    """
    decision = _coerce(Decision, decision, "decision")
    event = repo.get_event(bind, event_id)
    actor = directory.get_user(bind, acting_user_id)

    if acting_role is not None and _coerce(Role, acting_role, "role") is not actor.role:
        raise Unauthorized(f"User {actor.id} does not hold role {acting_role}")

    if decision is Decision.RESPOND_REVISION:
        return _respond(bind, event, actor, reason)

    verdict = policy.check_decision(event.status, event.college_id, actor.role, actor.college_id)
    _raise_for(verdict, event, actor, decision)

    tier = event.status.tier
    to_status = policy.next_status(event.status, decision)

    if decision is Decision.APPROVE:
        fields, planned = _plan_approve(bind, event, actor, tier, to_status)
        return _commit(bind, event, actor, decision, to_status, None, fields, planned)

    text = _require_text(reason, decision)
    fields, planned = _plan_outcome(bind, event, actor, tier, decision, text)
    open_round = (tier, text) if decision is Decision.REQUEST_REVISION else None
    return _commit(bind, event, actor, decision, to_status, text, fields, planned, open_round=open_round)


def _respond(bind: Bind, event: Event, actor: User, response: Optional[str]) -> Event:
    leader = directory.find_community_leader(bind, event.community_id)
    _raise_for(
        policy.check_response(event.status, actor.id, event, leader),
        event,
        actor,
        Decision.RESPOND_REVISION,
    )
    text = _require_text(response, Decision.RESPOND_REVISION)

    tier = event.status.tier
    to_status = policy.next_status(event.status, Decision.RESPOND_REVISION)
    planned = notifications.plan(
        _revision_requester(bind, event, tier),
        NotificationType.EVENT_REVISION_RESPONDED,
        notifications.render(
            NotificationType.EVENT_REVISION_RESPONDED,
            actor=actor.display_name,
            title=event.title,
            text=text,
        ),
        notifications.structured_payload(
            tier=tier,
            kind="REVISION_RESPONSE",
            raw_text=text,
            actor_id=actor.id,
            actor_name=actor.display_name,
        ),
    )
    return _commit(
        bind,
        event,
        actor,
        Decision.RESPOND_REVISION,
        to_status,
        text,
        {tier.column("revision_response"): text},
        planned,
        close_round=(tier, text),
    )


def list_pending_for_role(bind: Bind, role: Role | str, college_id: Optional[str] = None) -> List[Event]:
    """
    Events waiting on `role`. College-scoped roles need a college id;
    the Deanship may pass one to narrow the list.
    """
    role = _coerce(Role, role, "role")
    status = policy.pending_status_for_role(role)
    if status is None:
        return []
    if policy.role_scope(role) is Scope.COLLEGE and not college_id:
        raise InvalidInput(f"{role.value} pending list requires a college id")
    return repo.list_events_by_status(bind, status, college_id)


def allowed_decisions(bind: Bind, event_id: str, user_id: str) -> List[Decision]:
    event = repo.get_event(bind, event_id)
    user = directory.get_user(bind, user_id)
    leader = directory.find_community_leader(bind, event.community_id)
    return policy.allowed_decisions(event, user, leader)
