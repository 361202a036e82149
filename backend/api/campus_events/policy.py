"""Approval policy: who may act on an event, and what they may do.

Everything here is pure. The state machine uses it to authorize, and API
callers use it to decide which action controls to render.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from campus_events.models import Decision, Event, EventStatus, Role, Scope, Tier, User, tier_order


@dataclass(frozen=True)
class Eligibility:
    role: Optional[Role]  # None when the submitter is the one expected to act
    scope: Scope
    college_id: Optional[str]


class Verdict(str, enum.Enum):
    ALLOWED = "ALLOWED"
    UNAUTHORIZED = "UNAUTHORIZED"
    STALE = "STALE"  # the event already moved past the point this actor could act on


def _build_transitions() -> dict[EventStatus, dict[Decision, EventStatus]]:
    table: dict[EventStatus, dict[Decision, EventStatus]] = {}
    tiers = tier_order()
    for i, tier in enumerate(tiers):
        forward = tiers[i + 1].pending if i + 1 < len(tiers) else EventStatus.APPROVED
        table[tier.pending] = {
            Decision.APPROVE: forward,
            Decision.REJECT: tier.rejected,
            Decision.REQUEST_REVISION: tier.revision,
        }
        # A response re-enters the chain at the tier that asked for it.
        table[tier.revision] = {Decision.RESPOND_REVISION: tier.pending}
        table[tier.rejected] = {}
    table[EventStatus.APPROVED] = {}
    return table


_TRANSITIONS = _build_transitions()

_ROLE_TIERS: dict[Role, Tier] = {tier.role: tier for tier in Tier}

TEXT_REQUIRED = frozenset({Decision.REJECT, Decision.REQUEST_REVISION, Decision.RESPOND_REVISION})


def list_states() -> list[str]:
    return [s.value for s in EventStatus]


def tier_for_role(role: Role) -> Optional[Tier]:
    return _ROLE_TIERS.get(role)


def role_scope(role: Role) -> Optional[Scope]:
    tier = tier_for_role(role)
    if tier is None:
        return None
    return Scope.UNIVERSITY if tier is Tier.DEANSHIP else Scope.COLLEGE


def resolve(event_college_id: Optional[str], status: EventStatus) -> Optional[Eligibility]:
    """
    Who is expected to act next on an event in `status`.
    Returns None for terminal states.
    """
    status = EventStatus(status)
    if status.is_terminal:
        return None
    if status.is_revision:
        return Eligibility(role=None, scope=Scope.SUBMITTER, college_id=event_college_id)

    role = status.tier.role
    scope = role_scope(role)
    return Eligibility(
        role=role,
        scope=scope,
        college_id=event_college_id if scope is Scope.COLLEGE else None,
    )


def legal_decisions(status: EventStatus) -> list[Decision]:
    return list(_TRANSITIONS[EventStatus(status)])


def next_status(status: EventStatus, decision: Decision) -> Optional[EventStatus]:
    return _TRANSITIONS[EventStatus(status)].get(Decision(decision))


def pending_status_for_role(role: Role) -> Optional[EventStatus]:
    tier = tier_for_role(role)
    return tier.pending if tier else None


def is_submitter(acting_user_id: str, event: Event, community_leader_id: Optional[str] = None) -> bool:
    if not acting_user_id:
        return False
    return acting_user_id == event.created_by or (
        community_leader_id is not None and acting_user_id == community_leader_id
    )


def can_respond_to_revision(
    status: EventStatus,
    acting_user_id: str,
    event: Event,
    community_leader_id: Optional[str] = None,
) -> bool:
    """True when the user is a submitter and the event is waiting on a revision response."""
    return EventStatus(status).is_revision and is_submitter(acting_user_id, event, community_leader_id)


def check_decision(
    status: EventStatus,
    event_college_id: Optional[str],
    actor_role: Role,
    actor_college_id: Optional[str],
) -> Verdict:
    """
    Authorize APPROVE / REJECT / REQUEST_REVISION for an approver.

    - wrong role, wrong college or a terminal event -> UNAUTHORIZED
    - the actor's tier is pending -> ALLOWED
    - the chain has not reached the actor's tier yet -> UNAUTHORIZED
    - the actor's tier is waiting on a revision, or the chain moved past it -> STALE
    """
    status = EventStatus(status)
    tier = tier_for_role(actor_role)
    if tier is None or status.is_terminal:
        return Verdict.UNAUTHORIZED
    if role_scope(actor_role) is Scope.COLLEGE and (
        actor_college_id is None or actor_college_id != event_college_id
    ):
        return Verdict.UNAUTHORIZED

    if status is tier.pending:
        return Verdict.ALLOWED
    if status.position < tier.rank:
        return Verdict.UNAUTHORIZED
    return Verdict.STALE


def check_response(
    status: EventStatus,
    acting_user_id: str,
    event: Event,
    community_leader_id: Optional[str] = None,
) -> Verdict:
    """
    Authorize RESPOND_REVISION.

    STALE only when the event is back in a pending state whose tier already
    holds an answered revision round; everything else that is not allowed is
    UNAUTHORIZED.
    """
    status = EventStatus(status)
    if can_respond_to_revision(status, acting_user_id, event, community_leader_id):
        return Verdict.ALLOWED
    if not is_submitter(acting_user_id, event, community_leader_id) or not status.is_pending:
        return Verdict.UNAUTHORIZED
    if event.outcome(status.tier, "revision_response"):
        return Verdict.STALE
    return Verdict.UNAUTHORIZED


def allowed_decisions(event: Event, user: User, community_leader_id: Optional[str] = None) -> list[Decision]:
    """Decisions `user` may take on `event` right now (empty when none)."""
    if can_respond_to_revision(event.status, user.id, event, community_leader_id):
        return [Decision.RESPOND_REVISION]
    if check_decision(event.status, event.college_id, user.role, user.college_id) is Verdict.ALLOWED:
        return [d for d in legal_decisions(event.status) if d is not Decision.RESPOND_REVISION]
    return []
