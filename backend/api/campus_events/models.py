from __future__ import annotations

import enum
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Mapping, Optional


class Role(str, enum.Enum):
    STUDENT = "STUDENT"
    CLUB_LEADER = "CLUB_LEADER"
    FACULTY_LEADER = "FACULTY_LEADER"
    DEAN_OF_FACULTY = "DEAN_OF_FACULTY"
    DEANSHIP_OF_STUDENT_AFFAIRS = "DEANSHIP_OF_STUDENT_AFFAIRS"
    ADMIN = "ADMIN"


class Scope(str, enum.Enum):
    COLLEGE = "COLLEGE"
    UNIVERSITY = "UNIVERSITY"
    SUBMITTER = "SUBMITTER"


class Tier(str, enum.Enum):
    FACULTY = "faculty"
    DEAN = "dean"
    DEANSHIP = "deanship"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    @property
    def role(self) -> Role:
        return _TIER_ROLES[self]

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]

    @property
    def pending(self) -> "EventStatus":
        return EventStatus[f"PENDING_{self.name}_APPROVAL"]

    @property
    def revision(self) -> "EventStatus":
        return EventStatus[f"{self.name}_REQUIRES_REVISION"]

    @property
    def rejected(self) -> "EventStatus":
        return EventStatus[f"{self.name}_REJECTED"]

    def column(self, suffix: str) -> str:
        # e.g. Tier.DEAN.column("revision_request") -> "dean_revision_request"
        return f"{self.value}_{suffix}"


_TIER_ORDER = [Tier.FACULTY, Tier.DEAN, Tier.DEANSHIP]

_TIER_ROLES = {
    Tier.FACULTY: Role.FACULTY_LEADER,
    Tier.DEAN: Role.DEAN_OF_FACULTY,
    Tier.DEANSHIP: Role.DEANSHIP_OF_STUDENT_AFFAIRS,
}

_TIER_LABELS = {
    Tier.FACULTY: "Faculty Leader",
    Tier.DEAN: "Dean of Faculty",
    Tier.DEANSHIP: "Deanship of Student Affairs",
}


class EventStatus(str, enum.Enum):
    PENDING_FACULTY_APPROVAL = "PENDING_FACULTY_APPROVAL"
    PENDING_DEAN_APPROVAL = "PENDING_DEAN_APPROVAL"
    PENDING_DEANSHIP_APPROVAL = "PENDING_DEANSHIP_APPROVAL"
    FACULTY_REQUIRES_REVISION = "FACULTY_REQUIRES_REVISION"
    DEAN_REQUIRES_REVISION = "DEAN_REQUIRES_REVISION"
    DEANSHIP_REQUIRES_REVISION = "DEANSHIP_REQUIRES_REVISION"
    APPROVED = "APPROVED"
    FACULTY_REJECTED = "FACULTY_REJECTED"
    DEAN_REJECTED = "DEAN_REJECTED"
    DEANSHIP_REJECTED = "DEANSHIP_REJECTED"

    @property
    def tier(self) -> Optional[Tier]:
        """Tier the status belongs to; None for APPROVED."""
        return _STATUS_TIERS.get(self)

    @property
    def is_pending(self) -> bool:
        return self.name.startswith("PENDING_")

    @property
    def is_revision(self) -> bool:
        return self.name.endswith("_REQUIRES_REVISION")

    @property
    def is_terminal(self) -> bool:
        return self is EventStatus.APPROVED or self.name.endswith("_REJECTED")

    @property
    def position(self) -> int:
        """Position in the approval chain; APPROVED sits past the last tier."""
        tier = self.tier
        return len(_TIER_ORDER) if tier is None else tier.rank


_STATUS_TIERS = {
    status: tier
    for tier in _TIER_ORDER
    for status in (tier.pending, tier.revision, tier.rejected)
}


class Decision(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REQUEST_REVISION = "REQUEST_REVISION"
    RESPOND_REVISION = "RESPOND_REVISION"


class NotificationType(str, enum.Enum):
    EVENT_SUBMITTED = "EVENT_SUBMITTED"
    EVENT_PENDING_APPROVAL = "EVENT_PENDING_APPROVAL"
    EVENT_APPROVED = "EVENT_APPROVED"
    EVENT_REJECTED = "EVENT_REJECTED"
    EVENT_NEEDS_REVISION = "EVENT_NEEDS_REVISION"
    EVENT_REVISION_RESPONDED = "EVENT_REVISION_RESPONDED"
    GENERAL = "GENERAL"


def tier_order() -> list[Tier]:
    return list(_TIER_ORDER)


def _from_row(cls, row: Mapping[str, Any]):
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in dict(row).items() if k in names})


@dataclass(frozen=True)
class User:
    id: str
    display_name: str
    role: Role
    college_id: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        return _from_row(cls, row)


@dataclass(frozen=True)
class Community:
    id: str
    name: str
    college_id: Optional[str]
    leader_user_id: Optional[str]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Community":
        return _from_row(cls, row)


@dataclass(frozen=True)
class Location:
    id: str
    name: str
    college_id: Optional[str]
    capacity: Optional[int]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Location":
        return _from_row(cls, row)


@dataclass(frozen=True)
class Event:
    id: str
    title: str
    description: str
    start_at: datetime
    end_at: Optional[datetime]
    capacity: Optional[int]
    location_id: Optional[str]
    location: Optional[str]
    community_id: str
    college_id: str
    created_by: str
    status: EventStatus
    version: int
    created_at: datetime
    updated_at: datetime
    faculty_rejection_reason: Optional[str] = None
    dean_rejection_reason: Optional[str] = None
    deanship_rejection_reason: Optional[str] = None
    faculty_revision_request: Optional[str] = None
    dean_revision_request: Optional[str] = None
    deanship_revision_request: Optional[str] = None
    faculty_revision_response: Optional[str] = None
    dean_revision_response: Optional[str] = None
    deanship_revision_response: Optional[str] = None
    faculty_approved_by: Optional[str] = None
    faculty_approved_at: Optional[datetime] = None
    dean_approved_by: Optional[str] = None
    dean_approved_at: Optional[datetime] = None
    deanship_approved_by: Optional[str] = None
    deanship_approved_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Event":
        return _from_row(cls, row)

    def outcome(self, tier: Tier, suffix: str) -> Optional[str]:
        return getattr(self, tier.column(suffix))


@dataclass(frozen=True)
class RevisionRound:
    id: str
    event_id: str
    tier: Tier
    round_number: int
    request_text: str
    requested_by: Optional[str]
    requested_at: datetime
    response_text: Optional[str] = None
    responded_by: Optional[str] = None
    responded_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RevisionRound":
        return _from_row(cls, row)

    @property
    def is_open(self) -> bool:
        return self.responded_at is None


@dataclass(frozen=True)
class TransitionRecord:
    id: str
    event_id: str
    action: str
    from_status: Optional[EventStatus]
    to_status: EventStatus
    actor_id: Optional[str]
    actor_role: Optional[Role]
    reason: Optional[str]
    notifications: list[dict[str, Any]]
    notified_at: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TransitionRecord":
        return _from_row(cls, row)


@dataclass(frozen=True)
class Notification:
    id: str
    user_id: str
    type: NotificationType
    event_id: Optional[str]
    message: str
    payload: Optional[dict[str, Any]]
    transition_id: Optional[str]
    read: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Notification":
        return _from_row(cls, row)


@dataclass(frozen=True)
class EventDraft:
    title: str
    description: str
    start_at: datetime
    end_at: Optional[datetime] = None
    capacity: Optional[int] = None
    location_id: Optional[str] = None
    location: Optional[str] = None
    college_id: Optional[str] = None
