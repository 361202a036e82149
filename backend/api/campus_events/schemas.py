from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from campus_events.models import Decision, EventStatus, NotificationType, Role, Scope, Tier


class EventDraftIn(BaseModel):
    community_id: str
    title: str = Field(..., min_length=1, max_length=400)
    description: str = Field(..., min_length=1)
    start_at: datetime
    end_at: Optional[datetime] = None
    capacity: Optional[int] = Field(None, ge=0)
    location_id: Optional[str] = None
    location: Optional[str] = Field(None, max_length=400, description="Free-text location")
    college_id: Optional[str] = Field(None, description="Must match the community's college when given")


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    start_at: datetime
    end_at: Optional[datetime] = None
    capacity: Optional[int] = None
    location_id: Optional[str] = None
    location: Optional[str] = None
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


class EventListOut(BaseModel):
    items: List[EventOut]
    limit: int
    offset: int
    total: int


class DecisionIn(BaseModel):
    decision: Decision
    reason: Optional[str] = Field(None, max_length=2000)
    acting_role: Optional[Role] = None


class RevisionResponseIn(BaseModel):
    response: str = Field(..., max_length=2000)


class AllowedDecisionsOut(BaseModel):
    event_id: str
    status: EventStatus
    expected_role: Optional[Role] = None
    expected_scope: Optional[Scope] = None
    allowed: List[Decision]


class HistoryEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    action: str
    from_status: Optional[EventStatus] = None
    to_status: EventStatus
    actor_id: Optional[str] = None
    actor_role: Optional[Role] = None
    reason: Optional[str] = None
    notified_at: Optional[datetime] = None
    created_at: datetime


class RevisionRoundOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    tier: Tier
    round_number: int
    request_text: str
    requested_by: Optional[str] = None
    requested_at: datetime
    response_text: Optional[str] = None
    responded_by: Optional[str] = None
    responded_at: Optional[datetime] = None


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: NotificationType
    event_id: Optional[str] = None
    message: str
    payload: Optional[Dict[str, Any]] = None
    read: bool
    created_at: datetime


class UnreadCountOut(BaseModel):
    count: int


class MarkAllReadOut(BaseModel):
    updated: int
