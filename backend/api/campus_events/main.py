from __future__ import annotations

from fastapi import FastAPI, HTTPException, Header, Query

from campus_events.config import configure_logging

configure_logging()

from campus_events import directory, gateway, notifications, policy, repo, workflow  # noqa: E402
from campus_events.db import get_engine, db_ping  # noqa: E402
from campus_events.errors import ApprovalError  # noqa: E402
from campus_events.models import EventDraft, Scope  # noqa: E402
from campus_events.schemas import (  # noqa: E402
    AllowedDecisionsOut,
    DecisionIn,
    EventDraftIn,
    EventListOut,
    EventOut,
    HistoryEntryOut,
    MarkAllReadOut,
    NotificationOut,
    RevisionResponseIn,
    RevisionRoundOut,
    UnreadCountOut,
)

app = FastAPI(title="Campus Events Approval API", version="0.1.0")


def _http_error(e: ApprovalError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


# -----------------------------
# Health checks
# -----------------------------
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/readyz")
def readyz():
    engine = get_engine()
    db_ping(engine)
    return {"status": "ready", "db": "ok"}


# -----------------------------
# Workflow helpers
# -----------------------------
@app.get("/workflow/states")
def workflow_states():
    return {"states": policy.list_states()}


@app.get("/events/{event_id}/allowed", response_model=AllowedDecisionsOut)
def event_allowed(
    event_id: str,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    engine = get_engine()
    try:
        actor = directory.require_actor(engine, x_user_id)
        event = repo.get_event(engine, event_id)
        allowed = workflow.allowed_decisions(engine, event_id, actor.id)
    except ApprovalError as e:
        raise _http_error(e)

    expected = policy.resolve(event.college_id, event.status)
    return {
        "event_id": event.id,
        "status": event.status,
        "expected_role": expected.role if expected else None,
        "expected_scope": expected.scope if expected else None,
        "allowed": allowed,
    }


# -----------------------------
# Event endpoints
# -----------------------------
@app.post("/events", response_model=EventOut, status_code=201)
def submit_event(
    body: EventDraftIn,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    engine = get_engine()
    try:
        actor = directory.require_actor(engine, x_user_id)
        draft = EventDraft(**body.model_dump(exclude={"community_id"}))
        return gateway.submit_event(engine, body.community_id, actor.id, draft)
    except ApprovalError as e:
        raise _http_error(e)


@app.get("/events", response_model=EventListOut)
def list_events(
    q: str | None = None,
    community_id: str | None = None,
    upcoming: bool = False,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort: str = "start_at_asc",
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    engine = get_engine()
    try:
        viewer = directory.require_actor(engine, x_user_id) if x_user_id else None
    except ApprovalError as e:
        raise _http_error(e)

    items, total = repo.list_visible_events(
        engine,
        viewer.id if viewer else None,
        q=q,
        community_id=community_id,
        upcoming=upcoming,
        limit=limit,
        offset=offset,
        sort=sort,
    )
    return {"items": items, "limit": limit, "offset": offset, "total": total}


@app.get("/events/{event_id}", response_model=EventOut)
def get_event(event_id: str):
    engine = get_engine()
    try:
        return repo.get_event(engine, event_id)
    except ApprovalError as e:
        raise _http_error(e)


@app.get("/events/{event_id}/history", response_model=list[HistoryEntryOut])
def get_event_history(event_id: str):
    engine = get_engine()
    try:
        _ = repo.get_event(engine, event_id)
        return repo.list_history(engine, event_id)
    except ApprovalError as e:
        raise _http_error(e)


@app.get("/events/{event_id}/revisions", response_model=list[RevisionRoundOut])
def get_event_revisions(event_id: str):
    engine = get_engine()
    try:
        _ = repo.get_event(engine, event_id)
        return repo.list_revision_rounds(engine, event_id)
    except ApprovalError as e:
        raise _http_error(e)


@app.post("/events/{event_id}/decisions", response_model=EventOut)
def decide(
    event_id: str,
    body: DecisionIn,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    engine = get_engine()
    try:
        actor = directory.require_actor(engine, x_user_id)
        return workflow.decide(engine, event_id, actor.id, body.acting_role, body.decision, body.reason)
    except ApprovalError as e:
        raise _http_error(e)


@app.post("/events/{event_id}/revision-response", response_model=EventOut)
def respond_to_revision(
    event_id: str,
    body: RevisionResponseIn,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    engine = get_engine()
    try:
        actor = directory.require_actor(engine, x_user_id)
        return gateway.respond_to_revision(engine, event_id, actor.id, body.response)
    except ApprovalError as e:
        raise _http_error(e)


@app.get("/approvals/pending", response_model=list[EventOut])
def pending_approvals(
    college_id: str | None = None,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    engine = get_engine()
    try:
        actor = directory.require_actor(engine, x_user_id)
        # College-scoped approvers only ever see their own college.
        if policy.role_scope(actor.role) is Scope.COLLEGE:
            college_id = actor.college_id
        return workflow.list_pending_for_role(engine, actor.role, college_id)
    except ApprovalError as e:
        raise _http_error(e)


# -----------------------------
# Notifications
# -----------------------------
@app.get("/notifications", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    engine = get_engine()
    try:
        actor = directory.require_actor(engine, x_user_id)
    except ApprovalError as e:
        raise _http_error(e)
    return notifications.list_notifications(engine, actor.id, unread_only=unread_only, limit=limit, offset=offset)


@app.get("/notifications/unread-count", response_model=UnreadCountOut)
def unread_count(x_user_id: str | None = Header(default=None, alias="X-User-Id")):
    engine = get_engine()
    try:
        actor = directory.require_actor(engine, x_user_id)
    except ApprovalError as e:
        raise _http_error(e)
    return {"count": notifications.unread_count(engine, actor.id)}


@app.patch("/notifications/mark-all-read", response_model=MarkAllReadOut)
def mark_all_read(x_user_id: str | None = Header(default=None, alias="X-User-Id")):
    engine = get_engine()
    try:
        actor = directory.require_actor(engine, x_user_id)
    except ApprovalError as e:
        raise _http_error(e)
    return {"updated": notifications.mark_all_notifications_read(engine, actor.id)}


@app.patch("/notifications/{notification_id}/read", status_code=204)
def mark_read(
    notification_id: str,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    engine = get_engine()
    try:
        actor = directory.require_actor(engine, x_user_id)
        notifications.mark_notification_read(engine, notification_id, actor.id)
    except ApprovalError as e:
        raise _http_error(e)
