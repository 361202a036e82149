from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select

from campus_events.db import Bind, transaction
from campus_events.errors import NotFound, Unauthenticated
from campus_events.models import Community, Location, Role, User
from campus_events.tables import communities, locations, users


def require_actor(bind: Bind, x_user_id: str | None) -> User:
    """
    Resolve the acting user from the request header "X-User-Id".

    IMPORTANT:
    - This function MUST receive a plain string (or None).
    - Do NOT declare FastAPI Header() here because we call this directly from endpoints.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise Unauthenticated("X-User-Id header is required")

    try:
        return get_user(bind, user_id)
    except NotFound:
        raise Unauthenticated(f"Unknown user '{user_id}'")


def get_user(bind: Bind, user_id: str) -> User:
    with transaction(bind) as conn:
        row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()

    if not row:
        raise NotFound(f"User not found: {user_id}")
    return User.from_row(row)


def get_community(bind: Bind, community_id: str) -> Community:
    with transaction(bind) as conn:
        row = conn.execute(
            select(communities).where(communities.c.id == community_id)
        ).mappings().first()

    if not row:
        raise NotFound(f"Community not found: {community_id}")
    return Community.from_row(row)


def get_location(bind: Bind, location_id: str) -> Location:
    with transaction(bind) as conn:
        row = conn.execute(select(locations).where(locations.c.id == location_id)).mappings().first()

    if not row:
        raise NotFound(f"Location not found: {location_id}")
    return Location.from_row(row)


def find_community_leader(bind: Bind, community_id: str) -> Optional[str]:
    with transaction(bind) as conn:
        return conn.execute(
            select(communities.c.leader_user_id).where(communities.c.id == community_id)
        ).scalar_one_or_none()


def user_ids_with_role(bind: Bind, role: Role, college_id: Optional[str] = None) -> List[str]:
    """
    Ids of every user holding `role`, optionally restricted to one college.
    Ordered by id so fan-out order is stable.
    """
    stmt = select(users.c.id).where(users.c.role == role)
    if college_id is not None:
        stmt = stmt.where(users.c.college_id == college_id)

    with transaction(bind) as conn:
        return list(conn.execute(stmt.order_by(users.c.id)).scalars().all())
