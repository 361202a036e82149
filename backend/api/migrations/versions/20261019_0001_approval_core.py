"""Approval core baseline

- directory tables: colleges, users, communities, locations
- events with per-tier outcome columns and a CHECK-constrained status
- revision_rounds (append-only revision history)
- approval_log (transition audit + notification outbox)
- notifications (unique per transition/recipient)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from campus_events.models import EventStatus, NotificationType, Role, Tier

revision = "20261019_0001_approval_core"
down_revision = None
branch_labels = None
depends_on = None


def _enum(enum_cls, name: str) -> sa.Enum:
    return sa.Enum(enum_cls, name=name, native_enum=False, create_constraint=True, length=40)


def _tier_columns() -> list[sa.Column]:
    cols = []
    for tier in Tier:
        cols += [
            sa.Column(tier.column("rejection_reason"), sa.Text, nullable=True),
            sa.Column(tier.column("revision_request"), sa.Text, nullable=True),
            sa.Column(tier.column("revision_response"), sa.Text, nullable=True),
            sa.Column(tier.column("approved_by"), sa.String(36), nullable=True),
            sa.Column(tier.column("approved_at"), sa.DateTime(timezone=True), nullable=True),
        ]
    return cols


def upgrade() -> None:
    op.create_table(
        "colleges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.Text, nullable=False),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("role", _enum(Role, "users_role"), nullable=False),
        sa.Column("college_id", sa.String(36), sa.ForeignKey("colleges.id"), nullable=True),
    )
    op.create_table(
        "communities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("college_id", sa.String(36), sa.ForeignKey("colleges.id"), nullable=True),
        sa.Column("leader_user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
    )
    op.create_table(
        "locations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("college_id", sa.String(36), sa.ForeignKey("colleges.id"), nullable=True),
        sa.Column("capacity", sa.Integer, nullable=True),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("capacity", sa.Integer, sa.CheckConstraint("capacity >= 0"), nullable=True),
        sa.Column("location_id", sa.String(36), sa.ForeignKey("locations.id"), nullable=True),
        sa.Column("location", sa.Text, nullable=True),
        sa.Column("community_id", sa.String(36), sa.ForeignKey("communities.id"), nullable=False),
        sa.Column("college_id", sa.String(36), sa.ForeignKey("colleges.id"), nullable=False),
        sa.Column("created_by", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", _enum(EventStatus, "events_status"), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_tier_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_events_status_college", "events", ["status", "college_id"])

    op.create_table(
        "revision_rounds",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("tier", _enum(Tier, "revision_rounds_tier"), nullable=False),
        sa.Column("round_number", sa.Integer, nullable=False),
        sa.Column("request_text", sa.Text, nullable=False),
        sa.Column("requested_by", sa.String(36), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("response_text", sa.Text, nullable=True),
        sa.Column("responded_by", sa.String(36), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("event_id", "tier", "round_number", name="uq_revision_rounds_event_tier_round"),
    )

    op.create_table(
        "approval_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("from_status", _enum(EventStatus, "approval_log_from_status"), nullable=True),
        sa.Column("to_status", _enum(EventStatus, "approval_log_to_status"), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("actor_role", _enum(Role, "approval_log_actor_role"), nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("notifications", sa.JSON, nullable=False),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_approval_log_event", "approval_log", ["event_id", "created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("type", _enum(NotificationType, "notifications_type"), nullable=False),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id"), nullable=True),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("payload", sa.JSON, nullable=True),
        sa.Column("transition_id", sa.String(36), sa.ForeignKey("approval_log.id"), nullable=True),
        sa.Column("read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("transition_id", "user_id", name="uq_notifications_transition_user"),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])


def downgrade() -> None:
    for table in ("notifications", "approval_log", "revision_rounds", "events", "locations", "communities", "users", "colleges"):
        op.drop_table(table)
