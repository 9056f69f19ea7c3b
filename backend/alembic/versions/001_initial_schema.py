"""Initial schema: users, events, registrations with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table (read-only to the registration core)
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(50), nullable=False, server_default=""),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'youth'")),
        sa.Column("barangay", sa.String(100), nullable=True),
        sa.Column("municipality", sa.String(100), nullable=True),
        sa.Column("province", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('youth', 'sk_official', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(2000), nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("barangay", sa.String(100), nullable=True),
        sa.Column("municipality", sa.String(100), nullable=True),
        sa.Column("province", sa.String(100), nullable=True),
        sa.Column("max_participants", sa.Integer(), nullable=True),
        sa.Column("current_participants", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("registration_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_registration_open", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'upcoming'")),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("current_participants >= 0", name="check_current_participants_non_negative"),
        sa.CheckConstraint(
            "max_participants IS NULL OR max_participants > 0",
            name="check_max_participants_positive",
        ),
        sa.CheckConstraint(
            "status IN ('upcoming', 'ongoing', 'completed', 'cancelled', 'postponed')",
            name="check_event_status",
        ),
    )
    op.create_index("ix_events_id", "events", ["id"])
    # Eligibility and listings filter by barangay first
    op.create_index("ix_events_barangay", "events", ["barangay"])
    op.create_index("ix_events_event_date", "events", ["event_date"])

    # Registrations table
    op.create_table(
        "registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("registration_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("emergency_contact_name", sa.String(100), nullable=False),
        sa.Column("emergency_contact_phone", sa.String(20), nullable=False),
        sa.Column("emergency_contact_relationship", sa.String(50), nullable=False),
        sa.Column("special_requirements", sa.String(1000), nullable=True),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("attendance_marked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("attendance_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status_updated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'attended', 'no_show')",
            name="check_registration_status",
        ),
    )
    op.create_index("ix_registrations_id", "registrations", ["id"])
    op.create_index("ix_registrations_user_id", "registrations", ["user_id"])
    op.create_index("ix_registrations_event_id", "registrations", ["event_id"])
    op.create_index("ix_registrations_event_status", "registrations", ["event_id", "status"])
    # ONE ACTIVE REGISTRATION PER (USER, EVENT):
    # Partial unique index over non-cancelled rows. Cancelled rows stay as
    # history, so a plain unique constraint would block re-registration.
    op.create_index(
        "uq_active_registration_user_event",
        "registrations",
        ["user_id", "event_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
        sqlite_where=sa.text("status <> 'cancelled'"),
    )


def downgrade() -> None:
    op.drop_table("registrations")
    op.drop_table("events")
    op.drop_table("users")
