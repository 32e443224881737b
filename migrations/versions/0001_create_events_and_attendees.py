"""create events and attendees

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from eventhub.db import UTCDateTime


revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

event_category_type = sa.Enum(
    "conference", "workshop", "social", "sports", "music", "other",
    name="event_category_type",
)
attendance_status_type = sa.Enum(
    "attending", "maybe", "not_attending",
    name="attendance_status_type",
)


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("date", UTCDateTime(), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("category", event_category_type, nullable=False, server_default="conference"),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "LENGTH(title) >= 3 AND LENGTH(title) <= 100",
            name="ck_events_title_length",
        ),
        sa.CheckConstraint("LENGTH(description) >= 20", name="ck_events_description_length"),
    )
    op.create_index("idx_events_date", "events", ["date"])
    op.create_index("idx_events_category_date", "events", ["category", "date"])
    op.create_index("idx_events_created_by", "events", ["created_by"])

    op.create_table(
        "attendees",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("status", attendance_status_type, nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.UniqueConstraint("event_id", "user_id", name="uq_attendees_event_user"),
    )
    op.create_index("idx_attendees_event_id_created_at", "attendees", ["event_id", "created_at"])
    op.create_index("idx_attendees_user_id", "attendees", ["user_id"])


def downgrade() -> None:
    op.drop_index("idx_attendees_user_id", table_name="attendees")
    op.drop_index("idx_attendees_event_id_created_at", table_name="attendees")
    op.drop_table("attendees")

    op.drop_index("idx_events_created_by", table_name="events")
    op.drop_index("idx_events_category_date", table_name="events")
    op.drop_index("idx_events_date", table_name="events")
    op.drop_table("events")

    bind = op.get_bind()
    attendance_status_type.drop(bind, checkfirst=True)
    event_category_type.drop(bind, checkfirst=True)
