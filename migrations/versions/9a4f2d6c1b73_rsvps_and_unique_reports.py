"""rsvps and unique reports

Revision ID: 9a4f2d6c1b73
Revises: 5c1e0b7a9d42
Create Date: 2026-10-18 16:47:05.902144

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "9a4f2d6c1b73"
down_revision: Union[str, Sequence[str], None] = "5c1e0b7a9d42"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add event RSVPs and enforce one report per reporter, content and type."""
    op.create_table(
        "event_rsvp",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["event_id"], ["submitted_event.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["app_user.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_rsvp_event_user"),
    )
    with op.batch_alter_table("report") as batch_op:
        batch_op.drop_index("ix_report_reporter_content")
        batch_op.create_unique_constraint(
            "uq_report_reporter_content",
            ["reporter_id", "content_id", "report_type"],
        )


def downgrade() -> None:
    """Drop RSVPs and relax report uniqueness back to an index."""
    with op.batch_alter_table("report") as batch_op:
        batch_op.drop_constraint("uq_report_reporter_content", type_="unique")
        batch_op.create_index(
            "ix_report_reporter_content",
            ["reporter_id", "content_id", "report_type"],
        )
    op.drop_table("event_rsvp")
