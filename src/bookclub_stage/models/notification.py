"""Models for per-recipient notifications and their unread aggregate."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bookclub_stage.db.session import Base
from bookclub_stage.db.time import utcnow
from bookclub_stage.models.user import new_id


class NotificationType(str, Enum):
    """Closed notification taxonomy; aggregates default every member to zero."""

    MENTION = "mention"
    EVENT_UPDATE = "event_update"
    EVENT_APPROVED = "event_approved"
    EVENT_REJECTED = "event_rejected"
    RSVP_UPDATE = "rsvp_update"
    COMMENT_REPLY = "comment_reply"
    ADMIN_MESSAGE = "admin_message"
    REPORT_RESOLVED = "report_resolved"


class Notification(Base):
    """A typed message addressed to one recipient."""

    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_recipient_created", "recipient_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    source_entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    actor_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Repeated hand-offs of the same logical notification collapse onto one row.
    dedupe_key: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class NotificationCounter(Base):
    """Unread count for one (recipient, type) pair, written alongside notifications."""

    __tablename__ = "notification_counter"

    recipient_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    notification_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    unread: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
