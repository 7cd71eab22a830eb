"""SQLAlchemy models for event discussion comments."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bookclub_stage.db.session import Base
from bookclub_stage.db.time import utcnow
from bookclub_stage.models.user import new_id


class EventComment(Base):
    """Comment on an event; replies point at their parent comment."""

    __tablename__ = "event_comment"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("submitted_event.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(64), ForeignKey("app_user.id"), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    parent_comment_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("event_comment.id"), nullable=True
    )
    # Resolved mention spans, stored as plain dicts in start order.
    mentions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
