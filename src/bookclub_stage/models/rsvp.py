"""SQLAlchemy models for event attendance."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bookclub_stage.db.session import Base
from bookclub_stage.db.time import utcnow
from bookclub_stage.models.user import new_id


class RsvpStatus(str, Enum):
    """A member's answer to an event invitation."""

    GOING = "going"
    MAYBE = "maybe"
    NOT_GOING = "not_going"


# Members who hear about changes to an event.
ATTENDING_STATUSES = frozenset({RsvpStatus.GOING.value, RsvpStatus.MAYBE.value})


class EventRsvp(Base):
    """One member's attendance answer for one event."""

    __tablename__ = "event_rsvp"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_rsvp_event_user"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("submitted_event.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("app_user.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
