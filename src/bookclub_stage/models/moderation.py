"""Models tracking moderated submissions and user reports."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bookclub_stage.db.session import Base
from bookclub_stage.db.time import utcnow
from bookclub_stage.models.user import new_id


class EntityKind(str, Enum):
    """Variants of moderatable entity."""

    EVENT = "event"
    REPORT = "report"


class EventStatus(str, Enum):
    """Approval lifecycle of a submitted event."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReportStatus(str, Enum):
    """Resolution lifecycle of a user report."""

    PENDING = "pending"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ModerationAction(str, Enum):
    """Actions a moderator can request."""

    APPROVE = "approve"
    REJECT = "reject"
    INVESTIGATE = "investigate"
    RESOLVE = "resolve"
    DISMISS = "dismiss"


class ReportType(str, Enum):
    """What kind of content a report points at."""

    PROFILE = "profile"
    COMMENT = "comment"
    EVENT = "event"


class ReportReason(str, Enum):
    """Reason given by the reporter."""

    INAPPROPRIATE_CONTENT = "inappropriate_content"
    HARASSMENT = "harassment"
    SPAM = "spam"
    HATE_SPEECH = "hate_speech"
    MISINFORMATION = "misinformation"
    VIOLENCE = "violence"
    OTHER = "other"


TERMINAL_STATUSES = frozenset(
    {
        EventStatus.APPROVED.value,
        EventStatus.REJECTED.value,
        ReportStatus.RESOLVED.value,
        ReportStatus.DISMISSED.value,
    }
)


class SubmittedEvent(Base):
    """Member-submitted event awaiting (or past) admin approval."""

    __tablename__ = "submitted_event"
    __table_args__ = (Index("ix_submitted_event_status", "status"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    submitter_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("app_user.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    # Free-text payload shown to moderators.
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=EventStatus.PENDING.value
    )
    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    kind = EntityKind.EVENT


class Report(Base):
    """User report about a profile, comment or event."""

    __tablename__ = "report"
    __table_args__ = (
        Index("ix_report_status", "status"),
        UniqueConstraint(
            "reporter_id", "content_id", "report_type", name="uq_report_reporter_content"
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    reporter_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("app_user.id"), nullable=False
    )
    report_type: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content_owner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    content_preview: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ReportStatus.PENDING.value
    )
    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_admin_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    kind = EntityKind.REPORT
