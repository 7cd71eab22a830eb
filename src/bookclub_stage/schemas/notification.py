"""Notification-related Pydantic schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bookclub_stage.models.notification import NotificationType
from bookclub_stage.schemas.common import OrmSnapshot


class NotificationCreate(BaseModel):
    """A notification ready to be appended to the store."""

    model_config = ConfigDict(frozen=True)

    recipient_id: str
    notification_type: str
    title: str
    message: str
    source_entity_id: str | None = None
    actor_id: str | None = None
    actor_name: str | None = None
    dedupe_key: str | None = None


class NotificationResponse(OrmSnapshot):
    """Schema for notification information returned by the API."""

    id: str
    recipient_id: str
    notification_type: str
    title: str
    message: str
    source_entity_id: str | None = None
    actor_id: str | None = None
    actor_name: str | None = None
    is_read: bool
    created_at: datetime


class NotificationStats(BaseModel):
    """Unread aggregate for one recipient.

    ``unread_by_type`` always holds every known notification type;
    ``total_unread`` is always the sum of its values.
    """

    model_config = ConfigDict(frozen=True)

    recipient_id: str
    total_unread: int = 0
    unread_by_type: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_counts(cls, recipient_id: str, counts: dict[str, int]) -> NotificationStats:
        """Build fully populated stats from possibly sparse counts."""
        by_type = {member.value: 0 for member in NotificationType}
        for key, value in counts.items():
            by_type[key] = max(int(value), 0)
        return cls(
            recipient_id=recipient_id,
            total_unread=sum(by_type.values()),
            unread_by_type=by_type,
        )

    @model_validator(mode="after")
    def _check_total(self) -> NotificationStats:
        if self.total_unread != sum(self.unread_by_type.values()):
            raise ValueError("total_unread must equal the sum of unread_by_type")
        return self


class BroadcastRequest(BaseModel):
    """Schema for an admin message sent to a list of members."""

    recipient_ids: list[str] = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=2000)
    title: str = Field("Message from the admins", max_length=200)


class MarkAllReadResponse(BaseModel):
    """How many notifications were flipped to read."""

    updated: int
