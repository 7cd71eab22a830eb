# src/bookclub_stage/models/__init__.py
"""SQLAlchemy models for the Book Club Stage engine."""

from .comment import EventComment
from .moderation import Report, SubmittedEvent
from .notification import Notification, NotificationCounter
from .rsvp import EventRsvp
from .user import User

__all__ = [
    "EventComment",
    "Report", "SubmittedEvent",
    "Notification", "NotificationCounter",
    "EventRsvp",
    "User",
]
