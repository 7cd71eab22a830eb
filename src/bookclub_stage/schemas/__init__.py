# src/bookclub_stage/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of engine data for serialization and validation.
"""

from .comment import CommentCreate, CommentResponse
from .mention import DirectoryEntry, Mention
from .moderation import (
    EventCreate,
    EventResponse,
    EventUpdate,
    EventUpdateResponse,
    PendingEventStats,
    ReportCreate,
    ReportResponse,
    ReportStatsResponse,
    TransitionRequest,
    TransitionResponse,
)
from .notification import (
    BroadcastRequest,
    MarkAllReadResponse,
    NotificationCreate,
    NotificationResponse,
    NotificationStats,
)
from .rsvp import RsvpRequest, RsvpResponse

__all__ = [
    "CommentCreate", "CommentResponse",
    "DirectoryEntry", "Mention",
    "EventCreate", "EventResponse", "EventUpdate", "EventUpdateResponse", "PendingEventStats",
    "ReportCreate", "ReportResponse", "ReportStatsResponse",
    "TransitionRequest", "TransitionResponse",
    "BroadcastRequest", "MarkAllReadResponse",
    "NotificationCreate", "NotificationResponse", "NotificationStats",
    "RsvpRequest", "RsvpResponse",
]
