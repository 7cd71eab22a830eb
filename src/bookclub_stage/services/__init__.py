# src/bookclub_stage/services/__init__.py
"""Business logic services for the Book Club Stage engine."""

from .comments import CommentService
from .engine import Engine, build_engine, get_engine
from .events import EventService
from .mentions import MentionResolver, resolve_mentions
from .moderation import ModerationService, TransitionOutcome
from .notification_emitter import NotificationEmitter
from .notification_store import NotificationStore
from .subscriptions import SubscriptionBroker, SubscriptionFilter

__all__ = [
    "CommentService",
    "Engine", "build_engine", "get_engine",
    "EventService",
    "MentionResolver", "resolve_mentions",
    "ModerationService", "TransitionOutcome",
    "NotificationEmitter",
    "NotificationStore",
    "SubscriptionBroker", "SubscriptionFilter",
]
