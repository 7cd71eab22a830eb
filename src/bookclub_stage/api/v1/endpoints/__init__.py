"""API endpoint modules for version 1."""

from .live import router as live_router
from .moderation import router as moderation_router
from .notifications import router as notifications_router
from .system import router as system_router

__all__ = [
    "live_router",
    "moderation_router",
    "notifications_router",
    "system_router",
]
