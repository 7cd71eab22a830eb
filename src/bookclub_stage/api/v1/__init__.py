"""Version 1 API endpoints."""

from .endpoints import (
    live_router,
    moderation_router,
    notifications_router,
    system_router,
)

__all__ = [
    "live_router",
    "moderation_router",
    "notifications_router",
    "system_router",
]
