"""System and transparency endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from bookclub_stage.core.settings import settings
from bookclub_stage.models.notification import NotificationType
from bookclub_stage.services.moderation import TRANSITIONS
from bookclub_stage.services.subscriptions import LiveQueryKind

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings; suitable for client bootstrapping.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
        },
        "notifications": {
            "types": [member.value for member in NotificationType],
            "page_size": settings.notification_page_size,
        },
        "moderation": {
            "auto_approve_admin_events": settings.auto_approve_admin_events,
            "transitions": {
                kind.value: [
                    {"from": current, "action": action.value, "to": target}
                    for (current, action), target in edges.items()
                ]
                for kind, edges in TRANSITIONS.items()
            },
        },
        "live_queries": [member.value for member in LiveQueryKind],
    }
