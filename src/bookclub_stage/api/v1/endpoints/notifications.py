"""Notification inbox endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from bookclub_stage.api.v1.dependencies import (
    CurrentAdminDep,
    CurrentUserDep,
    EngineDep,
    http_error,
)
from bookclub_stage.core.errors import ModerationError, NotFoundError
from bookclub_stage.models.notification import NotificationType
from bookclub_stage.schemas.notification import (
    BroadcastRequest,
    MarkAllReadResponse,
    NotificationResponse,
    NotificationStats,
)
from bookclub_stage.services.notification_emitter import AdminBroadcast

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    current_user: CurrentUserDep,
    engine: EngineDep,
    notification_type: NotificationType | None = Query(None),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
) -> list[NotificationResponse]:
    """List the current user's notifications, newest first."""
    return engine.store.list_for(
        current_user.id,
        notification_type=notification_type.value if notification_type else None,
        limit=limit,
        unread_only=unread_only,
    )


@router.get("/stats", response_model=NotificationStats)
async def notification_stats(current_user: CurrentUserDep, engine: EngineDep) -> NotificationStats:
    """Return unread counts for the current user's badge."""
    return engine.store.stats_for(current_user.id)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(current_user: CurrentUserDep, engine: EngineDep) -> MarkAllReadResponse:
    """Mark every notification of the current user as read."""
    return MarkAllReadResponse(updated=engine.store.mark_all_read(current_user.id))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str, current_user: CurrentUserDep, engine: EngineDep
) -> NotificationResponse:
    """Mark one notification as read."""
    try:
        return engine.store.mark_read(notification_id, recipient_id=current_user.id)
    except ModerationError as err:
        raise http_error(err) from err


@router.post("/{notification_id}/unread", response_model=NotificationResponse)
async def mark_unread(
    notification_id: str, current_user: CurrentUserDep, engine: EngineDep
) -> NotificationResponse:
    """Mark one notification as unread again."""
    try:
        return engine.store.mark_unread(notification_id, recipient_id=current_user.id)
    except ModerationError as err:
        raise http_error(err) from err


@router.post(
    "/broadcast",
    status_code=status.HTTP_201_CREATED,
    response_model=list[NotificationResponse],
)
async def broadcast(
    payload: BroadcastRequest,
    current_admin: CurrentAdminDep,
    engine: EngineDep,
) -> list[NotificationResponse]:
    """Send an admin message to the listed members."""
    try:
        for recipient_id in payload.recipient_ids:
            if engine.directory.display_name(recipient_id) is None:
                raise NotFoundError("user", recipient_id)
        return await engine.emitter.emit(
            AdminBroadcast(
                recipients=tuple(payload.recipient_ids),
                message=payload.message,
                title=payload.title,
                actor_id=current_admin.id,
            )
        )
    except ModerationError as err:
        raise http_error(err) from err
