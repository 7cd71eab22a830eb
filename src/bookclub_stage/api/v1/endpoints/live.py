"""Websocket endpoint streaming live query snapshots."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

from bookclub_stage.api.v1.dependencies import EngineDep
from bookclub_stage.core.errors import SubscriptionBrokerUnavailable
from bookclub_stage.core.security import decode_subject
from bookclub_stage.models.moderation import EventStatus
from bookclub_stage.services.subscriptions import (
    LiveQueryKind,
    Snapshot,
    Subscription,
    SubscriptionFilter,
)

# Configure logger for this module
logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])

# Close code telling clients to reconnect later.
SERVICE_RESTART = 1012


def _frame(kind: LiveQueryKind, snapshot: Snapshot) -> dict[str, object]:
    return {
        "kind": kind.value,
        "version": snapshot.version,
        "data": jsonable_encoder(snapshot.data),
    }


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
    async for snapshot in subscription.updates():
        await websocket.send_json(_frame(subscription.filter.kind, snapshot))


async def _drain(websocket: WebSocket) -> None:
    """Discard client messages until it disconnects."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/live")
async def live(
    websocket: WebSocket,
    engine: EngineDep,
    token: str = Query(...),
    kind: LiveQueryKind = Query(...),
    status_filter: str | None = Query(None, alias="status"),
    notification_type: str | None = Query(None),
    report_type: str | None = Query(None),
) -> None:
    """Send the current result set for a query, then every newer one.

    Notification streams are always scoped to the authenticated user. Moderation
    queues other than the approved events list are restricted to admins.
    """
    user_id = decode_subject(token)
    if user_id is None or engine.directory.display_name(user_id) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    is_admin = engine.directory.is_admin(user_id)

    if kind in (LiveQueryKind.NOTIFICATIONS, LiveQueryKind.NOTIFICATION_STATS):
        subscription_filter = SubscriptionFilter(
            kind=kind,
            recipient_id=user_id,
            notification_type=notification_type if kind is LiveQueryKind.NOTIFICATIONS else None,
        )
    else:
        public = kind is LiveQueryKind.EVENTS and status_filter == EventStatus.APPROVED.value
        if not (is_admin or public):
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        subscription_filter = SubscriptionFilter(
            kind=kind,
            status=status_filter,
            report_type=report_type if kind is LiveQueryKind.REPORTS else None,
        )

    await websocket.accept()
    try:
        subscription = await engine.broker.subscribe(subscription_filter)
    except SubscriptionBrokerUnavailable as exc:
        logger.warning("Live query for %s unavailable: %s", user_id, exc)
        await websocket.close(code=SERVICE_RESTART)
        return

    try:
        await websocket.send_json(_frame(kind, subscription.initial))
    except (WebSocketDisconnect, RuntimeError):
        engine.broker.unsubscribe(subscription)
        return

    pump = asyncio.create_task(_pump(websocket, subscription))
    receiver = asyncio.create_task(_drain(websocket))
    try:
        done, _ = await asyncio.wait({pump, receiver}, return_when=asyncio.FIRST_COMPLETED)
        if pump in done:
            error = pump.exception()
            if isinstance(error, SubscriptionBrokerUnavailable):
                logger.info("Closing live query %d: %s", subscription.id, error)
                await websocket.close(code=SERVICE_RESTART)
            elif error is not None:
                raise error
            else:
                await websocket.close()
    finally:
        engine.broker.unsubscribe(subscription)
        for task in (pump, receiver):
            task.cancel()
        await asyncio.gather(pump, receiver, return_exceptions=True)
