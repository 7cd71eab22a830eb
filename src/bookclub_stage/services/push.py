"""Push-delivery collaborator.

The engine hands every newly stored notification to a :class:`PushGateway`
for out-of-band delivery (device push, e-mail). Delivery is best-effort: a
gateway failure is logged by the emitter and never undoes the notification.
"""

from __future__ import annotations

import logging
from typing import Protocol

from bookclub_stage.schemas.notification import NotificationResponse

# Configure logger for this module
logger = logging.getLogger(__name__)


class PushDeliveryError(RuntimeError):
    """Raised by gateways that could not accept a notification."""


class PushGateway(Protocol):
    """Consumer of finalized notifications."""

    async def deliver(self, notification: NotificationResponse) -> None:
        """Queue ``notification`` for delivery to the recipient's devices."""
        ...


class NullPushGateway:
    """Gateway used when no transport is configured; only logs the hand-off."""

    async def deliver(self, notification: NotificationResponse) -> None:
        logger.debug(
            "No push transport configured; %s for %s stays in-app only",
            notification.notification_type,
            notification.recipient_id,
        )
