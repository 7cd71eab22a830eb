"""Domain exceptions raised by the moderation and notification engine."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class ModerationError(RuntimeError):
    """Base exception for engine failures.

    This is the base class for all moderation and notification exceptions.
    """


class NotFoundError(ModerationError):
    """Raised when an entity, notification or recipient does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} {identifier!r} not found")
        self.kind = kind
        self.identifier = identifier


class ForbiddenError(ModerationError):
    """Raised when the authorization collaborator rejects an actor."""

    def __init__(self, actor_id: str | None, action: str, entity_id: str) -> None:
        super().__init__(f"Actor {actor_id!r} may not {action} {entity_id!r}")
        self.actor_id = actor_id
        self.action = action
        self.entity_id = entity_id


class InvalidTransitionError(ModerationError):
    """Raised when an action is not a legal edge from the entity's current status.

    The entity is left unchanged; ``current`` and ``requested`` are kept for
    diagnostics.
    """

    def __init__(self, entity_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot {requested} entity {entity_id!r} from status {current!r}"
        )
        self.entity_id = entity_id
        self.current = current
        self.requested = requested


class DuplicateReportError(ModerationError):
    """Raised when a reporter files a second report about the same content."""


class EmissionFailure(ModerationError):
    """Raised when notifications could not be handed off to the store.

    Carries the originating domain event so the emission can be retried, and the
    notifications that were persisted before the failure.
    """

    def __init__(
        self,
        event: Any,
        delivered: Sequence[Any] = (),
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(f"Notification emission failed for {type(event).__name__}: {cause}")
        self.event = event
        self.delivered = list(delivered)
        self.cause = cause


class SubscriptionBrokerUnavailable(ModerationError):
    """Raised on a live stream whose channel dropped.

    Consumers should re-subscribe; their last delivered snapshot stays valid
    until then.
    """
