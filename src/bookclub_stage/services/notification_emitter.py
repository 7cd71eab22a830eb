"""Translation of domain events into typed notifications.

Mapping rules:

- an approved or rejected submitted event notifies its submitter
  (``event_approved`` / ``event_rejected``); a rejection carries the
  resolution note as its message, or a generic fallback;
- a report reaching ``resolved`` or ``dismissed`` notifies the reporter
  (``report_resolved``); moving to ``investigating`` notifies nobody;
- mentions notify each distinct mentioned member once, never the author;
- admin broadcasts notify each listed recipient once (``admin_message``);
- a reply notifies the parent comment's author unless they replied to
  themselves (``comment_reply``);
- an edit to an event notifies each distinct attendee who is going or
  maybe attending, never the editor (``event_update``).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass


from bookclub_stage.core.errors import EmissionFailure
from bookclub_stage.models.moderation import EntityKind, EventStatus, ReportStatus
from bookclub_stage.models.notification import NotificationType
from bookclub_stage.schemas.mention import Mention
from bookclub_stage.schemas.moderation import EventResponse, ReportResponse
from bookclub_stage.schemas.notification import NotificationCreate, NotificationResponse
from bookclub_stage.services.directory import UserDirectory
from bookclub_stage.services.mentions import distinct_user_ids
from bookclub_stage.services.notification_store import NotificationStore
from bookclub_stage.services.push import NullPushGateway, PushGateway

# Configure logger for this module
logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 120
GENERIC_REJECTION_MESSAGE = (
    "Your event was not approved. Please contact an admin if you have questions."
)
DEFAULT_RESOLUTION = (
    "The reported content has been reviewed and appropriate action has been taken."
)
DEFAULT_DISMISSAL = "The report has been reviewed and dismissed."


@dataclass(frozen=True)
class EntityStatusChanged:
    """A moderated entity moved from ``old_status`` to ``new_status``."""

    entity: EventResponse | ReportResponse
    old_status: str
    new_status: str
    actor_id: str | None = None


@dataclass(frozen=True)
class MentionDetected:
    """Members were mentioned in a piece of text written by ``actor_id``."""

    mentions: tuple[Mention, ...]
    source_text: str
    source_entity_id: str | None = None
    actor_id: str | None = None
    context_title: str | None = None


@dataclass(frozen=True)
class AdminBroadcast:
    """An admin message addressed to a list of members."""

    recipients: tuple[str, ...]
    message: str
    actor_id: str | None = None
    title: str = "Message from the admins"
    source_entity_id: str | None = None


@dataclass(frozen=True)
class CommentReplied:
    """``actor_id`` replied to a comment written by ``parent_author_id``."""

    parent_author_id: str
    comment_id: str
    event_id: str
    body: str
    actor_id: str | None = None


@dataclass(frozen=True)
class EventUpdated:
    """Details of an event changed; ``attendees`` are the members who RSVPed."""

    event_id: str
    event_title: str
    attendees: tuple[str, ...]
    changes: tuple[str, ...] = ()
    actor_id: str | None = None


DomainEvent = (
    EntityStatusChanged | MentionDetected | AdminBroadcast | CommentReplied | EventUpdated
)


def _excerpt(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= EXCERPT_LENGTH:
        return text
    return text[: EXCERPT_LENGTH - 1].rstrip() + "…"


class NotificationEmitter:
    """Builds notifications for domain events and hands them to the store."""

    def __init__(
        self,
        store: NotificationStore,
        directory: UserDirectory,
        push: PushGateway | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._push = push or NullPushGateway()

    def _actor_name(self, actor_id: str | None) -> str | None:
        if actor_id is None:
            return None
        try:
            return self._directory.display_name(actor_id)
        except Exception as exc:
            # Actor fields are decoration; emission proceeds without them.
            logger.warning("Could not resolve actor %s: %s", actor_id, exc)
            return None

    # -- mapping -------------------------------------------------------------

    def build(self, event: DomainEvent) -> list[NotificationCreate]:
        """Return the notifications ``event`` calls for, without storing them."""
        if isinstance(event, EntityStatusChanged):
            return self._build_status_change(event)
        if isinstance(event, MentionDetected):
            return self._build_mentions(event)
        if isinstance(event, AdminBroadcast):
            return self._build_broadcast(event)
        if isinstance(event, CommentReplied):
            return self._build_reply(event)
        if isinstance(event, EventUpdated):
            return self._build_event_update(event)
        raise TypeError(f"Unsupported domain event: {type(event).__name__}")

    def _build_status_change(self, event: EntityStatusChanged) -> list[NotificationCreate]:
        entity = event.entity
        actor_name = self._actor_name(event.actor_id)
        dedupe_key = f"status:{entity.id}:{event.new_status}"

        if entity.kind is EntityKind.EVENT:
            assert isinstance(entity, EventResponse)
            if event.new_status == EventStatus.APPROVED.value:
                notification_type = NotificationType.EVENT_APPROVED
                title = "Event approved!"
                message = f'Your event "{entity.title}" has been approved and is now live!'
            elif event.new_status == EventStatus.REJECTED.value:
                notification_type = NotificationType.EVENT_REJECTED
                title = "Event not approved"
                note = entity.resolution_note or ""
                message = note if note.strip() else GENERIC_REJECTION_MESSAGE
            else:
                return []
            recipient_id = entity.submitter_id
        else:
            assert isinstance(entity, ReportResponse)
            if event.new_status == ReportStatus.RESOLVED.value:
                resolution = entity.resolution_note or DEFAULT_RESOLUTION
            elif event.new_status == ReportStatus.DISMISSED.value:
                resolution = entity.resolution_note or DEFAULT_DISMISSAL
            else:
                return []
            notification_type = NotificationType.REPORT_RESOLVED
            title = "Report update"
            message = (
                f"Your report about this {entity.report_type} has been "
                f"{event.new_status}. {resolution}"
            )
            recipient_id = entity.reporter_id

        return [
            NotificationCreate(
                recipient_id=recipient_id,
                notification_type=notification_type.value,
                title=title,
                message=message,
                source_entity_id=entity.id,
                actor_id=event.actor_id,
                actor_name=actor_name,
                dedupe_key=dedupe_key,
            )
        ]

    def _build_mentions(self, event: MentionDetected) -> list[NotificationCreate]:
        recipients = [
            user_id for user_id in distinct_user_ids(event.mentions) if user_id != event.actor_id
        ]
        if not recipients:
            return []
        actor_name = self._actor_name(event.actor_id)
        where = f' on "{event.context_title}"' if event.context_title else ""
        message = f'{actor_name or "Someone"} mentioned you{where}: "{_excerpt(event.source_text)}"'
        return [
            NotificationCreate(
                recipient_id=user_id,
                notification_type=NotificationType.MENTION.value,
                title="You were mentioned",
                message=message,
                source_entity_id=event.source_entity_id,
                actor_id=event.actor_id,
                actor_name=actor_name,
                dedupe_key=(
                    f"mention:{event.source_entity_id}:{user_id}"
                    if event.source_entity_id
                    else None
                ),
            )
            for user_id in recipients
        ]

    def _build_broadcast(self, event: AdminBroadcast) -> list[NotificationCreate]:
        actor_name = self._actor_name(event.actor_id)
        return [
            NotificationCreate(
                recipient_id=recipient_id,
                notification_type=NotificationType.ADMIN_MESSAGE.value,
                title=event.title,
                message=event.message,
                source_entity_id=event.source_entity_id,
                actor_id=event.actor_id,
                actor_name=actor_name,
            )
            for recipient_id in dict.fromkeys(event.recipients)
        ]

    def _build_reply(self, event: CommentReplied) -> list[NotificationCreate]:
        if event.parent_author_id == event.actor_id:
            return []
        actor_name = self._actor_name(event.actor_id)
        return [
            NotificationCreate(
                recipient_id=event.parent_author_id,
                notification_type=NotificationType.COMMENT_REPLY.value,
                title="New reply",
                message=f'{actor_name or "Someone"} replied to your comment: "{_excerpt(event.body)}"',
                source_entity_id=event.event_id,
                actor_id=event.actor_id,
                actor_name=actor_name,
                dedupe_key=f"reply:{event.comment_id}",
            )
        ]

    def _build_event_update(self, event: EventUpdated) -> list[NotificationCreate]:
        recipients = [r for r in dict.fromkeys(event.attendees) if r != event.actor_id]
        if not recipients:
            return []
        actor_name = self._actor_name(event.actor_id)
        message = f'"{event.event_title}" has been updated by {actor_name or "an organizer"}'
        if event.changes:
            message += f" ({', '.join(event.changes)})"
        return [
            NotificationCreate(
                recipient_id=recipient_id,
                notification_type=NotificationType.EVENT_UPDATE.value,
                title="Event updated",
                message=message,
                source_entity_id=event.event_id,
                actor_id=event.actor_id,
                actor_name=actor_name,
            )
            for recipient_id in recipients
        ]

    # -- hand-off ------------------------------------------------------------

    async def _push_out(self, notification: NotificationResponse) -> None:
        try:
            await self._push.deliver(notification)
        except Exception as exc:
            # Push is best-effort; the stored notification stands.
            logger.warning("Push delivery failed for notification %s: %s", notification.id, exc)

    async def emit(self, event: DomainEvent) -> list[NotificationResponse]:
        """Store every notification ``event`` produces and offer new ones to push.

        Returns once every notification has been handed to the store.

        Raises:
            EmissionFailure: If the store rejected a notification. Notifications
                stored before the failure are listed on the exception; emitting
                the same event again is safe for keyed notifications.
        """
        delivered: list[NotificationResponse] = []
        for draft in self.build(event):
            try:
                result = self._store.append(draft)
            except Exception as exc:
                logger.warning(
                    "Failed to store %s notification for %s: %s",
                    draft.notification_type,
                    draft.recipient_id,
                    exc,
                )
                raise EmissionFailure(event, delivered, exc) from exc
            delivered.append(result.notification)
            if result.created:
                await self._push_out(result.notification)
        return delivered

    async def emit_all(self, events: Sequence[DomainEvent]) -> list[NotificationResponse]:
        """Emit several events in order, stopping at the first failure."""
        delivered: list[NotificationResponse] = []
        for event in events:
            delivered.extend(await self.emit(event))
        return delivered
