"""Event details and attendance: edits, RSVPs and attendee notifications."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from bookclub_stage.core.errors import EmissionFailure, ForbiddenError, NotFoundError
from bookclub_stage.db.time import utcnow
from bookclub_stage.models.moderation import SubmittedEvent
from bookclub_stage.models.rsvp import ATTENDING_STATUSES, EventRsvp, RsvpStatus
from bookclub_stage.schemas.moderation import EventResponse, EventUpdate, EventUpdateResponse
from bookclub_stage.schemas.rsvp import RsvpResponse
from bookclub_stage.services.directory import UserDirectory
from bookclub_stage.services.notification_emitter import EventUpdated, NotificationEmitter
from bookclub_stage.services.subscriptions import ChangeNotice, LiveQueryKind, SubscriptionBroker

# Configure logger for this module
logger = logging.getLogger(__name__)


class EventService:
    """Edits submitted events and tracks who plans to attend them."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        emitter: NotificationEmitter,
        directory: UserDirectory,
        broker: SubscriptionBroker | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._emitter = emitter
        self._directory = directory
        self._broker = broker

    # -- attendance ----------------------------------------------------------

    def set_rsvp(self, event_id: str, user_id: str, status: RsvpStatus | str) -> RsvpResponse:
        """Record or change a member's answer for an event.

        Raises:
            NotFoundError: If the event does not exist.
        """
        status = RsvpStatus(status)
        with self._session_factory() as db:
            if db.get(SubmittedEvent, event_id) is None:
                raise NotFoundError("event", event_id)
            row = self._find_rsvp(db, event_id, user_id)
            now = utcnow()
            if row is None:
                row = EventRsvp(
                    event_id=event_id,
                    user_id=user_id,
                    status=status.value,
                    created_at=now,
                    updated_at=now,
                )
                db.add(row)
                try:
                    db.commit()
                except IntegrityError:
                    # Another request created the row first; update it instead.
                    db.rollback()
                    row = self._find_rsvp(db, event_id, user_id)
                    if row is None:
                        raise
                    row.status = status.value
                    row.updated_at = now
                    db.commit()
            elif row.status != status.value:
                row.status = status.value
                row.updated_at = now
                db.commit()
            rsvp = RsvpResponse.model_validate(row)
        logger.info("RSVP %s for event %s by %s", rsvp.status, event_id, user_id)
        return rsvp

    @staticmethod
    def _find_rsvp(db: Session, event_id: str, user_id: str) -> EventRsvp | None:
        return (
            db.query(EventRsvp)
            .filter(EventRsvp.event_id == event_id, EventRsvp.user_id == user_id)
            .one_or_none()
        )

    def list_rsvps(self, event_id: str) -> list[RsvpResponse]:
        """Return every answer for an event, oldest first."""
        with self._session_factory() as db:
            if db.get(SubmittedEvent, event_id) is None:
                raise NotFoundError("event", event_id)
            rows = (
                db.query(EventRsvp)
                .filter(EventRsvp.event_id == event_id)
                .order_by(EventRsvp.created_at, EventRsvp.id)
                .all()
            )
            return [RsvpResponse.model_validate(row) for row in rows]

    def attendee_ids(self, event_id: str) -> list[str]:
        """Return members going or maybe going to an event."""
        with self._session_factory() as db:
            rows = (
                db.query(EventRsvp.user_id)
                .filter(
                    EventRsvp.event_id == event_id,
                    EventRsvp.status.in_(ATTENDING_STATUSES),
                )
                .order_by(EventRsvp.created_at, EventRsvp.id)
                .all()
            )
        return [row.user_id for row in rows]

    # -- edits ---------------------------------------------------------------

    async def update_event(
        self, event_id: str, editor_id: str, data: EventUpdate
    ) -> EventUpdateResponse:
        """Change an event's details and tell its attendees.

        Only the submitter or an admin may edit. The moderation status is left
        alone. Attendees other than the editor get one ``event_update`` each;
        a failed emission is returned in ``warnings`` and the edit stands.

        Raises:
            NotFoundError: If the event does not exist.
            ForbiddenError: If ``editor_id`` is neither the submitter nor an admin.
        """
        with self._session_factory() as db:
            row = db.get(SubmittedEvent, event_id)
            if row is None:
                raise NotFoundError("event", event_id)
            if row.submitter_id != editor_id and not self._directory.is_admin(editor_id):
                raise ForbiddenError(editor_id, "update", event_id)

            changes: list[str] = []
            if data.title is not None and data.title != row.title:
                row.title = data.title
                changes.append("title")
            if data.description is not None and data.description != row.description:
                row.description = data.description
                changes.append("description")
            if changes:
                row.updated_at = utcnow()
                db.commit()
            event = EventResponse.model_validate(row)

        if not changes:
            return EventUpdateResponse(event=event)

        logger.info("Event %s updated by %s: %s", event_id, editor_id, ", ".join(changes))
        if self._broker is not None:
            self._broker.publish(
                ChangeNotice(
                    kind=LiveQueryKind.EVENTS,
                    statuses=frozenset({event.status}),
                    entity_id=event_id,
                )
            )

        update = EventUpdated(
            event_id=event_id,
            event_title=event.title,
            attendees=tuple(self.attendee_ids(event_id)),
            changes=tuple(changes),
            actor_id=editor_id,
        )
        try:
            notifications = await self._emitter.emit(update)
        except EmissionFailure as failure:
            logger.warning("Event %s updated but attendees were not notified: %s", event_id, failure)
            return EventUpdateResponse(
                event=event,
                notification_ids=[n.id for n in failure.delivered],
                warnings=[str(failure)],
            )
        return EventUpdateResponse(event=event, notification_ids=[n.id for n in notifications])
