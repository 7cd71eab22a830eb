"""Event comments: mention resolution and reply notifications."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session, sessionmaker

from bookclub_stage.core.errors import EmissionFailure, NotFoundError
from bookclub_stage.core.settings import settings
from bookclub_stage.db.time import utcnow
from bookclub_stage.models.comment import EventComment
from bookclub_stage.models.moderation import SubmittedEvent
from bookclub_stage.schemas.comment import CommentCreate, CommentResponse
from bookclub_stage.services.mentions import MentionResolver
from bookclub_stage.services.notification_emitter import (
    CommentReplied,
    DomainEvent,
    MentionDetected,
    NotificationEmitter,
)

# Configure logger for this module
logger = logging.getLogger(__name__)


class CommentService:
    """Stores comments and turns their mentions and replies into notifications."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        emitter: NotificationEmitter,
        resolver: MentionResolver,
    ) -> None:
        self._session_factory = session_factory
        self._emitter = emitter
        self._resolver = resolver

    def list_comments(self, event_id: str) -> list[CommentResponse]:
        """Return the comments on an event in posting order."""
        with self._session_factory() as db:
            rows = (
                db.query(EventComment)
                .filter(EventComment.event_id == event_id)
                .order_by(EventComment.created_at, EventComment.id)
                .all()
            )
            return [CommentResponse.model_validate(row) for row in rows]

    async def post_comment(
        self, event_id: str, author_id: str, data: CommentCreate
    ) -> CommentResponse:
        """Store a comment, then notify mentioned members and the replied-to author.

        Notification failures do not undo the comment; they are returned in
        ``warnings``.

        Raises:
            NotFoundError: If the event or the parent comment does not exist.
            ValueError: If the body exceeds ``MENTION_MAX_TEXT_LENGTH``.
        """
        if len(data.body) > settings.mention_max_text_length:
            raise ValueError("Comment body is too long")
        mentions = self._resolver.resolve(data.body)

        with self._session_factory() as db:
            event = db.get(SubmittedEvent, event_id)
            if event is None:
                raise NotFoundError("event", event_id)
            parent = None
            if data.parent_comment_id is not None:
                parent = db.get(EventComment, data.parent_comment_id)
                if parent is None or parent.event_id != event_id:
                    raise NotFoundError("comment", data.parent_comment_id)
            row = EventComment(
                event_id=event_id,
                author_id=author_id,
                body=data.body,
                parent_comment_id=data.parent_comment_id,
                mentions=[mention.model_dump() for mention in mentions],
                created_at=utcnow(),
            )
            db.add(row)
            db.commit()
            comment = CommentResponse.model_validate(row)
            event_title = event.title
            parent_author_id = parent.author_id if parent is not None else None

        events: list[DomainEvent] = []
        if mentions:
            events.append(
                MentionDetected(
                    mentions=tuple(mentions),
                    source_text=data.body,
                    source_entity_id=comment.id,
                    actor_id=author_id,
                    context_title=event_title,
                )
            )
        if parent_author_id is not None:
            events.append(
                CommentReplied(
                    parent_author_id=parent_author_id,
                    comment_id=comment.id,
                    event_id=event_id,
                    body=data.body,
                    actor_id=author_id,
                )
            )
        try:
            await self._emitter.emit_all(events)
        except EmissionFailure as failure:
            logger.warning("Comment %s stored but notifications failed: %s", comment.id, failure)
            return comment.model_copy(update={"warnings": [str(failure)]})
        return comment
