"""Wiring of the moderation and notification engine components."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from bookclub_stage.services.authorization import Authorizer, RoleAuthorizer
from bookclub_stage.services.comments import CommentService
from bookclub_stage.services.directory import SqlUserDirectory, UserDirectory
from bookclub_stage.services.events import EventService
from bookclub_stage.services.mentions import MentionResolver
from bookclub_stage.services.moderation import ModerationService
from bookclub_stage.services.notification_emitter import NotificationEmitter
from bookclub_stage.services.notification_store import NotificationStore
from bookclub_stage.services.push import PushGateway
from bookclub_stage.services.subscriptions import LiveQueryKind, SubscriptionBroker


@dataclass
class Engine:
    """Container holding one instance of every engine component."""

    directory: UserDirectory
    broker: SubscriptionBroker
    store: NotificationStore
    emitter: NotificationEmitter
    resolver: MentionResolver
    moderation: ModerationService
    comments: CommentService
    events: EventService

    def close(self) -> None:
        """Shut down live queries."""
        self.broker.close()


def build_engine(
    session_factory: sessionmaker[Session],
    *,
    directory: UserDirectory | None = None,
    authorizer: Authorizer | None = None,
    push: PushGateway | None = None,
) -> Engine:
    """Assemble the engine over ``session_factory``.

    Args:
        session_factory: Factory producing sessions on the backing database.
        directory: Optional user directory; defaults to the ``app_user`` table.
        authorizer: Optional capability check; defaults to admin-only moderation.
        push: Optional push gateway; defaults to in-app only delivery.
    """
    directory = directory or SqlUserDirectory(session_factory)
    broker = SubscriptionBroker()
    store = NotificationStore(session_factory, broker=broker)
    emitter = NotificationEmitter(store, directory, push=push)
    resolver = MentionResolver(directory)
    moderation = ModerationService(
        session_factory,
        emitter,
        authorizer or RoleAuthorizer(directory),
        directory,
        broker=broker,
    )
    comments = CommentService(session_factory, emitter, resolver)
    events = EventService(session_factory, emitter, directory, broker=broker)

    broker.register_loader(LiveQueryKind.EVENTS, moderation.load_events)
    broker.register_loader(LiveQueryKind.REPORTS, moderation.load_reports)
    broker.register_loader(LiveQueryKind.NOTIFICATIONS, store.load_notifications)
    broker.register_loader(LiveQueryKind.NOTIFICATION_STATS, store.load_stats)

    return Engine(
        directory=directory,
        broker=broker,
        store=store,
        emitter=emitter,
        resolver=resolver,
        moderation=moderation,
        comments=comments,
        events=events,
    )


_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the process-wide engine bound to the configured database."""
    global _engine
    if _engine is None:
        from bookclub_stage.db.session import SessionLocal

        _engine = build_engine(SessionLocal)
    return _engine


def reset_engine() -> None:
    """Close and forget the process-wide engine."""
    global _engine
    if _engine is not None:
        _engine.close()
        _engine = None
