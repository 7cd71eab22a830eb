"""Notification persistence and the per-recipient unread aggregate.

Every write for a recipient happens under that recipient's lock and commits
the notification row together with its ``notification_counter`` rows, so a
reader of :meth:`NotificationStore.stats_for` can never observe a notification
without its count (or the reverse).
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from bookclub_stage.core.errors import NotFoundError
from bookclub_stage.core.settings import settings
from bookclub_stage.db.time import utcnow
from bookclub_stage.models.notification import Notification, NotificationCounter
from bookclub_stage.schemas.notification import (
    NotificationCreate,
    NotificationResponse,
    NotificationStats,
)
from bookclub_stage.services.locks import thread_locks
from bookclub_stage.services.subscriptions import (
    ChangeNotice,
    LiveQueryKind,
    SubscriptionBroker,
    SubscriptionFilter,
)

# Configure logger for this module
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppendResult:
    """Outcome of :meth:`NotificationStore.append`."""

    notification: NotificationResponse
    created: bool


def _adjust_counters(db: Session, recipient_id: str, deltas: Counter[str]) -> None:
    for notification_type, delta in deltas.items():
        if not delta:
            continue
        counter = db.get(NotificationCounter, (recipient_id, notification_type))
        if counter is None:
            counter = NotificationCounter(
                recipient_id=recipient_id,
                notification_type=notification_type,
                unread=0,
            )
            db.add(counter)
        counter.unread = max(counter.unread + delta, 0)


class NotificationStore:
    """Store for notifications plus the aggregator that keeps unread counts."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        broker: SubscriptionBroker | None = None,
        page_size: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._broker = broker
        self._page_size = page_size or settings.notification_page_size
        self._locks = thread_locks()

    def _publish(self, recipient_id: str, notification_type: str | None) -> None:
        if self._broker is not None:
            self._broker.publish(
                ChangeNotice(
                    kind=LiveQueryKind.NOTIFICATIONS,
                    recipient_id=recipient_id,
                    notification_type=notification_type,
                )
            )

    def append(self, notification: NotificationCreate) -> AppendResult:
        """Persist ``notification`` and count it as unread in one transaction.

        A notification whose ``dedupe_key`` already exists is not stored again;
        the existing record is returned with ``created=False``.
        """
        recipient_id = notification.recipient_id
        with self._locks(recipient_id):
            with self._session_factory() as db:
                if notification.dedupe_key:
                    existing = (
                        db.query(Notification)
                        .filter(Notification.dedupe_key == notification.dedupe_key)
                        .first()
                    )
                    if existing is not None:
                        logger.debug("Suppressed duplicate notification %s", notification.dedupe_key)
                        return AppendResult(NotificationResponse.model_validate(existing), False)

                now = utcnow()
                row = Notification(
                    **notification.model_dump(),
                    is_read=False,
                    created_at=now,
                    updated_at=now,
                )
                db.add(row)
                _adjust_counters(db, recipient_id, Counter({notification.notification_type: 1}))
                db.commit()
                stored = NotificationResponse.model_validate(row)
        self._publish(recipient_id, notification.notification_type)
        return AppendResult(stored, True)

    def get(self, notification_id: str) -> NotificationResponse:
        """Return one notification.

        Raises:
            NotFoundError: If no such notification exists.
        """
        with self._session_factory() as db:
            row = db.get(Notification, notification_id)
            if row is None:
                raise NotFoundError("notification", notification_id)
            return NotificationResponse.model_validate(row)

    def _set_read(
        self, notification_id: str, is_read: bool, recipient_id: str | None
    ) -> NotificationResponse:
        owner = self.get(notification_id).recipient_id
        if recipient_id is not None and owner != recipient_id:
            # Other members' notifications are indistinguishable from missing ones.
            raise NotFoundError("notification", notification_id)

        with self._locks(owner):
            with self._session_factory() as db:
                row = db.get(Notification, notification_id)
                if row is None:
                    raise NotFoundError("notification", notification_id)
                if row.is_read == is_read:
                    return NotificationResponse.model_validate(row)
                row.is_read = is_read
                row.updated_at = utcnow()
                delta = -1 if is_read else 1
                _adjust_counters(db, owner, Counter({row.notification_type: delta}))
                db.commit()
                updated = NotificationResponse.model_validate(row)
        self._publish(owner, updated.notification_type)
        return updated

    def mark_read(
        self, notification_id: str, recipient_id: str | None = None
    ) -> NotificationResponse:
        """Flag a notification as read; a no-op when it already is."""
        return self._set_read(notification_id, True, recipient_id)

    def mark_unread(
        self, notification_id: str, recipient_id: str | None = None
    ) -> NotificationResponse:
        """Flag a notification as unread again; a no-op when it already is."""
        return self._set_read(notification_id, False, recipient_id)

    def mark_all_read(self, recipient_id: str) -> int:
        """Flag every unread notification of ``recipient_id`` as read."""
        with self._locks(recipient_id):
            with self._session_factory() as db:
                rows = (
                    db.query(Notification)
                    .filter(
                        Notification.recipient_id == recipient_id,
                        Notification.is_read.is_(False),
                    )
                    .all()
                )
                if not rows:
                    return 0
                now = utcnow()
                deltas: Counter[str] = Counter()
                for row in rows:
                    row.is_read = True
                    row.updated_at = now
                    deltas[row.notification_type] -= 1
                _adjust_counters(db, recipient_id, deltas)
                db.commit()
        self._publish(recipient_id, None)
        logger.info("Marked %d notifications read for %s", len(rows), recipient_id)
        return len(rows)

    def stats_for(self, recipient_id: str) -> NotificationStats:
        """Return the unread aggregate with every notification type present."""
        with self._locks(recipient_id):
            with self._session_factory() as db:
                rows = (
                    db.query(NotificationCounter.notification_type, NotificationCounter.unread)
                    .filter(NotificationCounter.recipient_id == recipient_id)
                    .all()
                )
        return NotificationStats.from_counts(recipient_id, {t: n for t, n in rows})

    def list_for(
        self,
        recipient_id: str,
        notification_type: str | None = None,
        limit: int | None = None,
        unread_only: bool = False,
    ) -> list[NotificationResponse]:
        """Return the newest notifications of ``recipient_id``."""
        with self._locks(recipient_id):
            with self._session_factory() as db:
                query = db.query(Notification).filter(Notification.recipient_id == recipient_id)
                if notification_type is not None:
                    query = query.filter(Notification.notification_type == notification_type)
                if unread_only:
                    query = query.filter(Notification.is_read.is_(False))
                rows = (
                    query.order_by(Notification.created_at.desc(), Notification.id.desc())
                    .limit(limit or self._page_size)
                    .all()
                )
                return [NotificationResponse.model_validate(row) for row in rows]

    def recompute(self, recipient_id: str) -> NotificationStats:
        """Rebuild the aggregate of ``recipient_id`` from its notification rows."""
        with self._locks(recipient_id):
            with self._session_factory() as db:
                actual = dict(
                    db.query(Notification.notification_type, func.count(Notification.id))
                    .filter(
                        Notification.recipient_id == recipient_id,
                        Notification.is_read.is_(False),
                    )
                    .group_by(Notification.notification_type)
                    .all()
                )
                counters = (
                    db.query(NotificationCounter)
                    .filter(NotificationCounter.recipient_id == recipient_id)
                    .all()
                )
                for counter in counters:
                    counter.unread = actual.pop(counter.notification_type, 0)
                for notification_type, unread in actual.items():
                    db.add(
                        NotificationCounter(
                            recipient_id=recipient_id,
                            notification_type=notification_type,
                            unread=unread,
                        )
                    )
                db.commit()
        self._publish(recipient_id, None)
        return self.stats_for(recipient_id)

    # -- live query loaders --------------------------------------------------

    def load_notifications(self, subscription_filter: SubscriptionFilter) -> list[NotificationResponse]:
        """Snapshot loader for notification list subscriptions."""
        assert subscription_filter.recipient_id is not None
        return self.list_for(
            subscription_filter.recipient_id,
            notification_type=subscription_filter.notification_type,
        )

    def load_stats(self, subscription_filter: SubscriptionFilter) -> NotificationStats:
        """Snapshot loader for unread badge subscriptions."""
        assert subscription_filter.recipient_id is not None
        return self.stats_for(subscription_filter.recipient_id)
