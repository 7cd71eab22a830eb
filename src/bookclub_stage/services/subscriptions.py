"""Live queries: snapshot-then-updates streams over engine state.

Writers call :meth:`SubscriptionBroker.publish` after committing. Publishing
only flags matching subscriptions as dirty, so it never waits on a consumer.
Each subscription reloads a full snapshot when its consumer next pulls from
:meth:`Subscription.updates`, which coalesces bursts of writes and guarantees
that delivered snapshots never go backwards.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from bookclub_stage.core.errors import SubscriptionBrokerUnavailable

# Configure logger for this module
logger = logging.getLogger(__name__)


class LiveQueryKind(str, Enum):
    """Result sets a consumer can subscribe to."""

    EVENTS = "events"
    REPORTS = "reports"
    NOTIFICATIONS = "notifications"
    NOTIFICATION_STATS = "notification_stats"


# Which committed change kind feeds each live query.
_SOURCE_KIND = {
    LiveQueryKind.EVENTS: LiveQueryKind.EVENTS,
    LiveQueryKind.REPORTS: LiveQueryKind.REPORTS,
    LiveQueryKind.NOTIFICATIONS: LiveQueryKind.NOTIFICATIONS,
    LiveQueryKind.NOTIFICATION_STATS: LiveQueryKind.NOTIFICATIONS,
}


@dataclass(frozen=True)
class SubscriptionFilter:
    """What a subscriber wants to watch.

    ``status`` narrows event and report queues and ``report_type`` narrows
    report queues. ``recipient_id`` is mandatory for notification streams;
    ``notification_type`` narrows notification lists.
    """

    kind: LiveQueryKind
    status: str | None = None
    recipient_id: str | None = None
    notification_type: str | None = None
    report_type: str | None = None

    def __post_init__(self) -> None:
        per_recipient = (LiveQueryKind.NOTIFICATIONS, LiveQueryKind.NOTIFICATION_STATS)
        if self.kind in per_recipient and not self.recipient_id:
            raise ValueError(f"{self.kind.value} subscriptions require a recipient_id")

    def matches(self, change: ChangeNotice) -> bool:
        """Return True when ``change`` may alter this filter's result set."""
        if _SOURCE_KIND[self.kind] is not change.kind:
            return False
        if change.kind is LiveQueryKind.NOTIFICATIONS:
            if change.recipient_id != self.recipient_id:
                return False
            if (
                self.kind is LiveQueryKind.NOTIFICATIONS
                and self.notification_type is not None
                and change.notification_type is not None
                and change.notification_type != self.notification_type
            ):
                return False
            return True
        if (
            self.report_type is not None
            and change.report_type is not None
            and change.report_type != self.report_type
        ):
            return False
        return self.status is None or self.status in change.statuses


@dataclass(frozen=True)
class ChangeNotice:
    """Description of a committed mutation, published by writers."""

    kind: LiveQueryKind
    statuses: frozenset[str] = frozenset()
    recipient_id: str | None = None
    notification_type: str | None = None
    report_type: str | None = None
    entity_id: str | None = None


@dataclass(frozen=True)
class Snapshot:
    """Complete result set for a filter; ``version`` grows with every publish."""

    version: int
    data: Any


SnapshotLoader = Callable[[SubscriptionFilter], Any]


@dataclass(eq=False)
class Subscription:
    """Live handle pairing a consumer with its filter."""

    broker: SubscriptionBroker
    filter: SubscriptionFilter
    initial: Snapshot
    id: int = 0
    last_snapshot: Snapshot | None = None
    _loop: asyncio.AbstractEventLoop | None = field(default=None, repr=False)
    _dirty: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    _closed: bool = False
    _broker_closed: bool = False

    @property
    def active(self) -> bool:
        """Return True until the consumer unsubscribes or the broker closes."""
        return not self._closed

    def _signal(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._dirty.set()
        else:
            # Writers on worker threads hand the wake-up to the consumer's loop.
            try:
                loop.call_soon_threadsafe(self._dirty.set)
            except RuntimeError:
                logger.debug("Subscription %d lost its event loop", self.id)
                self._closed = True

    def _close(self, *, broker_closed: bool = False) -> None:
        self._closed = True
        self._broker_closed = self._broker_closed or broker_closed
        self._signal()

    async def updates(self) -> AsyncIterator[Snapshot]:
        """Yield each newer snapshot until unsubscribed.

        Raises:
            SubscriptionBrokerUnavailable: If the broker shut down or the
                snapshot source failed; ``last_snapshot`` stays valid.
        """
        while True:
            await self._dirty.wait()
            self._dirty.clear()
            if self._closed:
                if self._broker_closed:
                    raise SubscriptionBrokerUnavailable("subscription broker closed")
                return
            snapshot = self.broker._snapshot(self.filter)
            current = self.last_snapshot or self.initial
            if snapshot.data == current.data:
                continue
            self.last_snapshot = snapshot
            yield snapshot


class SubscriptionBroker:
    """Registry of live queries and fan-out point for committed changes."""

    def __init__(self, loaders: Mapping[LiveQueryKind, SnapshotLoader] | None = None) -> None:
        self._loaders: dict[LiveQueryKind, SnapshotLoader] = dict(loaders or {})
        self._subscriptions: dict[int, Subscription] = {}
        self._lock = Lock()
        self._ids = itertools.count(1)
        self._version = 0
        self._closed = False

    def register_loader(self, kind: LiveQueryKind, loader: SnapshotLoader) -> None:
        """Attach the query that computes snapshots for ``kind``."""
        self._loaders[kind] = loader

    @property
    def version(self) -> int:
        """Number of changes published so far."""
        with self._lock:
            return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _snapshot(self, subscription_filter: SubscriptionFilter) -> Snapshot:
        loader = self._loaders.get(subscription_filter.kind)
        if loader is None:
            raise SubscriptionBrokerUnavailable(
                f"no live query registered for {subscription_filter.kind.value}"
            )
        with self._lock:
            version = self._version
        try:
            data = loader(subscription_filter)
        except SQLAlchemyError as exc:
            logger.warning("Live query %s failed: %s", subscription_filter.kind.value, exc)
            raise SubscriptionBrokerUnavailable(str(exc)) from exc
        return Snapshot(version=version, data=data)

    async def subscribe(self, subscription_filter: SubscriptionFilter) -> Subscription:
        """Register a live query and compute its initial snapshot."""
        if self._closed:
            raise SubscriptionBrokerUnavailable("subscription broker closed")
        initial = self._snapshot(subscription_filter)
        subscription = Subscription(
            broker=self,
            filter=subscription_filter,
            initial=initial,
            id=next(self._ids),
            _loop=asyncio.get_running_loop(),
        )
        with self._lock:
            self._subscriptions[subscription.id] = subscription
        # A change committed between the initial load and registration would
        # otherwise be missed.
        if self.version != initial.version:
            subscription._signal()
        logger.debug("Subscription %d opened for %s", subscription.id, subscription_filter)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Stop delivery to ``subscription``; safe to call repeatedly."""
        with self._lock:
            self._subscriptions.pop(subscription.id, None)
        if subscription.active:
            subscription._close()
            logger.debug("Subscription %d closed", subscription.id)

    def publish(self, change: ChangeNotice) -> int:
        """Flag every subscription affected by ``change``; return how many."""
        with self._lock:
            self._version += 1
            targets = [
                sub for sub in self._subscriptions.values() if sub.filter.matches(change)
            ]
        for subscription in targets:
            subscription._signal()
        if targets:
            logger.debug("Change %s signalled %d subscriptions", change.kind.value, len(targets))
        return len(targets)

    def close(self) -> None:
        """Drop every subscription; consumers see SubscriptionBrokerUnavailable."""
        with self._lock:
            self._closed = True
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription._close(broker_closed=True)
