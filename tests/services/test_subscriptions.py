"""Tests for live queries."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from bookclub_stage.core.errors import SubscriptionBrokerUnavailable
from bookclub_stage.schemas.moderation import EventCreate
from bookclub_stage.schemas.notification import NotificationCreate
from bookclub_stage.services.subscriptions import (
    ChangeNotice,
    LiveQueryKind,
    SubscriptionBroker,
    SubscriptionFilter,
)

PENDING_EVENTS = SubscriptionFilter(kind=LiveQueryKind.EVENTS, status="pending")


async def _next(updates, timeout: float = 1.0):
    return await asyncio.wait_for(updates.__anext__(), timeout)


def test_notification_filters_require_recipient():
    with pytest.raises(ValueError):
        SubscriptionFilter(kind=LiveQueryKind.NOTIFICATION_STATS)


def test_filter_matching():
    change = ChangeNotice(kind=LiveQueryKind.EVENTS, statuses=frozenset({"pending", "approved"}))
    mine = SubscriptionFilter(kind=LiveQueryKind.NOTIFICATIONS, recipient_id="u1", notification_type="mention")

    assert PENDING_EVENTS.matches(change)
    assert not SubscriptionFilter(kind=LiveQueryKind.EVENTS, status="rejected").matches(change)
    assert not SubscriptionFilter(kind=LiveQueryKind.REPORTS).matches(change)
    assert mine.matches(ChangeNotice(kind=LiveQueryKind.NOTIFICATIONS, recipient_id="u1", notification_type="mention"))
    assert mine.matches(ChangeNotice(kind=LiveQueryKind.NOTIFICATIONS, recipient_id="u1"))
    assert not mine.matches(
        ChangeNotice(kind=LiveQueryKind.NOTIFICATIONS, recipient_id="u1", notification_type="admin_message")
    )
    assert not mine.matches(ChangeNotice(kind=LiveQueryKind.NOTIFICATIONS, recipient_id="u2"))


def test_report_type_narrows_report_queues():
    profiles = SubscriptionFilter(kind=LiveQueryKind.REPORTS, report_type="profile")
    pending = frozenset({"pending"})

    assert profiles.matches(ChangeNotice(kind=LiveQueryKind.REPORTS, statuses=pending, report_type="profile"))
    assert not profiles.matches(ChangeNotice(kind=LiveQueryKind.REPORTS, statuses=pending, report_type="comment"))
    assert profiles.matches(ChangeNotice(kind=LiveQueryKind.REPORTS, statuses=pending))
    assert SubscriptionFilter(kind=LiveQueryKind.REPORTS).matches(
        ChangeNotice(kind=LiveQueryKind.REPORTS, statuses=pending, report_type="comment")
    )


@pytest.mark.asyncio
async def test_pending_queue_receives_one_snapshot_per_decision(engine, admin, member):
    events = [
        engine.moderation.submit_event(member.id, EventCreate(title=f"Event {i}"))
        for i in range(3)
    ]
    subscription = await engine.broker.subscribe(PENDING_EVENTS)
    assert [e.id for e in subscription.initial.data] == [e.id for e in events]

    await engine.moderation.transition(events[1].id, "approve", admin.id)

    updates = subscription.updates()
    snapshot = await _next(updates)
    assert [e.id for e in snapshot.data] == [events[0].id, events[2].id]
    assert snapshot.version > subscription.initial.version
    with pytest.raises(asyncio.TimeoutError):
        await _next(updates, timeout=0.05)
    engine.broker.unsubscribe(subscription)


@pytest.mark.asyncio
async def test_unrelated_changes_do_not_wake_subscribers(engine, member):
    subscription = await engine.broker.subscribe(PENDING_EVENTS)

    delivered = engine.broker.publish(ChangeNotice(kind=LiveQueryKind.REPORTS, statuses=frozenset({"pending"})))

    assert delivered == 0
    assert subscription.last_snapshot is None
    engine.broker.unsubscribe(subscription)


@pytest.mark.asyncio
async def test_bursts_are_coalesced_into_latest_snapshot(engine, admin, member):
    subscription = await engine.broker.subscribe(PENDING_EVENTS)
    updates = subscription.updates()

    for i in range(3):
        engine.moderation.submit_event(member.id, EventCreate(title=f"Burst {i}"))

    snapshot = await _next(updates)
    assert [e.title for e in snapshot.data] == ["Burst 0", "Burst 1", "Burst 2"]
    engine.broker.unsubscribe(subscription)


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent_and_ends_stream(engine):
    subscription = await engine.broker.subscribe(PENDING_EVENTS)
    updates = subscription.updates()

    engine.broker.unsubscribe(subscription)
    engine.broker.unsubscribe(subscription)

    assert not subscription.active
    assert len(engine.broker) == 0
    with pytest.raises(StopAsyncIteration):
        await _next(updates)


@pytest.mark.asyncio
async def test_broker_close_surfaces_unavailable(engine):
    subscription = await engine.broker.subscribe(PENDING_EVENTS)
    updates = subscription.updates()

    engine.broker.close()

    with pytest.raises(SubscriptionBrokerUnavailable):
        await _next(updates)
    with pytest.raises(SubscriptionBrokerUnavailable):
        await engine.broker.subscribe(PENDING_EVENTS)


@pytest.mark.asyncio
async def test_badge_count_follows_store_writes(engine):
    subscription = await engine.broker.subscribe(
        SubscriptionFilter(kind=LiveQueryKind.NOTIFICATION_STATS, recipient_id="u1")
    )
    updates = subscription.updates()
    assert subscription.initial.data.total_unread == 0

    appended = engine.store.append(
        NotificationCreate(recipient_id="u1", notification_type="mention", title="t", message="m")
    )
    snapshot = await _next(updates)
    assert snapshot.data.total_unread == 1

    engine.store.mark_read(appended.notification.id)
    snapshot = await _next(updates)
    assert snapshot.data.total_unread == 0
    engine.broker.unsubscribe(subscription)


@pytest.mark.asyncio
async def test_publish_from_worker_thread_wakes_consumer():
    data = {"items": ["a"]}
    broker = SubscriptionBroker({LiveQueryKind.REPORTS: lambda _filter: list(data["items"])})
    subscription = await broker.subscribe(SubscriptionFilter(kind=LiveQueryKind.REPORTS))
    updates = subscription.updates()

    data["items"].append("b")
    await asyncio.to_thread(broker.publish, ChangeNotice(kind=LiveQueryKind.REPORTS))

    snapshot = await _next(updates)
    assert snapshot.data == ["a", "b"]
    broker.close()


@pytest.mark.asyncio
async def test_loader_failure_is_reported_as_unavailable():
    def broken(_filter):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    broker = SubscriptionBroker({LiveQueryKind.EVENTS: broken})

    with pytest.raises(SubscriptionBrokerUnavailable):
        await broker.subscribe(SubscriptionFilter(kind=LiveQueryKind.EVENTS))


@pytest.mark.asyncio
async def test_unregistered_query_kind_is_unavailable():
    with pytest.raises(SubscriptionBrokerUnavailable):
        await SubscriptionBroker().subscribe(SubscriptionFilter(kind=LiveQueryKind.EVENTS))
