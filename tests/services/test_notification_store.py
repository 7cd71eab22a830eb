"""Tests for notification persistence and unread aggregation."""

from __future__ import annotations

import pytest

from bookclub_stage.core.errors import NotFoundError
from bookclub_stage.models.notification import NotificationCounter, NotificationType
from bookclub_stage.schemas.notification import NotificationCreate
from bookclub_stage.services.notification_store import NotificationStore
from bookclub_stage.services.subscriptions import SubscriptionBroker


def _draft(recipient_id: str = "u1", notification_type: str = "mention", **overrides) -> NotificationCreate:
    payload = {
        "recipient_id": recipient_id,
        "notification_type": notification_type,
        "title": "You were mentioned",
        "message": "hello",
    }
    payload.update(overrides)
    return NotificationCreate(**payload)


@pytest.fixture
def broker() -> SubscriptionBroker:
    return SubscriptionBroker()


@pytest.fixture
def store(session_factory, broker) -> NotificationStore:
    return NotificationStore(session_factory, broker=broker)


def _assert_consistent(stats) -> None:
    assert stats.total_unread == sum(stats.unread_by_type.values())
    assert set(stats.unread_by_type) >= {member.value for member in NotificationType}


def test_stats_for_unknown_recipient_lists_every_type_at_zero(store):
    stats = store.stats_for("nobody")

    assert stats.total_unread == 0
    assert stats.unread_by_type == {member.value: 0 for member in NotificationType}


def test_append_counts_notification_as_unread(store, broker):
    result = store.append(_draft())

    assert result.created is True
    assert result.notification.is_read is False
    stats = store.stats_for("u1")
    assert stats.total_unread == 1
    assert stats.unread_by_type["mention"] == 1
    _assert_consistent(stats)
    assert broker.version == 1


def test_mark_read_is_idempotent(store):
    notification = store.append(_draft()).notification

    store.mark_read(notification.id)
    assert store.stats_for("u1").total_unread == 0

    again = store.mark_read(notification.id)
    assert again.is_read is True
    assert store.stats_for("u1").total_unread == 0


def test_mark_unread_restores_count(store):
    notification = store.append(_draft(notification_type="admin_message")).notification
    store.mark_read(notification.id)

    store.mark_unread(notification.id)

    stats = store.stats_for("u1")
    assert stats.unread_by_type["admin_message"] == 1
    _assert_consistent(stats)


def test_mark_read_hides_other_recipients_notifications(store):
    notification = store.append(_draft(recipient_id="u1")).notification

    with pytest.raises(NotFoundError):
        store.mark_read(notification.id, recipient_id="u2")
    assert store.stats_for("u1").total_unread == 1


def test_mark_read_unknown_notification(store):
    with pytest.raises(NotFoundError):
        store.mark_read("missing")


def test_duplicate_dedupe_key_is_stored_once(store, broker):
    first = store.append(_draft(dedupe_key="status:e1:approved"))
    second = store.append(_draft(dedupe_key="status:e1:approved"))

    assert first.created is True
    assert second.created is False
    assert second.notification.id == first.notification.id
    assert store.stats_for("u1").total_unread == 1
    assert broker.version == 1


def test_mark_all_read(store):
    store.append(_draft())
    store.append(_draft(notification_type="comment_reply"))
    store.append(_draft(recipient_id="u2"))

    assert store.mark_all_read("u1") == 2
    assert store.mark_all_read("u1") == 0
    assert store.stats_for("u1").total_unread == 0
    assert store.stats_for("u2").total_unread == 1


def test_recompute_repairs_drifted_counters(store, db_session):
    store.append(_draft())
    store.append(_draft(notification_type="event_approved"))
    db_session.merge(NotificationCounter(recipient_id="u1", notification_type="mention", unread=7))
    db_session.merge(NotificationCounter(recipient_id="u1", notification_type="rsvp_update", unread=3))
    db_session.commit()

    stats = store.recompute("u1")

    assert stats.total_unread == 2
    assert stats.unread_by_type["mention"] == 1
    assert stats.unread_by_type["event_approved"] == 1
    assert stats.unread_by_type["rsvp_update"] == 0


def test_list_for_returns_newest_first_with_filters(store):
    first = store.append(_draft(message="one")).notification
    second = store.append(_draft(notification_type="admin_message", message="two")).notification
    third = store.append(_draft(message="three")).notification
    store.mark_read(third.id)

    assert [n.id for n in store.list_for("u1")] == [third.id, second.id, first.id]
    assert [n.id for n in store.list_for("u1", notification_type="mention")] == [third.id, first.id]
    assert [n.id for n in store.list_for("u1", unread_only=True)] == [second.id, first.id]
    assert [n.id for n in store.list_for("u1", limit=1)] == [third.id]


def test_aggregate_stays_consistent_across_mixed_operations(store):
    ids = [store.append(_draft(notification_type=t)).notification.id
           for t in ("mention", "mention", "comment_reply", "report_resolved")]
    store.mark_read(ids[0])
    store.mark_read(ids[0])
    store.mark_unread(ids[2])
    store.mark_read(ids[3])

    stats = store.stats_for("u1")
    _assert_consistent(stats)
    assert stats.total_unread == 2
    assert stats.unread_by_type == {**{m.value: 0 for m in NotificationType},
                                    "mention": 1, "comment_reply": 1}


def test_get_returns_timezone_aware_timestamps(store):
    notification = store.append(_draft()).notification

    fetched = store.get(notification.id)
    assert fetched.created_at.tzinfo is not None
