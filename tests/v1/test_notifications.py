"""API tests for the notification inbox."""

from __future__ import annotations

import pytest
from fastapi import status
from sqlalchemy.exc import OperationalError


def _broadcast(client, headers, recipients, message="Meeting moved to room 4"):
    return client.post(
        "/api/v1/notifications/broadcast",
        json={"recipient_ids": recipients, "message": message},
        headers=headers,
    )


@pytest.fixture
def inbox(client, auth_headers, admin, member):
    response = _broadcast(client, auth_headers(admin), [member.id])
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


def test_broadcast_requires_admin(client, auth_headers, member, other_member):
    response = _broadcast(client, auth_headers(member), [other_member.id])
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_broadcast_to_unknown_member(client, auth_headers, admin):
    response = _broadcast(client, auth_headers(admin), ["ghost"])
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_broadcast_store_failure_is_unavailable(client, auth_headers, admin, member, engine, mocker):
    mocker.patch.object(
        engine.store,
        "append",
        side_effect=OperationalError("INSERT INTO notification", {}, Exception("locked")),
    )

    response = _broadcast(client, auth_headers(admin), [member.id])
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


def test_list_and_stats(client, auth_headers, admin, member, inbox):
    listed = client.get("/api/v1/notifications", headers=auth_headers(member))
    assert [n["id"] for n in listed.json()] == [inbox[0]["id"]]
    assert listed.json()[0]["actor_name"] == "maya"

    filtered = client.get(
        "/api/v1/notifications", params={"notification_type": "mention"}, headers=auth_headers(member)
    )
    assert filtered.json() == []

    stats = client.get("/api/v1/notifications/stats", headers=auth_headers(member)).json()
    assert stats["total_unread"] == 1
    assert stats["total_unread"] == sum(stats["unread_by_type"].values())
    assert len(stats["unread_by_type"]) == 8


def test_read_and_unread_toggle(client, auth_headers, member, inbox):
    notification_id = inbox[0]["id"]

    for _ in range(2):
        read = client.post(f"/api/v1/notifications/{notification_id}/read", headers=auth_headers(member))
        assert read.json()["is_read"] is True
        stats = client.get("/api/v1/notifications/stats", headers=auth_headers(member)).json()
        assert stats["total_unread"] == 0

    unread = client.post(f"/api/v1/notifications/{notification_id}/unread", headers=auth_headers(member))
    assert unread.json()["is_read"] is False


def test_cannot_touch_someone_elses_notification(client, auth_headers, other_member, inbox):
    response = client.post(
        f"/api/v1/notifications/{inbox[0]['id']}/read", headers=auth_headers(other_member)
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_read_all(client, auth_headers, admin, member, inbox):
    _broadcast(client, auth_headers(admin), [member.id], message="Second note")

    response = client.post("/api/v1/notifications/read-all", headers=auth_headers(member))
    assert response.json() == {"updated": 2}
    unread = client.get("/api/v1/notifications", params={"unread_only": True}, headers=auth_headers(member))
    assert unread.json() == []
