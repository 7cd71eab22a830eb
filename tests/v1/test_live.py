"""Websocket tests for live queries."""

from __future__ import annotations

import pytest
from fastapi import status
from starlette.websockets import WebSocketDisconnect

from bookclub_stage.core.security import create_access_token


def _live_url(user, **params) -> str:
    query = "&".join(f"{key}={value}" for key, value in params.items())
    return f"/api/v1/live?token={create_access_token(user.id)}&{query}"


def test_badge_stream_receives_initial_and_updated_counts(client, auth_headers, admin, member):
    with client.websocket_connect(_live_url(member, kind="notification_stats")) as websocket:
        initial = websocket.receive_json()
        assert initial["kind"] == "notification_stats"
        assert initial["data"]["total_unread"] == 0

        response = client.post(
            "/api/v1/notifications/broadcast",
            json={"recipient_ids": [member.id], "message": "Welcome!"},
            headers=auth_headers(admin),
        )
        assert response.status_code == status.HTTP_201_CREATED

        update = websocket.receive_json()
        assert update["data"]["total_unread"] == 1
        assert update["data"]["unread_by_type"]["admin_message"] == 1
        assert update["version"] > initial["version"]


def test_admin_queue_stream(client, auth_headers, admin, member):
    with client.websocket_connect(_live_url(admin, kind="events", status="pending")) as websocket:
        assert websocket.receive_json()["data"] == []

        client.post("/api/v1/events", json={"title": "Haiku hour"}, headers=auth_headers(member))

        update = websocket.receive_json()
        assert [e["title"] for e in update["data"]] == ["Haiku hour"]


def test_members_cannot_watch_moderation_queue(client, member):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect(_live_url(member, kind="reports")) as websocket:
            websocket.receive_json()
    assert excinfo.value.code == status.WS_1008_POLICY_VIOLATION


def test_invalid_token_is_refused(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/live?token=garbage&kind=notifications") as websocket:
            websocket.receive_json()


def test_closed_broker_asks_client_to_reconnect(client, engine, member):
    with client.websocket_connect(_live_url(member, kind="notifications")) as websocket:
        assert websocket.receive_json()["data"] == []

        engine.broker.close()

        with pytest.raises(WebSocketDisconnect) as excinfo:
            websocket.receive_json()
    assert excinfo.value.code == 1012
