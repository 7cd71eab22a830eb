"""API tests for events, reports and comments."""

from __future__ import annotations

from fastapi import status


def _create_event(client, headers, title="Book swap"):
    response = client.post("/api/v1/events", json={"title": title, "description": "Bring two books"}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


def _create_report(client, headers, content_id="comment-1"):
    return client.post(
        "/api/v1/reports",
        json={
            "report_type": "comment",
            "reason": "harassment",
            "content_id": content_id,
            "content_preview": "rude words",
        },
        headers=headers,
    )


def test_requests_without_token_are_rejected(client):
    response = client.get("/api/v1/events")
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_invalid_token_is_unauthorized(client):
    response = client.get("/api/v1/events", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_member_submission_waits_for_approval(client, auth_headers, member):
    event = _create_event(client, auth_headers(member))

    assert event["status"] == "pending"
    assert event["kind"] == "event"
    assert event["submitter_id"] == member.id


def test_members_only_list_approved_events(client, auth_headers, admin, member):
    pending = _create_event(client, auth_headers(member), "Pending")
    approved = _create_event(client, auth_headers(admin), "Approved")

    listed = client.get("/api/v1/events", headers=auth_headers(member))
    assert [e["id"] for e in listed.json()] == [approved["id"]]

    forbidden = client.get("/api/v1/events", params={"status": "pending"}, headers=auth_headers(member))
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    queue = client.get("/api/v1/events", params={"status": "pending"}, headers=auth_headers(admin))
    assert [e["id"] for e in queue.json()] == [pending["id"]]


def test_pending_event_visible_to_submitter_only(client, auth_headers, admin, member, other_member):
    event = _create_event(client, auth_headers(member))
    url = f"/api/v1/events/{event['id']}"

    assert client.get(url, headers=auth_headers(member)).status_code == status.HTTP_200_OK
    assert client.get(url, headers=auth_headers(admin)).status_code == status.HTTP_200_OK
    assert client.get(url, headers=auth_headers(other_member)).status_code == status.HTTP_404_NOT_FOUND


def test_admin_approves_event(client, auth_headers, admin, member):
    event = _create_event(client, auth_headers(member))

    response = client.post(
        f"/api/v1/events/{event['id']}/transition",
        json={"action": "approve"},
        headers=auth_headers(admin),
    )

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["previous_status"] == "pending"
    assert body["status"] == "approved"
    assert len(body["notification_ids"]) == 1
    assert body["warnings"] == []

    stats = client.get("/api/v1/notifications/stats", headers=auth_headers(member)).json()
    assert stats["total_unread"] == 1
    assert stats["unread_by_type"]["event_approved"] == 1


def test_transition_errors(client, auth_headers, admin, member):
    event = _create_event(client, auth_headers(member))
    url = f"/api/v1/events/{event['id']}/transition"

    forbidden = client.post(url, json={"action": "approve"}, headers=auth_headers(member))
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    illegal = client.post(url, json={"action": "resolve"}, headers=auth_headers(admin))
    assert illegal.status_code == status.HTTP_409_CONFLICT
    assert illegal.json()["detail"]["current"] == "pending"

    unknown_action = client.post(url, json={"action": "withdraw"}, headers=auth_headers(admin))
    assert unknown_action.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    missing = client.post(
        "/api/v1/events/missing/transition", json={"action": "approve"}, headers=auth_headers(admin)
    )
    assert missing.status_code == status.HTTP_404_NOT_FOUND

    wrong_kind = client.post(
        f"/api/v1/reports/{event['id']}/transition", json={"action": "resolve"}, headers=auth_headers(admin)
    )
    assert wrong_kind.status_code == status.HTTP_404_NOT_FOUND


def test_report_flow(client, auth_headers, admin, member):
    created = _create_report(client, auth_headers(member))
    assert created.status_code == status.HTTP_201_CREATED
    report = created.json()
    assert report["status"] == "pending"

    duplicate = _create_report(client, auth_headers(member))
    assert duplicate.status_code == status.HTTP_409_CONFLICT

    admin_inbox = client.get("/api/v1/notifications", headers=auth_headers(admin)).json()
    assert [n["notification_type"] for n in admin_inbox] == ["admin_message"]

    resolved = client.post(
        f"/api/v1/reports/{report['id']}/transition",
        json={"action": "resolve", "note": "Warned the author."},
        headers=auth_headers(admin),
    )
    assert resolved.json()["status"] == "resolved"

    inbox = client.get("/api/v1/notifications", headers=auth_headers(member)).json()
    assert [n["notification_type"] for n in inbox] == ["report_resolved"]
    assert inbox[0]["message"].endswith("Warned the author.")

    own = client.get(f"/api/v1/reports/{report['id']}", headers=auth_headers(member))
    assert own.json()["resolution_note"] == "Warned the author."


def test_report_listing_is_admin_only(client, auth_headers, admin, member):
    _create_report(client, auth_headers(member), "comment-1")
    _create_report(client, auth_headers(member), "comment-2")

    assert client.get("/api/v1/reports", headers=auth_headers(member)).status_code == status.HTTP_403_FORBIDDEN
    assert client.get("/api/v1/reports/stats", headers=auth_headers(member)).status_code == status.HTTP_403_FORBIDDEN

    listed = client.get("/api/v1/reports", params={"status": "pending"}, headers=auth_headers(admin))
    assert len(listed.json()) == 2
    stats = client.get("/api/v1/reports/stats", headers=auth_headers(admin)).json()
    assert stats["total_reports"] == 2
    assert stats["pending_reports"] == 2


def test_comment_with_mention(client, auth_headers, admin, member, other_member):
    event = _create_event(client, auth_headers(admin))

    response = client.post(
        f"/api/v1/events/{event['id']}/comments",
        json={"body": "@bob are you coming?"},
        headers=auth_headers(member),
    )

    assert response.status_code == status.HTTP_201_CREATED
    comment = response.json()
    assert comment["mentions"] == [
        {"user_id": other_member.id, "display_name": "bob", "start_index": 0, "end_index": 4}
    ]
    inbox = client.get("/api/v1/notifications", headers=auth_headers(other_member)).json()
    assert [n["notification_type"] for n in inbox] == ["mention"]

    listed = client.get(f"/api/v1/events/{event['id']}/comments", headers=auth_headers(member))
    assert [c["id"] for c in listed.json()] == [comment["id"]]


def test_comment_on_missing_event(client, auth_headers, member):
    response = client.post("/api/v1/events/missing/comments", json={"body": "hi"}, headers=auth_headers(member))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_event_edit_notifies_rsvped_members(client, auth_headers, admin, member, other_member):
    event = _create_event(client, auth_headers(admin), "Poetry slam")

    rsvp = client.post(f"/api/v1/events/{event['id']}/rsvp", json={"status": "going"}, headers=auth_headers(other_member))
    assert rsvp.status_code == status.HTTP_200_OK
    assert rsvp.json()["status"] == "going"
    rsvps = client.get(f"/api/v1/events/{event['id']}/rsvps", headers=auth_headers(member)).json()
    assert [(r["user_id"], r["status"]) for r in rsvps] == [(other_member.id, "going")]

    forbidden = client.put(f"/api/v1/events/{event['id']}", json={"title": "Mine now"}, headers=auth_headers(member))
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    edited = client.put(
        f"/api/v1/events/{event['id']}", json={"description": "Moved to the garden"}, headers=auth_headers(admin)
    )
    assert edited.status_code == status.HTTP_200_OK
    assert edited.json()["event"]["description"] == "Moved to the garden"
    assert len(edited.json()["notification_ids"]) == 1

    inbox = client.get("/api/v1/notifications", headers=auth_headers(other_member)).json()
    assert [n["notification_type"] for n in inbox] == ["event_update"]


def test_rsvp_to_hidden_event_is_not_found(client, auth_headers, member, other_member):
    pending = _create_event(client, auth_headers(member))

    response = client.post(
        f"/api/v1/events/{pending['id']}/rsvp", json={"status": "going"}, headers=auth_headers(other_member)
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_pending_event_stats_are_admin_only(client, auth_headers, admin, member):
    _create_event(client, auth_headers(member), "One")
    _create_event(client, auth_headers(member), "Two")

    assert client.get("/api/v1/events/stats", headers=auth_headers(member)).status_code == status.HTTP_403_FORBIDDEN
    stats = client.get("/api/v1/events/stats", headers=auth_headers(admin)).json()
    assert stats == {"total_pending": 2, "new_this_week": 2}


def test_members_list_their_own_reports(client, auth_headers, admin, member, other_member):
    mine = _create_report(client, auth_headers(member), "comment-1").json()
    _create_report(client, auth_headers(other_member), "comment-2")

    listed = client.get("/api/v1/reports/mine", headers=auth_headers(member))

    assert listed.status_code == status.HTTP_200_OK
    assert [r["id"] for r in listed.json()] == [mine["id"]]


def test_admins_filter_reports_by_type(client, auth_headers, admin, member):
    _create_report(client, auth_headers(member), "comment-1")
    profile = client.post(
        "/api/v1/reports",
        json={"report_type": "profile", "reason": "spam", "content_id": "user-9"},
        headers=auth_headers(member),
    ).json()

    listed = client.get("/api/v1/reports", params={"report_type": "profile"}, headers=auth_headers(admin))

    assert [r["id"] for r in listed.json()] == [profile["id"]]
