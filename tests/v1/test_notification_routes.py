# tests/v1/test_notification_routes.py
"""Tests for the notification inbox endpoints."""

import pytest
from fastapi import status

from connection_core.models import Notification, User


@pytest.fixture
def inbox(db_session, make_user) -> tuple[User, list[int]]:
    """A user with three unread notifications, oldest first."""
    user = make_user()
    rows = [Notification(user_id=user.id, title=f"Title {index}", body="Body") for index in range(3)]
    for row in rows:
        db_session.add(row)
        db_session.flush()
    return user, [row.id for row in rows]


def test_list_and_count(client, inbox, auth_headers) -> None:
    user, ids = inbox

    listed = client.get("/api/v1/notifications", params={"limit": 2}, headers=auth_headers(user))
    count = client.get("/api/v1/notifications/unread-count", headers=auth_headers(user))

    assert listed.status_code == status.HTTP_200_OK
    data = listed.json()["data"]
    assert [n["id"] for n in data["notifications"]] == [ids[2], ids[1]]
    assert data["nextCursor"] == ids[1]
    assert count.json()["data"]["count"] == 3


def test_mark_read_delete_and_read_all(client, inbox, auth_headers, make_user) -> None:
    user, ids = inbox
    stranger = make_user()

    foreign = client.post(f"/api/v1/notifications/{ids[0]}/read", headers=auth_headers(stranger))
    read = client.post(f"/api/v1/notifications/{ids[0]}/read", headers=auth_headers(user))
    deleted = client.delete(f"/api/v1/notifications/{ids[1]}", headers=auth_headers(user))
    read_all = client.post("/api/v1/notifications/read-all", headers=auth_headers(user))
    unread = client.get(
        "/api/v1/notifications", params={"unreadOnly": True}, headers=auth_headers(user)
    )

    assert foreign.status_code == status.HTTP_403_FORBIDDEN
    assert read.json()["data"]["notification"]["isRead"] is True
    assert deleted.json()["code"] == "NOTIFICATION_DELETED"
    assert read_all.json()["data"]["updated"] == 1
    assert unread.json()["data"]["notifications"] == []


def test_update_preferences(client, make_user, auth_headers, db_session) -> None:
    user = make_user()

    response = client.put(
        "/api/v1/notifications/preferences",
        json={"notifyFeed": False},
        headers=auth_headers(user),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"]["preferences"] == {
        "notify_dms": True,
        "notify_communities": True,
        "notify_forums": True,
        "notify_feed": False,
    }
    db_session.refresh(user)
    assert user.notify_feed is False


def test_inbox_requires_auth(client) -> None:
    response = client.get("/api/v1/notifications")
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)
