# tests/services/test_notification_store.py
"""Tests for the persistent notification store."""

import pytest
from sqlalchemy import select

from connection_core.models import Notification
from connection_core.services.results import ResultStatus


@pytest.mark.asyncio
async def test_create_notification_persists_row(store, make_user) -> None:
    user = make_user()

    result = await store.create_notification(
        user.id,
        "  Hello  ",
        "World",
        data={"type": "greeting"},
        category="community",
        source_type="community_join",
        source_id="1:2",
    )

    assert result.status is ResultStatus.OK
    assert result.code == "NOTIFICATION_CREATED"
    payload = result.data["notification"]
    assert payload["title"] == "Hello"
    assert payload["isRead"] is False
    assert payload["data"] == {"type": "greeting"}
    assert payload["category"] == "community"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("user_id", "title", "body", "category", "code"),
    [
        (0, "t", "b", "feed", "NOTIFICATION_INVALID_USER"),
        (1, "   ", "b", "feed", "NOTIFICATION_INVALID_CONTENT"),
        (1, "t", "", "feed", "NOTIFICATION_INVALID_CONTENT"),
        (1, "t", "b", "sms", "NOTIFICATION_INVALID_INPUT"),
    ],
)
async def test_create_notification_rejects_invalid_input(
    store, db_session, user_id, title, body, category, code
) -> None:
    result = await store.create_notification(user_id, title, body, category=category)

    assert result.status is ResultStatus.INVALID_INPUT
    assert result.code == code
    assert db_session.scalars(select(Notification)).first() is None


@pytest.mark.asyncio
async def test_dedupe_key_collapses_unread_duplicates(store, make_user, db_session) -> None:
    user = make_user()
    first = await store.create_notification(user.id, "Reminder", "Soon", dedupe_key="event:1")
    second = await store.create_notification(user.id, "Reminder", "Soon", dedupe_key="event:1")

    assert second.status is ResultStatus.DUPLICATE
    assert second.success is True
    assert second.data["notification"]["id"] == first.data["notification"]["id"]
    assert len(db_session.scalars(select(Notification)).all()) == 1


@pytest.mark.asyncio
async def test_unique_violation_on_insert_becomes_duplicate(
    store, make_user, db_session, mocker
) -> None:
    user = make_user()
    first = await store.create_notification(user.id, "Reminder", "Soon", dedupe_key="event:7")
    lookup = store._find_unread_by_key
    calls: list[str] = []

    def stale_then_fresh(user_id: int, dedupe_key: str):
        # The pre-insert check misses the row a concurrent writer just added.
        calls.append(dedupe_key)
        return None if len(calls) == 1 else lookup(user_id, dedupe_key)

    mocker.patch.object(store, "_find_unread_by_key", side_effect=stale_then_fresh)

    second = await store.create_notification(user.id, "Reminder", "Soon", dedupe_key="event:7")

    assert len(calls) == 2
    assert second.status is ResultStatus.DUPLICATE
    assert second.data["notification"]["id"] == first.data["notification"]["id"]
    assert len(db_session.scalars(select(Notification)).all()) == 1


@pytest.mark.asyncio
async def test_unique_violation_without_visible_twin_is_error(
    store, make_user, db_session, mocker
) -> None:
    user = make_user()
    await store.create_notification(user.id, "Reminder", "Soon", dedupe_key="event:8")
    mocker.patch.object(store, "_find_unread_by_key", return_value=None)

    result = await store.create_notification(user.id, "Reminder", "Soon", dedupe_key="event:8")

    assert result.status is ResultStatus.ERROR
    assert result.code == "NOTIFICATION_CREATE_FAILED"
    assert result.diagnostics["reason"].startswith("Database error:")
    assert len(db_session.scalars(select(Notification)).all()) == 1


@pytest.mark.asyncio
async def test_dedupe_key_reusable_after_read(store, make_user) -> None:
    user = make_user()
    first = await store.create_notification(user.id, "Reminder", "Soon", dedupe_key="event:1")
    await store.mark_as_read(first.data["notification"]["id"], user.id)

    again = await store.create_notification(user.id, "Reminder", "Soon", dedupe_key="event:1")

    assert again.status is ResultStatus.OK
    assert again.data["notification"]["id"] != first.data["notification"]["id"]


@pytest.mark.asyncio
async def test_dedupe_key_is_scoped_per_user(store, make_user) -> None:
    alice, bob = make_user(), make_user()
    await store.create_notification(alice.id, "t", "b", dedupe_key="shared")
    result = await store.create_notification(bob.id, "t", "b", dedupe_key="shared")
    assert result.status is ResultStatus.OK


@pytest.mark.asyncio
async def test_list_notifications_pages_newest_first(store, make_user) -> None:
    user = make_user()
    ids = []
    for index in range(5):
        created = await store.create_notification(user.id, f"n{index}", "body")
        ids.append(created.data["notification"]["id"])

    first_page = await store.list_notifications(user.id, limit=2)
    assert [n["id"] for n in first_page.data["notifications"]] == [ids[4], ids[3]]
    assert first_page.data["nextCursor"] == ids[3]

    second_page = await store.list_notifications(user.id, limit=2, cursor=ids[3])
    assert [n["id"] for n in second_page.data["notifications"]] == [ids[2], ids[1]]

    last_page = await store.list_notifications(user.id, limit=2, cursor=ids[1])
    assert [n["id"] for n in last_page.data["notifications"]] == [ids[0]]
    assert last_page.data["nextCursor"] is None


@pytest.mark.asyncio
async def test_list_notifications_unread_only_and_invalid_cursor(store, make_user) -> None:
    user = make_user()
    read = await store.create_notification(user.id, "old", "body")
    await store.create_notification(user.id, "new", "body")
    await store.mark_as_read(read.data["notification"]["id"], user.id)

    unread = await store.list_notifications(user.id, unread_only=True)
    assert [n["title"] for n in unread.data["notifications"]] == ["new"]

    invalid = await store.list_notifications(user.id, cursor=-1)
    assert invalid.status is ResultStatus.INVALID_INPUT


@pytest.mark.asyncio
async def test_unread_count_and_mark_all(store, make_user) -> None:
    user, other = make_user(), make_user()
    for _ in range(3):
        await store.create_notification(user.id, "t", "b")
    await store.create_notification(other.id, "t", "b")

    count = await store.get_unread_count(user.id)
    assert count.data == {"count": 3}

    marked = await store.mark_all_as_read(user.id)
    assert marked.code == "NOTIFICATIONS_MARKED_READ"
    assert marked.data == {"updated": 3}

    assert (await store.get_unread_count(user.id)).data == {"count": 0}
    assert (await store.get_unread_count(other.id)).data == {"count": 1}


@pytest.mark.asyncio
async def test_mark_as_read_and_delete_are_owner_scoped(store, make_user, db_session) -> None:
    owner, stranger = make_user(), make_user()
    created = await store.create_notification(owner.id, "t", "b")
    notification_id = created.data["notification"]["id"]

    denied = await store.mark_as_read(notification_id, stranger.id)
    assert denied.status is ResultStatus.NOT_AUTHORIZED

    denied_delete = await store.delete_notification(notification_id, stranger.id)
    assert denied_delete.status is ResultStatus.NOT_AUTHORIZED
    assert db_session.get(Notification, notification_id) is not None

    marked = await store.mark_as_read(notification_id, owner.id)
    assert marked.data["notification"]["isRead"] is True

    deleted = await store.delete_notification(notification_id, owner.id)
    assert deleted.code == "NOTIFICATION_DELETED"
    assert db_session.get(Notification, notification_id) is None


@pytest.mark.asyncio
async def test_missing_notification_is_not_found(store, make_user) -> None:
    user = make_user()
    result = await store.mark_as_read(424242, user.id)
    assert result.status is ResultStatus.NOT_FOUND
    assert result.code == "NOTIFICATION_NOT_FOUND"
