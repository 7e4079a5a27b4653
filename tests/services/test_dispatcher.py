# tests/services/test_dispatcher.py
"""Tests for preference-aware notification dispatch."""

import pytest
from sqlalchemy import select

from connection_core.db.time import utcnow
from connection_core.models import Notification, PushToken
from connection_core.services.dispatcher import NotificationContent, PreferenceCache
from connection_core.services.results import ResultStatus


def _content(**overrides) -> NotificationContent:
    fields = {
        "title": "New Join Request",
        "body": "Someone wants to join",
        "data": {"communityId": 1},
        "category": "community",
    }
    fields.update(overrides)
    return NotificationContent(**fields)


@pytest.mark.asyncio
async def test_should_send_reads_and_caches_preferences(
    dispatcher, make_user, preference_cache, mocker
) -> None:
    user = make_user(notify_dms=False, notify_communities=None)
    lookup = mocker.spy(dispatcher.directory, "get_user")

    assert await dispatcher.should_send_notification(user.id, "dm") is False
    assert await dispatcher.should_send_notification(user.id, "community") is True
    assert await dispatcher.should_send_notification(user.id, "event") is True

    assert lookup.call_count == 1
    assert preference_cache.get(user.id)["notify_dms"] is False


@pytest.mark.asyncio
async def test_should_send_unknown_category_and_missing_user(dispatcher) -> None:
    assert await dispatcher.should_send_notification(999, "marketing") is True
    assert await dispatcher.should_send_notification(999, "feed") is False


@pytest.mark.asyncio
async def test_update_preferences_invalidates_cache(dispatcher, make_user, preference_cache) -> None:
    user = make_user()
    assert await dispatcher.should_send_notification(user.id, "forum") is True

    result = await dispatcher.update_preferences(user.id, {"notify_forums": False})

    assert result.code == "NOTIFICATION_PREFERENCES_UPDATED"
    assert result.data["preferences"]["notify_forums"] is False
    assert preference_cache.get(user.id) is None
    assert await dispatcher.should_send_notification(user.id, "forum") is False


@pytest.mark.asyncio
async def test_update_preferences_rejects_unknown_fields(dispatcher, make_user) -> None:
    user = make_user()
    result = await dispatcher.update_preferences(user.id, {"notify_sms": True})
    assert result.status is ResultStatus.INVALID_INPUT
    assert "notify_sms" in result.reason


@pytest.mark.asyncio
async def test_notify_user_records_and_pushes(dispatcher, make_user, push_client) -> None:
    user = make_user(push_token=True)

    result = await dispatcher.notify_user_with_preferences(user.id, _content())

    assert result.status is ResultStatus.OK
    assert len(push_client.sent) == 1
    pushed = push_client.sent[0]
    assert pushed["title"] == "New Join Request"
    assert pushed["data"]["category"] == "community"
    assert pushed["data"]["notificationId"] == result.data["notification"]["id"]


@pytest.mark.asyncio
async def test_preferences_suppress_push_but_keep_inbox(
    dispatcher, make_user, push_client, db_session
) -> None:
    user = make_user(push_token=True, notify_communities=False)
    db_session.add(PushToken(user_id=user.id, token="ExponentPushToken[tablet]"))
    db_session.flush()

    result = await dispatcher.notify_user_with_preferences(user.id, _content(dedupe_key="join:1"))

    assert result.status is ResultStatus.OK
    assert push_client.sent == []
    assert db_session.scalars(select(Notification)).one().user_id == user.id

    await dispatcher.update_preferences(user.id, {"notify_communities": True})
    retried = await dispatcher.notify_user_with_preferences(user.id, _content(dedupe_key="join:2"))

    assert retried.status is ResultStatus.OK
    assert len(db_session.scalars(select(Notification)).all()) == 2
    assert sorted(push_client.tokens_sent()) == sorted(
        db_session.scalars(select(PushToken.token).where(PushToken.user_id == user.id))
    )


@pytest.mark.asyncio
async def test_deleted_user_keeps_inbox_row_without_push(
    dispatcher, make_user, push_client, preference_cache, db_session
) -> None:
    user = make_user(push_token=True, deleted_at=utcnow())

    result = await dispatcher.notify_user_with_preferences(user.id, _content())

    assert result.status is ResultStatus.OK
    assert push_client.sent == []
    assert preference_cache.get(user.id) is None
    assert db_session.scalars(select(Notification)).one().user_id == user.id


@pytest.mark.asyncio
async def test_disabled_push_client_only_records(dispatcher, make_user, push_client) -> None:
    user = make_user(push_token=True)
    push_client.enabled = False

    result = await dispatcher.notify_user_with_preferences(user.id, _content())

    assert result.success
    assert push_client.sent == []


@pytest.mark.asyncio
async def test_duplicate_is_not_pushed_again(dispatcher, make_user, push_client) -> None:
    user = make_user(push_token=True)
    content = _content(dedupe_key="join:1:2")

    await dispatcher.notify_user_with_preferences(user.id, content)
    again = await dispatcher.notify_user_with_preferences(user.id, content)

    assert again.status is ResultStatus.DUPLICATE
    assert len(push_client.sent) == 1


@pytest.mark.asyncio
async def test_failing_device_does_not_block_other_devices(
    dispatcher, make_user, push_client, db_session
) -> None:
    user = make_user()
    db_session.add_all(
        [
            PushToken(user_id=user.id, token="ExponentPushToken[broken]"),
            PushToken(user_id=user.id, token="not-a-token"),
            PushToken(user_id=user.id, token="ExponentPushToken[working]"),
        ]
    )
    db_session.flush()
    push_client.failing_tokens.add("ExponentPushToken[broken]")

    result = await dispatcher.notify_user_with_preferences(user.id, _content())

    assert result.success
    assert push_client.tokens_sent() == ["ExponentPushToken[working]"]


@pytest.mark.asyncio
async def test_notify_multiple_users_settles_each_recipient(
    dispatcher, make_user, mocker
) -> None:
    alice, bob, carol = make_user(), make_user(), make_user()
    original = dispatcher.notify_user_with_preferences

    async def flaky(user_id, content, *, request_id=None):
        if user_id == bob.id:
            raise RuntimeError("boom")
        return await original(user_id, content, request_id=request_id)

    mocker.patch.object(dispatcher, "notify_user_with_preferences", side_effect=flaky)

    outcome = await dispatcher.notify_multiple_users(
        [alice.id, bob.id, carol.id, alice.id], _content()
    )

    assert outcome.succeeded == [alice.id, carol.id]
    assert outcome.failed == {bob.id: "boom"}
    assert outcome.total == 3


def test_preference_cache_uses_prefixed_keys() -> None:
    cache = PreferenceCache(ttl_seconds=30)
    cache.put(5, {"notify_dms": True})
    assert cache.backend.get("notification-prefs:5") == {"notify_dms": True}
    cache.invalidate(5)
    assert cache.get(5) is None
