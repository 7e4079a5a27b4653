# tests/services/test_dedup.py
"""Tests for the sweep deduplication gate."""

from datetime import timedelta

import pytest

from connection_core.db.time import utcnow
from connection_core.models import Notification
from connection_core.services.dedup import NotificationDedupGate, SentKeyRegistry


@pytest.fixture
def persisted_reminder(db_session, make_user):
    def _persist(dedup_key: str, user=None) -> Notification:
        user = user or make_user()
        row = Notification(
            user_id=user.id,
            title="Reminder",
            body="Soon",
            data={"type": "event_reminder", "dedupKey": dedup_key},
            category="event",
        )
        db_session.add(row)
        db_session.flush()
        return row

    return _persist


def test_registry_keys_are_scoped_by_name() -> None:
    registry = SentKeyRegistry()
    registry.add("digest", "1-2025-W01")

    assert registry.contains("digest", "1-2025-W01")
    assert not registry.contains("reminders", "1-2025-W01")
    assert registry.size("digest") == 1

    registry.clear("digest")
    assert registry.size("digest") == 0


@pytest.mark.asyncio
async def test_was_notification_sent_respects_window(db_session, persisted_reminder) -> None:
    persisted_reminder("7-24h")
    gate = NotificationDedupGate(db_session)

    assert await gate.was_notification_sent("event_reminder", "7-24h", 25)
    assert not await gate.was_notification_sent("event_reminder", "8-24h", 25)
    assert not await gate.was_notification_sent("weekly_digest", "7-24h", 25)
    assert not await gate.was_notification_sent(
        "event_reminder", "7-24h", 1, now=utcnow() + timedelta(hours=3)
    )


@pytest.mark.asyncio
async def test_was_user_notified(db_session, make_user, persisted_reminder) -> None:
    user, other = make_user(), make_user()
    persisted_reminder("1-1h", user=user)
    gate = NotificationDedupGate(db_session)

    assert await gate.was_user_notified(user.id, "event_reminder", 24)
    assert not await gate.was_user_notified(other.id, "event_reminder", 24)


@pytest.mark.asyncio
async def test_already_sent_warms_registry_from_persisted_rows(
    db_session, persisted_reminder
) -> None:
    persisted_reminder("3-1h")
    registry = SentKeyRegistry()
    gate = NotificationDedupGate(db_session, registry)

    assert await gate.already_sent("event_reminder:1h", "event_reminder", "3-1h", 25)
    assert registry.contains("event_reminder:1h", "3-1h")


@pytest.mark.asyncio
async def test_already_sent_short_circuits_on_registry(db_session, mocker) -> None:
    registry = SentKeyRegistry()
    gate = NotificationDedupGate(db_session, registry)
    gate.mark_sent("digest", "5-2025-W10")
    query = mocker.patch.object(gate, "was_notification_sent")

    assert await gate.already_sent("digest", "weekly_digest", "5-2025-W10", 168)
    query.assert_not_called()


@pytest.mark.asyncio
async def test_query_errors_fail_open(db_session, mocker) -> None:
    from sqlalchemy.exc import OperationalError

    gate = NotificationDedupGate(db_session)
    mocker.patch.object(
        db_session, "scalar", side_effect=OperationalError("select", {}, Exception("gone"))
    )

    assert await gate.was_notification_sent("event_reminder", "1-24h") is False
