# src/connection_core/services/dispatcher.py
"""Preference-aware notification fan-out.

The dispatcher always records the in-app notification first, then consults
the recipient's cached category preferences and pushes to each registered
device independently.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from connection_core.core.settings import settings
from connection_core.models import User
from connection_core.models.notification import (
    CATEGORY_COMMUNITY,
    CATEGORY_DM,
    CATEGORY_EVENT,
    CATEGORY_FEED,
    CATEGORY_FORUM,
)
from connection_core.repositories.user_directory import UserDirectory
from connection_core.services.cache import CacheBackend, build_cache_backend
from connection_core.services.notifications import NotificationStore
from connection_core.services.push import PushClient, PushError, get_push_client
from connection_core.services.results import (
    ResultStatus,
    ServiceResult,
    build_result,
    is_positive_id,
    new_request_id,
)

logger = logging.getLogger(__name__)

# Event notifications share the community switch.
CATEGORY_PREFERENCE_FIELDS: dict[str, str] = {
    CATEGORY_DM: "notify_dms",
    CATEGORY_COMMUNITY: "notify_communities",
    CATEGORY_EVENT: "notify_communities",
    CATEGORY_FORUM: "notify_forums",
    CATEGORY_FEED: "notify_feed",
}

PREFERENCE_FIELDS = ("notify_dms", "notify_communities", "notify_forums", "notify_feed")


@dataclass
class NotificationContent:
    """What to tell a recipient, independent of who the recipient is."""

    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    category: str = CATEGORY_FEED
    source_type: str | None = None
    source_id: str | None = None
    dedupe_key: str | None = None


@dataclass
class BatchOutcome:
    """Settled results of a multi-recipient dispatch."""

    succeeded: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


class PreferenceCache:
    """Per-user notification preference snapshot with a bounded lifetime."""

    def __init__(self, backend: CacheBackend | None = None, ttl_seconds: int | None = None) -> None:
        self.backend = backend or build_cache_backend()
        self.ttl_seconds = (
            settings.preference_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        )

    @staticmethod
    def _key(user_id: int) -> str:
        return f"notification-prefs:{user_id}"

    def get(self, user_id: int) -> dict[str, bool] | None:
        return self.backend.get(self._key(user_id))

    def put(self, user_id: int, preferences: dict[str, bool]) -> None:
        self.backend.set(self._key(user_id), preferences, self.ttl_seconds)

    def invalidate(self, user_id: int) -> None:
        self.backend.delete(self._key(user_id))

    def clear(self) -> None:
        self.backend.clear()


class _PreferenceCacheSingleton:
    """Process-wide preference cache shared by request handlers and sweeps."""

    _instance: PreferenceCache | None = None

    @classmethod
    def get_instance(cls) -> PreferenceCache:
        if cls._instance is None:
            cls._instance = PreferenceCache()
        return cls._instance


def get_preference_cache() -> PreferenceCache:
    """Return the shared preference cache."""
    return _PreferenceCacheSingleton.get_instance()


def preferences_for(user: User) -> dict[str, bool]:
    """Return the user's preference flags with unset values read as enabled."""
    return {name: getattr(user, name) is not False for name in PREFERENCE_FIELDS}


class NotificationDispatcher:
    """Create in-app notifications and push them to devices when allowed."""

    def __init__(
        self,
        db: Session,
        *,
        store: NotificationStore | None = None,
        directory: UserDirectory | None = None,
        push_client: PushClient | None = None,
        preference_cache: PreferenceCache | None = None,
    ) -> None:
        self.db = db
        self.store = store or NotificationStore(db)
        self.directory = directory or UserDirectory(db)
        self.push_client = push_client or get_push_client()
        self.preferences = preference_cache or get_preference_cache()

    async def should_send_notification(self, user_id: int, category: str) -> bool:
        """Return True if ``user_id`` accepts push notifications for ``category``.

        Unknown categories are allowed. Read errors are allowed too, since
        over-notifying beats silently dropping.
        """
        field_name = CATEGORY_PREFERENCE_FIELDS.get(category)
        if field_name is None:
            return True

        cached = self.preferences.get(user_id)
        if cached is not None:
            return bool(cached.get(field_name, True))

        logger.debug("Preference cache miss for user %s", user_id)
        try:
            user = await self.directory.get_user(user_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Could not read preferences for user %s: %s", user_id, exc)
            return True
        if user is None:
            return False

        flags = preferences_for(user)
        self.preferences.put(user_id, flags)
        return flags[field_name]

    async def update_preferences(
        self,
        user_id: int,
        changes: dict[str, bool],
        *,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Persist preference flags and drop the cached snapshot."""
        request_id = request_id or new_request_id()
        unknown = sorted(set(changes) - set(PREFERENCE_FIELDS))
        if not is_positive_id(user_id) or unknown:
            return build_result(
                ResultStatus.INVALID_INPUT,
                "NOTIFICATION_INVALID_INPUT",
                request_id,
                f"Unknown preference fields: {', '.join(unknown)}" if unknown else "Invalid user",
                userId=user_id,
            )
        try:
            user = await self.directory.get_user(user_id)
            if user is None:
                return build_result(
                    ResultStatus.USER_NOT_FOUND,
                    "NOTIFICATION_INVALID_USER",
                    request_id,
                    "User does not exist",
                    userId=user_id,
                )
            for name, value in changes.items():
                setattr(user, name, bool(value))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            return build_result(
                ResultStatus.ERROR,
                "NOTIFICATION_UPDATE_FAILED",
                request_id,
                f"Database error: {exc}",
                userId=user_id,
            )
        finally:
            self.preferences.invalidate(user_id)

        return build_result(
            ResultStatus.OK,
            "NOTIFICATION_PREFERENCES_UPDATED",
            request_id,
            "Notification preferences updated",
            data={"preferences": preferences_for(user)},
            userId=user_id,
        )

    async def notify_user_with_preferences(
        self,
        user_id: int,
        content: NotificationContent,
        *,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Record the in-app notification, then push it if the user allows the category.

        Returns:
            The store result for the in-app record. Push outcomes never change it.
        """
        request_id = request_id or new_request_id()
        result = await self.store.create_notification(
            user_id,
            content.title,
            content.body,
            data=content.data,
            category=content.category,
            source_type=content.source_type,
            source_id=content.source_id,
            dedupe_key=content.dedupe_key,
            request_id=request_id,
        )
        if result.status is not ResultStatus.OK:
            # Duplicates were already delivered; failures have nothing to push.
            return result

        if not await self.should_send_notification(user_id, content.category):
            logger.info(
                "Push suppressed by preferences user=%s category=%s", user_id, content.category
            )
            return result

        if not self.push_client.enabled:
            logger.debug("Push delivery disabled; in-app notification only for user %s", user_id)
            return result

        notification = (result.data or {}).get("notification", {})
        await self._push_to_devices(user_id, content, notification.get("id"))
        return result

    async def _push_to_devices(
        self, user_id: int, content: NotificationContent, notification_id: int | None
    ) -> int:
        try:
            tokens = await self.directory.get_user_push_tokens(user_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Could not load push tokens for user %s: %s", user_id, exc)
            return 0

        payload = dict(content.data)
        payload.setdefault("category", content.category)
        if notification_id is not None:
            payload["notificationId"] = notification_id

        delivered = 0
        for token in tokens:
            try:
                ticket = await self.push_client.send_push_notification(
                    token, content.title, content.body, payload
                )
            except (PushError, RuntimeError, OSError) as exc:
                logger.error("Push to user %s token %s failed: %s", user_id, token, exc)
                continue
            if ticket is not None and ticket.ok:
                delivered += 1
        return delivered

    async def notify_multiple_users(
        self,
        user_ids: Iterable[int],
        content: NotificationContent,
        *,
        request_id: str | None = None,
    ) -> BatchOutcome:
        """Notify every user concurrently; one recipient's failure never affects another."""
        request_id = request_id or new_request_id()
        recipients = list(dict.fromkeys(user_ids))
        settled = await asyncio.gather(
            *(
                self.notify_user_with_preferences(user_id, content, request_id=request_id)
                for user_id in recipients
            ),
            return_exceptions=True,
        )

        outcome = BatchOutcome()
        for user_id, item in zip(recipients, settled, strict=True):
            if isinstance(item, BaseException):
                logger.error("Notification to user %s failed: %s", user_id, item)
                outcome.failed[user_id] = str(item)
            elif item.success:
                outcome.succeeded.append(user_id)
            else:
                outcome.failed[user_id] = item.code
        logger.info(
            "Batch notification requestId=%s recipients=%d succeeded=%d failed=%d",
            request_id,
            outcome.total,
            len(outcome.succeeded),
            len(outcome.failed),
        )
        return outcome
