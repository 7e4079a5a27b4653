# src/connection_core/services/dedup.py
"""Guards that keep scheduled sweeps from re-sending the same notification."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from threading import Lock

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from connection_core.db.time import utcnow
from connection_core.models import Notification

logger = logging.getLogger(__name__)


class SentKeyRegistry:
    """In-process record of dedup keys each sweep has already handled.

    This is the fast path only. It is lost on restart, so the persisted
    check in ``NotificationDedupGate`` stays authoritative.
    """

    def __init__(self) -> None:
        self._keys: dict[str, set[str]] = defaultdict(set)
        self._lock = Lock()

    def contains(self, name: str, key: str) -> bool:
        with self._lock:
            return key in self._keys[name]

    def add(self, name: str, key: str) -> None:
        with self._lock:
            self._keys[name].add(key)

    def size(self, name: str) -> int:
        with self._lock:
            return len(self._keys[name])

    def clear(self, name: str | None = None) -> None:
        """Forget keys for one sweep, or for all of them."""
        with self._lock:
            if name is None:
                self._keys.clear()
            else:
                self._keys.pop(name, None)


class NotificationDedupGate:
    """Read-side check against notifications already persisted."""

    def __init__(self, db: Session, registry: SentKeyRegistry | None = None) -> None:
        self.db = db
        self.registry = registry or SentKeyRegistry()

    async def was_notification_sent(
        self,
        notification_type: str,
        dedup_key: str,
        window_hours: float = 24,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Return True if a notification with this type and dedup key exists in the window.

        Fails open: a query error reports ``False`` so the caller sends.
        """
        since = (now or utcnow()) - timedelta(hours=window_hours)
        stmt = (
            select(Notification.id)
            .where(
                Notification.data["type"].as_string() == notification_type,
                Notification.data["dedupKey"].as_string() == dedup_key,
                Notification.created_at >= since,
            )
            .limit(1)
        )
        try:
            return self.db.scalar(stmt) is not None
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning(
                "Dedup check failed for %s/%s, allowing send: %s",
                notification_type,
                dedup_key,
                exc,
            )
            return False

    async def was_user_notified(
        self,
        user_id: int,
        notification_type: str,
        window_hours: float,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Return True if ``user_id`` got any notification of this type within the window."""
        since = (now or utcnow()) - timedelta(hours=window_hours)
        stmt = (
            select(Notification.id)
            .where(
                Notification.user_id == user_id,
                Notification.data["type"].as_string() == notification_type,
                Notification.created_at >= since,
            )
            .limit(1)
        )
        try:
            return self.db.scalar(stmt) is not None
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Cooldown check failed for user %s: %s", user_id, exc)
            return False

    async def already_sent(
        self,
        registry_name: str,
        notification_type: str,
        dedup_key: str,
        window_hours: float,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Check the in-process registry first, then the persisted notifications.

        A persisted hit is copied into the registry so the next cycle skips the query.
        """
        if self.registry.contains(registry_name, dedup_key):
            return True
        if await self.was_notification_sent(notification_type, dedup_key, window_hours, now=now):
            self.registry.add(registry_name, dedup_key)
            return True
        return False

    def mark_sent(self, registry_name: str, dedup_key: str) -> None:
        self.registry.add(registry_name, dedup_key)
