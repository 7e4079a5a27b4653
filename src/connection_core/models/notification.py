# src/connection_core/models/notification.py
"""SQLAlchemy model for in-app notification records."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from connection_core.db.session import Base
from connection_core.db.time import utcnow

CATEGORY_DM = "dm"
CATEGORY_COMMUNITY = "community"
CATEGORY_FORUM = "forum"
CATEGORY_FEED = "feed"
CATEGORY_EVENT = "event"

NOTIFICATION_CATEGORIES = frozenset(
    {CATEGORY_DM, CATEGORY_COMMUNITY, CATEGORY_FORUM, CATEGORY_FEED, CATEGORY_EVENT}
)


class Notification(Base):
    """Notification shown in a user's inbox.

    Rows are only mutated by mark-read and delete. A dedupe key is unique per
    user among unread rows so repeated triggers collapse into one record.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index(
            "uq_notifications_user_dedupe_unread",
            "user_id",
            "dedupe_key",
            unique=True,
            postgresql_where=text("is_read = false"),
            sqlite_where=text("is_read = 0"),
        ),
        Index("ix_notifications_user_id_id", "user_id", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    category: Mapped[str] = mapped_column(Text, nullable=False, default=CATEGORY_FEED)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # What produced the notification, e.g. ('community_join', '12:34').
    source_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    dedupe_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize the notification for result payloads."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "body": self.body,
            "data": self.data or {},
            "category": self.category,
            "isRead": self.is_read,
            "sourceType": self.source_type,
            "sourceId": self.source_id,
            "dedupeKey": self.dedupe_key,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
