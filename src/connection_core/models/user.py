# src/connection_core/models/user.py
"""SQLAlchemy models for user accounts and their push devices."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from connection_core.db.session import Base
from connection_core.db.time import utcnow


class User(Base):
    """Account record including notification preferences and location."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Platform-level administrator; bypasses community role checks for events.
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Per-category push preferences. NULL is read as enabled.
    notify_dms: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)
    notify_communities: Mapped[bool | None] = mapped_column(
        Boolean, nullable=True, default=True
    )
    notify_forums: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)
    notify_feed: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    onboarding_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def name_for_display(self) -> str:
        """Return the best human-readable name for notification copy."""
        return self.display_name or self.username or "Someone"


class PushToken(Base):
    """Device push token registered by a user."""

    __tablename__ = "push_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    platform: Mapped[str | None] = mapped_column(Text, nullable=True)  # 'ios', 'android', 'web'
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
