# src/connection_core/models/community.py
"""SQLAlchemy models for communities and their membership rows."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from connection_core.db.session import Base
from connection_core.db.time import utcnow

MEMBERSHIP_STATUS_PENDING = "PENDING"
MEMBERSHIP_STATUS_APPROVED = "APPROVED"
MEMBERSHIP_STATUS_REJECTED = "REJECTED"
MEMBERSHIP_STATUS_REMOVED = "REMOVED"

MEMBERSHIP_ROLE_OWNER = "owner"
MEMBERSHIP_ROLE_MODERATOR = "moderator"
MEMBERSHIP_ROLE_MEMBER = "member"

# Roles allowed to review join requests.
MANAGER_ROLES = frozenset({MEMBERSHIP_ROLE_OWNER, MEMBERSHIP_ROLE_MODERATOR})


class Community(Base):
    """Community metadata. Ownership is derived from membership rows."""

    __tablename__ = "communities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Private communities route joins through the PENDING review queue.
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by_user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class CommunityMember(Base):
    """A user's admission state and role within a community."""

    __tablename__ = "community_members"
    __table_args__ = (
        UniqueConstraint("community_id", "user_id", name="uq_community_members_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("communities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(Text, nullable=False, default=MEMBERSHIP_ROLE_MEMBER)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=MEMBERSHIP_STATUS_PENDING
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    # Last admin who moved the row between statuses.
    acted_by_user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    acted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
