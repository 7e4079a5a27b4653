"""Read-only lookups for users, devices, members and attendees."""
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from connection_core.models import CommunityMember, EventRSVP, PushToken, User
from connection_core.models.community import MEMBERSHIP_STATUS_APPROVED

__all__ = ["UserDirectory"]


class UserDirectory:
    """Thin wrapper around the user-facing queries the notification stack needs."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    async def get_user(self, user_id: int, *, include_deleted: bool = False) -> User | None:
        """Return a user by identifier; soft-deleted accounts count as missing."""
        user = self.session.get(User, user_id)
        if user is None or (user.deleted_at is not None and not include_deleted):
            return None
        return user

    async def get_all_users(self, *, include_deleted: bool = False) -> list[User]:
        """Return every user ordered by id."""
        stmt = select(User).order_by(User.id)
        if not include_deleted:
            stmt = stmt.where(User.deleted_at.is_(None))
        return list(self.session.scalars(stmt))

    async def get_user_push_tokens(self, user_id: int) -> list[str]:
        """Return the push tokens registered by ``user_id``, oldest first."""
        stmt = (
            select(PushToken.token)
            .where(PushToken.user_id == user_id)
            .order_by(PushToken.id)
        )
        return list(self.session.scalars(stmt))

    async def get_community_members(
        self,
        community_id: int,
        *,
        status: str = MEMBERSHIP_STATUS_APPROVED,
    ) -> list[CommunityMember]:
        """Return membership rows of a community in the given status."""
        stmt = (
            select(CommunityMember)
            .where(
                CommunityMember.community_id == community_id,
                CommunityMember.status == status,
            )
            .order_by(CommunityMember.joined_at, CommunityMember.id)
        )
        return list(self.session.scalars(stmt))

    async def get_event_rsvps(
        self,
        event_id: int,
        statuses: Iterable[str] | None = None,
    ) -> list[EventRSVP]:
        """Return RSVPs for an event, optionally filtered by status."""
        stmt = select(EventRSVP).where(EventRSVP.event_id == event_id)
        if statuses is not None:
            stmt = stmt.where(EventRSVP.status.in_(list(statuses)))
        return list(self.session.scalars(stmt.order_by(EventRSVP.id)))

    async def get_users_with_location(self) -> list[User]:
        """Return active users that stored coordinates."""
        stmt = select(User).where(
            User.deleted_at.is_(None),
            User.latitude.is_not(None),
            User.longitude.is_not(None),
        )
        return list(self.session.scalars(stmt))
