# src/connection_core/services/targeting.py
"""Recipient resolution for community, event and proximity broadcasts."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError

from connection_core.models.community import MEMBERSHIP_ROLE_OWNER
from connection_core.models.event import ATTENDING_RSVP_STATUSES
from connection_core.repositories.user_directory import UserDirectory
from connection_core.services.dispatcher import (
    BatchOutcome,
    NotificationContent,
    NotificationDispatcher,
)
from connection_core.services.results import new_request_id

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3958.8


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance between two coordinates in miles."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _without(user_ids: Iterable[int], exclude_user_ids: Iterable[int]) -> list[int]:
    excluded = set(exclude_user_ids)
    return [user_id for user_id in dict.fromkeys(user_ids) if user_id not in excluded]


class RecipientTargeting:
    """Resolve recipient sets and hand them to the dispatcher."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        directory: UserDirectory | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.directory = directory or dispatcher.directory

    async def notify_community_members(
        self,
        community_id: int,
        content: NotificationContent,
        exclude_user_ids: Iterable[int] = (),
        *,
        request_id: str | None = None,
    ) -> BatchOutcome:
        """Notify every APPROVED member of a community."""
        try:
            members = await self.directory.get_community_members(community_id)
        except SQLAlchemyError as exc:
            return self._lookup_failed("community members", community_id, exc)
        recipients = _without((member.user_id for member in members), exclude_user_ids)
        return await self._dispatch(recipients, content, request_id)

    async def notify_community_owners(
        self,
        community_id: int,
        content: NotificationContent,
        exclude_user_ids: Iterable[int] = (),
        *,
        request_id: str | None = None,
    ) -> BatchOutcome:
        """Notify the APPROVED owners of a community."""
        try:
            members = await self.directory.get_community_members(community_id)
        except SQLAlchemyError as exc:
            return self._lookup_failed("community owners", community_id, exc)
        owners = (member.user_id for member in members if member.role == MEMBERSHIP_ROLE_OWNER)
        return await self._dispatch(_without(owners, exclude_user_ids), content, request_id)

    async def notify_event_attendees(
        self,
        event_id: int,
        content: NotificationContent,
        exclude_user_ids: Iterable[int] = (),
        *,
        request_id: str | None = None,
    ) -> BatchOutcome:
        """Notify users whose RSVP is ``going`` or ``interested``."""
        try:
            rsvps = await self.directory.get_event_rsvps(event_id, ATTENDING_RSVP_STATUSES)
        except SQLAlchemyError as exc:
            return self._lookup_failed("event attendees", event_id, exc)
        recipients = _without((rsvp.user_id for rsvp in rsvps), exclude_user_ids)
        return await self._dispatch(recipients, content, request_id)

    async def notify_nearby_users(
        self,
        latitude: float,
        longitude: float,
        radius_miles: float,
        content: NotificationContent,
        exclude_user_ids: Iterable[int] = (),
        *,
        request_id: str | None = None,
    ) -> BatchOutcome:
        """Notify users whose stored coordinates lie within ``radius_miles``."""
        try:
            users = await self.directory.get_users_with_location()
        except SQLAlchemyError as exc:
            return self._lookup_failed("nearby users", f"{latitude},{longitude}", exc)

        nearby = [
            user.id
            for user in users
            if haversine_miles(latitude, longitude, user.latitude, user.longitude)
            <= radius_miles
        ]
        return await self._dispatch(_without(nearby, exclude_user_ids), content, request_id)

    async def _dispatch(
        self, recipients: list[int], content: NotificationContent, request_id: str | None
    ) -> BatchOutcome:
        if not recipients:
            return BatchOutcome()
        return await self.dispatcher.notify_multiple_users(
            recipients, content, request_id=request_id or new_request_id()
        )

    def _lookup_failed(self, what: str, ref: object, exc: Exception) -> BatchOutcome:
        self.dispatcher.db.rollback()
        logger.error("Could not resolve %s for %s: %s", what, ref, exc)
        return BatchOutcome()
