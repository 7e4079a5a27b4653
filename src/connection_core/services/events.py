# src/connection_core/services/events.py
"""Event lifecycle manager.

Events are created by community owners and moderators (or app admins),
updated by their creator or community managers, and canceled by their
creator or an app admin. Cancellation is terminal. Membership questions
are answered by ``CommunityMembershipService``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import date
from typing import Any

from pydantic import ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from connection_core.core.settings import settings
from connection_core.db.time import utcnow
from connection_core.models import CommunityMember, Event, User
from connection_core.models.community import MANAGER_ROLES, MEMBERSHIP_STATUS_APPROVED
from connection_core.models.event import EVENT_STATUS_ACTIVE, EVENT_STATUS_CANCELED
from connection_core.models.notification import CATEGORY_EVENT
from connection_core.schemas.event import EventCreate, EventResponse, EventUpdate
from connection_core.services.dispatcher import NotificationContent, NotificationDispatcher
from connection_core.services.membership import CommunityMembershipService
from connection_core.services.outbox import NotificationOutbox
from connection_core.services.results import (
    STAGE_COMPLETE,
    STAGE_ERROR,
    STAGE_START,
    ResultStatus,
    ServiceResult,
    build_result,
    is_positive_id,
    log_stage,
    new_request_id,
)
from connection_core.services.targeting import RecipientTargeting
from connection_core.services.text import truncate_text

logger = logging.getLogger(__name__)

COMPONENT = "EVENT"

# Changes to these fields are worth telling attendees about.
MATERIAL_FIELDS: dict[str, str] = {
    "title": "title",
    "event_date": "eventDate",
    "start_time": "startTime",
    "location": "location",
    "is_virtual": "isVirtual",
}

# Columns that may be edited but never cleared.
_REQUIRED_FIELDS = frozenset(
    {"title", "description", "event_date", "start_time", "end_time", "is_virtual", "is_public"}
)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

Transition = Callable[[NotificationOutbox], Awaitable[ServiceResult]]


def serialize_event(event: Event) -> dict[str, Any]:
    return EventResponse.model_validate(event).to_payload()


def describe_location(event: Event) -> str:
    if event.is_virtual:
        return "Virtual Event"
    return event.location or event.city or "TBD"


def describe_time(event: Event) -> str:
    return f"{event.event_date.isoformat()} at {event.start_time.strftime('%H:%M')}"


def _validation_reason(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )


class EventLifecycleService:
    """Create, update, cancel and list events with access checks."""

    def __init__(
        self,
        db: Session,
        membership: CommunityMembershipService | None = None,
        dispatcher: NotificationDispatcher | None = None,
        targeting: RecipientTargeting | None = None,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher or (
            membership.dispatcher if membership else NotificationDispatcher(db)
        )
        self.targeting = targeting or RecipientTargeting(self.dispatcher)
        self.membership = membership or CommunityMembershipService(
            db, self.dispatcher, self.targeting
        )

    async def resolve_event_access(
        self, event_id: int, user_id: int | None = None, *, request_id: str | None = None
    ) -> ServiceResult:
        """Return the event when ``user_id`` may see it.

        Public events are open to everyone. Private events are visible to
        their creator and to approved members of the event's community.
        """
        request_id = request_id or new_request_id()
        context: dict[str, Any] = {"eventId": event_id, "actorId": user_id}
        if not is_positive_id(event_id):
            return self._invalid(request_id, context, "Event ID must be a positive integer")

        async def transition(_: NotificationOutbox) -> ServiceResult:
            event = self.db.get(Event, event_id)
            if event is None:
                return self._event_missing(request_id, context)
            context["eventStatus"] = event.status

            if event.is_public:
                return self._granted(event, request_id, context, "public", "Public event - accessible to all")
            if user_id is None:
                return self._denied(request_id, context, "Authentication required for private event")
            if event.creator_id == user_id:
                return self._granted(event, request_id, context, "creator", "Event creator - full access")
            if event.community_id is not None:
                resolved = await self.membership.resolve_membership(
                    event.community_id, user_id, request_id=request_id
                )
                if resolved.status is ResultStatus.ERROR:
                    return resolved
                if (
                    resolved.status is ResultStatus.OK
                    and resolved.diagnostics.get("memberStatus") == MEMBERSHIP_STATUS_APPROVED
                ):
                    context["communityId"] = event.community_id
                    return self._granted(
                        event,
                        request_id,
                        context,
                        resolved.diagnostics.get("memberRole"),
                        "Community member - access granted",
                    )
            return self._denied(request_id, context, "Private event - members only")

        return await self._execute(
            "RESOLVE_ACCESS", "EVENT_ACCESS_FAILED", request_id, context, transition
        )

    async def create_event(
        self,
        params: Mapping[str, Any] | EventCreate,
        actor_id: int,
        *,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Create an event and announce it to the community (or nearby users)."""
        request_id = request_id or new_request_id()
        context: dict[str, Any] = {"actorId": actor_id}
        if not is_positive_id(actor_id):
            return self._invalid(request_id, context, "Actor ID must be a positive integer")
        try:
            payload = params if isinstance(params, EventCreate) else EventCreate.model_validate(params)
        except ValidationError as exc:
            return self._invalid(request_id, context, _validation_reason(exc))
        context["communityId"] = payload.community_id

        async def transition(outbox: NotificationOutbox) -> ServiceResult:
            actor = self._get_user(actor_id)
            if actor is None:
                return build_result(
                    ResultStatus.USER_NOT_FOUND,
                    "EVENT_USER_NOT_FOUND",
                    request_id,
                    "Actor does not exist",
                    **context,
                )

            if payload.community_id is None:
                if not actor.is_admin:
                    return self._denied(
                        request_id, context, "Only app admins can create platform-wide events"
                    )
            else:
                role_check = await self._require_manager(payload.community_id, actor, request_id, context)
                if role_check is not None:
                    return role_check

            fields = payload.model_dump()
            if fields["end_time"] is None:
                fields["end_time"] = fields["start_time"]
            event = Event(**fields, creator_id=actor_id, status=EVENT_STATUS_ACTIVE)
            self.db.add(event)
            self.db.commit()
            context["eventId"] = event.id

            content = NotificationContent(
                title=f"New event: {truncate_text(event.title, 40)}",
                body=f"{describe_time(event)} - {describe_location(event)}",
                data={
                    "type": "event_created",
                    "eventId": event.id,
                    "communityId": event.community_id,
                },
                category=CATEGORY_EVENT,
                source_type="event_created",
                source_id=str(event.id),
            )
            if event.community_id is not None:
                community_id = event.community_id
                outbox.enqueue(
                    "event-created-members",
                    lambda: self.targeting.notify_community_members(
                        community_id, content, exclude_user_ids=[actor_id], request_id=request_id
                    ),
                )
            elif event.is_public and event.latitude is not None and event.longitude is not None:
                latitude, longitude = event.latitude, event.longitude
                outbox.enqueue(
                    "event-created-nearby",
                    lambda: self.targeting.notify_nearby_users(
                        latitude,
                        longitude,
                        settings.event_nearby_radius_miles,
                        content,
                        exclude_user_ids=[actor_id],
                        request_id=request_id,
                    ),
                )

            return build_result(
                ResultStatus.OK,
                "EVENT_CREATED",
                request_id,
                "Event created",
                data={"event": serialize_event(event)},
                **context,
            )

        return await self._execute("CREATE", "EVENT_CREATE_FAILED", request_id, context, transition)

    async def update_event(
        self,
        event_id: int,
        params: Mapping[str, Any] | EventUpdate,
        actor_id: int,
        *,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Apply allow-listed changes; attendees hear about material ones."""
        request_id = request_id or new_request_id()
        context: dict[str, Any] = {"eventId": event_id, "actorId": actor_id}
        if not (is_positive_id(event_id) and is_positive_id(actor_id)):
            return self._invalid(request_id, context, "Event ID and actor ID are required")
        try:
            payload = params if isinstance(params, EventUpdate) else EventUpdate.model_validate(params)
        except ValidationError as exc:
            return self._invalid(request_id, context, _validation_reason(exc))
        changes = payload.model_dump(exclude_unset=True)
        cleared = sorted(name for name, value in changes.items() if value is None and name in _REQUIRED_FIELDS)
        if cleared:
            return self._invalid(request_id, context, f"Fields cannot be cleared: {', '.join(cleared)}")

        async def transition(outbox: NotificationOutbox) -> ServiceResult:
            event = self.db.get(Event, event_id)
            if event is None:
                return self._event_missing(request_id, context)
            if event.status == EVENT_STATUS_CANCELED:
                return self._already_canceled(request_id, context)

            actor = self._get_user(actor_id)
            if actor is None:
                return build_result(
                    ResultStatus.USER_NOT_FOUND,
                    "EVENT_USER_NOT_FOUND",
                    request_id,
                    "Actor does not exist",
                    **context,
                )
            if event.creator_id != actor_id and not actor.is_admin:
                if event.community_id is None:
                    return self._denied(request_id, context, "Only event creator can update this event")
                role_check = await self._require_manager(event.community_id, actor, request_id, context)
                if role_check is not None:
                    return role_check

            changed = [
                label
                for name, label in MATERIAL_FIELDS.items()
                if name in changes and getattr(event, name) != changes[name]
            ]
            for name, value in changes.items():
                setattr(event, name, value)
            self.db.commit()
            context["changedFields"] = changed

            if changed:
                content = NotificationContent(
                    title=f"Event updated: {truncate_text(event.title, 40)}",
                    body=f"Changes: {', '.join(changed)}",
                    data={"type": "event_updated", "eventId": event_id},
                    category=CATEGORY_EVENT,
                )
                outbox.enqueue(
                    "event-updated-attendees",
                    lambda: self.targeting.notify_event_attendees(
                        event_id, content, exclude_user_ids=[actor_id], request_id=request_id
                    ),
                )

            return build_result(
                ResultStatus.OK,
                "EVENT_UPDATED",
                request_id,
                "Event updated",
                data={"event": serialize_event(event)},
                **context,
            )

        return await self._execute("UPDATE", "EVENT_UPDATE_FAILED", request_id, context, transition)

    async def cancel_event(
        self, event_id: int, actor_id: int, *, request_id: str | None = None
    ) -> ServiceResult:
        """Cancel an event. Only the creator or an app admin may do this."""
        request_id = request_id or new_request_id()
        context: dict[str, Any] = {"eventId": event_id, "actorId": actor_id}
        if not (is_positive_id(event_id) and is_positive_id(actor_id)):
            return self._invalid(request_id, context, "Event ID and actor ID are required")

        async def transition(outbox: NotificationOutbox) -> ServiceResult:
            event = self.db.get(Event, event_id)
            if event is None:
                return self._event_missing(request_id, context)
            if event.status == EVENT_STATUS_CANCELED:
                return self._already_canceled(request_id, context)

            actor = self._get_user(actor_id)
            if event.creator_id != actor_id and not (actor is not None and actor.is_admin):
                return self._denied(request_id, context, "Only event creator or admin can cancel")

            event.status = EVENT_STATUS_CANCELED
            event.deleted_at = utcnow()
            self.db.commit()

            content = NotificationContent(
                title=f"Event canceled: {truncate_text(event.title, 40)}",
                body="This event has been canceled by the organizer.",
                data={"type": "event_canceled", "eventId": event_id},
                category=CATEGORY_EVENT,
                source_type="event_canceled",
                source_id=str(event_id),
            )
            outbox.enqueue(
                "event-canceled-attendees",
                lambda: self.targeting.notify_event_attendees(
                    event_id, content, exclude_user_ids=[actor_id], request_id=request_id
                ),
            )
            return build_result(
                ResultStatus.OK,
                "EVENT_CANCELED",
                request_id,
                "Event canceled",
                data={"event": serialize_event(event)},
                **context,
            )

        return await self._execute("CANCEL", "EVENT_CANCEL_FAILED", request_id, context, transition)

    async def list_events(
        self,
        *,
        user_id: int | None = None,
        community_id: int | None = None,
        is_public: bool | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        status: str = EVENT_STATUS_ACTIVE,
        limit: int | None = None,
        cursor: int | str | None = None,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Return a page of events the caller may see, ordered by ascending id.

        Access rules are part of the query so every page is filled from the
        visible set. ``nextCursor`` is the last id returned when more remain.
        """
        request_id = request_id or new_request_id()
        filters: dict[str, Any] = {
            "communityId": community_id,
            "isPublic": is_public,
            "startDate": start_date.isoformat() if start_date else None,
            "endDate": end_date.isoformat() if end_date else None,
            "status": status,
        }
        context: dict[str, Any] = {"actorId": user_id, "filters": filters}

        after_id: int | None = None
        if cursor is not None and cursor != "":
            try:
                after_id = int(cursor)
            except (TypeError, ValueError):
                return self._invalid(request_id, context, "cursor must be an event id")
        page_size = DEFAULT_PAGE_SIZE
        if limit is not None:
            try:
                page_size = max(1, min(int(limit), MAX_PAGE_SIZE))
            except (TypeError, ValueError):
                return self._invalid(request_id, context, "limit must be an integer")

        stmt = select(Event).where(Event.status == status)
        if status != EVENT_STATUS_CANCELED:
            stmt = stmt.where(Event.deleted_at.is_(None))
        if community_id is not None:
            stmt = stmt.where(Event.community_id == community_id)
        if is_public is not None:
            stmt = stmt.where(Event.is_public.is_(is_public))
        if start_date is not None:
            stmt = stmt.where(Event.event_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Event.event_date <= end_date)
        if user_id is None:
            stmt = stmt.where(Event.is_public.is_(True))
        else:
            member_of = select(CommunityMember.community_id).where(
                CommunityMember.user_id == user_id,
                CommunityMember.status == MEMBERSHIP_STATUS_APPROVED,
            )
            stmt = stmt.where(
                or_(
                    Event.is_public.is_(True),
                    Event.creator_id == user_id,
                    Event.community_id.in_(member_of),
                )
            )
        if after_id is not None:
            stmt = stmt.where(Event.id > after_id)
        stmt = stmt.order_by(Event.id).limit(page_size + 1)

        async def transition(_: NotificationOutbox) -> ServiceResult:
            rows = list(self.db.scalars(stmt))
            has_more = len(rows) > page_size
            items = rows[:page_size]
            return build_result(
                ResultStatus.OK,
                "EVENTS_LISTED",
                request_id,
                "Events retrieved successfully",
                data={
                    "events": [serialize_event(event) for event in items],
                    "nextCursor": items[-1].id if has_more and items else None,
                },
                returnedCount=len(items),
                **context,
            )

        return await self._execute("LIST", "EVENT_LIST_FAILED", request_id, context, transition)

    # --- Internals -----------------------------------------------------------------

    async def _execute(
        self,
        operation: str,
        failure_code: str,
        request_id: str,
        context: dict[str, Any],
        transition: Transition,
    ) -> ServiceResult:
        log_stage(
            logger, COMPONENT, operation, STAGE_START, request_id,
            eventId=context.get("eventId"), actorId=context.get("actorId"),
        )
        outbox = NotificationOutbox()
        try:
            result = await transition(outbox)
        except SQLAlchemyError as exc:
            self.db.rollback()
            outbox.discard()
            log_stage(logger, COMPONENT, operation, STAGE_ERROR, request_id, error=exc)
            return build_result(
                ResultStatus.ERROR,
                failure_code,
                request_id,
                f"Database error: {exc}",
                **context,
            )

        log_stage(
            logger, COMPONENT, operation, STAGE_COMPLETE, request_id,
            status=result.status.value, code=result.code,
        )
        if result.success and len(outbox):
            await outbox.flush(request_id)
        return result

    async def _require_manager(
        self,
        community_id: int,
        actor: User,
        request_id: str,
        context: dict[str, Any],
    ) -> ServiceResult | None:
        """Return a failure result unless ``actor`` may manage events of the community."""
        resolved = await self.membership.resolve_membership(
            community_id, actor.id, request_id=request_id
        )
        if resolved.status is ResultStatus.COMMUNITY_NOT_FOUND:
            return build_result(
                ResultStatus.COMMUNITY_NOT_FOUND,
                "EVENT_COMMUNITY_NOT_FOUND",
                request_id,
                "Community does not exist",
                **context,
            )
        if resolved.status is ResultStatus.ERROR:
            return resolved
        if actor.is_admin:
            return None
        role = resolved.diagnostics.get("memberRole")
        member_status = resolved.diagnostics.get("memberStatus")
        if member_status == MEMBERSHIP_STATUS_APPROVED and role in MANAGER_ROLES:
            return None
        context["actorRole"] = role
        return self._denied(
            request_id, context, "Only community owners and moderators can manage events"
        )

    def _get_user(self, user_id: int) -> User | None:
        user = self.db.get(User, user_id)
        if user is None or user.deleted_at is not None:
            return None
        return user

    @staticmethod
    def _granted(
        event: Event,
        request_id: str,
        context: dict[str, Any],
        access: str | None,
        reason: str,
    ) -> ServiceResult:
        return build_result(
            ResultStatus.OK,
            "EVENT_ACCESS_GRANTED",
            request_id,
            reason,
            data={"event": serialize_event(event)},
            actorRole=access,
            **context,
        )

    @staticmethod
    def _denied(request_id: str, context: dict[str, Any], reason: str) -> ServiceResult:
        return build_result(
            ResultStatus.NOT_AUTHORIZED, "EVENT_NOT_AUTHORIZED", request_id, reason, **context
        )

    @staticmethod
    def _invalid(request_id: str, context: dict[str, Any], reason: str) -> ServiceResult:
        return build_result(
            ResultStatus.INVALID_INPUT, "EVENT_INVALID_INPUT", request_id, reason, **context
        )

    @staticmethod
    def _event_missing(request_id: str, context: dict[str, Any]) -> ServiceResult:
        return build_result(
            ResultStatus.EVENT_NOT_FOUND, "EVENT_NOT_FOUND", request_id, "Event does not exist", **context
        )

    @staticmethod
    def _already_canceled(request_id: str, context: dict[str, Any]) -> ServiceResult:
        return build_result(
            ResultStatus.EVENT_CANCELED,
            "EVENT_ALREADY_CANCELED",
            request_id,
            "Event has been canceled and can no longer change",
            **context,
        )
