# src/connection_core/services/membership.py
"""Community membership state machine.

Rows move between PENDING, APPROVED, REJECTED and REMOVED. Every public
operation returns a ``ServiceResult``; infrastructure failures become
``ERROR`` results and notifications for other users are sent only after
the transition has been committed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from connection_core.db.time import utcnow
from connection_core.models import Community, CommunityMember, User
from connection_core.models.community import (
    MANAGER_ROLES,
    MEMBERSHIP_ROLE_MEMBER,
    MEMBERSHIP_ROLE_MODERATOR,
    MEMBERSHIP_ROLE_OWNER,
    MEMBERSHIP_STATUS_APPROVED,
    MEMBERSHIP_STATUS_PENDING,
    MEMBERSHIP_STATUS_REJECTED,
    MEMBERSHIP_STATUS_REMOVED,
)
from connection_core.models.notification import CATEGORY_COMMUNITY
from connection_core.schemas.common import UserSummary
from connection_core.schemas.community import (
    CommunityResponse,
    MemberListing,
    MembershipResponse,
)
from connection_core.services.dispatcher import NotificationContent, NotificationDispatcher
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
from connection_core.services.text import display_name

logger = logging.getLogger(__name__)

COMPONENT = "COMMUNITY_MEMBERSHIP"

Transition = Callable[[NotificationOutbox], Awaitable[ServiceResult]]


def serialize_membership(row: CommunityMember) -> dict[str, Any]:
    return MembershipResponse.model_validate(row).to_payload()


class CommunityMembershipService:
    """Authority on a user's relationship to a community."""

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher | None = None,
        targeting: RecipientTargeting | None = None,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self.targeting = targeting or RecipientTargeting(self.dispatcher)

    # --- Queries -------------------------------------------------------------------

    async def resolve_membership(
        self, community_id: int, user_id: int, *, request_id: str | None = None
    ) -> ServiceResult:
        """Return the caller's membership row, or ``NOT_A_MEMBER`` as a successful answer."""
        request_id = request_id or new_request_id()
        context = {"communityId": community_id, "userId": user_id}
        if not (is_positive_id(community_id) and is_positive_id(user_id)):
            return self._invalid(request_id, context, "Community ID and User ID are required")

        async def transition(_: NotificationOutbox) -> ServiceResult:
            community = self._get_community(community_id)
            if community is None:
                return self._community_missing(request_id, context)

            membership = self._get_membership(community_id, user_id)
            if membership is None:
                return build_result(
                    ResultStatus.NOT_A_MEMBER,
                    "MEMBERSHIP_NOT_FOUND",
                    request_id,
                    "User is not a member of this community",
                    success=True,
                    communityIsPrivate=community.is_private,
                    **context,
                )
            return build_result(
                ResultStatus.OK,
                "MEMBERSHIP_RESOLVED",
                request_id,
                "Membership resolved",
                data={"membership": serialize_membership(membership)},
                memberRole=membership.role,
                memberStatus=membership.status,
                communityIsPrivate=community.is_private,
                **context,
            )

        return await self._execute("RESOLVE", "MEMBERSHIP_RESOLVE_FAILED", request_id, context, transition)

    async def get_pending_requests(
        self, community_id: int, actor_id: int, *, request_id: str | None = None
    ) -> ServiceResult:
        """List PENDING join requests, newest first, for owners and moderators."""
        request_id = request_id or new_request_id()
        context = {"communityId": community_id, "actorId": actor_id}
        if not (is_positive_id(community_id) and is_positive_id(actor_id)):
            return self._invalid(request_id, context, "Community ID and actor ID are required")

        async def transition(_: NotificationOutbox) -> ServiceResult:
            if self._get_community(community_id) is None:
                return self._community_missing(request_id, context)
            actor = self._get_membership(community_id, actor_id)
            if not self._is_manager(actor):
                return self._not_authorized(
                    request_id, context, actor, "Only owners and moderators can view requests"
                )

            requests = self._member_listing(community_id, MEMBERSHIP_STATUS_PENDING, newest_first=True)
            return build_result(
                ResultStatus.OK,
                "MEMBERSHIP_PENDING_LISTED",
                request_id,
                f"Found {len(requests)} pending requests",
                data={"requests": requests},
                **context,
            )

        return await self._execute(
            "GET_PENDING", "MEMBERSHIP_PENDING_LIST_FAILED", request_id, context, transition
        )

    async def list_members(
        self,
        community_id: int,
        *,
        viewer_id: int | None = None,
        status: str = MEMBERSHIP_STATUS_APPROVED,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Return the member roll; private rolls are visible to approved members only."""
        request_id = request_id or new_request_id()
        context = {"communityId": community_id, "actorId": viewer_id}
        if not is_positive_id(community_id) or (
            viewer_id is not None and not is_positive_id(viewer_id)
        ):
            return self._invalid(request_id, context, "Community ID is required")

        async def transition(_: NotificationOutbox) -> ServiceResult:
            community = self._get_community(community_id)
            if community is None:
                return self._community_missing(request_id, context)
            if community.is_private:
                viewer = self._get_membership(community_id, viewer_id) if viewer_id else None
                if viewer is None or viewer.status != MEMBERSHIP_STATUS_APPROVED:
                    return self._not_authorized(
                        request_id, context, viewer, "Members of private communities are hidden"
                    )
            members = self._member_listing(community_id, status, newest_first=False)
            return build_result(
                ResultStatus.OK,
                "MEMBERSHIP_MEMBERS_LISTED",
                request_id,
                f"Found {len(members)} members",
                data={"members": members},
                **context,
            )

        return await self._execute(
            "LIST_MEMBERS", "MEMBERSHIP_LIST_FAILED", request_id, context, transition
        )

    # --- Transitions ---------------------------------------------------------------

    async def create_community(
        self,
        name: str,
        creator_id: int,
        *,
        description: str | None = None,
        is_private: bool = False,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Create a community with ``creator_id`` as its approved owner."""
        request_id = request_id or new_request_id()
        context = {"userId": creator_id}
        if not is_positive_id(creator_id) or not isinstance(name, str) or not name.strip():
            return self._invalid(request_id, context, "Community name and creator are required")

        async def transition(_: NotificationOutbox) -> ServiceResult:
            if self._get_user(creator_id) is None:
                return self._user_missing(request_id, context)
            community = Community(
                name=name.strip(),
                description=description,
                is_private=is_private,
                created_by_user_id=creator_id,
            )
            self.db.add(community)
            self.db.flush()
            owner = CommunityMember(
                community_id=community.id,
                user_id=creator_id,
                role=MEMBERSHIP_ROLE_OWNER,
                status=MEMBERSHIP_STATUS_APPROVED,
                joined_at=utcnow(),
            )
            self.db.add(owner)
            self.db.commit()
            return build_result(
                ResultStatus.OK,
                "COMMUNITY_CREATED",
                request_id,
                "Community created",
                data={
                    "community": CommunityResponse.model_validate(community).to_payload(),
                    "membership": serialize_membership(owner),
                },
                communityId=community.id,
                communityIsPrivate=is_private,
                **context,
            )

        return await self._execute("CREATE", "COMMUNITY_CREATE_FAILED", request_id, context, transition)

    async def request_join(
        self, community_id: int, user_id: int, *, request_id: str | None = None
    ) -> ServiceResult:
        """Ask to join a community.

        Public communities admit immediately; private ones queue a PENDING request
        and notify the approved owners. The first approved member becomes owner.
        """
        request_id = request_id or new_request_id()
        context = {"communityId": community_id, "userId": user_id}
        if not (is_positive_id(community_id) and is_positive_id(user_id)):
            return self._invalid(request_id, context, "Community ID and User ID are required")

        async def transition(outbox: NotificationOutbox) -> ServiceResult:
            community = self._get_community(community_id)
            if community is None:
                return self._community_missing(request_id, context)
            user = self._get_user(user_id)
            if user is None:
                return self._user_missing(request_id, context)

            existing = self._get_membership(community_id, user_id)
            if existing is not None and existing.status == MEMBERSHIP_STATUS_APPROVED:
                return build_result(
                    ResultStatus.ALREADY_MEMBER,
                    "MEMBERSHIP_ALREADY_MEMBER",
                    request_id,
                    "User is already a member of this community",
                    success=False,
                    data={"membership": serialize_membership(existing)},
                    memberRole=existing.role,
                    memberStatus=existing.status,
                    **context,
                )
            if existing is not None and existing.status == MEMBERSHIP_STATUS_PENDING:
                return build_result(
                    ResultStatus.ALREADY_PENDING,
                    "MEMBERSHIP_ALREADY_PENDING",
                    request_id,
                    "User already has a pending join request",
                    success=False,
                    data={"membership": serialize_membership(existing)},
                    memberStatus=existing.status,
                    **context,
                )

            status = (
                MEMBERSHIP_STATUS_PENDING if community.is_private else MEMBERSHIP_STATUS_APPROVED
            )
            role = MEMBERSHIP_ROLE_MEMBER
            if status == MEMBERSHIP_STATUS_APPROVED and not self._has_approved_owner(community_id):
                role = MEMBERSHIP_ROLE_OWNER

            now = utcnow()
            if existing is not None:
                # REJECTED and REMOVED rows are reused for the new request.
                membership = existing
                membership.role = role
                membership.status = status
                membership.joined_at = now
                membership.acted_by_user_id = None
                membership.acted_at = now
            else:
                membership = CommunityMember(
                    community_id=community_id,
                    user_id=user_id,
                    role=role,
                    status=status,
                    joined_at=now,
                )
                self.db.add(membership)
            self.db.commit()

            if status == MEMBERSHIP_STATUS_PENDING:
                content = NotificationContent(
                    title="New Join Request",
                    body=f"{display_name(user)} wants to join {community.name}",
                    data={"communityId": community_id, "userId": user_id, "type": "join_request"},
                    category=CATEGORY_COMMUNITY,
                    source_type="community_join",
                    source_id=f"{community_id}:{user_id}",
                )
                outbox.enqueue(
                    "join-request-owners",
                    lambda: self.targeting.notify_community_owners(
                        community_id, content, exclude_user_ids=[user_id], request_id=request_id
                    ),
                )

            return build_result(
                ResultStatus.OK,
                "MEMBERSHIP_PENDING" if status == MEMBERSHIP_STATUS_PENDING else "MEMBERSHIP_APPROVED",
                request_id,
                "Join request submitted" if status == MEMBERSHIP_STATUS_PENDING else "Joined community",
                data={"membership": serialize_membership(membership)},
                memberRole=role,
                memberStatus=status,
                communityIsPrivate=community.is_private,
                **context,
            )

        return await self._execute(
            "REQUEST_JOIN", "MEMBERSHIP_JOIN_FAILED", request_id, context, transition
        )

    async def approve_request(
        self,
        community_id: int,
        user_id: int,
        actor_id: int,
        *,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Move a PENDING request to APPROVED and tell the requester."""
        return await self._review(
            community_id,
            user_id,
            actor_id,
            approve=True,
            request_id=request_id or new_request_id(),
        )

    async def deny_request(
        self,
        community_id: int,
        user_id: int,
        actor_id: int,
        *,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Move a PENDING request to REJECTED and tell the requester."""
        return await self._review(
            community_id,
            user_id,
            actor_id,
            approve=False,
            request_id=request_id or new_request_id(),
        )

    async def _review(
        self,
        community_id: int,
        user_id: int,
        actor_id: int,
        *,
        approve: bool,
        request_id: str,
    ) -> ServiceResult:
        operation = "APPROVE" if approve else "DENY"
        context = {"communityId": community_id, "userId": user_id, "actorId": actor_id}
        if not all(is_positive_id(value) for value in (community_id, user_id, actor_id)):
            return self._invalid(request_id, context, "All IDs are required")

        async def transition(outbox: NotificationOutbox) -> ServiceResult:
            community = self._get_community(community_id)
            if community is None:
                return self._community_missing(request_id, context)

            actor = self._get_membership(community_id, actor_id)
            if not self._is_manager(actor):
                return self._not_authorized(
                    request_id, context, actor, "Only owners and moderators can review requests"
                )

            target = self._get_membership(community_id, user_id)
            if target is None:
                return self._not_a_member(request_id, context)
            if target.status != MEMBERSHIP_STATUS_PENDING:
                return build_result(
                    ResultStatus.INVALID_STATE,
                    "MEMBERSHIP_INVALID_STATE",
                    request_id,
                    f"Membership is {target.status}, expected {MEMBERSHIP_STATUS_PENDING}",
                    memberStatus=target.status,
                    memberRole=target.role,
                    **context,
                )

            now = utcnow()
            if approve:
                target.status = MEMBERSHIP_STATUS_APPROVED
                if not self._has_approved_owner(community_id):
                    target.role = MEMBERSHIP_ROLE_OWNER
            else:
                target.status = MEMBERSHIP_STATUS_REJECTED
            target.acted_by_user_id = actor_id
            target.acted_at = now
            self.db.commit()

            if approve:
                content = NotificationContent(
                    title="Join Request Approved",
                    body=f"Your request to join {community.name} has been approved!",
                    data={"communityId": community_id, "type": "join_approved"},
                    category=CATEGORY_COMMUNITY,
                    source_type="community_approve",
                    source_id=f"{community_id}:{user_id}",
                )
            else:
                content = NotificationContent(
                    title="Join Request Declined",
                    body=f"Your request to join {community.name} was not approved.",
                    data={"communityId": community_id, "type": "join_denied"},
                    category=CATEGORY_COMMUNITY,
                    source_type="community_deny",
                    source_id=f"{community_id}:{user_id}",
                )
            self._enqueue_direct(outbox, user_id, content, request_id)

            return build_result(
                ResultStatus.OK,
                "MEMBERSHIP_APPROVED" if approve else "MEMBERSHIP_DENIED",
                request_id,
                "Join request approved" if approve else "Join request denied",
                data={"membership": serialize_membership(target)},
                memberRole=target.role,
                memberStatus=target.status,
                **context,
            )

        failure_code = "MEMBERSHIP_APPROVE_FAILED" if approve else "MEMBERSHIP_DENY_FAILED"
        return await self._execute(operation, failure_code, request_id, context, transition)

    async def leave_community(
        self, community_id: int, user_id: int, *, request_id: str | None = None
    ) -> ServiceResult:
        """Leave a community, handing ownership on or deleting an emptied community."""
        request_id = request_id or new_request_id()
        context = {"communityId": community_id, "userId": user_id}
        if not (is_positive_id(community_id) and is_positive_id(user_id)):
            return self._invalid(request_id, context, "Community ID and User ID are required")

        async def transition(outbox: NotificationOutbox) -> ServiceResult:
            community = self._get_community(community_id)
            if community is None:
                return self._community_missing(request_id, context)

            membership = self._get_membership(community_id, user_id)
            if membership is None:
                return self._not_a_member(request_id, context)
            if membership.status != MEMBERSHIP_STATUS_APPROVED:
                return build_result(
                    ResultStatus.INVALID_STATE,
                    "MEMBERSHIP_INVALID_STATE",
                    request_id,
                    "User does not have an active membership",
                    memberStatus=membership.status,
                    **context,
                )

            role = membership.role
            if role == MEMBERSHIP_ROLE_OWNER:
                others = self._approved_members(community_id, exclude_user_id=user_id)
                if not others:
                    self.db.execute(
                        delete(CommunityMember).where(
                            CommunityMember.community_id == community_id
                        )
                    )
                    community.deleted_at = utcnow()
                    self.db.commit()
                    return build_result(
                        ResultStatus.OK,
                        "MEMBERSHIP_LEFT_COMMUNITY_DELETED",
                        request_id,
                        "Left community (community deleted as last member)",
                        memberRole=role,
                        communityDeleted=True,
                        **context,
                    )

                if not any(member.role == MEMBERSHIP_ROLE_OWNER for member in others):
                    moderators = [m for m in others if m.role == MEMBERSHIP_ROLE_MODERATOR]
                    new_owner = moderators[0] if moderators else others[0]
                    new_owner.role = MEMBERSHIP_ROLE_OWNER
                    context["newOwnerId"] = new_owner.user_id
                    leaver = self._get_user(user_id)
                    content = NotificationContent(
                        title="You're now a community owner",
                        body=f"{display_name(leaver)} left {community.name}. You are now its owner.",
                        data={"communityId": community_id, "type": "ownership_transferred"},
                        category=CATEGORY_COMMUNITY,
                        source_type="community_owner_transfer",
                        source_id=f"{community_id}:{new_owner.user_id}",
                    )
                    self._enqueue_direct(outbox, new_owner.user_id, content, request_id)

            self.db.delete(membership)
            self.db.commit()
            return build_result(
                ResultStatus.OK,
                "MEMBERSHIP_LEFT",
                request_id,
                "Successfully left community",
                memberRole=role,
                **context,
            )

        return await self._execute("LEAVE", "MEMBERSHIP_LEAVE_FAILED", request_id, context, transition)

    async def remove_member(
        self,
        community_id: int,
        user_id: int,
        actor_id: int,
        *,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Mark a member REMOVED. Owners can never be removed, only leave."""
        request_id = request_id or new_request_id()
        context = {"communityId": community_id, "userId": user_id, "actorId": actor_id}
        if not all(is_positive_id(value) for value in (community_id, user_id, actor_id)):
            return self._invalid(request_id, context, "All IDs are required")

        async def transition(outbox: NotificationOutbox) -> ServiceResult:
            community = self._get_community(community_id)
            if community is None:
                return self._community_missing(request_id, context)

            target = self._get_membership(community_id, user_id)
            if target is None:
                return self._not_a_member(request_id, context)
            # Checked before the actor so the answer is identical for every caller.
            if target.role == MEMBERSHIP_ROLE_OWNER:
                return build_result(
                    ResultStatus.CANNOT_REMOVE_OWNER,
                    "MEMBERSHIP_CANNOT_REMOVE_OWNER",
                    request_id,
                    "Cannot remove the community owner",
                    memberRole=target.role,
                    **context,
                )

            actor = self._get_membership(community_id, actor_id)
            if (
                actor is None
                or actor.status != MEMBERSHIP_STATUS_APPROVED
                or actor.role != MEMBERSHIP_ROLE_OWNER
            ):
                return self._not_authorized(
                    request_id, context, actor, "Only owners can remove members"
                )

            # Pending requests are declined through deny_request.
            if target.status != MEMBERSHIP_STATUS_APPROVED:
                return build_result(
                    ResultStatus.INVALID_STATE,
                    "MEMBERSHIP_INVALID_STATE",
                    request_id,
                    f"Membership is already {target.status}",
                    memberStatus=target.status,
                    **context,
                )

            target.status = MEMBERSHIP_STATUS_REMOVED
            target.acted_by_user_id = actor_id
            target.acted_at = utcnow()
            self.db.commit()

            content = NotificationContent(
                title="Removed from community",
                body=f"You have been removed from {community.name}.",
                data={"communityId": community_id, "type": "member_removed"},
                category=CATEGORY_COMMUNITY,
                source_type="community_remove",
                source_id=f"{community_id}:{user_id}",
            )
            self._enqueue_direct(outbox, user_id, content, request_id)

            return build_result(
                ResultStatus.OK,
                "MEMBERSHIP_REMOVED",
                request_id,
                "Member removed from community",
                data={"membership": serialize_membership(target)},
                memberRole=target.role,
                memberStatus=target.status,
                **context,
            )

        return await self._execute("REMOVE", "MEMBERSHIP_REMOVE_FAILED", request_id, context, transition)

    # --- Internals -----------------------------------------------------------------

    async def _execute(
        self,
        operation: str,
        failure_code: str,
        request_id: str,
        context: dict[str, Any],
        transition: Transition,
    ) -> ServiceResult:
        log_stage(logger, COMPONENT, operation, STAGE_START, request_id, **context)
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

    def _enqueue_direct(
        self,
        outbox: NotificationOutbox,
        user_id: int,
        content: NotificationContent,
        request_id: str,
    ) -> None:
        outbox.enqueue(
            f"notify-user-{user_id}",
            lambda: self.dispatcher.notify_user_with_preferences(
                user_id, content, request_id=request_id
            ),
        )

    def _get_community(self, community_id: int) -> Community | None:
        community = self.db.get(Community, community_id)
        if community is None or community.deleted_at is not None:
            return None
        return community

    def _get_user(self, user_id: int) -> User | None:
        user = self.db.get(User, user_id)
        if user is None or user.deleted_at is not None:
            return None
        return user

    def _get_membership(self, community_id: int, user_id: int) -> CommunityMember | None:
        return self.db.scalars(
            select(CommunityMember).where(
                CommunityMember.community_id == community_id,
                CommunityMember.user_id == user_id,
            )
        ).first()

    def _approved_members(
        self, community_id: int, *, exclude_user_id: int | None = None
    ) -> list[CommunityMember]:
        stmt = select(CommunityMember).where(
            CommunityMember.community_id == community_id,
            CommunityMember.status == MEMBERSHIP_STATUS_APPROVED,
        )
        if exclude_user_id is not None:
            stmt = stmt.where(CommunityMember.user_id != exclude_user_id)
        return list(self.db.scalars(stmt.order_by(CommunityMember.joined_at, CommunityMember.id)))

    def _has_approved_owner(self, community_id: int) -> bool:
        return any(
            member.role == MEMBERSHIP_ROLE_OWNER
            for member in self._approved_members(community_id)
        )

    def _member_listing(
        self, community_id: int, status: str, *, newest_first: bool
    ) -> list[dict[str, Any]]:
        order = (
            (CommunityMember.joined_at.desc(), CommunityMember.id.desc())
            if newest_first
            else (CommunityMember.joined_at, CommunityMember.id)
        )
        rows = self.db.execute(
            select(CommunityMember, User)
            .join(User, User.id == CommunityMember.user_id)
            .where(
                CommunityMember.community_id == community_id,
                CommunityMember.status == status,
            )
            .order_by(*order)
        ).all()
        listing = []
        for membership, user in rows:
            fields = MembershipResponse.model_validate(membership).model_dump()
            entry = MemberListing(**fields, user=UserSummary.model_validate(user))
            listing.append(entry.to_payload())
        return listing

    @staticmethod
    def _is_manager(membership: CommunityMember | None) -> bool:
        return (
            membership is not None
            and membership.status == MEMBERSHIP_STATUS_APPROVED
            and membership.role in MANAGER_ROLES
        )

    @staticmethod
    def _invalid(request_id: str, context: dict[str, Any], reason: str) -> ServiceResult:
        return build_result(
            ResultStatus.INVALID_INPUT, "MEMBERSHIP_INVALID_INPUT", request_id, reason, **context
        )

    @staticmethod
    def _community_missing(request_id: str, context: dict[str, Any]) -> ServiceResult:
        return build_result(
            ResultStatus.COMMUNITY_NOT_FOUND,
            "MEMBERSHIP_COMMUNITY_NOT_FOUND",
            request_id,
            "Community does not exist",
            **context,
        )

    @staticmethod
    def _user_missing(request_id: str, context: dict[str, Any]) -> ServiceResult:
        return build_result(
            ResultStatus.USER_NOT_FOUND,
            "MEMBERSHIP_USER_NOT_FOUND",
            request_id,
            "User does not exist",
            **context,
        )

    @staticmethod
    def _not_a_member(request_id: str, context: dict[str, Any]) -> ServiceResult:
        return build_result(
            ResultStatus.NOT_A_MEMBER,
            "MEMBERSHIP_NOT_FOUND",
            request_id,
            "User is not a member of this community",
            **context,
        )

    @staticmethod
    def _not_authorized(
        request_id: str,
        context: dict[str, Any],
        actor: CommunityMember | None,
        reason: str,
    ) -> ServiceResult:
        return build_result(
            ResultStatus.NOT_AUTHORIZED,
            "MEMBERSHIP_NOT_AUTHORIZED",
            request_id,
            reason,
            memberRole=actor.role if actor else None,
            memberStatus=actor.status if actor else None,
            **context,
        )
