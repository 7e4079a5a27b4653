# src/connection_core/api/v1/endpoints/communities.py
"""Community membership endpoints for the Connection API."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from connection_core.models.community import MEMBERSHIP_STATUS_APPROVED
from connection_core.schemas.community import CommunityCreate

from ..dependencies import (
    CurrentUserDep,
    MembershipServiceDep,
    OptionalUserDep,
    RequestIdDep,
    render_result,
)

router = APIRouter(prefix="/communities", tags=["communities"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_community(
    community_data: CommunityCreate,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    """Create a community owned by the caller."""
    result = await service.create_community(
        community_data.name,
        current_user.id,
        description=community_data.description,
        is_private=community_data.is_private,
        request_id=request_id,
    )
    return render_result(result, status.HTTP_201_CREATED)


@router.get("/{community_id}/membership")
async def get_membership(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    """Return the caller's membership in a community."""
    result = await service.resolve_membership(community_id, current_user.id, request_id=request_id)
    return render_result(result)


@router.get("/{community_id}/members")
async def list_members(
    community_id: int,
    viewer: OptionalUserDep,
    service: MembershipServiceDep,
    request_id: RequestIdDep,
    member_status: Annotated[str, Query(alias="status")] = MEMBERSHIP_STATUS_APPROVED,
) -> JSONResponse:
    result = await service.list_members(
        community_id,
        viewer_id=viewer.id if viewer else None,
        status=member_status,
        request_id=request_id,
    )
    return render_result(result)


@router.post("/{community_id}/join")
async def join_community(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    """Join a public community or request to join a private one."""
    result = await service.request_join(community_id, current_user.id, request_id=request_id)
    return render_result(result)


@router.get("/{community_id}/requests")
async def list_pending_requests(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    """List pending join requests for owners and moderators."""
    result = await service.get_pending_requests(community_id, current_user.id, request_id=request_id)
    return render_result(result)


@router.post("/{community_id}/requests/{user_id}/approve")
async def approve_request(
    community_id: int,
    user_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    result = await service.approve_request(
        community_id, user_id, current_user.id, request_id=request_id
    )
    return render_result(result)


@router.post("/{community_id}/requests/{user_id}/deny")
async def deny_request(
    community_id: int,
    user_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    result = await service.deny_request(
        community_id, user_id, current_user.id, request_id=request_id
    )
    return render_result(result)


@router.delete("/{community_id}/leave")
async def leave_community(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    """Leave a community; a sole owner leaving an empty community deletes it."""
    result = await service.leave_community(community_id, current_user.id, request_id=request_id)
    return render_result(result)


@router.delete("/{community_id}/members/{user_id}")
async def remove_member(
    community_id: int,
    user_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    """Remove a member. Only owners may do this, and owners cannot be removed."""
    result = await service.remove_member(
        community_id, user_id, current_user.id, request_id=request_id
    )
    return render_result(result)
