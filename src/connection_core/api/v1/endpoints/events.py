# src/connection_core/api/v1/endpoints/events.py
"""Event endpoints for the Connection API."""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Body, Query, status
from fastapi.responses import JSONResponse

from connection_core.models.event import EVENT_STATUS_ACTIVE

from ..dependencies import (
    CurrentUserDep,
    EventServiceDep,
    OptionalUserDep,
    RequestIdDep,
    render_result,
)

router = APIRouter(prefix="/events", tags=["events"])

# Bodies are validated by the service so bad input comes back as a result.
EventBody = Annotated[dict[str, Any], Body()]


@router.get("")
async def list_events(
    viewer: OptionalUserDep,
    service: EventServiceDep,
    request_id: RequestIdDep,
    community_id: Annotated[int | None, Query(alias="communityId")] = None,
    is_public: Annotated[bool | None, Query(alias="isPublic")] = None,
    start_date: Annotated[date | None, Query(alias="startDate")] = None,
    end_date: Annotated[date | None, Query(alias="endDate")] = None,
    event_status: Annotated[str, Query(alias="status")] = EVENT_STATUS_ACTIVE,
    limit: int | None = None,
    cursor: str | None = None,
) -> JSONResponse:
    """List the events visible to the caller, paginated by ascending id."""
    result = await service.list_events(
        user_id=viewer.id if viewer else None,
        community_id=community_id,
        is_public=is_public,
        start_date=start_date,
        end_date=end_date,
        status=event_status,
        limit=limit,
        cursor=cursor,
        request_id=request_id,
    )
    return render_result(result)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventBody,
    current_user: CurrentUserDep,
    service: EventServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    result = await service.create_event(payload, current_user.id, request_id=request_id)
    return render_result(result, status.HTTP_201_CREATED)


@router.get("/{event_id}")
async def get_event(
    event_id: int,
    viewer: OptionalUserDep,
    service: EventServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    """Return an event when the caller may see it."""
    result = await service.resolve_event_access(
        event_id, viewer.id if viewer else None, request_id=request_id
    )
    return render_result(result)


@router.patch("/{event_id}")
async def update_event(
    event_id: int,
    payload: EventBody,
    current_user: CurrentUserDep,
    service: EventServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    result = await service.update_event(event_id, payload, current_user.id, request_id=request_id)
    return render_result(result)


@router.post("/{event_id}/cancel")
async def cancel_event(
    event_id: int,
    current_user: CurrentUserDep,
    service: EventServiceDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    """Cancel an event. This cannot be undone."""
    result = await service.cancel_event(event_id, current_user.id, request_id=request_id)
    return render_result(result)
