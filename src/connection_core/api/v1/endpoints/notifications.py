# src/connection_core/api/v1/endpoints/notifications.py
"""Notification inbox and preference endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from connection_core.schemas.notification import NotificationPreferencesUpdate

from ..dependencies import (
    CurrentUserDep,
    DispatcherDep,
    NotificationStoreDep,
    RequestIdDep,
    render_result,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    current_user: CurrentUserDep,
    store: NotificationStoreDep,
    request_id: RequestIdDep,
    limit: int | None = None,
    cursor: int | None = None,
    unread_only: Annotated[bool, Query(alias="unreadOnly")] = False,
) -> JSONResponse:
    """Return the caller's notifications, newest first."""
    result = await store.list_notifications(
        current_user.id,
        limit=limit,
        cursor=cursor,
        unread_only=unread_only,
        request_id=request_id,
    )
    return render_result(result)


@router.get("/unread-count")
async def unread_count(
    current_user: CurrentUserDep,
    store: NotificationStoreDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    result = await store.get_unread_count(current_user.id, request_id=request_id)
    return render_result(result)


@router.post("/read-all")
async def mark_all_read(
    current_user: CurrentUserDep,
    store: NotificationStoreDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    result = await store.mark_all_as_read(current_user.id, request_id=request_id)
    return render_result(result)


@router.put("/preferences")
async def update_preferences(
    preferences: NotificationPreferencesUpdate,
    current_user: CurrentUserDep,
    dispatcher: DispatcherDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    """Update push category switches; the cached snapshot is dropped."""
    result = await dispatcher.update_preferences(
        current_user.id, preferences.changes(), request_id=request_id
    )
    return render_result(result)


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    current_user: CurrentUserDep,
    store: NotificationStoreDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    result = await store.mark_as_read(notification_id, current_user.id, request_id=request_id)
    return render_result(result)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    current_user: CurrentUserDep,
    store: NotificationStoreDep,
    request_id: RequestIdDep,
) -> JSONResponse:
    result = await store.delete_notification(
        notification_id, current_user.id, request_id=request_id
    )
    return render_result(result)
