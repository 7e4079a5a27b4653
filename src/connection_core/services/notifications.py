# src/connection_core/services/notifications.py
"""Notification store: the single entry point for in-app notification rows."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from connection_core.core.settings import settings
from connection_core.models import Notification
from connection_core.models.notification import CATEGORY_FEED, NOTIFICATION_CATEGORIES
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

logger = logging.getLogger(__name__)

COMPONENT = "NOTIFICATIONS"


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


class NotificationStore:
    """Create, list, count, mark and delete in-app notifications.

    Creation is idempotent per ``(user_id, dedupe_key)`` while the first
    notification stays unread. Every mutation is scoped to the owning user.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    async def create_notification(
        self,
        user_id: int,
        title: str,
        body: str,
        *,
        data: dict[str, Any] | None = None,
        category: str = CATEGORY_FEED,
        source_type: str | None = None,
        source_id: str | None = None,
        dedupe_key: str | None = None,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Persist a notification unless an unread twin with the same dedupe key exists.

        Args:
            user_id: Recipient of the notification.
            title: Short headline.
            body: Notification text.
            data: Structured payload forwarded to clients and push providers.
            category: One of ``dm``, ``community``, ``forum``, ``feed`` or ``event``.
            source_type: Kind of object that produced the notification.
            source_id: Identifier of that object.
            dedupe_key: Collapses repeated triggers into one unread row.
            request_id: Correlation id for logs.

        Returns:
            ``OK`` with the new row, ``DUPLICATE`` with the existing row, or a failure result.
        """
        request_id = request_id or new_request_id()
        operation = "CREATE"
        log_stage(
            logger, COMPONENT, operation, STAGE_START, request_id,
            userId=user_id, category=category, dedupeKey=dedupe_key,
        )

        if not is_positive_id(user_id):
            return build_result(
                ResultStatus.INVALID_INPUT,
                "NOTIFICATION_INVALID_USER",
                request_id,
                "userId must be a positive integer",
                userId=user_id,
            )
        if _is_blank(title) or _is_blank(body):
            return build_result(
                ResultStatus.INVALID_INPUT,
                "NOTIFICATION_INVALID_CONTENT",
                request_id,
                "title and body are required",
                userId=user_id,
            )
        if category not in NOTIFICATION_CATEGORIES:
            return build_result(
                ResultStatus.INVALID_INPUT,
                "NOTIFICATION_INVALID_INPUT",
                request_id,
                f"Unknown notification category: {category}",
                userId=user_id,
            )

        try:
            if dedupe_key:
                existing = self._find_unread_by_key(user_id, dedupe_key)
                if existing is not None:
                    return self._duplicate(existing, request_id, dedupe_key)

            notification = Notification(
                user_id=user_id,
                title=title.strip(),
                body=body.strip(),
                data=dict(data or {}),
                category=category,
                is_read=False,
                source_type=source_type,
                source_id=source_id,
                dedupe_key=dedupe_key,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(notification)
            except IntegrityError:
                # Lost the race against a concurrent insert with the same key.
                if not dedupe_key:
                    raise
                existing = self._find_unread_by_key(user_id, dedupe_key)
                if existing is None:
                    raise
                self.db.commit()
                return self._duplicate(existing, request_id, dedupe_key)

            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_stage(logger, COMPONENT, operation, STAGE_ERROR, request_id, error=exc)
            return build_result(
                ResultStatus.ERROR,
                "NOTIFICATION_CREATE_FAILED",
                request_id,
                f"Database error: {exc}",
                userId=user_id,
            )

        log_stage(
            logger, COMPONENT, operation, STAGE_COMPLETE, request_id,
            notificationId=notification.id,
        )
        return build_result(
            ResultStatus.OK,
            "NOTIFICATION_CREATED",
            request_id,
            "Notification created",
            data={"notification": notification.to_dict()},
            userId=user_id,
            notificationId=notification.id,
        )

    async def list_notifications(
        self,
        user_id: int,
        *,
        limit: int | None = None,
        cursor: int | None = None,
        unread_only: bool = False,
        request_id: str | None = None,
    ) -> ServiceResult:
        """Return a newest-first page of the user's notifications.

        ``cursor`` is the id of the last notification already seen; the next
        page holds strictly older ids. ``nextCursor`` is ``None`` once exhausted.
        """
        request_id = request_id or new_request_id()
        if not is_positive_id(user_id):
            return build_result(
                ResultStatus.INVALID_INPUT,
                "NOTIFICATION_INVALID_USER",
                request_id,
                "userId must be a positive integer",
            )
        if cursor is not None and not is_positive_id(cursor):
            return build_result(
                ResultStatus.INVALID_INPUT,
                "NOTIFICATION_INVALID_INPUT",
                request_id,
                "cursor must be a positive integer",
                userId=user_id,
            )

        page_size = limit if limit is not None else settings.notification_page_size
        page_size = max(1, min(int(page_size), settings.notification_max_page_size))

        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        if cursor is not None:
            stmt = stmt.where(Notification.id < cursor)
        stmt = stmt.order_by(Notification.id.desc()).limit(page_size + 1)

        try:
            rows = list(self.db.scalars(stmt))
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_stage(logger, COMPONENT, "LIST", STAGE_ERROR, request_id, error=exc)
            return build_result(
                ResultStatus.ERROR,
                "NOTIFICATION_LIST_FAILED",
                request_id,
                f"Database error: {exc}",
                userId=user_id,
            )

        has_more = len(rows) > page_size
        page = rows[:page_size]
        next_cursor = page[-1].id if has_more and page else None
        return build_result(
            ResultStatus.OK,
            "NOTIFICATIONS_LISTED",
            request_id,
            f"Returned {len(page)} notifications",
            data={
                "notifications": [row.to_dict() for row in page],
                "nextCursor": next_cursor,
            },
            userId=user_id,
        )

    async def get_unread_count(
        self, user_id: int, *, request_id: str | None = None
    ) -> ServiceResult:
        request_id = request_id or new_request_id()
        if not is_positive_id(user_id):
            return build_result(
                ResultStatus.INVALID_INPUT,
                "NOTIFICATION_INVALID_USER",
                request_id,
                "userId must be a positive integer",
            )
        try:
            count = self.db.scalar(
                select(func.count())
                .select_from(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            ) or 0
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_stage(logger, COMPONENT, "COUNT", STAGE_ERROR, request_id, error=exc)
            return build_result(
                ResultStatus.ERROR,
                "NOTIFICATION_COUNT_FAILED",
                request_id,
                f"Database error: {exc}",
                userId=user_id,
            )
        return build_result(
            ResultStatus.OK,
            "NOTIFICATION_COUNT_SUCCESS",
            request_id,
            "Unread notifications counted",
            data={"count": int(count)},
            userId=user_id,
        )

    async def mark_as_read(
        self, notification_id: int, user_id: int, *, request_id: str | None = None
    ) -> ServiceResult:
        """Mark one of the user's notifications as read."""
        request_id = request_id or new_request_id()
        found = self._load_owned(notification_id, user_id, request_id, "NOTIFICATION_UPDATE_FAILED")
        if isinstance(found, ServiceResult):
            return found
        try:
            found.is_read = True
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_stage(logger, COMPONENT, "MARK_READ", STAGE_ERROR, request_id, error=exc)
            return build_result(
                ResultStatus.ERROR,
                "NOTIFICATION_UPDATE_FAILED",
                request_id,
                f"Database error: {exc}",
                notificationId=notification_id,
            )
        return build_result(
            ResultStatus.OK,
            "NOTIFICATION_MARKED_READ",
            request_id,
            "Notification marked as read",
            data={"notification": found.to_dict()},
            notificationId=notification_id,
            userId=user_id,
        )

    async def delete_notification(
        self, notification_id: int, user_id: int, *, request_id: str | None = None
    ) -> ServiceResult:
        """Delete one of the user's notifications."""
        request_id = request_id or new_request_id()
        found = self._load_owned(notification_id, user_id, request_id, "NOTIFICATION_DELETE_FAILED")
        if isinstance(found, ServiceResult):
            return found
        try:
            self.db.delete(found)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_stage(logger, COMPONENT, "DELETE", STAGE_ERROR, request_id, error=exc)
            return build_result(
                ResultStatus.ERROR,
                "NOTIFICATION_DELETE_FAILED",
                request_id,
                f"Database error: {exc}",
                notificationId=notification_id,
            )
        return build_result(
            ResultStatus.OK,
            "NOTIFICATION_DELETED",
            request_id,
            "Notification deleted",
            notificationId=notification_id,
            userId=user_id,
        )

    async def mark_all_as_read(
        self, user_id: int, *, request_id: str | None = None
    ) -> ServiceResult:
        request_id = request_id or new_request_id()
        if not is_positive_id(user_id):
            return build_result(
                ResultStatus.INVALID_INPUT,
                "NOTIFICATION_INVALID_USER",
                request_id,
                "userId must be a positive integer",
            )
        try:
            outcome = self.db.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True)
                .execution_options(synchronize_session="fetch")
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_stage(logger, COMPONENT, "MARK_ALL_READ", STAGE_ERROR, request_id, error=exc)
            return build_result(
                ResultStatus.ERROR,
                "NOTIFICATION_UPDATE_FAILED",
                request_id,
                f"Database error: {exc}",
                userId=user_id,
            )
        return build_result(
            ResultStatus.OK,
            "NOTIFICATIONS_MARKED_READ",
            request_id,
            "All notifications marked as read",
            data={"updated": int(outcome.rowcount or 0)},
            userId=user_id,
        )

    def _find_unread_by_key(self, user_id: int, dedupe_key: str) -> Notification | None:
        return self.db.scalars(
            select(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.dedupe_key == dedupe_key,
                Notification.is_read.is_(False),
            )
            .order_by(Notification.id.desc())
            .limit(1)
        ).first()

    def _duplicate(
        self, existing: Notification, request_id: str, dedupe_key: str
    ) -> ServiceResult:
        log_stage(
            logger, COMPONENT, "CREATE", STAGE_COMPLETE, request_id,
            duplicateOf=existing.id,
        )
        return build_result(
            ResultStatus.DUPLICATE,
            "NOTIFICATION_DUPLICATE",
            request_id,
            "An unread notification with this dedupe key already exists",
            data={"notification": existing.to_dict()},
            userId=existing.user_id,
            notificationId=existing.id,
            dedupeKey=dedupe_key,
        )

    def _load_owned(
        self,
        notification_id: int,
        user_id: int,
        request_id: str,
        failure_code: str,
    ) -> Notification | ServiceResult:
        if not is_positive_id(notification_id) or not is_positive_id(user_id):
            return build_result(
                ResultStatus.INVALID_INPUT,
                "NOTIFICATION_INVALID_INPUT",
                request_id,
                "notificationId and userId must be positive integers",
                notificationId=notification_id,
                userId=user_id,
            )
        try:
            notification = self.db.get(Notification, notification_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            return build_result(
                ResultStatus.ERROR,
                failure_code,
                request_id,
                f"Database error: {exc}",
                notificationId=notification_id,
            )
        if notification is None:
            return build_result(
                ResultStatus.NOT_FOUND,
                "NOTIFICATION_NOT_FOUND",
                request_id,
                "Notification does not exist",
                notificationId=notification_id,
                userId=user_id,
            )
        if notification.user_id != user_id:
            return build_result(
                ResultStatus.NOT_AUTHORIZED,
                "NOTIFICATION_NOT_AUTHORIZED",
                request_id,
                "Notification belongs to another user",
                notificationId=notification_id,
                userId=user_id,
            )
        return notification
