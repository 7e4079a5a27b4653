# src/connection_core/jobs/base.py
"""Shared plumbing for the scheduled notification sweeps."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from connection_core.core.settings import Settings, settings
from connection_core.models import Notification, User
from connection_core.services.dedup import NotificationDedupGate, SentKeyRegistry
from connection_core.services.dispatcher import NotificationDispatcher
from connection_core.services.push import PushClient
from connection_core.services.targeting import RecipientTargeting

logger = logging.getLogger(__name__)

# Users who have not logged in for this long are left out of engagement nudges.
ACTIVE_USER_DAYS = 30


@dataclass
class JobContext:
    """Everything a sweep needs for one run."""

    db: Session
    dispatcher: NotificationDispatcher
    targeting: RecipientTargeting
    gate: NotificationDedupGate
    config: Settings = field(default_factory=lambda: settings)


def build_job_context(
    db: Session,
    registry: SentKeyRegistry | None = None,
    *,
    push_client: PushClient | None = None,
    config: Settings | None = None,
) -> JobContext:
    """Wire a dispatcher, targeting helper and dedup gate around ``db``."""
    dispatcher = NotificationDispatcher(db, push_client=push_client)
    return JobContext(
        db=db,
        dispatcher=dispatcher,
        targeting=RecipientTargeting(dispatcher),
        gate=NotificationDedupGate(db, registry),
        config=config or settings,
    )


def recently_notified(notification_type: str, since: datetime):
    """Subquery of user ids that received ``notification_type`` since ``since``."""
    return select(Notification.user_id).where(
        Notification.data["type"].as_string() == notification_type,
        Notification.created_at >= since,
    )


def eligible_user_ids(
    ctx: JobContext,
    notification_type: str,
    cooldown_hours: float,
    limit: int,
    *,
    now: datetime,
    exclude_user_ids: Iterable[int] = (),
    extra_exclusions: Iterable = (),
) -> list[int]:
    """Pick up to ``limit`` random active users outside the per-type cooldown.

    Bot accounts, deleted users and anyone in ``exclude_user_ids`` are never
    picked. ``extra_exclusions`` are subqueries of user ids to leave out too.
    """
    excluded = set(ctx.config.bot_user_ids) | set(exclude_user_ids)
    stmt = select(User.id).where(
        User.deleted_at.is_(None),
        or_(
            User.last_login_at.is_(None),
            User.last_login_at > now - timedelta(days=ACTIVE_USER_DAYS),
        ),
        User.id.not_in(recently_notified(notification_type, now - timedelta(hours=cooldown_hours))),
    )
    if excluded:
        stmt = stmt.where(User.id.not_in(excluded))
    for subquery in extra_exclusions:
        stmt = stmt.where(User.id.not_in(subquery))
    stmt = stmt.order_by(func.random()).limit(limit)
    return list(ctx.db.scalars(stmt))


def pluralize(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"
