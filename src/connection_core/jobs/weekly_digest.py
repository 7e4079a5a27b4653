# src/connection_core/jobs/weekly_digest.py
"""Sunday evening summary of what happened in a user's communities."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select

from connection_core.db.time import iso_week_key, utcnow
from connection_core.jobs.base import JobContext, pluralize
from connection_core.models import CommunityMember, Event, Post, PrayerRequest, User
from connection_core.models.community import MEMBERSHIP_STATUS_APPROVED
from connection_core.models.notification import CATEGORY_COMMUNITY
from connection_core.services.dispatcher import NotificationContent
from connection_core.services.results import new_request_id

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = "weekly_digest"
DEDUP_WINDOW_HOURS = 168
SEND_WEEKDAY = 6  # Sunday
SEND_HOUR = 18


def is_digest_hour(now: datetime) -> bool:
    """Digests go out on Sunday between 18:00 and 19:00 UTC."""
    return now.weekday() == SEND_WEEKDAY and now.hour == SEND_HOUR


def weekly_activity(ctx: JobContext, user_id: int, since: datetime) -> tuple[int, int, int]:
    """Count posts, prayer requests and events created in the user's communities."""
    communities = select(CommunityMember.community_id).where(
        CommunityMember.user_id == user_id,
        CommunityMember.status == MEMBERSHIP_STATUS_APPROVED,
    )
    posts = ctx.db.scalar(
        select(func.count(Post.id)).where(
            Post.community_id.in_(communities),
            Post.created_at >= since,
            Post.deleted_at.is_(None),
        )
    )
    prayers = ctx.db.scalar(
        select(func.count(PrayerRequest.id)).where(
            PrayerRequest.community_id.in_(communities),
            PrayerRequest.created_at >= since,
        )
    )
    events = ctx.db.scalar(
        select(func.count(Event.id)).where(
            Event.community_id.in_(communities),
            Event.created_at >= since,
        )
    )
    return posts or 0, prayers or 0, events or 0


def digest_body(posts: int, prayers: int, events: int) -> str:
    parts = []
    if posts:
        parts.append(pluralize(posts, "new post"))
    if prayers:
        parts.append(pluralize(prayers, "prayer request"))
    if events:
        parts.append(pluralize(events, "new event"))
    return f"This week: {', '.join(parts)} across your communities"


async def send_weekly_digest(
    ctx: JobContext, *, now: datetime | None = None, force: bool = False
) -> int:
    """Send one digest per user per ISO week. Returns the number of digests sent.

    Outside the Sunday evening slot nothing happens unless ``force`` is set.
    """
    now = now or utcnow()
    if not (force or is_digest_hour(now)):
        return 0

    week = iso_week_key(now)
    since = now - timedelta(days=7)
    request_id = new_request_id()
    users = list(
        ctx.db.scalars(
            select(User)
            .where(
                User.onboarding_completed.is_(True),
                User.deleted_at.is_(None),
                or_(User.notify_communities.is_(None), User.notify_communities.is_(True)),
            )
            .order_by(User.id)
        )
    )
    logger.info("Processing weekly digest for %d eligible user(s) week=%s", len(users), week)

    sent = 0
    for user in users:
        dedup_key = f"{user.id}-{week}"
        if await ctx.gate.already_sent(
            NOTIFICATION_TYPE, NOTIFICATION_TYPE, dedup_key, DEDUP_WINDOW_HOURS, now=now
        ):
            continue

        posts, prayers, events = weekly_activity(ctx, user.id, since)
        if posts + prayers + events == 0:
            ctx.gate.mark_sent(NOTIFICATION_TYPE, dedup_key)
            continue

        result = await ctx.dispatcher.notify_user_with_preferences(
            user.id,
            NotificationContent(
                title="Your Weekly Community Digest",
                body=digest_body(posts, prayers, events),
                data={"type": NOTIFICATION_TYPE, "weekKey": week, "dedupKey": dedup_key},
                category=CATEGORY_COMMUNITY,
                dedupe_key=f"{NOTIFICATION_TYPE}:{dedup_key}",
            ),
            request_id=request_id,
        )
        if result.success:
            ctx.gate.mark_sent(NOTIFICATION_TYPE, dedup_key)
            sent += 1
        else:
            logger.warning("Digest for user %s not recorded: %s", user.id, result.code)

    logger.info("Sent %d weekly digest(s)", sent)
    return sent
