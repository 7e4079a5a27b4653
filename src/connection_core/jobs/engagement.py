# src/connection_core/jobs/engagement.py
"""Engagement nudges about real activity.

Each nudge highlights one piece of content, is sent to a small random set of
active users, and respects a per-user cooldown for its notification type.
Content that was already highlighted within ``CONTENT_WINDOW_HOURS`` is
skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select

from connection_core.db.time import iso_week_key, utcnow
from connection_core.jobs.base import JobContext, eligible_user_ids, pluralize
from connection_core.models import (
    ApologeticsQuestion,
    Community,
    CommunityMember,
    Event,
    EventRSVP,
    Notification,
    Post,
)
from connection_core.models.community import (
    MANAGER_ROLES,
    MEMBERSHIP_STATUS_APPROVED,
    MEMBERSHIP_STATUS_PENDING,
)
from connection_core.models.event import EVENT_STATUS_ACTIVE, RSVP_GOING
from connection_core.models.notification import CATEGORY_COMMUNITY, CATEGORY_EVENT, CATEGORY_FEED
from connection_core.services.dispatcher import NotificationContent
from connection_core.services.results import new_request_id
from connection_core.services.text import truncate_text

logger = logging.getLogger(__name__)

REGISTRY_NAME = "engagement"
CONTENT_WINDOW_HOURS = 7 * 24

TYPE_ACTIVE_COMMUNITY = "active_community"
TYPE_POPULAR_EVENT = "popular_event"
TYPE_APOLOGETICS_FEATURED = "apologetics_featured"
TYPE_APOLOGETICS_PROMPT = "apologetics_prompt"
TYPE_ADMIN_REQUESTS = "admin_pending_requests"

# Communities with pending requests considered per run.
ADMIN_COMMUNITY_LIMIT = 5


def _content(
    notification_type: str,
    dedup_key: str,
    title: str,
    body: str,
    category: str,
    **data: Any,
) -> NotificationContent:
    return NotificationContent(
        title=title,
        body=body,
        data={"type": notification_type, "dedupKey": dedup_key, **data},
        category=category,
        dedupe_key=f"{notification_type}:{dedup_key}",
    )


async def _broadcast(
    ctx: JobContext, user_ids: list[int], content: NotificationContent, dedup_key: str
) -> int:
    if not user_ids:
        return 0
    outcome = await ctx.dispatcher.notify_multiple_users(
        user_ids, content, request_id=new_request_id()
    )
    ctx.gate.mark_sent(REGISTRY_NAME, dedup_key)
    return outcome.total


async def send_active_community_notifications(
    ctx: JobContext, *, now: datetime | None = None
) -> int:
    """Invite non-members to the most active community of the last 48 hours."""
    now = now or utcnow()
    config = ctx.config

    post_counts = (
        select(Post.community_id, func.count(Post.id).label("post_count"))
        .where(
            Post.created_at > now - timedelta(hours=48),
            Post.deleted_at.is_(None),
            Post.author_id.not_in(config.bot_user_ids),
        )
        .group_by(Post.community_id)
        .subquery()
    )
    member_counts = (
        select(CommunityMember.community_id, func.count(CommunityMember.id).label("member_count"))
        .where(CommunityMember.status == MEMBERSHIP_STATUS_APPROVED)
        .group_by(CommunityMember.community_id)
        .subquery()
    )
    row = ctx.db.execute(
        select(Community, post_counts.c.post_count, member_counts.c.member_count)
        .join(post_counts, post_counts.c.community_id == Community.id)
        .join(member_counts, member_counts.c.community_id == Community.id)
        .where(
            Community.deleted_at.is_(None),
            post_counts.c.post_count >= config.community_activity_threshold,
            member_counts.c.member_count >= config.community_min_members,
        )
        .order_by(post_counts.c.post_count.desc(), Community.id)
        .limit(1)
    ).first()
    if row is None:
        logger.info("No communities meet the activity threshold")
        return 0

    community, post_count, member_count = row
    dedup_key = f"{TYPE_ACTIVE_COMMUNITY}-{community.id}"
    if await ctx.gate.already_sent(
        REGISTRY_NAME, TYPE_ACTIVE_COMMUNITY, dedup_key, CONTENT_WINDOW_HOURS, now=now
    ):
        logger.info("Already highlighted community %s recently", community.id)
        return 0

    members = select(CommunityMember.user_id).where(CommunityMember.community_id == community.id)
    user_ids = eligible_user_ids(
        ctx,
        TYPE_ACTIVE_COMMUNITY,
        config.cooldown_active_community_hours,
        config.max_users_active_community,
        now=now,
        extra_exclusions=[members],
    )
    content = _content(
        TYPE_ACTIVE_COMMUNITY,
        dedup_key,
        f"{community.name} is active!",
        f"{pluralize(post_count, 'new post')} from {pluralize(member_count, 'member')}. "
        "Join the conversation!",
        CATEGORY_COMMUNITY,
        communityId=community.id,
    )
    sent = await _broadcast(ctx, user_ids, content, dedup_key)
    logger.info("Notified %d user(s) about active community %s", sent, community.id)
    return sent


async def send_popular_event_notifications(
    ctx: JobContext, *, now: datetime | None = None
) -> int:
    """Point users who have not responded at the soonest well-attended event."""
    now = now or utcnow()
    config = ctx.config
    horizon = now + timedelta(days=config.event_lookahead_days)

    going = (
        select(EventRSVP.event_id, func.count(EventRSVP.id).label("going_count"))
        .where(EventRSVP.status == RSVP_GOING)
        .group_by(EventRSVP.event_id)
        .subquery()
    )
    rows = ctx.db.execute(
        select(Event, going.c.going_count)
        .join(going, going.c.event_id == Event.id)
        .where(
            Event.status == EVENT_STATUS_ACTIVE,
            Event.deleted_at.is_(None),
            Event.event_date >= now.date(),
            Event.event_date <= horizon.date(),
            going.c.going_count >= config.event_rsvp_threshold,
        )
        .order_by(Event.event_date, Event.start_time, Event.id)
    ).all()
    upcoming = [(event, count) for event, count in rows if now < event.starts_at < horizon]
    if not upcoming:
        logger.info("No events meet the RSVP threshold")
        return 0

    event, going_count = upcoming[0]
    dedup_key = f"{TYPE_POPULAR_EVENT}-{event.id}"
    if await ctx.gate.already_sent(
        REGISTRY_NAME, TYPE_POPULAR_EVENT, dedup_key, CONTENT_WINDOW_HOURS, now=now
    ):
        logger.info("Already highlighted event %s recently", event.id)
        return 0

    responded = select(EventRSVP.user_id).where(EventRSVP.event_id == event.id)
    user_ids = eligible_user_ids(
        ctx,
        TYPE_POPULAR_EVENT,
        config.cooldown_popular_event_hours,
        config.max_users_popular_event,
        now=now,
        extra_exclusions=[responded],
    )
    community_name = None
    if event.community_id is not None:
        community = ctx.db.get(Community, event.community_id)
        community_name = community.name if community else None
    where = f" in {community_name}" if community_name else ""
    content = _content(
        TYPE_POPULAR_EVENT,
        dedup_key,
        f"{event.title} is trending!",
        f"{going_count} people going{where}. Don't miss out!",
        CATEGORY_EVENT,
        eventId=event.id,
    )
    sent = await _broadcast(ctx, user_ids, content, dedup_key)
    logger.info("Notified %d user(s) about popular event %s", sent, event.id)
    return sent


async def send_apologetics_notifications(
    ctx: JobContext, *, now: datetime | None = None
) -> int:
    """Feature a recent, substantive answer, or send a generic prompt when there is none."""
    now = now or utcnow()
    config = ctx.config

    question = ctx.db.scalars(
        select(ApologeticsQuestion)
        .where(
            ApologeticsQuestion.answer.is_not(None),
            ApologeticsQuestion.answered_at > now - timedelta(days=7),
            func.length(ApologeticsQuestion.answer) >= config.apologetics_min_answer_length,
        )
        .order_by(ApologeticsQuestion.answered_at.desc(), ApologeticsQuestion.id.desc())
        .limit(1)
    ).first()

    if question is None:
        dedup_key = f"{TYPE_APOLOGETICS_PROMPT}-{iso_week_key(now)}"
        if await ctx.gate.already_sent(
            REGISTRY_NAME, TYPE_APOLOGETICS_PROMPT, dedup_key, CONTENT_WINDOW_HOURS, now=now
        ):
            return 0
        user_ids = eligible_user_ids(
            ctx,
            TYPE_APOLOGETICS_PROMPT,
            config.cooldown_apologetics_hours,
            config.max_users_apologetics,
            now=now,
        )
        content = _content(
            TYPE_APOLOGETICS_PROMPT,
            dedup_key,
            "Have a faith question?",
            "Our apologists are ready to help you find answers.",
            CATEGORY_FEED,
        )
        sent = await _broadcast(ctx, user_ids, content, dedup_key)
        logger.info("Sent apologetics prompt to %d user(s)", sent)
        return sent

    dedup_key = f"{TYPE_APOLOGETICS_FEATURED}-{question.id}"
    if await ctx.gate.already_sent(
        REGISTRY_NAME, TYPE_APOLOGETICS_FEATURED, dedup_key, CONTENT_WINDOW_HOURS, now=now
    ):
        logger.info("Already featured question %s", question.id)
        return 0
    user_ids = eligible_user_ids(
        ctx,
        TYPE_APOLOGETICS_FEATURED,
        config.cooldown_apologetics_hours,
        config.max_users_apologetics,
        now=now,
        exclude_user_ids=[question.user_id],
    )
    content = _content(
        TYPE_APOLOGETICS_FEATURED,
        dedup_key,
        "Featured Q&A",
        f'"{truncate_text(question.title, 60)}" - answered by our apologists',
        CATEGORY_FEED,
        questionId=question.id,
    )
    sent = await _broadcast(ctx, user_ids, content, dedup_key)
    logger.info("Featured question %s to %d user(s)", question.id, sent)
    return sent


async def send_admin_request_notifications(
    ctx: JobContext, *, now: datetime | None = None
) -> int:
    """Tell owners and moderators about join requests waiting for review, daily per community."""
    now = now or utcnow()
    since = now - timedelta(hours=ctx.config.cooldown_admin_hours)

    pending = ctx.db.execute(
        select(Community, func.count(CommunityMember.id).label("pending_count"))
        .join(CommunityMember, CommunityMember.community_id == Community.id)
        .where(
            Community.deleted_at.is_(None),
            CommunityMember.status == MEMBERSHIP_STATUS_PENDING,
        )
        .group_by(Community.id)
        .order_by(func.count(CommunityMember.id).desc(), Community.id)
        .limit(ADMIN_COMMUNITY_LIMIT)
    ).all()
    if not pending:
        logger.info("No pending community requests")
        return 0

    sent = 0
    for community, pending_count in pending:
        already_told = select(Notification.user_id).where(
            Notification.data["type"].as_string() == TYPE_ADMIN_REQUESTS,
            Notification.data["communityId"].as_integer() == community.id,
            Notification.created_at >= since,
        )
        managers = list(
            ctx.db.scalars(
                select(CommunityMember.user_id)
                .where(
                    CommunityMember.community_id == community.id,
                    CommunityMember.status == MEMBERSHIP_STATUS_APPROVED,
                    CommunityMember.role.in_(MANAGER_ROLES),
                    CommunityMember.user_id.not_in(already_told),
                )
                .order_by(CommunityMember.user_id)
            )
        )
        if not managers:
            continue
        dedup_key = f"{TYPE_ADMIN_REQUESTS}-{community.id}-{now.date().isoformat()}"
        content = _content(
            TYPE_ADMIN_REQUESTS,
            dedup_key,
            "Requests pending",
            f"{community.name}: {pluralize(pending_count, 'member')} waiting to join",
            CATEGORY_COMMUNITY,
            communityId=community.id,
        )
        sent += await _broadcast(ctx, managers, content, dedup_key)
    logger.info("Notified %d community manager(s) about pending requests", sent)
    return sent


async def run_engagement(
    ctx: JobContext,
    *,
    community: bool = True,
    events: bool = True,
    apologetics: bool = True,
    admin: bool = True,
    now: datetime | None = None,
) -> int:
    """Run the selected nudges in order and return the total recipients targeted."""
    now = now or utcnow()
    total = 0
    if community:
        total += await send_active_community_notifications(ctx, now=now)
    if events:
        total += await send_popular_event_notifications(ctx, now=now)
    if apologetics:
        total += await send_apologetics_notifications(ctx, now=now)
    if admin:
        total += await send_admin_request_notifications(ctx, now=now)
    return total
