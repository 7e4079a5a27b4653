# src/connection_core/jobs/inactivity.py
"""Weekly nudge for users who stopped logging in."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select

from connection_core.db.time import iso_week_key, utcnow
from connection_core.jobs.base import JobContext
from connection_core.models import User
from connection_core.models.notification import CATEGORY_FEED
from connection_core.services.dispatcher import NotificationContent
from connection_core.services.results import new_request_id

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = "inactivity_nudge"
DEDUP_WINDOW_HOURS = 168


async def send_inactivity_nudges(ctx: JobContext, *, now: datetime | None = None) -> int:
    """Nudge users idle for ``inactivity_after_days`` but not yet ``inactivity_give_up_days``."""
    now = now or utcnow()
    config = ctx.config
    week = iso_week_key(now)
    request_id = new_request_id()

    stmt = (
        select(User.id)
        .where(
            User.deleted_at.is_(None),
            User.last_login_at.is_not(None),
            User.last_login_at < now - timedelta(days=config.inactivity_after_days),
            User.last_login_at >= now - timedelta(days=config.inactivity_give_up_days),
        )
        .order_by(User.id)
    )
    if config.bot_user_ids:
        stmt = stmt.where(User.id.not_in(config.bot_user_ids))
    user_ids = list(ctx.db.scalars(stmt))

    sent = 0
    for user_id in user_ids:
        dedup_key = f"{user_id}-{week}"
        if await ctx.gate.already_sent(
            NOTIFICATION_TYPE, NOTIFICATION_TYPE, dedup_key, DEDUP_WINDOW_HOURS, now=now
        ):
            continue
        result = await ctx.dispatcher.notify_user_with_preferences(
            user_id,
            NotificationContent(
                title="We miss you!",
                body="Your communities have been active while you were away. Come see what's new.",
                data={"type": NOTIFICATION_TYPE, "weekKey": week, "dedupKey": dedup_key},
                category=CATEGORY_FEED,
                dedupe_key=f"{NOTIFICATION_TYPE}:{dedup_key}",
            ),
            request_id=request_id,
        )
        if result.success:
            ctx.gate.mark_sent(NOTIFICATION_TYPE, dedup_key)
            sent += 1
    logger.info("Sent %d inactivity nudge(s) week=%s", sent, week)
    return sent
