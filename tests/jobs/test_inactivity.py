# tests/jobs/test_inactivity.py
"""Tests for the inactivity nudge."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from connection_core.jobs.inactivity import send_inactivity_nudges
from connection_core.models import Notification


@pytest.mark.asyncio
async def test_nudges_users_in_the_idle_band(job_ctx, make_user, db_session, now) -> None:
    idle = make_user(last_login_at=now - timedelta(days=20))
    make_user(last_login_at=now - timedelta(days=3))
    make_user(last_login_at=now - timedelta(days=200))
    make_user()

    sent = await send_inactivity_nudges(job_ctx, now=now)

    assert sent == 1
    notification = db_session.scalars(select(Notification)).one()
    assert notification.user_id == idle.id
    assert notification.title == "We miss you!"
    assert notification.category == "feed"

    assert await send_inactivity_nudges(job_ctx, now=now) == 0


@pytest.mark.asyncio
async def test_bots_are_never_nudged(job_ctx, make_user, now) -> None:
    bot = make_user(last_login_at=now - timedelta(days=20))
    job_ctx.config = job_ctx.config.model_copy(update={"bot_user_ids": [bot.id]})

    assert await send_inactivity_nudges(job_ctx, now=now) == 0
