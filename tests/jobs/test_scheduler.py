# tests/jobs/test_scheduler.py
"""Tests for the background job scheduler."""

import asyncio
from contextlib import nullcontext

import pytest

from connection_core.jobs.base import JobContext
from connection_core.jobs.scheduler import JobScheduler, ScheduledJob, default_jobs
from connection_core.services.dedup import SentKeyRegistry


@pytest.fixture
def session_factory(db_session):
    return lambda: nullcontext(db_session)


def test_default_jobs_cover_every_sweep() -> None:
    assert [job.name for job in default_jobs()] == [
        "event_reminders",
        "weekly_digest",
        "engagement",
        "inactivity",
    ]


@pytest.mark.asyncio
async def test_run_once_builds_context_with_shared_registry(
    session_factory, db_session, push_client
) -> None:
    seen: list[JobContext] = []

    async def job(ctx: JobContext) -> int:
        seen.append(ctx)
        return 7

    registry = SentKeyRegistry()
    scheduler = JobScheduler(
        [], session_factory=session_factory, registry=registry, push_client=push_client
    )

    assert await scheduler.run_once(ScheduledJob("heartbeat", 60, job)) == 7
    [ctx] = seen
    assert ctx.db is db_session
    assert ctx.gate.registry is registry
    assert ctx.dispatcher.push_client is push_client


@pytest.mark.asyncio
async def test_start_runs_immediately_and_stop_waits(session_factory, push_client) -> None:
    ran = asyncio.Event()

    async def job(ctx: JobContext) -> int:
        ran.set()
        return 0

    scheduler = JobScheduler(
        [ScheduledJob("heartbeat", 3600, job)],
        session_factory=session_factory,
        push_client=push_client,
    )
    await scheduler.start()
    await asyncio.wait_for(ran.wait(), timeout=2)
    assert scheduler.running

    await scheduler.stop()
    assert not scheduler.running


@pytest.mark.asyncio
async def test_failing_job_is_retried_on_next_tick(session_factory, push_client) -> None:
    calls = 0
    recovered = asyncio.Event()

    async def job(ctx: JobContext) -> int:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise ValueError("bad row")
        recovered.set()
        return 1

    scheduler = JobScheduler(
        [ScheduledJob("flaky", 0.1, job)],
        session_factory=session_factory,
        push_client=push_client,
    )
    await scheduler.start()
    try:
        await asyncio.wait_for(recovered.wait(), timeout=2)
    finally:
        await scheduler.stop()

    assert calls >= 2
