# src/connection_core/jobs/scheduler.py
"""Background loops that run the notification sweeps on their intervals."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from connection_core.core.settings import settings
from connection_core.db.session import SessionLocal
from connection_core.jobs.base import JobContext, build_job_context
from connection_core.jobs.engagement import run_engagement
from connection_core.jobs.event_reminders import send_event_reminders
from connection_core.jobs.inactivity import send_inactivity_nudges
from connection_core.jobs.weekly_digest import send_weekly_digest
from connection_core.services.dedup import SentKeyRegistry
from connection_core.services.push import PushClient, PushError

logger = logging.getLogger(__name__)

JobRunner = Callable[[JobContext], Awaitable[int]]


@dataclass(frozen=True)
class ScheduledJob:
    name: str
    interval_seconds: float
    run: JobRunner


def default_jobs() -> list[ScheduledJob]:
    return [
        ScheduledJob("event_reminders", settings.event_reminder_interval_seconds, send_event_reminders),
        ScheduledJob("weekly_digest", settings.weekly_digest_interval_seconds, send_weekly_digest),
        ScheduledJob("engagement", settings.engagement_interval_seconds, run_engagement),
        ScheduledJob("inactivity", settings.inactivity_interval_seconds, send_inactivity_nudges),
    ]


class JobScheduler:
    """Runs each sweep in its own asyncio task.

    Sweeps run once at startup and then every ``interval_seconds``. A failing
    sweep is logged and retried on its next tick; it never stops the loop.
    The sent-key registry is shared by all sweeps for the life of the scheduler.
    """

    def __init__(
        self,
        jobs: list[ScheduledJob] | None = None,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        registry: SentKeyRegistry | None = None,
        push_client: PushClient | None = None,
    ) -> None:
        self.jobs = jobs if jobs is not None else default_jobs()
        self.registry = registry or SentKeyRegistry()
        self._session_factory = session_factory
        self._push_client = push_client
        self._tasks: list[asyncio.Task[None]] = []
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Start one background loop per job."""
        if self.running:
            return
        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._run(job), name=f"job:{job.name}") for job in self.jobs
        ]
        logger.info("Job scheduler started with %d job(s)", len(self._tasks))

    async def stop(self) -> None:
        """Signal every loop to exit and wait for in-flight sweeps to finish."""
        if not self._tasks:
            return
        self._stopping.set()
        await asyncio.gather(*self._tasks)
        self._tasks = []
        logger.info("Job scheduler stopped")

    async def run_once(self, job: ScheduledJob) -> int:
        """Run a single sweep with a fresh session and return its recipient count."""
        with self._session_factory() as db:
            ctx = build_job_context(db, self.registry, push_client=self._push_client)
            return await job.run(ctx)

    async def _run(self, job: ScheduledJob) -> None:
        interval = max(0.1, float(job.interval_seconds))
        while not self._stopping.is_set():
            try:
                count = await self.run_once(job)
                logger.info("Job %s targeted %d recipient(s)", job.name, count)
            except SQLAlchemyError as e:
                logger.error("Job %s hit a database error: %s", job.name, e)
            except (PushError, OSError) as e:
                logger.warning("Job %s hit a delivery error: %s", job.name, e)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error("Job %s failed: %s", job.name, e, exc_info=True)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                continue
