"""Scheduled notification sweeps and the scheduler that runs them."""

from .base import JobContext, build_job_context
from .engagement import run_engagement
from .event_reminders import send_event_reminders
from .inactivity import send_inactivity_nudges
from .scheduler import JobScheduler, ScheduledJob
from .weekly_digest import send_weekly_digest

__all__ = [
    "JobContext",
    "JobScheduler",
    "ScheduledJob",
    "build_job_context",
    "run_engagement",
    "send_event_reminders",
    "send_inactivity_nudges",
    "send_weekly_digest",
]
