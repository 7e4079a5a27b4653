# src/connection_core/jobs/event_reminders.py
"""Reminders for attendees 24 hours and 1 hour before an event starts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select

from connection_core.db.time import utcnow
from connection_core.jobs.base import JobContext
from connection_core.models import Event
from connection_core.models.event import EVENT_STATUS_ACTIVE
from connection_core.models.notification import CATEGORY_EVENT
from connection_core.services.dispatcher import NotificationContent
from connection_core.services.events import describe_location
from connection_core.services.results import new_request_id

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = "event_reminder"
# Covers both reminder windows so a restart never repeats either one.
DEDUP_WINDOW_HOURS = 25


@dataclass(frozen=True)
class ReminderWindow:
    label: str
    min_hours: int
    max_hours: int
    time_label: str


REMINDER_WINDOWS = (
    ReminderWindow("24h", 24, 25, "Tomorrow"),
    ReminderWindow("1h", 1, 2, "Starting soon"),
)


def events_in_window(ctx: JobContext, window: ReminderWindow, now: datetime) -> list[Event]:
    """Return active events starting after ``min_hours`` and no later than ``max_hours``."""
    lower = now + timedelta(hours=window.min_hours)
    upper = now + timedelta(hours=window.max_hours)
    candidates = ctx.db.scalars(
        select(Event)
        .where(
            Event.status == EVENT_STATUS_ACTIVE,
            Event.deleted_at.is_(None),
            Event.event_date >= lower.date(),
            Event.event_date <= upper.date(),
        )
        .order_by(Event.id)
    )
    return [event for event in candidates if lower < event.starts_at <= upper]


def reminder_content(event: Event, window: ReminderWindow, dedup_key: str) -> NotificationContent:
    when = f"{event.event_date.isoformat()} at {event.start_time.strftime('%H:%M')}"
    where = describe_location(event)
    if event.is_virtual and event.virtual_meeting_url:
        body = f"{window.time_label}: {when}\n{where}\n{event.virtual_meeting_url}"
    else:
        body = f"{window.time_label}: {when} at {where}"
    return NotificationContent(
        title=f"Reminder: {event.title}",
        body=body,
        data={
            "type": NOTIFICATION_TYPE,
            "eventId": event.id,
            "communityId": event.community_id,
            "window": window.label,
            "dedupKey": dedup_key,
        },
        category=CATEGORY_EVENT,
        dedupe_key=f"{NOTIFICATION_TYPE}:{dedup_key}",
    )


async def send_event_reminders(ctx: JobContext, *, now: datetime | None = None) -> int:
    """Remind attendees of upcoming events. Returns the number of recipients targeted."""
    now = now or utcnow()
    request_id = new_request_id()
    targeted = 0
    for window in REMINDER_WINDOWS:
        registry_name = f"{NOTIFICATION_TYPE}:{window.label}"
        events = events_in_window(ctx, window, now)
        if events:
            logger.info("Found %d event(s) for %s reminder", len(events), window.label)
        for event in events:
            dedup_key = f"{event.id}-{window.label}"
            if await ctx.gate.already_sent(
                registry_name, NOTIFICATION_TYPE, dedup_key, DEDUP_WINDOW_HOURS, now=now
            ):
                continue
            outcome = await ctx.targeting.notify_event_attendees(
                event.id, reminder_content(event, window, dedup_key), request_id=request_id
            )
            ctx.gate.mark_sent(registry_name, dedup_key)
            targeted += outcome.total
            logger.info(
                "Sent %s reminder for event %s to %d attendee(s)",
                window.label,
                event.id,
                outcome.total,
            )
    return targeted
