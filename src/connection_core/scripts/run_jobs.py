# src/connection_core/scripts/run_jobs.py
"""Run notification sweeps once, for cron deployments.

Examples:
    python -m connection_core.scripts.run_jobs --community --events
    python -m connection_core.scripts.run_jobs --digest --force-digest
    python -m connection_core.scripts.run_jobs --all
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from connection_core.db.session import SessionLocal
from connection_core.jobs.base import build_job_context
from connection_core.jobs.engagement import (
    send_active_community_notifications,
    send_admin_request_notifications,
    send_apologetics_notifications,
    send_popular_event_notifications,
)
from connection_core.jobs.event_reminders import send_event_reminders
from connection_core.jobs.inactivity import send_inactivity_nudges
from connection_core.jobs.weekly_digest import send_weekly_digest
from connection_core.services.push import get_push_client

logger = logging.getLogger(__name__)

SWEEP_FLAGS = ("reminders", "digest", "community", "events", "apologetics", "admin", "inactivity")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run scheduled notification sweeps once")
    parser.add_argument("--reminders", action="store_true", help="Event reminders (24h and 1h)")
    parser.add_argument("--digest", action="store_true", help="Weekly community digest")
    parser.add_argument(
        "--force-digest",
        action="store_true",
        help="Send the digest even outside the Sunday evening slot",
    )
    parser.add_argument("--community", action="store_true", help="Active community nudge")
    parser.add_argument("--events", action="store_true", help="Popular event nudge")
    parser.add_argument("--apologetics", action="store_true", help="Featured Q&A or prompt")
    parser.add_argument("--admin", action="store_true", help="Pending join request alerts")
    parser.add_argument("--inactivity", action="store_true", help="Inactivity nudges")
    parser.add_argument("--all", action="store_true", help="Run every sweep (the default)")
    return parser


def selected_sweeps(args: argparse.Namespace) -> list[str]:
    """Return the sweeps to run; no flags at all means every sweep."""
    chosen = [name for name in SWEEP_FLAGS if getattr(args, name)]
    if args.all or not chosen:
        return list(SWEEP_FLAGS)
    return chosen


async def run_sweeps(sweeps: list[str], *, force_digest: bool = False) -> int:
    """Run ``sweeps`` in a single session and return the total recipients targeted."""
    push_client = get_push_client()
    total = 0
    try:
        with SessionLocal() as db:
            ctx = build_job_context(db, push_client=push_client)
            for name in sweeps:
                if name == "reminders":
                    count = await send_event_reminders(ctx)
                elif name == "digest":
                    count = await send_weekly_digest(ctx, force=force_digest)
                elif name == "community":
                    count = await send_active_community_notifications(ctx)
                elif name == "events":
                    count = await send_popular_event_notifications(ctx)
                elif name == "apologetics":
                    count = await send_apologetics_notifications(ctx)
                elif name == "admin":
                    count = await send_admin_request_notifications(ctx)
                else:
                    count = await send_inactivity_nudges(ctx)
                logger.info("Sweep %s targeted %d recipient(s)", name, count)
                total += count
    finally:
        await push_client.close()
    return total


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sweeps = selected_sweeps(args)
    logger.info("Running sweeps: %s", ", ".join(sweeps))
    try:
        total = asyncio.run(run_sweeps(sweeps, force_digest=args.force_digest))
    except SQLAlchemyError as exc:
        logger.error("Sweep run failed: %s", exc)
        return 1
    logger.info("Complete. Targeted %d recipient(s)", total)
    return 0


if __name__ == "__main__":
    sys.exit(main())
