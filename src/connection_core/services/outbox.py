# src/connection_core/services/outbox.py
"""Post-commit queue for notifications raised by state transitions."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

PendingSend = Callable[[], Awaitable[object]]


class NotificationOutbox:
    """Collects notification sends while a transition runs.

    The owning service flushes the outbox only after its commit succeeded,
    so no notification ever describes a mutation that did not persist.
    Send failures are logged and never reach the caller.
    """

    def __init__(self) -> None:
        self._pending: list[tuple[str, PendingSend]] = []

    def enqueue(self, label: str, send: PendingSend) -> None:
        self._pending.append((label, send))

    def discard(self) -> None:
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)

    async def flush(self, request_id: str) -> int:
        """Run every queued send and return how many raised."""
        pending, self._pending = self._pending, []
        failures = 0
        for label, send in pending:
            try:
                await send()
            except Exception:
                failures += 1
                logger.exception(
                    "Notification side effect %s failed requestId=%s", label, request_id
                )
        return failures
