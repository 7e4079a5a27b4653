"""Push delivery client for the Expo-compatible push API.

This module provides the PushClient class used by the notification
dispatcher. It includes:

- Lazily created ``httpx.AsyncClient`` shared by all sends
- Token validation so malformed tokens are skipped, never raised
- Batching of messages to the provider's per-request limit
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from connection_core.core.settings import settings

logger = logging.getLogger(__name__)

HTTP_OK = 200

# ExponentPushToken[xxxxxxxx] or ExpoPushToken[xxxxxxxx]
_TOKEN_PATTERN = re.compile(r"^Expo(nent)?PushToken\[[^\]]+\]$")


class PushError(RuntimeError):
    """Base exception raised for push delivery failures."""


class PushDisabledError(PushError):
    """Raised when push operations are attempted while delivery is disabled."""


@dataclass(frozen=True)
class PushConfig:
    """Immutable configuration for push delivery."""

    enabled: bool
    api_url: str
    access_token: str | None
    timeout_seconds: float
    batch_size: int


@dataclass(frozen=True)
class PushMessage:
    """A single push payload addressed to one device token."""

    to: str
    title: str
    body: str
    data: Mapping[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "data": dict(self.data),
            "sound": "default",
        }


@dataclass(frozen=True)
class PushTicket:
    """Provider receipt for one push message."""

    token: str
    status: str
    ticket_id: str | None = None
    message: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def load_push_config() -> PushConfig:
    """Build configuration object from global settings."""

    return PushConfig(
        enabled=bool(settings.push_enabled and settings.push_api_url),
        api_url=settings.push_api_url,
        access_token=settings.push_access_token,
        timeout_seconds=float(settings.push_http_timeout_seconds),
        batch_size=max(1, int(settings.push_batch_size)),
    )


def is_valid_push_token(token: Any) -> bool:
    """Return True if ``token`` looks like a provider push token."""
    return isinstance(token, str) and bool(_TOKEN_PATTERN.match(token))


class PushClient:
    """HTTP client wrapper for the push provider."""

    def __init__(self, config: PushConfig | None = None) -> None:
        self.config = config or load_push_config()
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise PushDisabledError("Push delivery is not enabled")

        async with self._client_lock:
            if self._client is None:
                headers = {
                    "Accept": "application/json",
                    "Accept-Encoding": "gzip, deflate",
                    "Content-Type": "application/json",
                }
                if self.config.access_token:
                    headers["Authorization"] = f"Bearer {self.config.access_token}"
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    headers=headers,
                )

        return self._client

    @dataclass
    class RequestParams:
        """Parameters for HTTP requests."""
        method: str
        url: str
        json_data: Any | None = None

    async def _request(self, params: RequestParams) -> httpx.Response:
        client = await self._ensure_client()
        try:
            response = await client.request(
                params.method,
                params.url,
                json=params.json_data,
            )
        except httpx.HTTPError as exc:
            raise PushError(f"Push request failed: {exc}") from exc

        if response.status_code != HTTP_OK:
            raise PushError(f"Push provider responded with {response.status_code}")
        return response

    async def send_push_notification(
        self,
        token: str,
        title: str,
        body: str,
        data: Mapping[str, Any] | None = None,
    ) -> PushTicket | None:
        """Send one push message.

        Returns ``None`` when the token is malformed; the token is logged and skipped.

        Raises:
            PushError: If the provider cannot be reached or rejects the request.
        """
        tickets = await self.send_batch(
            [PushMessage(to=token, title=title, body=body, data=data or {})]
        )
        return tickets[0] if tickets else None

    async def send_batch(self, messages: Sequence[PushMessage]) -> list[PushTicket]:
        """Send messages in provider-sized chunks and collect their tickets."""
        valid: list[PushMessage] = []
        for message in messages:
            if is_valid_push_token(message.to):
                valid.append(message)
            else:
                logger.error("Skipping invalid push token: %r", message.to)

        tickets: list[PushTicket] = []
        size = self.config.batch_size
        for start in range(0, len(valid), size):
            chunk = valid[start:start + size]
            response = await self._request(
                self.RequestParams(
                    method="POST",
                    url=self.config.api_url,
                    json_data=[message.to_payload() for message in chunk],
                )
            )
            tickets.extend(self._parse_tickets(chunk, response))
        return tickets

    @staticmethod
    def _parse_tickets(
        chunk: Sequence[PushMessage], response: httpx.Response
    ) -> list[PushTicket]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise PushError("Push provider returned a non-JSON body") from exc

        entries = payload.get("data") if isinstance(payload, Mapping) else None
        if isinstance(entries, Mapping):
            entries = [entries]
        if not isinstance(entries, list):
            raise PushError("Push provider response is missing ticket data")

        tickets: list[PushTicket] = []
        for message, entry in zip(chunk, entries, strict=False):
            details = entry.get("details") or {}
            ticket = PushTicket(
                token=message.to,
                status=str(entry.get("status", "error")),
                ticket_id=entry.get("id"),
                message=entry.get("message"),
                error=details.get("error") if isinstance(details, Mapping) else None,
            )
            if not ticket.ok:
                logger.error(
                    "Push ticket error for %s: %s (%s)",
                    message.to,
                    ticket.message,
                    ticket.error,
                )
            tickets.append(ticket)
        return tickets

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _PushClientSingleton:
    """Singleton wrapper for PushClient."""

    _instance: PushClient | None = None

    @classmethod
    def get_instance(cls) -> PushClient:
        """Get or create the singleton PushClient instance."""
        if cls._instance is None:
            cls._instance = PushClient()
        return cls._instance


def get_push_client() -> PushClient:
    """Return a singleton push client instance."""
    return _PushClientSingleton.get_instance()
