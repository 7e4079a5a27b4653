"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema rendered with camelCase keys on the wire."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-safe dict using camelCase aliases."""
        return self.model_dump(mode="json", by_alias=True)


class UserSummary(CamelModel):
    """Minimal public profile attached to membership listings."""

    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
