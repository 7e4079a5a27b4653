# src/connection_core/services/text.py
"""Helpers for composing notification copy."""

from __future__ import annotations

from connection_core.models import User


def truncate_text(text: str, max_length: int = 100) -> str:
    """Shorten ``text`` to ``max_length`` characters, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max(0, max_length - 3)] + "..."


def display_name(user: User | None) -> str:
    if user is None:
        return "Someone"
    return user.name_for_display
