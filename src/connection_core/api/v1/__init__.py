# src/connection_core/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import communities_router, events_router, notifications_router

__all__ = [
    "communities_router",
    "events_router",
    "notifications_router",
]
