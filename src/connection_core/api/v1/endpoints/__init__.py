# src/connection_core/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .communities import router as communities_router
from .events import router as events_router
from .notifications import router as notifications_router

__all__ = [
    "communities_router",
    "events_router",
    "notifications_router",
]
