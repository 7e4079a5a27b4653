# src/connection_core/models/__init__.py
"""SQLAlchemy models for the Connection Core service."""

from .community import Community, CommunityMember
from .content import ApologeticsQuestion, Post, PrayerRequest
from .event import Event, EventRSVP
from .notification import Notification
from .user import PushToken, User

__all__ = [
    "Community", "CommunityMember",
    "ApologeticsQuestion", "Post", "PrayerRequest",
    "Event", "EventRSVP",
    "Notification",
    "PushToken", "User",
]
