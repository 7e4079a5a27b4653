"""Pydantic schemas for the Connection Core API."""

from .common import CamelModel, UserSummary
from .community import CommunityCreate, CommunityResponse, MemberListing, MembershipResponse
from .event import EventCreate, EventResponse, EventUpdate
from .notification import NotificationPreferencesUpdate

__all__ = [
    "CamelModel",
    "UserSummary",
    "CommunityCreate",
    "CommunityResponse",
    "MemberListing",
    "MembershipResponse",
    "EventCreate",
    "EventResponse",
    "EventUpdate",
    "NotificationPreferencesUpdate",
]
