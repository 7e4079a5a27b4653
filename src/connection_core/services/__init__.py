# src/connection_core/services/__init__.py
"""Business logic services for Connection Core."""

from .dedup import NotificationDedupGate, SentKeyRegistry
from .dispatcher import (
    BatchOutcome,
    NotificationContent,
    NotificationDispatcher,
    PreferenceCache,
)
from .events import EventLifecycleService
from .membership import CommunityMembershipService
from .notifications import NotificationStore
from .push import PushClient
from .results import ResultStatus, ServiceResult
from .targeting import RecipientTargeting

__all__ = [
    "BatchOutcome",
    "CommunityMembershipService",
    "EventLifecycleService",
    "NotificationContent",
    "NotificationDedupGate",
    "NotificationDispatcher",
    "NotificationStore",
    "PreferenceCache",
    "PushClient",
    "RecipientTargeting",
    "ResultStatus",
    "SentKeyRegistry",
    "ServiceResult",
]
