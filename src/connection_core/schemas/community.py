"""Community and membership Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from .common import CamelModel, UserSummary


class CommunityCreate(BaseModel):
    """Schema for creating a new community."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    is_private: bool = False


class CommunityResponse(CamelModel):
    """Schema for community information returned by the API."""

    id: int
    name: str
    description: str | None
    is_private: bool
    created_at: datetime | None = None


class MembershipResponse(CamelModel):
    """A user's membership row within a community."""

    id: int
    community_id: int
    user_id: int
    role: str
    status: str
    joined_at: datetime | None = None
    acted_by_user_id: int | None = None
    acted_at: datetime | None = None


class MemberListing(MembershipResponse):
    """Membership row joined with the member's public profile."""

    user: UserSummary
