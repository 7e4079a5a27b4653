"""Event-related Pydantic schemas."""

from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, Field

from .common import CamelModel


class EventCreate(BaseModel):
    """Schema for creating a new event."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    event_date: date = Field(..., alias="eventDate")
    start_time: time = Field(..., alias="startTime")
    end_time: time | None = Field(None, alias="endTime")
    is_virtual: bool = Field(False, alias="isVirtual")
    location: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = Field(None, alias="zipCode")
    latitude: float | None = None
    longitude: float | None = None
    virtual_meeting_url: str | None = Field(None, alias="virtualMeetingUrl")
    is_public: bool = Field(True, alias="isPublic")
    community_id: int | None = Field(None, alias="communityId")


class EventUpdate(BaseModel):
    """Partial update; only the fields a client sends are applied."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    event_date: date | None = Field(None, alias="eventDate")
    start_time: time | None = Field(None, alias="startTime")
    end_time: time | None = Field(None, alias="endTime")
    is_virtual: bool | None = Field(None, alias="isVirtual")
    location: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = Field(None, alias="zipCode")
    latitude: float | None = None
    longitude: float | None = None
    virtual_meeting_url: str | None = Field(None, alias="virtualMeetingUrl")
    is_public: bool | None = Field(None, alias="isPublic")


class EventResponse(CamelModel):
    """Schema for event information returned by the API."""

    id: int
    title: str
    description: str
    event_date: date
    start_time: time
    end_time: time
    is_virtual: bool
    location: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    virtual_meeting_url: str | None = None
    is_public: bool
    community_id: int | None = None
    creator_id: int
    status: str
    created_at: datetime | None = None
    deleted_at: datetime | None = None
