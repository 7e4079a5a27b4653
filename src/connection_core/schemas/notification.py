"""Notification-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field


class NotificationPreferencesUpdate(BaseModel):
    """Per-category push switches; omitted fields are left untouched."""

    model_config = ConfigDict(populate_by_name=True)

    notify_dms: bool | None = Field(None, alias="notifyDms")
    notify_communities: bool | None = Field(None, alias="notifyCommunities")
    notify_forums: bool | None = Field(None, alias="notifyForums")
    notify_feed: bool | None = Field(None, alias="notifyFeed")

    def changes(self) -> dict[str, bool]:
        return {key: value for key, value in self.model_dump().items() if value is not None}
