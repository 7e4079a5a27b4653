# src/connection_core/models/event.py
"""SQLAlchemy models for community events and RSVPs."""

from __future__ import annotations

from datetime import UTC, date, datetime, time

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from connection_core.db.session import Base
from connection_core.db.time import utcnow

EVENT_STATUS_ACTIVE = "ACTIVE"
EVENT_STATUS_CANCELED = "CANCELED"
EVENT_STATUS_COMPLETED = "COMPLETED"

RSVP_GOING = "going"
RSVP_INTERESTED = "interested"
RSVP_NOT_GOING = "not_going"

# RSVP statuses that count as confirmed attendance.
ATTENDING_RSVP_STATUSES = (RSVP_GOING, RSVP_INTERESTED)


class Event(Base):
    """Scheduled gathering, optionally attached to a community."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    is_virtual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(Text, nullable=True)
    zip_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    virtual_meeting_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # NULL means a platform-wide event, which only app admins may create.
    community_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("communities.id"),
        nullable=True,
        index=True,
    )
    creator_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=EVENT_STATUS_ACTIVE)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def starts_at(self) -> datetime:
        """Return the start of the event as an aware UTC datetime."""
        return datetime.combine(self.event_date, self.start_time, tzinfo=UTC)


class EventRSVP(Base):
    """Attendance intent of a user for an event."""

    __tablename__ = "event_rsvps"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_rsvps_pair"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default=RSVP_GOING)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
