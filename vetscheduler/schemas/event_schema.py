"""Events published to notification and real-time collaborators."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from vetscheduler.schemas.booking_schema import BookingStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerEvent(BaseModel):
    """Base for all published events."""
    occurred_at: datetime = Field(default_factory=_now)


class BookingCreated(SchedulerEvent):
    booking_id: str
    professional_id: str
    client_id: str
    scheduled_at: datetime


class BookingStatusChanged(SchedulerEvent):
    booking_id: str
    old_status: BookingStatus
    new_status: BookingStatus


class AvailabilityWindowDeleted(SchedulerEvent):
    """A window was removed; bookings it used to cover are reported as orphaned."""
    window_id: str
    professional_id: str
    orphaned_booking_ids: list[str] = Field(default_factory=list)
