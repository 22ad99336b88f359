"""Booking and slot data models."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"


# Statuses that hold a slot on the professional's agenda.
ACTIVE_STATUSES: tuple[BookingStatus, ...] = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
TERMINAL_STATUSES: tuple[BookingStatus, ...] = (BookingStatus.COMPLETED, BookingStatus.CANCELED)


class Booking(BaseModel):
    """Committed appointment."""
    id: str
    professional_id: str
    client_id: str
    subject_id: str
    service_id: str
    scheduled_at: datetime
    duration_minutes: int = Field(gt=0)
    status: BookingStatus = BookingStatus.PENDING
    amount_paid: float = 0.0
    cancellation_reason: Optional[str] = None
    rating: Optional[int] = None
    review_comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class SlotOption(BaseModel):
    """A candidate start time on the requested date."""
    time: str
    available: bool
