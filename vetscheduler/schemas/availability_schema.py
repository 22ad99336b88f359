"""Recurring weekly availability window."""

from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel

from vetscheduler.utils import DAY_NAMES, to_minutes


class AvailabilityWindow(BaseModel):
    """A weekly time range in which a professional accepts bookings."""
    id: str
    professional_id: str
    day_of_week: int
    start_time: time
    end_time: time
    slot_interval_minutes: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end_time)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]
