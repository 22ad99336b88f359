"""
Overlap detection between a requested interval and committed bookings.

Two half-open intervals [a_start, a_end) and [b_start, b_end) overlap when
a_start < b_end and b_start < a_end. Back-to-back bookings do not overlap.
"""

from datetime import datetime
from typing import Iterable, Optional

from vetscheduler.schemas.booking_schema import ACTIVE_STATUSES, Booking
from vetscheduler.store.base import BOOKINGS, RecordOperations


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    return a_start < b_end and b_start < a_end


def find_conflicts(
    bookings: Iterable[Booking],
    start: datetime,
    end: datetime,
    exclude_booking: Optional[str] = None,
) -> list[Booking]:
    """Return the active bookings whose interval intersects [start, end)."""
    return [
        b for b in bookings
        if b.is_active
        and b.id != exclude_booking
        and intervals_overlap(start, end, b.scheduled_at, b.ends_at)
    ]


def load_active_bookings(
    ops: RecordOperations,
    professional_id: str,
    range_start: datetime,
    range_end: datetime,
) -> list[Booking]:
    """
    Active bookings of a professional that intersect [range_start, range_end).

    Rows carry their own ``ends_at``, so a booking that started before the
    range and is still running is matched regardless of its length.
    """
    rows = ops.query(
        BOOKINGS,
        {
            "professional_id": professional_id,
            "status": ["in", [s.value for s in ACTIVE_STATUSES]],
            "scheduled_at": ["<", range_end],
            "ends_at": [">", range_start],
        },
        order_by="scheduled_at",
    )
    return [Booking.model_validate(row) for row in rows]
