"""
Availability window manager.

CRUD over a professional's recurring weekly windows. Every write is gated
by validation; all violated fields are reported together so a form can
highlight each of them.

Deleting a window is unconditional. Future bookings that fell inside it are
left untouched and reported as orphaned through the event bus.
"""

from datetime import datetime, time
from typing import Any, Callable, Optional

from vetscheduler.config import AppConfig, settings
from vetscheduler.errors import NotFound, ValidationError
from vetscheduler.events import EventBus
from vetscheduler.logging_context import get_request_logger
from vetscheduler.schemas.availability_schema import AvailabilityWindow
from vetscheduler.schemas.booking_schema import ACTIVE_STATUSES, Booking
from vetscheduler.schemas.event_schema import AvailabilityWindowDeleted
from vetscheduler.scheduling.slots import load_professional, professional_timezone
from vetscheduler.store.base import AVAILABILITY_WINDOWS, BOOKINGS, RecordOperations, RecordStore
from vetscheduler.utils import DAY_NAMES, day_of_week, parse_hhmm, to_minutes, utc_now, utc_to_local

logger = get_request_logger(__name__)

EDITABLE_FIELDS = ("day_of_week", "start_time", "end_time", "slot_interval_minutes")


def _validate_day(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
        return f"Must be an integer from 0 (Sunday) to 6 (Saturday), got {value!r}"
    return None


def _parse_time(value: Any) -> Optional[time]:
    try:
        return parse_hhmm(value)
    except (TypeError, ValueError, AttributeError):
        return None


class AvailabilityWindowManager:
    """Creates, edits, deletes and lists availability windows."""

    def __init__(
        self,
        store: RecordStore,
        events: Optional[EventBus] = None,
        config: AppConfig = settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._events = events or EventBus()
        self._config = config
        self._clock = clock

    def validate(
        self,
        ops: RecordOperations,
        professional_id: str,
        values: dict[str, Any],
        exclude_window: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Validate window fields and return them normalized.

        Raises:
            ValidationError: Listing every violated field.
        """
        errors: dict[str, str] = {}
        sched = self._config.scheduling

        day_error = _validate_day(values.get("day_of_week"))
        if day_error:
            errors["day_of_week"] = day_error

        start = _parse_time(values.get("start_time"))
        end = _parse_time(values.get("end_time"))
        if start is None:
            errors["start_time"] = "Invalid format. Use HH:MM"
        if end is None:
            errors["end_time"] = "Invalid format. Use HH:MM"
        if start is not None and end is not None and to_minutes(end) <= to_minutes(start):
            errors["end_time"] = "End time must be later than start time"

        interval = values.get("slot_interval_minutes")
        if (
            isinstance(interval, bool)
            or not isinstance(interval, int)
            or not sched.min_slot_interval_minutes <= interval <= sched.max_slot_interval_minutes
        ):
            errors["slot_interval_minutes"] = (
                f"Must be between {sched.min_slot_interval_minutes} and "
                f"{sched.max_slot_interval_minutes} minutes, got {interval!r}"
            )

        if not errors:
            clash = self._find_overlapping_window(
                ops, professional_id, values["day_of_week"], start, end, exclude_window
            )
            if clash is not None:
                errors["start_time"] = (
                    f"Overlaps the existing {DAY_NAMES[clash.day_of_week]} window "
                    f"{clash.start_time:%H:%M}-{clash.end_time:%H:%M}"
                )

        if errors:
            raise ValidationError(errors)

        return {
            "day_of_week": values["day_of_week"],
            "start_time": start,
            "end_time": end,
            "slot_interval_minutes": interval,
        }

    @staticmethod
    def _find_overlapping_window(
        ops: RecordOperations,
        professional_id: str,
        weekday: int,
        start: time,
        end: time,
        exclude_window: Optional[str],
    ) -> Optional[AvailabilityWindow]:
        rows = ops.query(
            AVAILABILITY_WINDOWS, {"professional_id": professional_id, "day_of_week": weekday}
        )
        for row in rows:
            window = AvailabilityWindow.model_validate(row)
            if window.id == exclude_window:
                continue
            if to_minutes(start) < window.end_minutes and window.start_minutes < to_minutes(end):
                return window
        return None

    def create_window(
        self,
        professional_id: str,
        day_of_week: int,
        start_time: Any,
        end_time: Any,
        slot_interval_minutes: Optional[int] = None,
    ) -> AvailabilityWindow:
        """
        Add a weekly window for a professional.

        Raises:
            NotFound: If the professional does not exist.
            ValidationError: If any field is invalid or the window overlaps another.
        """
        if slot_interval_minutes is None:
            slot_interval_minutes = self._config.scheduling.default_slot_interval_minutes
        with self._store.transaction() as tx:
            load_professional(tx, professional_id)
            clean = self.validate(
                tx,
                professional_id,
                {
                    "day_of_week": day_of_week,
                    "start_time": start_time,
                    "end_time": end_time,
                    "slot_interval_minutes": slot_interval_minutes,
                },
            )
            row = tx.insert(AVAILABILITY_WINDOWS, {"professional_id": professional_id, **clean})
        window = AvailabilityWindow.model_validate(row)
        logger.info(
            "Window %s created for %s: %s %s-%s every %d min",
            window.id, professional_id, window.day_name,
            f"{window.start_time:%H:%M}", f"{window.end_time:%H:%M}", window.slot_interval_minutes,
        )
        return window

    def update_window(self, window_id: str, **changes: Any) -> AvailabilityWindow:
        """
        Edit a window. Unchanged fields keep their current values.

        Raises:
            NotFound: If the window does not exist.
            ValidationError: If a field is unknown or invalid after merging.
        """
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError({name: "Field cannot be changed" for name in unknown})

        with self._store.transaction() as tx:
            row = tx.get(AVAILABILITY_WINDOWS, window_id)
            if row is None:
                raise NotFound("availability_window", window_id)
            current = AvailabilityWindow.model_validate(row)
            merged = {name: getattr(current, name) for name in EDITABLE_FIELDS}
            merged.update(changes)
            clean = self.validate(tx, current.professional_id, merged, exclude_window=window_id)
            updated = tx.update(AVAILABILITY_WINDOWS, window_id, clean)
        window = AvailabilityWindow.model_validate(updated)
        logger.info("Window %s updated: %s", window_id, sorted(changes))
        return window

    def delete_window(self, window_id: str) -> None:
        """
        Remove a window. Future bookings it covered stay as they are.

        Raises:
            NotFound: If the window does not exist.
        """
        with self._store.transaction() as tx:
            row = tx.get(AVAILABILITY_WINDOWS, window_id)
            if row is None:
                raise NotFound("availability_window", window_id)
            window = AvailabilityWindow.model_validate(row)
            orphaned = self._covered_future_bookings(tx, window)
            tx.delete(AVAILABILITY_WINDOWS, window_id)

        if orphaned:
            logger.warning(
                "Window %s deleted with %d future booking(s) left outside availability: %s",
                window_id, len(orphaned), [b.id for b in orphaned],
            )
        else:
            logger.info("Window %s deleted", window_id)

        self._events.publish(AvailabilityWindowDeleted(
            window_id=window.id,
            professional_id=window.professional_id,
            orphaned_booking_ids=[b.id for b in orphaned],
        ))

    def _covered_future_bookings(
        self, ops: RecordOperations, window: AvailabilityWindow
    ) -> list[Booking]:
        """Active bookings from now on whose local start falls inside ``window``."""
        tz = professional_timezone(load_professional(ops, window.professional_id), self._config)
        rows = ops.query(
            BOOKINGS,
            {
                "professional_id": window.professional_id,
                "status": ["in", [s.value for s in ACTIVE_STATUSES]],
                "scheduled_at": [">=", self._clock()],
            },
            order_by="scheduled_at",
        )
        covered = []
        for row in rows:
            booking = Booking.model_validate(row)
            local = utc_to_local(booking.scheduled_at, tz)
            minute = local.hour * 60 + local.minute
            if (
                day_of_week(local.date()) == window.day_of_week
                and window.start_minutes <= minute < window.end_minutes
            ):
                covered.append(booking)
        return covered

    def get_window(self, window_id: str) -> AvailabilityWindow:
        row = self._store.get(AVAILABILITY_WINDOWS, window_id)
        if row is None:
            raise NotFound("availability_window", window_id)
        return AvailabilityWindow.model_validate(row)

    def list_windows(self, professional_id: str) -> list[AvailabilityWindow]:
        """All windows of a professional sorted by (day_of_week, start_time)."""
        rows = self._store.query(AVAILABILITY_WINDOWS, {"professional_id": professional_id})
        windows = [AvailabilityWindow.model_validate(row) for row in rows]
        return sorted(windows, key=lambda w: (w.day_of_week, w.start_time))
