"""
Slot generation.

Turns a professional's weekly availability windows into the ordered list of
start times a service of a given duration can be booked at on a date, and
flags the ones already taken by active bookings.

This is the only slot computation in the package. The committer checks a
requested start time through ``window_for_slot``, which uses the same
candidate generation.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, Optional, Union

import pytz

from vetscheduler.config import AppConfig, settings
from vetscheduler.errors import NotFound, ValidationError
from vetscheduler.schemas.availability_schema import AvailabilityWindow
from vetscheduler.schemas.booking_schema import Booking, SlotOption
from vetscheduler.schemas.catalog_schema import Professional
from vetscheduler.scheduling.overlap import find_conflicts, load_active_bookings
from vetscheduler.store.base import AVAILABILITY_WINDOWS, PROFESSIONALS, RecordOperations, RecordStore
from vetscheduler.utils import day_of_week, format_minutes, get_tz, local_day_bounds, local_to_utc, parse_date

logger = logging.getLogger(__name__)


def generate_candidates(windows: Iterable[AvailabilityWindow], duration_minutes: int) -> list[int]:
    """
    Candidate start times, in minutes since midnight, across all windows.

    Each window yields its start, then steps by its interval while the
    service still ends at or before the window's close. Results from several
    windows are merged, de-duplicated and sorted.
    """
    candidates: set[int] = set()
    for window in windows:
        if window.slot_interval_minutes <= 0:
            logger.warning(
                "Skipping window %s with non-positive interval %d",
                window.id, window.slot_interval_minutes,
            )
            continue
        minute = window.start_minutes
        while minute + duration_minutes <= window.end_minutes:
            candidates.add(minute)
            minute += window.slot_interval_minutes
    return sorted(candidates)


def generate_slots(
    windows: Iterable[AvailabilityWindow],
    bookings: Iterable[Booking],
    target_date: date,
    duration_minutes: int,
    tz: pytz.tzinfo.BaseTzInfo,
) -> list[SlotOption]:
    """Candidate slots for ``target_date`` with availability against ``bookings``."""
    booked = list(bookings)
    slots = []
    for minute in generate_candidates(windows, duration_minutes):
        start = local_to_utc(target_date, minute, tz)
        end = start + timedelta(minutes=duration_minutes)
        taken = bool(find_conflicts(booked, start, end))
        slots.append(SlotOption(time=format_minutes(minute), available=not taken))
    return slots


def load_windows(ops: RecordOperations, professional_id: str, weekday: int) -> list[AvailabilityWindow]:
    rows = ops.query(
        AVAILABILITY_WINDOWS,
        {"professional_id": professional_id, "day_of_week": weekday},
        order_by="start_time",
    )
    return [AvailabilityWindow.model_validate(row) for row in rows]


def load_professional(
    ops: RecordOperations, professional_id: str, for_update: bool = False
) -> Professional:
    if for_update:
        row = ops.get_for_update(PROFESSIONALS, professional_id)
    else:
        row = ops.get(PROFESSIONALS, professional_id)
    if row is None:
        raise NotFound("professional", professional_id)
    return Professional.model_validate(row)


def professional_timezone(
    professional: Professional, config: AppConfig = settings
) -> pytz.tzinfo.BaseTzInfo:
    """The professional's declared timezone, or the configured default."""
    name = professional.timezone or config.scheduling.timezone
    try:
        return get_tz(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(
            "Unknown timezone %r for professional %s, using %s",
            name, professional.id, config.scheduling.timezone,
        )
        return get_tz(config.scheduling.timezone)


def coerce_date(value: Union[str, date], field_name: str = "date") -> date:
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise ValidationError({field_name: f"Invalid date {value!r}, expected YYYY-MM-DD"}) from None


def check_duration(duration_minutes: int, field_name: str = "service_duration_minutes") -> None:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ValidationError({field_name: f"Must be a positive integer, got {duration_minutes!r}"})


class SlotGenerator:
    """Computes slots for a professional and date from the record store."""

    def __init__(self, store: RecordStore, config: AppConfig = settings) -> None:
        self._store = store
        self._config = config

    def compute(
        self,
        professional_id: str,
        target_date: Union[str, date],
        service_duration_minutes: int,
    ) -> list[SlotOption]:
        """
        Ordered slots for a date.

        Returns an empty list when the professional has no window on that
        day of the week.

        Raises:
            ValidationError: If the date or duration is malformed.
            NotFound: If the professional does not exist.
        """
        day = coerce_date(target_date)
        check_duration(service_duration_minutes)

        professional = load_professional(self._store, professional_id)
        tz = professional_timezone(professional, self._config)

        windows = load_windows(self._store, professional_id, day_of_week(day))
        if not windows:
            logger.debug("No availability for %s on %s", professional_id, day.isoformat())
            return []

        day_start, day_end = local_day_bounds(day, tz)
        bookings = load_active_bookings(self._store, professional_id, day_start, day_end)

        slots = generate_slots(windows, bookings, day, service_duration_minutes, tz)
        logger.debug(
            "Computed %d slot(s) for %s on %s (%d booked)",
            len(slots), professional_id, day.isoformat(), sum(not s.available for s in slots),
        )
        return slots


def bookable_date_range(today: date, config: AppConfig = settings) -> tuple[date, date]:
    """First and last dates the presentation layer offers for browsing."""
    return (
        today - timedelta(days=config.horizon.past_days),
        today + timedelta(days=config.horizon.future_days),
    )


def is_bookable_date(target: date, today: date, config: AppConfig = settings) -> bool:
    first, last = bookable_date_range(today, config)
    return first <= target <= last


def window_for_slot(
    windows: Iterable[AvailabilityWindow], minute: int, duration_minutes: int
) -> Optional[AvailabilityWindow]:
    """The window that generates ``minute`` as a candidate for the duration, if any."""
    for window in windows:
        if window.slot_interval_minutes <= 0:
            continue
        if minute in generate_candidates([window], duration_minutes):
            return window
    return None
