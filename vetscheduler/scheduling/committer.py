"""
Booking committer.

Reserves a slot as a pending booking. The availability list a client saw
earlier is only a hint: inside one store transaction the committer re-reads
the professional's windows and active bookings, rejects the request on any
overlap and inserts the booking. Either the booking row exists afterwards
or nothing was written.

The transaction first locks the professional's row, so two commits for the
same agenda run their re-check and insert one after the other, also across
processes sharing a SQL database.
"""

from datetime import date, timedelta
from typing import Any, Optional, Union

from vetscheduler.config import AppConfig, settings
from vetscheduler.errors import NotFound, SlotConflict, ValidationError
from vetscheduler.events import EventBus
from vetscheduler.logging_context import get_request_logger
from vetscheduler.schemas.booking_schema import Booking, BookingStatus
from vetscheduler.schemas.catalog_schema import Client, Service, Subject
from vetscheduler.schemas.event_schema import BookingCreated
from vetscheduler.scheduling.overlap import find_conflicts, load_active_bookings
from vetscheduler.scheduling.slots import (
    coerce_date,
    load_professional,
    load_windows,
    professional_timezone,
    window_for_slot,
)
from vetscheduler.store.base import BOOKINGS, CLIENTS, SERVICES, SUBJECTS, RecordOperations, RecordStore
from vetscheduler.utils import day_of_week, local_to_utc, to_minutes

logger = get_request_logger(__name__)


def _require(ops: RecordOperations, table: str, entity: str, record_id: str) -> dict[str, Any]:
    row = ops.get(table, record_id)
    if row is None:
        raise NotFound(entity, record_id)
    return row


class BookingCommitter:
    """Turns a selected slot into a pending booking, or refuses with SlotConflict."""

    def __init__(
        self,
        store: RecordStore,
        events: Optional[EventBus] = None,
        config: AppConfig = settings,
    ) -> None:
        self._store = store
        self._events = events or EventBus()
        self._config = config

    def commit(
        self,
        professional_id: str,
        client_id: str,
        subject_id: str,
        service_id: str,
        target_date: Union[str, date],
        slot_start_time: Any,
    ) -> Booking:
        """
        Create a pending booking for the slot.

        Raises:
            ValidationError: If the date or slot time is malformed.
            NotFound: If a prerequisite record is missing or no window offers the slot.
            SlotConflict: If an active booking overlaps the requested interval.
        """
        day = coerce_date(target_date)
        try:
            slot_minute = to_minutes(slot_start_time)
        except (TypeError, ValueError, AttributeError):
            raise ValidationError(
                {"slot_start_time": f"Invalid time {slot_start_time!r}, expected HH:MM"}
            ) from None

        with self._store.transaction() as tx:
            # Row lock on the professional serializes commits for one agenda.
            professional = load_professional(tx, professional_id, for_update=True)
            Client.model_validate(_require(tx, CLIENTS, "client", client_id))
            subject = Subject.model_validate(_require(tx, SUBJECTS, "subject", subject_id))
            if subject.client_id != client_id:
                raise NotFound(
                    "subject", subject_id,
                    f"subject {subject_id!r} does not belong to client {client_id!r}.",
                )
            service = Service.model_validate(_require(tx, SERVICES, "service", service_id))
            if service.professional_id != professional_id:
                raise NotFound(
                    "service", service_id,
                    f"service {service_id!r} is not offered by professional {professional_id!r}.",
                )

            windows = load_windows(tx, professional_id, day_of_week(day))
            if window_for_slot(windows, slot_minute, service.duration_minutes) is None:
                raise NotFound(
                    "availability", professional_id,
                    f"No availability window offers {slot_start_time} on {day.isoformat()} "
                    f"for a {service.duration_minutes}-minute service.",
                )

            tz = professional_timezone(professional, self._config)
            start = local_to_utc(day, slot_minute, tz)
            end = start + timedelta(minutes=service.duration_minutes)
            active = load_active_bookings(tx, professional_id, start, end)
            conflicts = find_conflicts(active, start, end)
            if conflicts:
                logger.warning(
                    "Slot conflict for %s at %s: overlaps %s",
                    professional_id, start.isoformat(), [b.id for b in conflicts],
                )
                raise SlotConflict(professional_id, [b.id for b in conflicts])

            row = tx.insert(BOOKINGS, {
                "professional_id": professional_id,
                "client_id": client_id,
                "subject_id": subject_id,
                "service_id": service_id,
                "scheduled_at": start,
                "ends_at": end,
                "duration_minutes": service.duration_minutes,
                "status": BookingStatus.PENDING.value,
                "amount_paid": 0.0,
            })

        booking = Booking.model_validate(row)
        logger.info(
            "Booking %s created: professional=%s client=%s at %s (%d min)",
            booking.id, professional_id, client_id,
            booking.scheduled_at.isoformat(), booking.duration_minutes,
        )
        self._events.publish(BookingCreated(
            booking_id=booking.id,
            professional_id=booking.professional_id,
            client_id=booking.client_id,
            scheduled_at=booking.scheduled_at,
        ))
        return booking
