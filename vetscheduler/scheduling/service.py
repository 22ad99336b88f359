"""
Scheduler facade: the public surface used by the presentation layer.

    scheduler = Scheduler(create_store("memory"))
    slots = scheduler.compute_slots("vet-1", "2025-03-17", 30)
    booking = scheduler.commit_booking("vet-1", "tutor-1", "pet-1", "svc-1", "2025-03-17", "08:00")
    scheduler.transition_booking(booking.id, "confirmed", vet_context)
"""

from datetime import date, datetime
from typing import Any, Iterable, Optional, Union

from vetscheduler.config import AppConfig, settings
from vetscheduler.errors import NotFound, PermissionDenied, ValidationError
from vetscheduler.events import EventBus
from vetscheduler.identity import RequestContext
from vetscheduler.logging_context import get_request_logger, request_id_scope
from vetscheduler.schemas.booking_schema import Booking, BookingStatus, SlotOption
from vetscheduler.schemas.event_schema import BookingStatusChanged
from vetscheduler.scheduling.availability import AvailabilityWindowManager
from vetscheduler.scheduling.committer import BookingCommitter
from vetscheduler.scheduling.lifecycle import BookingLifecycle, Party, resolve_party
from vetscheduler.scheduling.slots import SlotGenerator, bookable_date_range
from vetscheduler.store.base import BOOKINGS, RecordStore

logger = get_request_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _coerce_status(value: Union[str, BookingStatus]) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        valid = [s.value for s in BookingStatus]
        raise ValidationError({"status": f"Unknown status {value!r}. Valid: {valid}"}) from None


class Scheduler:
    """
    Availability & slot scheduler.

    Holds no per-request state: the caller's identity arrives as an explicit
    RequestContext on the operations that need it.
    """

    def __init__(
        self,
        store: RecordStore,
        events: Optional[EventBus] = None,
        config: AppConfig = settings,
    ) -> None:
        self.store = store
        self.events = events or EventBus()
        self.config = config
        self.slots = SlotGenerator(store, config)
        self.committer = BookingCommitter(store, self.events, config)
        self.windows = AvailabilityWindowManager(store, self.events, config)
        self.lifecycle = BookingLifecycle()

    # --- Entry points ---

    def compute_slots(
        self,
        professional_id: str,
        target_date: Union[str, date],
        service_duration_minutes: int,
    ) -> list[SlotOption]:
        """Ordered slots for the date; a hint, not a reservation."""
        return self.slots.compute(professional_id, target_date, service_duration_minutes)

    def commit_booking(
        self,
        professional_id: str,
        client_id: str,
        subject_id: str,
        service_id: str,
        target_date: Union[str, date],
        slot_start_time: Any,
    ) -> Booking:
        """Reserve a slot. Raises SlotConflict when someone else got there first."""
        return self.committer.commit(
            professional_id, client_id, subject_id, service_id, target_date, slot_start_time
        )

    def transition_booking(
        self,
        booking_id: str,
        new_status: Union[str, BookingStatus],
        acting_identity: RequestContext,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking to a new status.

        Args:
            booking_id: Booking to change.
            new_status: Target status.
            acting_identity: Caller; must be the booking's client or professional.
            reason: Optional cancellation reason, stored only when canceling.

        Raises:
            NotFound: If the booking does not exist.
            IllegalTransition: If the status change is not in the transition table.
            PermissionDenied: If the caller may not make this change.
        """
        with request_id_scope(acting_identity.request_id):
            target = _coerce_status(new_status)

            with self.store.transaction() as tx:
                row = tx.get(BOOKINGS, booking_id)
                if row is None:
                    raise NotFound("booking", booking_id)
                booking = Booking.model_validate(row)
                party = resolve_party(booking, acting_identity)
                self.lifecycle.check(booking, target, party)

                patch: dict[str, Any] = {"status": target.value}
                if target == BookingStatus.CANCELED and reason:
                    patch["cancellation_reason"] = reason.strip()
                updated = Booking.model_validate(tx.update(BOOKINGS, booking_id, patch))

            logger.info(
                "Booking %s: %s -> %s by %s %s",
                booking_id, booking.status.value, target.value, party.value, acting_identity.identity_id,
            )
            self.events.publish(BookingStatusChanged(
                booking_id=booking_id,
                old_status=booking.status,
                new_status=target,
            ))
            return updated

    # --- Bookings ---

    def get_booking(self, booking_id: str) -> Booking:
        row = self.store.get(BOOKINGS, booking_id)
        if row is None:
            raise NotFound("booking", booking_id)
        return Booking.model_validate(row)

    def list_bookings(
        self,
        professional_id: Optional[str] = None,
        client_id: Optional[str] = None,
        statuses: Optional[Iterable[Union[str, BookingStatus]]] = None,
    ) -> list[Booking]:
        """Bookings of a professional and/or client, oldest first."""
        filters: dict[str, Any] = {}
        if professional_id is not None:
            filters["professional_id"] = professional_id
        if client_id is not None:
            filters["client_id"] = client_id
        if statuses is not None:
            filters["status"] = ["in", [_coerce_status(s).value for s in statuses]]
        rows = self.store.query(BOOKINGS, filters, order_by="scheduled_at")
        return [Booking.model_validate(row) for row in rows]

    def rate_booking(
        self,
        booking_id: str,
        acting_identity: RequestContext,
        rating: int,
        comment: Optional[str] = None,
    ) -> Booking:
        """
        Record the client's review of a completed booking. A booking is rated once.

        Raises:
            NotFound: If the booking does not exist.
            PermissionDenied: If the caller is not the booking's client.
            ValidationError: If the rating is out of range, the booking is not
                completed or it was already rated.
        """
        with request_id_scope(acting_identity.request_id):
            valid = isinstance(rating, int) and not isinstance(rating, bool)
            if not valid or not MIN_RATING <= rating <= MAX_RATING:
                raise ValidationError({"rating": f"Must be an integer from {MIN_RATING} to {MAX_RATING}"})

            with self.store.transaction() as tx:
                row = tx.get(BOOKINGS, booking_id)
                if row is None:
                    raise NotFound("booking", booking_id)
                booking = Booking.model_validate(row)
                if resolve_party(booking, acting_identity) != Party.CLIENT:
                    raise PermissionDenied("Only the client can rate a booking.", entity_id=booking_id)
                if booking.status != BookingStatus.COMPLETED:
                    raise ValidationError({"status": "Only completed bookings can be rated"})
                if booking.rating is not None:
                    raise ValidationError({"rating": "Booking was already rated"})
                updated = tx.update(BOOKINGS, booking_id, {
                    "rating": rating,
                    "review_comment": comment.strip() if comment else None,
                })

            logger.info("Booking %s rated %d by %s", booking_id, rating, acting_identity.identity_id)
            return Booking.model_validate(updated)

    # --- Presentation helpers ---

    def bookable_date_range(self, today: Optional[date] = None) -> tuple[date, date]:
        return bookable_date_range(today or datetime.now().date(), self.config)
