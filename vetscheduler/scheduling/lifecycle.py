"""
Booking status state machine.

Every allowed status change is listed explicitly together with the party
allowed to make it. Anything not in the table is rejected, which keeps
``completed`` and ``canceled`` terminal.

Usage:
    lifecycle = BookingLifecycle()
    lifecycle.check(booking, BookingStatus.CONFIRMED, Party.PROFESSIONAL)
"""

import logging
from dataclasses import dataclass
from enum import Enum

from vetscheduler.errors import IllegalTransition, PermissionDenied
from vetscheduler.identity import RequestContext, Role
from vetscheduler.schemas.booking_schema import Booking, BookingStatus

logger = logging.getLogger(__name__)


class Party(str, Enum):
    """Side of the booking the acting identity is on."""
    CLIENT = "client"
    PROFESSIONAL = "professional"


@dataclass(frozen=True)
class StatusTransition:
    """A single valid status change."""
    from_status: BookingStatus
    to_status: BookingStatus
    parties: frozenset[Party]


def _both() -> frozenset[Party]:
    return frozenset({Party.CLIENT, Party.PROFESSIONAL})


class BookingLifecycle:
    """Validates booking status changes against the transition table."""

    TRANSITIONS: list[StatusTransition] = [
        # --- Professional accepts ---
        StatusTransition(BookingStatus.PENDING, BookingStatus.CONFIRMED,
                         frozenset({Party.PROFESSIONAL})),

        # --- Either side cancels ---
        StatusTransition(BookingStatus.PENDING, BookingStatus.CANCELED, _both()),
        StatusTransition(BookingStatus.CONFIRMED, BookingStatus.CANCELED, _both()),

        # --- Professional marks done ---
        StatusTransition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED,
                         frozenset({Party.PROFESSIONAL})),
    ]

    def allowed_targets(self, current: BookingStatus) -> list[BookingStatus]:
        """Return every status reachable from ``current``."""
        return [t.to_status for t in self.TRANSITIONS if t.from_status == current]

    def is_terminal(self, status: BookingStatus) -> bool:
        return not self.allowed_targets(status)

    def check(self, booking: Booking, new_status: BookingStatus, party: Party) -> StatusTransition:
        """
        Validate a status change.

        Returns:
            The matching transition.

        Raises:
            IllegalTransition: If no transition leads from the current status to ``new_status``.
            PermissionDenied: If the transition exists but ``party`` may not perform it.
        """
        for t in self.TRANSITIONS:
            if t.from_status == booking.status and t.to_status == new_status:
                if party not in t.parties:
                    raise PermissionDenied(
                        f"The {party.value} cannot move booking {booking.id!r} "
                        f"from '{booking.status.value}' to '{new_status.value}'.",
                        entity_id=booking.id,
                    )
                logger.debug(
                    "Status transition allowed: %s -> %s by %s",
                    booking.status.value, new_status.value, party.value,
                )
                return t

        raise IllegalTransition(
            booking.id,
            booking.status.value,
            new_status.value,
            [s.value for s in self.allowed_targets(booking.status)],
        )


def resolve_party(booking: Booking, context: RequestContext) -> Party:
    """
    Which side of the booking the caller is on.

    Raises:
        PermissionDenied: If the caller is neither the booking's client nor its professional.
    """
    if context.role == Role.VETERINARY and context.identity_id == booking.professional_id:
        return Party.PROFESSIONAL
    if context.role == Role.TUTOR and context.identity_id == booking.client_id:
        return Party.CLIENT
    raise PermissionDenied(
        f"Identity {context.identity_id!r} ({context.role.value}) is not a party "
        f"to booking {booking.id!r}.",
        entity_id=booking.id,
    )
