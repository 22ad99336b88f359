"""Error taxonomy for the scheduler.

Every error carries a ``kind`` plus the offending field or entity id so the
presentation layer can render a specific message without parsing strings.
"""

from typing import Any, Optional


class SchedulerError(Exception):
    """Base class for all scheduler errors."""

    kind = "scheduler_error"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.entity_id = entity_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "field": self.field,
            "entity_id": self.entity_id,
        }


class ValidationError(SchedulerError):
    """One or more input fields are invalid. ``errors`` maps field to message."""

    kind = "validation_error"

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        summary = "; ".join(f"{name}: {msg}" for name, msg in self.errors.items())
        first_field = next(iter(self.errors), None)
        super().__init__(f"Invalid input - {summary}", field=first_field)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = dict(self.errors)
        return data


class NotFound(SchedulerError):
    """A referenced professional, client, subject, service, window or booking is missing."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: Optional[str] = None, message: str = "") -> None:
        self.entity = entity
        super().__init__(
            message or f"{entity} {entity_id!r} not found.",
            field=entity,
            entity_id=entity_id,
        )


class SlotConflict(SchedulerError):
    """The requested interval overlaps an active booking. Re-fetch slots and retry."""

    kind = "slot_conflict"

    def __init__(self, professional_id: str, conflicting_ids: Optional[list[str]] = None) -> None:
        self.professional_id = professional_id
        self.conflicting_ids = list(conflicting_ids or [])
        super().__init__(
            f"Slot is no longer available for professional {professional_id!r}.",
            field="slot_start_time",
            entity_id=professional_id,
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["conflicting_ids"] = list(self.conflicting_ids)
        return data


class IllegalTransition(SchedulerError):
    """Status change not permitted from the booking's current status."""

    kind = "illegal_transition"

    def __init__(
        self,
        booking_id: str,
        current: str,
        requested: str,
        allowed: Optional[list[str]] = None,
    ) -> None:
        self.current = current
        self.requested = requested
        self.allowed = list(allowed or [])
        super().__init__(
            f"Cannot move booking {booking_id!r} from '{current}' to '{requested}'. "
            f"Allowed: {self.allowed}",
            field="status",
            entity_id=booking_id,
        )


class PermissionDenied(SchedulerError):
    """The acting identity is not entitled to perform the operation."""

    kind = "permission_denied"

    def __init__(self, message: str, entity_id: Optional[str] = None) -> None:
        super().__init__(message, field="acting_identity", entity_id=entity_id)


class StoreUnavailable(SchedulerError):
    """The record store failed. Raised from the underlying driver error."""

    kind = "store_unavailable"

    def __init__(self, message: str = "Record store is unavailable.") -> None:
        super().__init__(message)
