"""Appointment availability, slot generation and booking lifecycle."""

from vetscheduler.errors import (
    IllegalTransition,
    NotFound,
    PermissionDenied,
    SchedulerError,
    SlotConflict,
    StoreUnavailable,
    ValidationError,
)
from vetscheduler.events import EventBus
from vetscheduler.identity import RequestContext, Role
from vetscheduler.scheduling import Scheduler
from vetscheduler.store import create_store, create_store_from_config

__all__ = [
    "Scheduler", "EventBus", "RequestContext", "Role",
    "create_store", "create_store_from_config",
    "SchedulerError", "ValidationError", "NotFound", "SlotConflict",
    "IllegalTransition", "PermissionDenied", "StoreUnavailable",
]
