"""Shared test fixtures and helpers."""

from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytest

from vetscheduler.config import AppConfig, settings
from vetscheduler.events import EventBus
from vetscheduler.identity import RequestContext, Role
from vetscheduler.scheduling.service import Scheduler
from vetscheduler.store.base import (
    AVAILABILITY_WINDOWS,
    BOOKINGS,
    CLIENTS,
    PROFESSIONALS,
    SERVICES,
    SUBJECTS,
    RecordStore,
)
from vetscheduler.store.memory import InMemoryRecordStore
from vetscheduler.store.sql import SqlRecordStore

# 2025-03-17 is a Monday (day_of_week == 1)
MONDAY = date(2025, 3, 17)
TUESDAY = date(2025, 3, 18)
SUNDAY = date(2025, 3, 16)

VET_ID = "vet-1"
OTHER_VET_ID = "vet-2"
TUTOR_ID = "tutor-1"
OTHER_TUTOR_ID = "tutor-2"
PET_ID = "pet-1"
OTHER_PET_ID = "pet-2"
SERVICE_30 = "svc-consult"
SERVICE_45 = "svc-vaccine"
SERVICE_60 = "svc-surgery-eval"


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def sql_store():
    store = SqlRecordStore("sqlite://")
    yield store
    store.engine.dispose()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def seeded_store(store):
    seed_practice(store)
    return store


@pytest.fixture
def scheduler(seeded_store, events):
    return Scheduler(seeded_store, events)


@pytest.fixture
def vet_ctx():
    return RequestContext(identity_id=VET_ID, role=Role.VETERINARY)


@pytest.fixture
def tutor_ctx():
    return RequestContext(identity_id=TUTOR_ID, role=Role.TUTOR)


@pytest.fixture
def other_tutor_ctx():
    return RequestContext(identity_id=OTHER_TUTOR_ID, role=Role.TUTOR)


def make_config(**scheduling_overrides) -> AppConfig:
    """Copy of the loaded settings with scheduling values replaced."""
    return replace(settings, scheduling=replace(settings.scheduling, **scheduling_overrides))


def seed_practice(store: RecordStore, vet_timezone: Optional[str] = None) -> None:
    """Two vets, two tutors with one pet each, three services for vet-1."""
    store.insert(PROFESSIONALS, {"id": VET_ID, "name": "Dr. Ana Souza", "timezone": vet_timezone})
    store.insert(PROFESSIONALS, {"id": OTHER_VET_ID, "name": "Dr. Bruno Lima", "timezone": None})
    store.insert(CLIENTS, {"id": TUTOR_ID, "name": "Carla Mendes"})
    store.insert(CLIENTS, {"id": OTHER_TUTOR_ID, "name": "Diego Rocha"})
    store.insert(SUBJECTS, {"id": PET_ID, "client_id": TUTOR_ID, "name": "Thor", "species": "dog"})
    store.insert(SUBJECTS, {"id": OTHER_PET_ID, "client_id": OTHER_TUTOR_ID, "name": "Mia", "species": "cat"})
    store.insert(SERVICES, {
        "id": SERVICE_30, "professional_id": VET_ID, "name": "Consultation",
        "price": 150.0, "duration_minutes": 30, "description": None,
    })
    store.insert(SERVICES, {
        "id": SERVICE_45, "professional_id": VET_ID, "name": "Vaccination",
        "price": 90.0, "duration_minutes": 45, "description": None,
    })
    store.insert(SERVICES, {
        "id": SERVICE_60, "professional_id": VET_ID, "name": "Pre-surgical evaluation",
        "price": 300.0, "duration_minutes": 60, "description": None,
    })


def make_window(
    store: RecordStore,
    day_of_week: int = 1,
    start: str = "08:00",
    end: str = "09:00",
    interval: int = 30,
    professional_id: str = VET_ID,
) -> dict:
    """Insert a raw availability window row, bypassing validation."""
    return store.insert(AVAILABILITY_WINDOWS, {
        "professional_id": professional_id,
        "day_of_week": day_of_week,
        "start_time": time.fromisoformat(start),
        "end_time": time.fromisoformat(end),
        "slot_interval_minutes": interval,
    })


def make_booking(
    store: RecordStore,
    scheduled_at: datetime,
    duration: int = 30,
    status: str = "pending",
    professional_id: str = VET_ID,
    client_id: str = TUTOR_ID,
    subject_id: str = PET_ID,
    service_id: str = SERVICE_30,
) -> dict:
    """Insert a raw booking row, bypassing the committer."""
    return store.insert(BOOKINGS, {
        "professional_id": professional_id,
        "client_id": client_id,
        "subject_id": subject_id,
        "service_id": service_id,
        "scheduled_at": scheduled_at,
        "ends_at": scheduled_at + timedelta(minutes=duration),
        "duration_minutes": duration,
        "status": status,
        "amount_paid": 0.0,
    })


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def slot_times(slots) -> list[str]:
    return [s.time for s in slots]
