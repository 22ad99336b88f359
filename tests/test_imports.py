"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""


class TestSchemaImports:
    def test_import_booking_schema(self):
        from vetscheduler.schemas.booking_schema import ACTIVE_STATUSES, BookingStatus
        assert BookingStatus.PENDING == "pending"
        assert BookingStatus.CANCELED not in ACTIVE_STATUSES

    def test_import_catalog_schema(self):
        from vetscheduler.schemas.catalog_schema import Client, Professional, Service, Subject
        assert Professional(id="vet-1", name="Dr. Ana").timezone is None

    def test_import_event_schema(self):
        from vetscheduler.schemas.event_schema import BookingCreated, SchedulerEvent
        assert issubclass(BookingCreated, SchedulerEvent)


class TestSchedulingImports:
    def test_scheduling_reexports(self):
        from vetscheduler.scheduling import (
            AvailabilityWindowManager, BookingCommitter, BookingLifecycle,
            Party, Scheduler, SlotGenerator, generate_slots,
        )
        assert Party.CLIENT == "client"
        assert callable(generate_slots)

    def test_lifecycle_table_is_populated(self):
        from vetscheduler.scheduling.lifecycle import BookingLifecycle
        assert len(BookingLifecycle.TRANSITIONS) == 4


class TestStoreImports:
    def test_registered_backends(self):
        from vetscheduler.store import get_registered_stores
        assert {"memory", "sql"} <= set(get_registered_stores())

    def test_sql_metadata_has_all_tables(self):
        from vetscheduler.store.base import TABLES
        from vetscheduler.store.sql import metadata
        assert set(TABLES) == set(metadata.tables)


class TestPackageImports:
    def test_top_level_reexports(self):
        import vetscheduler
        for name in vetscheduler.__all__:
            assert hasattr(vetscheduler, name), name

    def test_errors_share_base_class(self):
        from vetscheduler import (
            IllegalTransition, NotFound, PermissionDenied, SchedulerError,
            SlotConflict, StoreUnavailable, ValidationError,
        )
        for cls in (IllegalTransition, NotFound, PermissionDenied, SlotConflict, StoreUnavailable, ValidationError):
            assert issubclass(cls, SchedulerError)
