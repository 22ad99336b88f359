"""Tests for availability window management."""

from datetime import datetime, time, timezone

import pytest

from vetscheduler.errors import NotFound, ValidationError
from vetscheduler.events import EventBus
from vetscheduler.schemas.event_schema import AvailabilityWindowDeleted
from vetscheduler.scheduling.availability import AvailabilityWindowManager
from tests.conftest import OTHER_VET_ID, VET_ID, make_booking, utc

# Before every booking the tests create, so all of them count as future.
FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def manager(seeded_store, events):
    return AvailabilityWindowManager(seeded_store, events, clock=lambda: FIXED_NOW)


class TestCreateWindow:
    def test_valid_window_is_stored(self, manager):
        window = manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        assert window.id
        assert window.start_time == time(8, 0)
        assert window.end_time == time(12, 0)
        assert window.day_name == "Monday"
        assert manager.get_window(window.id) == window

    def test_interval_defaults_from_config(self, manager):
        window = manager.create_window(VET_ID, 2, "14:00", "18:00")
        assert window.slot_interval_minutes == 30

    def test_end_before_start_is_rejected(self, manager):
        with pytest.raises(ValidationError) as exc_info:
            manager.create_window(VET_ID, 1, "10:00", "09:00", 30)
        assert exc_info.value.errors == {"end_time": "End time must be later than start time"}

    def test_equal_start_and_end_is_rejected(self, manager):
        with pytest.raises(ValidationError) as exc_info:
            manager.create_window(VET_ID, 1, "10:00", "10:00", 30)
        assert "end_time" in exc_info.value.errors

    def test_bad_time_format(self, manager):
        with pytest.raises(ValidationError) as exc_info:
            manager.create_window(VET_ID, 1, "8am", "09:00", 30)
        assert exc_info.value.errors["start_time"] == "Invalid format. Use HH:MM"

    def test_every_invalid_field_is_reported(self, manager):
        with pytest.raises(ValidationError) as exc_info:
            manager.create_window(VET_ID, 7, "nope", "also-nope", 5)
        assert set(exc_info.value.errors) == {"day_of_week", "start_time", "end_time", "slot_interval_minutes"}

    @pytest.mark.parametrize("interval", [0, 9, 121, "30"])
    def test_interval_out_of_bounds(self, manager, interval):
        with pytest.raises(ValidationError) as exc_info:
            manager.create_window(VET_ID, 1, "08:00", "12:00", interval)
        assert "slot_interval_minutes" in exc_info.value.errors

    @pytest.mark.parametrize("day", [-1, 7, True, "monday"])
    def test_day_out_of_range(self, manager, day):
        with pytest.raises(ValidationError) as exc_info:
            manager.create_window(VET_ID, day, "08:00", "12:00", 30)
        assert "day_of_week" in exc_info.value.errors

    def test_overlapping_window_on_same_day_is_rejected(self, manager):
        manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        with pytest.raises(ValidationError) as exc_info:
            manager.create_window(VET_ID, 1, "11:00", "14:00", 30)
        assert "Overlaps" in exc_info.value.errors["start_time"]

    def test_adjacent_windows_are_allowed(self, manager):
        manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        manager.create_window(VET_ID, 1, "12:00", "14:00", 30)
        assert len(manager.list_windows(VET_ID)) == 2

    def test_same_hours_on_other_day_or_professional_are_allowed(self, manager):
        manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        manager.create_window(VET_ID, 2, "08:00", "12:00", 30)
        manager.create_window(OTHER_VET_ID, 1, "08:00", "12:00", 30)

    def test_unknown_professional(self, manager):
        with pytest.raises(NotFound):
            manager.create_window("vet-missing", 1, "08:00", "12:00", 30)


class TestUpdateWindow:
    def test_partial_update_keeps_other_fields(self, manager):
        window = manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        updated = manager.update_window(window.id, end_time="13:00")
        assert updated.start_time == time(8, 0)
        assert updated.end_time == time(13, 0)
        assert updated.slot_interval_minutes == 30

    def test_window_does_not_overlap_itself(self, manager):
        window = manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        updated = manager.update_window(window.id, start_time="09:00")
        assert updated.start_time == time(9, 0)

    def test_update_into_overlap_is_rejected(self, manager):
        manager.create_window(VET_ID, 1, "08:00", "10:00", 30)
        later = manager.create_window(VET_ID, 1, "14:00", "16:00", 30)
        with pytest.raises(ValidationError):
            manager.update_window(later.id, start_time="09:00")

    def test_update_is_validated_after_merge(self, manager):
        window = manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        with pytest.raises(ValidationError) as exc_info:
            manager.update_window(window.id, end_time="07:00")
        assert "end_time" in exc_info.value.errors
        assert manager.get_window(window.id).end_time == time(12, 0)

    def test_non_editable_field(self, manager):
        window = manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        with pytest.raises(ValidationError) as exc_info:
            manager.update_window(window.id, professional_id=OTHER_VET_ID)
        assert "professional_id" in exc_info.value.errors

    def test_missing_window(self, manager):
        with pytest.raises(NotFound):
            manager.update_window("w-missing", end_time="13:00")


class TestDeleteWindow:
    def test_deleted_window_is_gone(self, manager):
        window = manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        manager.delete_window(window.id)
        with pytest.raises(NotFound):
            manager.get_window(window.id)

    def test_missing_window(self, manager):
        with pytest.raises(NotFound):
            manager.delete_window("w-missing")

    def test_orphaned_bookings_are_reported(self, manager, seeded_store, events):
        window = manager.create_window(VET_ID, 1, "08:00", "12:00", 30)
        inside = make_booking(seeded_store, utc(2025, 3, 17, 9, 0))
        make_booking(seeded_store, utc(2025, 3, 17, 13, 0))
        make_booking(seeded_store, utc(2025, 3, 18, 9, 0))
        make_booking(seeded_store, utc(2025, 3, 24, 10, 0), status="canceled")
        past = make_booking(seeded_store, utc(2025, 2, 24, 9, 0))

        manager.delete_window(window.id)

        [event] = [e for e in events.get_history() if isinstance(e, AvailabilityWindowDeleted)]
        assert event.window_id == window.id
        assert event.orphaned_booking_ids == [inside["id"]]
        assert past["id"] not in event.orphaned_booking_ids
        # bookings themselves are left untouched
        assert seeded_store.get("bookings", inside["id"])["status"] == "pending"

    def test_delete_without_bookings_publishes_empty_list(self, manager, events):
        window = manager.create_window(VET_ID, 3, "08:00", "12:00", 30)
        manager.delete_window(window.id)
        assert events.get_history()[-1].orphaned_booking_ids == []


class TestListWindows:
    def test_sorted_by_day_then_start(self, manager):
        manager.create_window(VET_ID, 3, "08:00", "10:00", 30)
        manager.create_window(VET_ID, 1, "14:00", "16:00", 30)
        manager.create_window(VET_ID, 1, "08:00", "10:00", 30)
        listed = [(w.day_of_week, f"{w.start_time:%H:%M}") for w in manager.list_windows(VET_ID)]
        assert listed == [(1, "08:00"), (1, "14:00"), (3, "08:00")]

    def test_only_own_windows(self, manager):
        manager.create_window(OTHER_VET_ID, 1, "08:00", "10:00", 30)
        assert manager.list_windows(VET_ID) == []

    def test_windows_feed_slot_generation(self, seeded_store):
        from vetscheduler.scheduling.slots import SlotGenerator

        manager = AvailabilityWindowManager(seeded_store, EventBus())
        manager.create_window(VET_ID, 1, "08:00", "09:00", 30)
        slots = SlotGenerator(seeded_store).compute(VET_ID, "2025-03-17", 30)
        assert [s.time for s in slots] == ["08:00", "08:30"]
