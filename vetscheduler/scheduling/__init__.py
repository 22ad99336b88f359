from vetscheduler.scheduling.availability import AvailabilityWindowManager
from vetscheduler.scheduling.committer import BookingCommitter
from vetscheduler.scheduling.lifecycle import BookingLifecycle, Party
from vetscheduler.scheduling.service import Scheduler
from vetscheduler.scheduling.slots import SlotGenerator, generate_slots

__all__ = [
    "Scheduler",
    "SlotGenerator",
    "generate_slots",
    "BookingCommitter",
    "AvailabilityWindowManager",
    "BookingLifecycle",
    "Party",
]
