"""
Offline console demo: walks through the scheduler against a seeded practice.

Uses the real slot generator, committer, lifecycle and event bus over the
in-memory store (or a SQL database when --database-url is given). No
network calls, no presentation layer. Designed for live demo walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario race
    python console_demo.py --scenario timezone --database-url sqlite:///demo.db
"""

import argparse
import threading
from datetime import date
from typing import Optional

from vetscheduler.config import settings
from vetscheduler.errors import SchedulerError, SlotConflict
from vetscheduler.events import EventBus
from vetscheduler.identity import RequestContext, Role
from vetscheduler.schemas.event_schema import SchedulerEvent
from vetscheduler.scheduling.service import Scheduler
from vetscheduler.store import create_store
from vetscheduler.store.base import CLIENTS, PROFESSIONALS, SERVICES, SUBJECTS, RecordStore

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_DATE = date(2025, 3, 17)  # a Monday


def seed_demo_practice(store: RecordStore, vet_timezone: Optional[str] = None) -> None:
    store.insert(PROFESSIONALS, {"id": "vet-ana", "name": "Dr. Ana Souza", "timezone": vet_timezone})
    store.insert(CLIENTS, {"id": "tutor-carla", "name": "Carla Mendes"})
    store.insert(CLIENTS, {"id": "tutor-diego", "name": "Diego Rocha"})
    store.insert(SUBJECTS, {"id": "pet-thor", "client_id": "tutor-carla", "name": "Thor", "species": "dog"})
    store.insert(SUBJECTS, {"id": "pet-mia", "client_id": "tutor-diego", "name": "Mia", "species": "cat"})
    store.insert(SERVICES, {
        "id": "svc-consult", "professional_id": "vet-ana", "name": "Consultation",
        "price": 150.0, "duration_minutes": 30, "description": "General check-up",
    })
    store.insert(SERVICES, {
        "id": "svc-vaccine", "professional_id": "vet-ana", "name": "Vaccination",
        "price": 90.0, "duration_minutes": 45, "description": None,
    })


class ConsoleSession:
    """Runs a scripted scheduling scenario and prints what happens."""

    def __init__(self, database_url: Optional[str] = None, vet_timezone: Optional[str] = None) -> None:
        if database_url:
            self.store = create_store("sql", url=database_url)
        else:
            self.store = create_store("memory")
        self.events = EventBus()
        self.events.subscribe(SchedulerEvent, self._on_event)
        seed_demo_practice(self.store, vet_timezone)
        self.scheduler = Scheduler(self.store, self.events)
        self.vet = RequestContext(identity_id="vet-ana", role=Role.VETERINARY)
        self.carla = RequestContext(identity_id="tutor-carla", role=Role.TUTOR)

    def say(self, text: str) -> None:
        print(f"{GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _on_event(self, event: SchedulerEvent) -> None:
        self.system_log(f"event {type(event).__name__}: {event.model_dump(exclude={'occurred_at'})}")

    def show_slots(self, duration: int) -> None:
        slots = self.scheduler.compute_slots("vet-ana", DEMO_DATE, duration)
        rendered = " ".join(
            f"{s.time}" if s.available else f"{RED}{s.time}{RESET}" for s in slots
        )
        print(f"{BLUE}[{DEMO_DATE.isoformat()} / {duration} min]{RESET} {rendered or '(no availability)'}")

    def _open_monday(self) -> None:
        self.scheduler.windows.create_window("vet-ana", 1, "08:00", "12:00", 30)
        self.scheduler.windows.create_window("vet-ana", 1, "14:00", "17:00", 45)

    def scenario_booking(self) -> None:
        self._open_monday()
        self.show_slots(30)

        booking = self.scheduler.commit_booking(
            "vet-ana", "tutor-carla", "pet-thor", "svc-consult", DEMO_DATE, "08:30"
        )
        self.say(f"Booked {booking.id[:8]} at {booking.scheduled_at:%H:%M} UTC ({booking.status.value})")
        self.show_slots(30)

        self.scheduler.transition_booking(booking.id, "confirmed", self.vet)
        self.scheduler.transition_booking(booking.id, "completed", self.vet)
        self.scheduler.rate_booking(booking.id, self.carla, 5, "Thor loved it")
        self.say("Confirmed, completed and rated.")

        try:
            self.scheduler.transition_booking(booking.id, "canceled", self.carla)
        except SchedulerError as exc:
            print(f"{YELLOW}Rejected: {exc.to_dict()}{RESET}")

    def scenario_race(self) -> None:
        self._open_monday()
        barrier = threading.Barrier(2)
        outcomes: dict[str, str] = {}

        def attempt(client_id: str, subject_id: str) -> None:
            barrier.wait()
            try:
                booking = self.scheduler.commit_booking(
                    "vet-ana", client_id, subject_id, "svc-consult", DEMO_DATE, "09:00"
                )
                outcomes[client_id] = f"booked {booking.id[:8]}"
            except SlotConflict as exc:
                outcomes[client_id] = f"conflict ({exc.kind})"

        threads = [
            threading.Thread(target=attempt, args=("tutor-carla", "pet-thor")),
            threading.Thread(target=attempt, args=("tutor-diego", "pet-mia")),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for client_id, outcome in sorted(outcomes.items()):
            self.say(f"{client_id}: {outcome}")
        self.show_slots(30)

    def scenario_timezone(self) -> None:
        self._open_monday()
        self.show_slots(45)
        booking = self.scheduler.commit_booking(
            "vet-ana", "tutor-carla", "pet-thor", "svc-vaccine", DEMO_DATE, "14:00"
        )
        self.say(f"Local 14:00 stored as {booking.scheduled_at.isoformat()}")
        self.show_slots(45)

    SCENARIOS = ("booking", "race", "timezone")

    def run_scenario(self, scenario: str) -> None:
        handler = getattr(self, f"scenario_{scenario}", None)
        if scenario not in self.SCENARIOS or handler is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  VET SCHEDULER - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  App: {settings.app_name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

        handler()

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Events published: {len(self.events.get_history())}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline scheduler demo")
    parser.add_argument(
        "--scenario",
        choices=ConsoleSession.SCENARIOS,
        default="booking",
        help="Scripted scenario to run",
    )
    parser.add_argument(
        "--database-url",
        default=settings.store.database_url or None,
        help="SQLAlchemy URL; the in-memory store is used when omitted",
    )
    args = parser.parse_args(argv)

    vet_timezone = "America/Sao_Paulo" if args.scenario == "timezone" else None
    ConsoleSession(args.database_url, vet_timezone).run_scenario(args.scenario)


if __name__ == "__main__":
    main()
