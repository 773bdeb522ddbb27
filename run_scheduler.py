"""
Main Execution Script for the Checkup Scheduler.
Simulates several registration desks booking concurrently against one
clinic, then records results, shrinks a slot and drains notifications.
"""

import os
import sys
import logging
import json
import random
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, timedelta

# Add current directory to path so imports work
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from generators.data_factory import DataGenerator, load_seed_data, save_seed_data
from models import AppointmentState, NotificationEvent
from scheduler.config import get_config
from scheduler.engine import SchedulingEngine
from scheduler.errors import SchedulingError
from scheduler.notifications import NotificationDispatcher

config = get_config()

# Configure logging
logging.basicConfig(
    level=config.logging.level,
    format=config.logging.format,
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")

# --- CONFIGURATION ---
SEED_FILENAME = "seed_data.json"
USE_SEED_FILE = True  # Set to False to force regeneration
DESK_COUNT = 4
INDIVIDUAL_COUNT = 120
# ---------------------


class ConsoleMailer:
    """Stand-in mail collaborator: prints instead of sending."""

    def __init__(self):
        self.sent = []
        self._lock = threading.Lock()

    def __call__(self, event: NotificationEvent) -> bool:
        with self._lock:
            self.sent.append(event)
        print(f"[MAIL] {event.kind.value:<16} appointment={event.appointment_id} to={event.individual_id}")
        return True


def desk_session(engine: SchedulingEngine, desk_id: int, queue, rng: random.Random):
    """One registration desk working through its share of walk-ins."""
    outcomes = {"booked": 0, "rejected": 0}
    slot_ids = [s.id for s in engine.catalog.slots()]
    for individual_id in queue:
        try:
            engine.book(individual_id, rng.choice(slot_ids))
            outcomes["booked"] += 1
        except SchedulingError as e:
            logger.debug(f"Desk {desk_id}: {individual_id} refused ({type(e).__name__})")
            outcomes["rejected"] += 1
    return desk_id, outcomes


def export_report(engine: SchedulingEngine, filename: str = "schedule_report.json"):
    """
    Serializes the engine state into JSON for the administration screens.
    """
    logger.info(f"💾 Exporting report to {filename}...")

    data = {
        "statistics": engine.statistics(),
        "schedule": {},
    }

    # Appointments grouped by slot
    for slot in sorted(engine.catalog.slots(), key=lambda s: s.starts_at):
        booked = [a for a in engine.ledger.for_slot(slot.id)]
        if not booked:
            continue
        data["schedule"][slot.id] = {
            "starts_at": slot.starts_at.isoformat(),
            "appointments": [a.model_dump(mode='json') for a in booked],
        }

    with open(filename, 'w') as f:
        json.dump(data, f, indent=2, default=str)
    logger.info("✅ Report exported.")


def main():
    logger.info("🚀 Starting Checkup Scheduler simulation...")
    start_date = date.today() + timedelta(days=1)

    # --- PHASE 1: DATA ACQUISITION (Seed file vs. Generator) ---
    seed = load_seed_data(SEED_FILENAME) if USE_SEED_FILE else {}
    if not seed:
        generator = DataGenerator()
        items, groups, slots = generator.generate_catalog(start_date)
        seed = {
            "items": items,
            "groups": groups,
            "slots": slots,
            "individuals": generator.generate_individuals(INDIVIDUAL_COUNT),
        }
        save_seed_data(seed, SEED_FILENAME)

    dispatcher = NotificationDispatcher(config.dispatcher)
    engine = SchedulingEngine(dispatcher=dispatcher, config=config.scheduler)
    for group in seed["groups"]:
        engine.add_group(group)
    for slot in seed["slots"]:
        engine.add_slot(slot)
    for individual in seed["individuals"]:
        engine.register_individual(individual)

    mailer = ConsoleMailer()
    dispatcher.start(mailer)

    # --- PHASE 2: CONCURRENT REGISTRATION DESKS ---
    logger.info(f"\n--- Phase 2: {DESK_COUNT} desks booking concurrently ---")
    individual_ids = [i.id for i in seed["individuals"]]
    # Every individual walks up twice to exercise conflict detection
    walk_ins = individual_ids + individual_ids
    random.Random(7).shuffle(walk_ins)
    queues = [walk_ins[d::DESK_COUNT] for d in range(DESK_COUNT)]

    with ThreadPoolExecutor(max_workers=DESK_COUNT) as pool:
        futures = [
            pool.submit(desk_session, engine, d, q, random.Random(d)) for d, q in enumerate(queues)
        ]
        for future in as_completed(futures):
            desk_id, outcomes = future.result()
            logger.info(f"Desk {desk_id}: {outcomes['booked']} booked, {outcomes['rejected']} refused")

    # --- PHASE 3: RESULTS & ADMINISTRATION ---
    confirmed = engine.appointments_by_state(AppointmentState.CONFIRMED)
    for appointment in confirmed[: len(confirmed) // 3]:
        engine.complete(appointment.id, result_ref=f"res_{appointment.id}")

    busiest = max(engine.catalog.slots(), key=lambda s: engine.catalog.booked_count(s.id))
    reduced = max(0, engine.catalog.booked_count(busiest.id) - 2)
    engine.set_capacity(busiest.id, reduced)
    forced = engine.rebalance_overbooking(busiest.id)
    logger.info(f"Outage on {busiest.id}: {len(forced)} appointment(s) force-cancelled")

    # --- PHASE 4: REPORTING ---
    dispatcher.stop(timeout=10)
    dispatcher.drain(mailer)
    stats = engine.statistics()

    print("\n" + "=" * 50)
    print("📊 FINAL EXECUTION REPORT")
    print("=" * 50)
    print(f"Appointments:          {stats['total_appointments']}")
    for state, count in stats['by_state'].items():
        print(f"  - {state:<18} {count}")
    print(f"Refused attempts:      {stats['rejected_attempts']} {stats['rejection_breakdown']}")
    print(f"Notifications sent:    {len(mailer.sent)} (queued: {stats['queued_notifications']})")

    export_report(engine)
    print("\n✅ Simulation Complete.")


if __name__ == "__main__":
    main()
