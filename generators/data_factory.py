"""
Seed data generator for the Checkup Scheduler.
Produces a reproducible clinic: check items, groups, a week of slots and
a population of individuals, all as validated pydantic models.
"""

import json
import logging
import random
from typing import Dict, List, Tuple, Any
from datetime import date, datetime, time, timedelta
from pydantic import ValidationError

from models import CheckItem, CheckupGroup, Individual, Sex, Slot

logger = logging.getLogger(__name__)

CHECK_ITEMS = [
    ("HEIGHT", "Height", None, "cm"),
    ("WEIGHT", "Weight", None, "kg"),
    ("BP", "Blood Pressure", "90-139/60-89", "mmHg"),
    ("HR", "Heart Rate", "60-100", "bpm"),
    ("CBC", "Complete Blood Count", None, None),
    ("GLU", "Fasting Glucose", "3.9-6.1", "mmol/L"),
    ("ECG", "Electrocardiogram", None, None),
    ("CXR", "Chest X-Ray", None, None),
]

GROUPS = [
    ("grp_basic", "BASIC", "Basic Annual Checkup", ["HEIGHT", "WEIGHT", "BP", "HR"]),
    ("grp_cardio", "CARDIO", "Cardiovascular Screening", ["BP", "HR", "ECG", "GLU"]),
    ("grp_full", "FULL", "Comprehensive Checkup", ["HEIGHT", "WEIGHT", "BP", "CBC", "GLU", "ECG", "CXR"]),
]

# (start hour, duration hours, capacity) per group per day
SESSIONS = [(8, 2, 6), (10, 2, 4), (14, 2, 5)]

FIRST_NAMES = ["Li", "Wang", "Zhang", "Liu", "Chen", "Yang", "Zhao", "Huang", "Zhou", "Wu"]
GIVEN_NAMES = ["Wei", "Fang", "Min", "Jing", "Lei", "Yan", "Jun", "Tao", "Hui", "Ping"]


class DataGenerator:
    def __init__(self, seed: int = 42):
        self.rng = random.Random(seed)

    def generate_catalog(self, start_date: date, days: int = 5, cycle: str = "default") -> Tuple[List[CheckItem], List[CheckupGroup], List[Slot]]:
        items = [CheckItem(code=c, name=n, reference_value=r, unit=u) for c, n, r, u in CHECK_ITEMS]
        groups = [CheckupGroup(id=gid, code=code, name=name, item_codes=codes) for gid, code, name, codes in GROUPS]

        slots = []
        for offset in range(days):
            day = start_date + timedelta(days=offset)
            for group in groups:
                for hour, length, capacity in SESSIONS:
                    starts_at = datetime.combine(day, time(hour, 0))
                    slots.append(Slot(
                        id=f"slot_{group.code.lower()}_{day.isoformat()}_{hour:02d}",
                        group_id=group.id,
                        cycle=cycle,
                        starts_at=starts_at,
                        ends_at=starts_at + timedelta(hours=length),
                        capacity=capacity
                    ))

        logger.info(f"Generated {len(groups)} groups and {len(slots)} slots over {days} days")
        return items, groups, slots

    def generate_individuals(self, count: int) -> List[Individual]:
        individuals = []
        for i in range(count):
            name = f"{self.rng.choice(FIRST_NAMES)} {self.rng.choice(GIVEN_NAMES)}"
            individuals.append(Individual(
                id=f"ind_{i + 1:04d}",
                name=name,
                sex=self.rng.choice([Sex.MALE, Sex.FEMALE]),
                birth_date=date(1950 + self.rng.randint(0, 55), self.rng.randint(1, 12), self.rng.randint(1, 28)),
                email=f"ind_{i + 1:04d}@example.com"
            ))
        return individuals


def save_seed_data(data: Dict[str, List[Any]], filename: str) -> None:
    """Helper to save generated data so runs are repeatable."""
    serializable = {key: [item.model_dump(mode='json') for item in val] for key, val in data.items()}
    with open(filename, 'w') as f:
        json.dump(serializable, f, indent=2)
    logger.info(f"💾 Saved seed data to {filename}")


def load_seed_data(filename: str) -> Dict[str, List[Any]]:
    """
    Load JSON seed data and reconstruct pydantic objects.
    Returns an empty dict if the file is missing or invalid.
    """
    try:
        with open(filename, 'r') as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        logger.warning(f"⚠️ Seed file {filename} not found or invalid. Falling back to generator.")
        return {}

    try:
        loaded = {
            "items": [CheckItem(**item) for item in data.get('items', [])],
            "groups": [CheckupGroup(**item) for item in data.get('groups', [])],
            "slots": [Slot(**item) for item in data.get('slots', [])],
            "individuals": [Individual(**item) for item in data.get('individuals', [])],
        }
    except ValidationError as e:
        logger.error(f"❌ Seed file {filename} failed validation: {e}")
        return {}

    logger.info(f"📂 Loaded {len(loaded['slots'])} slots and {len(loaded['individuals'])} individuals from {filename}")
    return loaded
