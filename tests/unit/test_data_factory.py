"""
Tests for the seed data generator.
"""

import json
from datetime import date

from generators.data_factory import DataGenerator, load_seed_data, save_seed_data


def test_same_seed_same_population() -> None:
    first = DataGenerator(seed=7).generate_individuals(20)
    second = DataGenerator(seed=7).generate_individuals(20)
    assert [p.model_dump() for p in first] == [p.model_dump() for p in second]
    assert len({p.id for p in first}) == 20


def test_catalog_slots_reference_generated_groups() -> None:
    items, groups, slots = DataGenerator().generate_catalog(date(2025, 3, 3), days=2, cycle="2025")
    item_codes = {i.code for i in items}
    group_ids = {g.id for g in groups}

    assert all(set(g.item_codes) <= item_codes for g in groups)
    assert all(s.group_id in group_ids and s.cycle == "2025" for s in slots)
    assert len({s.id for s in slots}) == len(slots)


def test_seed_file_round_trip(tmp_path) -> None:
    generator = DataGenerator(seed=1)
    items, groups, slots = generator.generate_catalog(date(2025, 3, 3), days=1)
    data = {"items": items, "groups": groups, "slots": slots, "individuals": generator.generate_individuals(3)}
    path = tmp_path / "seed.json"

    save_seed_data(data, str(path))
    loaded = load_seed_data(str(path))

    assert [s.id for s in loaded["slots"]] == [s.id for s in slots]
    assert loaded["slots"][0].starts_at == slots[0].starts_at
    assert len(loaded["individuals"]) == 3


def test_missing_or_invalid_seed_file_yields_empty(tmp_path) -> None:
    assert load_seed_data(str(tmp_path / "absent.json")) == {}

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"slots": [{"id": "s", "capacity": -1}]}))
    assert load_seed_data(str(bad)) == {}
