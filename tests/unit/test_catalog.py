"""
Tests for SlotCatalog capacity bookkeeping.
"""

from datetime import datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from models import CheckupGroup, Slot
from scheduler.catalog import SlotCatalog
from scheduler.errors import CapacityExceeded, InvalidRelease, InvariantViolation, NotFound

BASE = datetime(2025, 3, 1, 8, 0)


def build_catalog(capacity: int = 3) -> SlotCatalog:
    catalog = SlotCatalog()
    catalog.add_group(CheckupGroup(id="g", code="G", name="Group", item_codes=["BP"]))
    catalog.add_slot(Slot(id="s", group_id="g", starts_at=BASE, ends_at=BASE + timedelta(hours=1), capacity=capacity))
    return catalog


class TestRegistration:
    def test_slot_requires_known_group(self) -> None:
        catalog = SlotCatalog()
        with pytest.raises(NotFound):
            catalog.add_slot(Slot(id="s", group_id="missing", starts_at=BASE, ends_at=BASE + timedelta(hours=1), capacity=1))

    def test_duplicate_slot_rejected(self) -> None:
        catalog = build_catalog()
        with pytest.raises(ValueError):
            catalog.add_slot(catalog.get_slot("s"))

    def test_duplicate_group_code_rejected(self) -> None:
        catalog = build_catalog()
        with pytest.raises(ValueError, match="code"):
            catalog.add_group(CheckupGroup(id="g2", code="G", name="Other", item_codes=["BP"]))

    def test_slots_for_group_sorted_by_start(self) -> None:
        catalog = build_catalog()
        earlier = Slot(id="early", group_id="g", starts_at=BASE - timedelta(hours=2),
                       ends_at=BASE - timedelta(hours=1), capacity=1)
        catalog.add_slot(earlier)
        assert [s.id for s in catalog.slots_for_group("g")] == ["early", "s"]

    def test_unknown_slot_reads_raise_not_found(self) -> None:
        catalog = build_catalog()
        with pytest.raises(NotFound):
            catalog.remaining("nope")
        with pytest.raises(NotFound):
            catalog.reserve("nope")


class TestReserveRelease:
    def test_reserve_until_full(self) -> None:
        catalog = build_catalog(capacity=2)
        first = catalog.reserve("s")
        second = catalog.reserve("s")
        assert second.sequence > first.sequence
        assert catalog.remaining("s") == 0

        with pytest.raises(CapacityExceeded) as exc_info:
            catalog.reserve("s")
        assert exc_info.value.capacity == 2
        assert exc_info.value.booked == 2
        assert catalog.booked_count("s") == 2

    def test_multi_place_reservation_is_all_or_nothing(self) -> None:
        catalog = build_catalog(capacity=3)
        catalog.reserve("s", count=2)
        with pytest.raises(CapacityExceeded):
            catalog.reserve("s", count=2)
        assert catalog.booked_count("s") == 2

    def test_zero_capacity_slot_never_reserves(self) -> None:
        catalog = build_catalog(capacity=0)
        with pytest.raises(CapacityExceeded):
            catalog.reserve("s")

    def test_release_restores_capacity(self) -> None:
        catalog = build_catalog(capacity=1)
        catalog.reserve("s")
        catalog.release("s")
        assert catalog.remaining("s") == 1

    def test_release_below_zero_is_fatal(self) -> None:
        catalog = build_catalog()
        with pytest.raises(InvalidRelease) as exc_info:
            catalog.release("s")
        assert isinstance(exc_info.value, InvariantViolation)
        assert catalog.booked_count("s") == 0

    def test_count_must_be_positive(self) -> None:
        catalog = build_catalog()
        with pytest.raises(ValueError):
            catalog.reserve("s", count=0)
        with pytest.raises(ValueError):
            catalog.release("s", count=0)

    @given(ops=st.lists(st.booleans(), max_size=60), capacity=st.integers(min_value=0, max_value=8))
    def test_counter_stays_within_bounds(self, ops: list[bool], capacity: int) -> None:
        """Property: any reserve/release sequence keeps 0 <= booked <= capacity."""
        catalog = build_catalog(capacity=capacity)
        expected = 0
        for is_reserve in ops:
            if is_reserve:
                try:
                    catalog.reserve("s")
                    expected += 1
                except CapacityExceeded:
                    assert expected == capacity
            else:
                try:
                    catalog.release("s")
                    expected -= 1
                except InvalidRelease:
                    assert expected == 0
            assert 0 <= catalog.booked_count("s") <= capacity
            assert catalog.booked_count("s") == expected


class TestCapacityChanges:
    def test_reducing_below_booked_reports_overbooking(self) -> None:
        catalog = build_catalog(capacity=5)
        for _ in range(5):
            catalog.reserve("s")
        catalog.set_capacity("s", 3)
        assert catalog.capacity_of("s") == 3
        assert catalog.overbooked_by("s") == 2
        assert catalog.remaining("s") == 0

    def test_negative_capacity_rejected(self) -> None:
        catalog = build_catalog()
        with pytest.raises(ValueError):
            catalog.set_capacity("s", -1)
