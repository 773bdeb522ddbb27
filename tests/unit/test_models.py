"""
Tests for the domain models.

Covers:
- Slot window and capacity validation
- CheckupGroup item ordering rules
- The appointment transition table
- NotificationEvent immutability
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from models import (
    ALLOWED_TRANSITIONS,
    Appointment,
    AppointmentState,
    CheckupGroup,
    Individual,
    NotificationEvent,
    NotificationKind,
    Slot,
)

BASE = datetime(2025, 3, 1, 8, 0)


class TestSlot:
    @given(capacity=st.integers(min_value=0, max_value=10_000), minutes=st.integers(min_value=1, max_value=600))
    def test_any_non_negative_capacity_and_positive_window_is_valid(self, capacity: int, minutes: int) -> None:
        slot = Slot(
            id="s", group_id="g", starts_at=BASE, ends_at=BASE + timedelta(minutes=minutes), capacity=capacity
        )
        assert slot.capacity == capacity
        assert slot.duration_minutes == minutes

    def test_negative_capacity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Slot(id="s", group_id="g", starts_at=BASE, ends_at=BASE + timedelta(hours=1), capacity=-1)

    def test_window_must_be_forward(self) -> None:
        with pytest.raises(ValidationError, match="strictly after"):
            Slot(id="s", group_id="g", starts_at=BASE, ends_at=BASE, capacity=1)

    def test_cycle_defaults(self) -> None:
        slot = Slot(id="s", group_id="g", starts_at=BASE, ends_at=BASE + timedelta(hours=1), capacity=1)
        assert slot.cycle == "default"

    def test_window_ends_must_agree_on_timezone(self) -> None:
        with pytest.raises(ValidationError, match="timezone"):
            Slot(
                id="s", group_id="g", starts_at=BASE,
                ends_at=(BASE + timedelta(hours=1)).replace(tzinfo=timezone.utc), capacity=1
            )


class TestCheckupGroup:
    def test_item_order_is_preserved(self) -> None:
        group = CheckupGroup(id="g", code="G", name="Group", item_codes=["BP", "HEIGHT", "CBC"])
        assert group.item_codes == ["BP", "HEIGHT", "CBC"]

    def test_repeated_items_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not repeat"):
            CheckupGroup(id="g", code="G", name="Group", item_codes=["BP", "BP"])

    def test_empty_group_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CheckupGroup(id="g", code="G", name="Group", item_codes=[])


class TestIndividual:
    def test_defaults_to_active(self) -> None:
        assert Individual(id="i", name="Someone").active is True

    def test_email_must_look_like_an_address(self) -> None:
        with pytest.raises(ValidationError):
            Individual(id="i", name="Someone", email="not-an-address")

    def test_birth_date_in_future_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Individual(id="i", name="Someone", birth_date=date.today() + timedelta(days=1))


class TestStateMachine:
    def test_terminal_states_have_no_exits(self) -> None:
        assert AppointmentState.COMPLETED.is_terminal
        assert AppointmentState.CANCELLED.is_terminal
        assert not AppointmentState.PENDING.is_terminal
        assert not AppointmentState.CONFIRMED.is_terminal

    def test_live_states(self) -> None:
        live = {s for s in AppointmentState if s.is_live}
        assert live == {AppointmentState.PENDING, AppointmentState.CONFIRMED}

    def test_completed_only_reachable_from_confirmed(self) -> None:
        sources = {s for s, targets in ALLOWED_TRANSITIONS.items() if AppointmentState.COMPLETED in targets}
        assert sources == {AppointmentState.CONFIRMED}

    def test_appointment_reports_allowed_moves(self) -> None:
        appointment = Appointment(
            id="a", individual_id="i", slot_id="s", cycle="c", created_at=BASE, updated_at=BASE
        )
        assert appointment.state == AppointmentState.PENDING
        assert appointment.can_transition_to(AppointmentState.CONFIRMED)
        assert not appointment.can_transition_to(AppointmentState.COMPLETED)


class TestNotificationEvent:
    def test_event_is_immutable(self) -> None:
        event = NotificationEvent(
            appointment_id="a", individual_id="i", kind=NotificationKind.RESULT_READY, created_at=BASE
        )
        with pytest.raises(ValidationError, match="frozen"):
            event.kind = NotificationKind.CANCELLED  # type: ignore

    def test_key_combines_appointment_and_kind(self) -> None:
        event = NotificationEvent(
            appointment_id="a", individual_id="i", kind=NotificationKind.CANCELLED, created_at=BASE
        )
        assert event.key == ("a", NotificationKind.CANCELLED)
