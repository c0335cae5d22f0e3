from __future__ import annotations

from datetime import date

import pytest

from analysis.motion.gate import GateState, TemporalGate, Transition, in_schedule_window
from analysis.motion.model import DetectionConfig


def _cfg(**kw) -> DetectionConfig:
    base = dict(threshold=8.0, cooldown_period_s=5)
    base.update(kw)
    return DetectionConfig(**base)


@pytest.mark.parametrize("hour", range(24))
def test_schedule_disabled_is_always_inside(hour):
    assert in_schedule_window(_cfg(schedule_enabled=False, start_hour=9, end_hour=17), hour)


@pytest.mark.parametrize(
    "hour, inside",
    [(8, False), (9, True), (12, True), (16, True), (17, False), (23, False)],
)
def test_schedule_plain_window(hour, inside):
    cfg = _cfg(schedule_enabled=True, start_hour=9, end_hour=17)
    assert in_schedule_window(cfg, hour) is inside


@pytest.mark.parametrize("hour, inside", [(22, True), (23, True), (0, True), (5, True), (6, False), (10, False)])
def test_schedule_wraps_past_midnight(hour, inside):
    cfg = _cfg(schedule_enabled=True, start_hour=22, end_hour=6)
    assert in_schedule_window(cfg, hour) is inside


def test_first_motion_starts_and_counts():
    g = TemporalGate(_cfg())
    assert g.state is GateState.IDLE
    assert g.observe(15.0, 1_000.0, 12) is Transition.STARTED
    st = g.motion_state
    assert st.is_active and st.current_level == 15.0
    assert st.last_alert_ms == 1_000.0
    assert st.events_today == 1


def test_score_at_threshold_is_not_motion():
    g = TemporalGate(_cfg(threshold=8.0))
    assert g.observe(8.0, 0.0, 12) is None
    assert not g.is_active


def test_active_gate_retriggers_without_new_event():
    g = TemporalGate(_cfg())
    g.observe(15.0, 0.0, 12)
    for i in range(1, 6):
        assert g.observe(20.0 + i, i * 1000.0, 12) is Transition.RETRIGGERED
    assert g.motion_state.events_today == 1
    assert g.motion_state.current_level == 25.0
    # Quiet tick while active updates the level but does not retrigger.
    assert g.observe(0.0, 7_000.0, 12) is None
    assert g.is_active and g.motion_state.current_level == 0.0


def test_clear_returns_to_idle_once():
    g = TemporalGate(_cfg())
    g.observe(15.0, 0.0, 12)
    g.attach_event("ev-1")
    assert g.open_event_id == "ev-1"
    assert g.clear() is Transition.CLEARED
    assert g.state is GateState.IDLE
    assert g.motion_state.current_level == 0.0
    assert g.open_event_id is None
    assert g.clear() is None


def test_cooldown_blocks_only_the_idle_edge():
    g = TemporalGate(_cfg(cooldown_period_s=5))
    assert g.observe(15.0, 0.0, 12) is Transition.STARTED
    g.clear()
    assert not g.cooldown_elapsed(4_999.0)
    assert g.observe(15.0, 4_999.0, 12) is None
    assert g.cooldown_elapsed(5_000.0)
    assert g.observe(15.0, 5_000.0, 12) is Transition.STARTED
    assert g.motion_state.events_today == 2


def test_outside_schedule_suppresses_start():
    g = TemporalGate(_cfg(schedule_enabled=True, start_hour=22, end_hour=6))
    assert g.observe(50.0, 0.0, 10) is None
    assert g.motion_state.last_alert_ms is None
    assert g.observe(50.0, 0.0, 23) is Transition.STARTED


def test_reset_events_today_keeps_alert_history():
    g = TemporalGate(_cfg())
    g.observe(15.0, 0.0, 12)
    g.reset_events_today()
    st = g.motion_state
    assert st.events_today == 0
    assert st.last_alert_ms == 0.0


def test_roll_day_resets_only_on_a_new_day():
    g = TemporalGate(_cfg())
    g.observe(15.0, 0.0, 12)
    assert g.roll_day(date(2024, 3, 5)) is False
    assert g.roll_day(date(2024, 3, 5)) is False
    assert g.motion_state.events_today == 1

    assert g.roll_day(date(2024, 3, 6)) is True
    assert g.motion_state.events_today == 0


def test_motion_state_is_a_copy():
    g = TemporalGate(_cfg())
    snap = g.motion_state
    snap.events_today = 99
    assert g.motion_state.events_today == 0
