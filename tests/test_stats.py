from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest

from analysis.motion.model import MotionEvent
from analysis.motion.stats import MotionStats, format_duration, summarize

NOW = datetime(2024, 3, 30, 12, 0, tzinfo=timezone.utc)


def _ev(when: datetime, level: float = 10.0, duration_ms: float | None = 3_000.0) -> MotionEvent:
    ms = when.timestamp() * 1000.0
    ev = MotionEvent(id=when.isoformat(), motion_level=level, detected_at_ms=ms)
    return ev.finalize(ms + duration_ms) if duration_ms is not None else ev


def _now_ms() -> float:
    return NOW.timestamp() * 1000.0


def test_empty_window():
    assert summarize([], _now_ms()) == MotionStats()


def test_totals_and_peak_hour():
    events = [
        _ev(NOW - timedelta(days=1, hours=3), level=10.0),  # 09:00
        _ev(NOW - timedelta(days=2, hours=3), level=20.0),  # 09:00
        _ev(NOW - timedelta(days=3, hours=-8), level=30.0, duration_ms=None),  # 20:00, open
        _ev(NOW - timedelta(days=45), level=99.0),  # outside window
    ]
    stats = summarize(events, _now_ms(), tz=timezone.utc)
    assert stats.total_events == 3
    assert math.isclose(stats.average_motion_level, 20.0)
    assert stats.total_duration_ms == 6_000.0
    assert stats.peak_hour == 9


def test_trend_up_when_recent_half_is_busier():
    events = [_ev(NOW - timedelta(days=d)) for d in (1, 2, 3, 4, 20)]
    stats = summarize(events, _now_ms())
    assert stats.trend == "up"
    assert math.isclose(stats.trend_percentage, 300.0)


def test_trend_down_and_stable():
    down = [_ev(NOW - timedelta(days=d)) for d in (1, 16, 17, 18)]
    stats = summarize(down, _now_ms())
    assert stats.trend == "down"
    assert math.isclose(stats.trend_percentage, 100.0 * 2 / 3)

    stable = [_ev(NOW - timedelta(days=d)) for d in (1, 2, 20, 21)]
    assert summarize(stable, _now_ms()).trend == "stable"


def test_only_recent_events_is_full_rise():
    stats = summarize([_ev(NOW - timedelta(hours=1))], _now_ms())
    assert stats.trend == "up"
    assert stats.trend_percentage == 100.0


def test_window_must_be_positive():
    with pytest.raises(ValueError):
        summarize([], _now_ms(), window_days=0)


@pytest.mark.parametrize(
    "ms, text",
    [(0, "0m 0s"), (59_400, "0m 59s"), (61_000, "1m 1s"), (3_600_000, "60m 0s"), (-5, "0m 0s")],
)
def test_format_duration(ms, text):
    assert format_duration(ms) == text
