"""Motion analytics over recorded events.

API:
    stats = summarize(recorder.recent(), now_ms)
    print(stats.total_events, format_duration(stats.total_duration_ms), stats.trend)
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable, Optional

from common.time import DAY_MS, local_hour

from .model import MotionEvent

# Relative change between the two halves of the window that counts as a trend.
TREND_BAND_PCT = 10.0


@dataclass(frozen=True)
class MotionStats:
    total_events: int = 0
    average_motion_level: float = 0.0
    total_duration_ms: float = 0.0
    # Local hour with the most detections; 0 when there are none.
    peak_hour: int = 0
    trend: str = "stable"  # "up" | "down" | "stable"
    # Magnitude of the change between window halves, in percent.
    trend_percentage: float = 0.0


def summarize(
    events: Iterable[MotionEvent],
    now_ms: float,
    window_days: int = 30,
    tz: Optional[tzinfo] = None,
) -> MotionStats:
    """Aggregate events detected within the last ``window_days`` days.

    Open events contribute to counts and levels but not to total duration.
    The trend compares the newer half of the window with the older half.
    """
    if window_days <= 0:
        raise ValueError("window_days must be > 0")
    window_ms = window_days * DAY_MS
    since = now_ms - window_ms
    midpoint = now_ms - window_ms / 2.0

    in_window = [ev for ev in events if since <= ev.detected_at_ms <= now_ms]
    if not in_window:
        return MotionStats()

    total = len(in_window)
    avg_level = sum(ev.motion_level for ev in in_window) / total
    total_duration = sum(ev.duration_ms or 0.0 for ev in in_window)

    hours = Counter(local_hour(ev.detected_at_ms, tz) for ev in in_window)
    # Ties resolve to the earliest hour.
    peak_hour = min(hours, key=lambda h: (-hours[h], h))

    newer = sum(1 for ev in in_window if ev.detected_at_ms >= midpoint)
    older = total - newer
    if older == 0:
        change = 100.0 if newer else 0.0
    else:
        change = (newer - older) / older * 100.0

    if change > TREND_BAND_PCT:
        trend = "up"
    elif change < -TREND_BAND_PCT:
        trend = "down"
    else:
        trend = "stable"

    return MotionStats(
        total_events=total,
        average_motion_level=avg_level,
        total_duration_ms=total_duration,
        peak_hour=peak_hour,
        trend=trend,
        trend_percentage=abs(change),
    )


def format_duration(total_ms: float) -> str:
    """Render milliseconds as ``"Xm Ys"`` (seconds rounded)."""
    total_s = int(round(max(0.0, float(total_ms)) / 1000.0))
    return f"{total_s // 60}m {total_s % 60}s"
