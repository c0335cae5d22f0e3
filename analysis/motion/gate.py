from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Optional

from .model import DetectionConfig, MotionState

_LOG = logging.getLogger(__name__)


class GateState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


class Transition(str, Enum):
    STARTED = "started"  # IDLE -> ACTIVE
    RETRIGGERED = "retriggered"  # ACTIVE -> ACTIVE, auto-clear timer restarts
    CLEARED = "cleared"  # ACTIVE -> IDLE


def in_schedule_window(config: DetectionConfig, hour: int) -> bool:
    """True if alerts are permitted at local ``hour``.

    ``[start, end)`` when start <= end; otherwise the window wraps past
    midnight (22..6 covers 23 and 5 but not 10). A disabled schedule is
    always inside.
    """
    if not config.schedule_enabled:
        return True
    start, end = config.start_hour, config.end_hour
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


class TemporalGate:
    """
    Two-state debounce machine turning per-tick motion scores into transitions.

    API:
        gate = TemporalGate(DetectionConfig())
        t = gate.observe(score, now_ms, local_hour)   # STARTED / RETRIGGERED / None
        t = gate.clear()                              # CLEARED / None

    The gate does not own timers. The caller restarts its auto-clear timer on
    STARTED/RETRIGGERED and calls :meth:`clear` when it fires.
    """

    def __init__(self, config: Optional[DetectionConfig] = None) -> None:
        self._cfg = config or DetectionConfig()
        self._ms = MotionState()
        # Local day that events_today counts; None until the first roll_day().
        self._day: Optional[date] = None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> DetectionConfig:
        return self._cfg

    @property
    def state(self) -> GateState:
        return GateState.ACTIVE if self._ms.is_active else GateState.IDLE

    @property
    def is_active(self) -> bool:
        return self._ms.is_active

    @property
    def motion_state(self) -> MotionState:
        return self._ms.snapshot()

    @property
    def open_event_id(self) -> Optional[str]:
        return self._ms.open_event_id

    def cooldown_elapsed(self, now_ms: float) -> bool:
        last = self._ms.last_alert_ms
        if last is None:
            return True
        return (now_ms - last) / 1000.0 >= float(self._cfg.cooldown_period_s)

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #

    def configure(self, config: DetectionConfig) -> None:
        """Swap the config between runs; alert history and daily count survive."""
        self._cfg = config

    def observe(self, score: float, now_ms: float, hour: int) -> Optional[Transition]:
        cfg = self._cfg

        if self._ms.is_active:
            self._ms.current_level = float(score)
            if score > cfg.threshold:
                return Transition.RETRIGGERED
            return None

        if score <= cfg.threshold:
            return None

        # Schedule and cooldown only gate the IDLE -> ACTIVE edge, so cooldown
        # bounds alert frequency rather than how long an episode lasts.
        if not in_schedule_window(cfg, hour):
            _LOG.debug("Motion %.2f%% outside schedule window (hour=%d)", score, hour)
            return None
        if not self.cooldown_elapsed(now_ms):
            _LOG.debug("Motion %.2f%% suppressed by cooldown", score)
            return None

        self._ms.is_active = True
        self._ms.current_level = float(score)
        self._ms.last_alert_ms = float(now_ms)
        self._ms.events_today += 1
        return Transition.STARTED

    def attach_event(self, event_id: Optional[str]) -> None:
        self._ms.open_event_id = event_id

    def clear(self) -> Optional[Transition]:
        if not self._ms.is_active:
            return None
        self._ms.is_active = False
        self._ms.current_level = 0.0
        self._ms.open_event_id = None
        return Transition.CLEARED

    def reset_events_today(self) -> None:
        self._ms.events_today = 0

    def roll_day(self, day: date) -> bool:
        """Bind the daily count to local ``day``; a different day resets it.

        Returns True when the count was reset.
        """
        if self._day is not None and day != self._day:
            self._day = day
            self.reset_events_today()
            return True
        self._day = day
        return False
