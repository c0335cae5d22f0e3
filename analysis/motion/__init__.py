"""Public exports for the motion analysis package."""

from __future__ import annotations

from .downsample import Downsampler
from .engine import MotionEstimator, estimate
from .events import DailyRollover, EventRecorder
from .gate import GateState, TemporalGate, Transition, in_schedule_window
from .loop import DetectionLoop
from .model import ConfigError, DetectionConfig, MotionEvent, MotionState
from .stats import MotionStats, format_duration, summarize
from .store import JsonlEventStore, MemoryEventStore, PersistenceError

__all__ = [
    "DetectionLoop",
    "DetectionConfig",
    "ConfigError",
    "MotionState",
    "MotionEvent",
    "Downsampler",
    "MotionEstimator",
    "estimate",
    "TemporalGate",
    "GateState",
    "Transition",
    "in_schedule_window",
    "EventRecorder",
    "DailyRollover",
    "MemoryEventStore",
    "JsonlEventStore",
    "PersistenceError",
    "MotionStats",
    "summarize",
    "format_duration",
]
