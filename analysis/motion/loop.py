"""Detection loop controller.

Owns one detector run per camera: a periodic tick (downsample, estimate,
gate), the auto-clear timer, and the midnight counter rollover. Every timer
is a callback on one cooperative scheduler, so no locking is needed.

Typical use on an asyncio loop::

    loop = asyncio.get_running_loop()
    det = DetectionLoop(loop, store=JsonlEventStore("events.jsonl"),
                        on_motion_detected=lambda lvl: print("motion", lvl))
    det.start(source, DetectionConfig(threshold=8))
    ...
    det.stop()
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from capture.source import FrameSource
from common.time import Clock, Scheduler, SystemClock, TimerHandle

from .downsample import Downsampler
from .engine import MotionEstimator
from .events import DailyRollover, EventRecorder
from .gate import GateState, TemporalGate, Transition
from .model import DetectionConfig, MotionEvent, MotionState
from .store import MAX_EVENTS, EventStore, MemoryEventStore, PersistenceError

_LOG = logging.getLogger(__name__)

# Called with the motion level (percent); returns True if the action happened.
LevelHook = Callable[[float], bool]


class DetectionLoop:
    def __init__(
        self,
        scheduler: Scheduler,
        clock: Optional[Clock] = None,
        store: Optional[EventStore] = None,
        on_motion_detected: Optional[Callable[[float], None]] = None,
        on_motion_cleared: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        recording_trigger: Optional[LevelHook] = None,
        notifier: Optional[LevelHook] = None,
        camera_id: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._scheduler = scheduler
        self._clock = clock or SystemClock()
        self._log = logger or _LOG

        self.on_motion_detected = on_motion_detected
        self.on_motion_cleared = on_motion_cleared
        self.on_error = on_error
        self._recording_trigger = recording_trigger
        self._notifier = notifier

        self._downsampler = Downsampler()
        self._estimator = MotionEstimator()
        self._gate = TemporalGate()
        self._recorder = EventRecorder(
            store if store is not None else MemoryEventStore(),
            camera_id=camera_id,
            logger=self._log,
        )
        self._rollover = DailyRollover(scheduler, self._clock, self._on_rollover)

        self._config = DetectionConfig()
        self._source: Optional[FrameSource] = None
        self._running = False
        self._visible = True
        # Bumped by stop(); timer callbacks from an older run are ignored.
        self._generation = 0
        self._tick_handle: Optional[TimerHandle] = None
        self._clear_handle: Optional[TimerHandle] = None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> MotionState:
        return self._gate.motion_state

    @property
    def gate_state(self) -> GateState:
        return self._gate.state

    @property
    def config(self) -> DetectionConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_visible(self) -> bool:
        return self._visible

    @property
    def open_event(self) -> Optional[MotionEvent]:
        return self._recorder.open_event

    def recent_events(self, limit: int = MAX_EVENTS) -> List[MotionEvent]:
        return self._recorder.recent(limit)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self, source: Optional[FrameSource], config: Optional[DetectionConfig] = None) -> None:
        """Begin (or restart) detection on ``source`` with ``config``.

        Raises ConfigError before touching any state if the config is invalid.
        A disabled config stops any previous run and leaves the loop idle.
        """
        cfg = (config or DetectionConfig()).validate()
        self.stop()

        self._config = cfg
        self._gate.configure(cfg)
        # Midnight may have passed while stopped; the rollover timer only runs while started.
        if self._gate.roll_day(self._clock.local_date(self._clock.now_ms())):
            self._log.info("New local day since last run: daily motion event counter reset")
        if not cfg.enabled:
            self._log.info("Motion detection disabled; not starting")
            return

        self._source = source
        self._estimator.reset()
        self._running = True
        self._rollover.start()
        if self._visible:
            self._schedule_tick()
        self._log.info(
            "Motion detection started (sensitivity=%.0f threshold=%.2f%% cooldown=%ds schedule=%s)",
            cfg.sensitivity,
            cfg.threshold,
            cfg.cooldown_period_s,
            f"{cfg.start_hour:02d}-{cfg.end_hour:02d}" if cfg.schedule_enabled else "off",
        )

    def stop(self) -> None:
        """Cancel every timer, finalize any open event and release the source.

        Safe to call repeatedly. No callback fires after this returns.
        """
        was_running = self._running
        self._generation += 1
        self._running = False

        self._cancel_tick()
        self._cancel_clear()
        self._rollover.cancel()

        opened = self._recorder.open_event
        self._gate.clear()
        if opened is not None:
            try:
                self._recorder.record_cleared(opened.id, self._clock.now_ms())
            except PersistenceError as e:
                self._log.warning("Could not finalize motion event %s on stop: %s", opened.id, e)

        self._source = None
        self._estimator.reset()
        if was_running:
            self._log.info("Motion detection stopped")

    def set_visible(self, visible: bool) -> None:
        """Pause ticking while hidden; resume with a fresh baseline when visible."""
        visible = bool(visible)
        if visible == self._visible:
            return
        self._visible = visible
        if not self._running:
            return
        if visible:
            self._estimator.reset()
            self._schedule_tick()
            self._log.debug("Detection resumed")
        else:
            self._cancel_tick()
            self._log.debug("Detection paused while hidden")

    # ------------------------------------------------------------------ #
    # Tick
    # ------------------------------------------------------------------ #

    def tick(self) -> Optional[Transition]:
        """Run one detection step; exceptions are logged and the step abandoned."""
        if not self._running:
            return None
        try:
            return self._tick()
        except Exception:
            self._log.exception("Motion detection tick failed")
            return None

    def _tick(self) -> Optional[Transition]:
        cfg = self._config
        now = self._clock.now_ms()

        buf = self._downsampler.sample(self._source, now)
        if buf is None:
            self._log.debug("No frame available; skipping tick")
            return None

        score = self._estimator.step(buf, cfg)
        if score is None:
            return None

        transition = self._gate.observe(score, now, self._clock.local_hour(now))
        if transition is Transition.STARTED:
            self._motion_started(score, now)
        elif transition is Transition.RETRIGGERED:
            self._arm_clear()
        return transition

    def _motion_started(self, level: float, now: float) -> None:
        generation = self._generation
        recording = self._fire_hook("recording trigger", self._recording_trigger, level)
        if self._stopped_since(generation):
            return
        notified = self._fire_hook("notifier", self._notifier, level)
        if self._stopped_since(generation):
            return

        try:
            event_id: Optional[str] = self._recorder.record_started(
                level, now, recording_triggered=recording, notification_sent=notified
            )
        except PersistenceError as e:
            self._report(e)
            opened = self._recorder.open_event
            event_id = opened.id if opened is not None else None

        self._gate.attach_event(event_id)
        self._arm_clear()
        self._log.info("Motion detected: %.2f%%", level)
        if self.on_motion_detected is not None:
            self.on_motion_detected(level)

    def _stopped_since(self, generation: int) -> bool:
        # A hook may call stop() or start(); the rest of this transition is then moot.
        return generation != self._generation or not self._running

    def _fire_hook(self, name: str, hook: Optional[LevelHook], level: float) -> bool:
        if hook is None:
            return False
        try:
            return bool(hook(level))
        except Exception:
            self._log.warning("Motion %s failed", name, exc_info=True)
            return False

    def _report(self, exc: Exception) -> None:
        self._log.warning("Motion event persistence failed: %s", exc)
        if self.on_error is not None:
            self.on_error(exc)

    # ------------------------------------------------------------------ #
    # Timers
    # ------------------------------------------------------------------ #

    def _schedule_tick(self) -> None:
        self._cancel_tick()
        delay_s = self._config.tick_interval_ms / 1000.0
        self._tick_handle = self._scheduler.call_later(delay_s, self._on_tick, self._generation)

    def _cancel_tick(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _on_tick(self, generation: int) -> None:
        if generation != self._generation or not self._running or not self._visible:
            return
        self._tick_handle = None
        self.tick()
        # A callback inside the tick may have stopped or restarted the loop.
        if (
            generation == self._generation
            and self._running
            and self._visible
            and self._tick_handle is None
        ):
            self._schedule_tick()

    def _arm_clear(self) -> None:
        self._cancel_clear()
        delay_s = self._config.clear_delay_ms / 1000.0
        self._clear_handle = self._scheduler.call_later(
            delay_s, self._on_clear_timer, self._generation
        )

    def _cancel_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None

    def _on_clear_timer(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._clear_handle = None
        try:
            self._motion_cleared()
        except Exception:
            self._log.exception("Motion clear handling failed")

    def _motion_cleared(self) -> None:
        event_id = self._gate.open_event_id
        if self._gate.clear() is None:
            return
        now = self._clock.now_ms()
        if event_id is not None:
            try:
                self._recorder.record_cleared(event_id, now)
            except PersistenceError as e:
                self._report(e)
        self._log.info("Motion cleared")

        cleared = getattr(self._notifier, "cleared", None)
        if callable(cleared):
            try:
                cleared()
            except Exception:
                self._log.warning("Motion notifier failed on clear", exc_info=True)
        if self.on_motion_cleared is not None:
            self.on_motion_cleared()

    def _on_rollover(self) -> None:
        self._gate.reset_events_today()
        self._gate.roll_day(self._clock.local_date(self._clock.now_ms()))
