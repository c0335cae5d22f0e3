from __future__ import annotations

import logging
import uuid
from typing import Callable, List, Optional

from common.time import DAY_MS, Clock, Scheduler, TimerHandle

from .model import MotionEvent
from .store import MAX_EVENTS, EventStore

_LOG = logging.getLogger(__name__)


class EventRecorder:
    """
    Turn gate transitions into persisted MotionEvents.

    API:
        rec = EventRecorder(store)
        event_id = rec.record_started(level, now_ms)
        event = rec.record_cleared(event_id, later_ms)

    Store failures propagate as ``PersistenceError``; the recorder's own
    bookkeeping is updated first so a failed write never leaves an event open.
    """

    def __init__(
        self,
        store: EventStore,
        camera_id: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._camera_id = camera_id
        self._log = logger or _LOG
        self._open: Optional[MotionEvent] = None

    @property
    def open_event(self) -> Optional[MotionEvent]:
        return self._open

    def record_started(
        self,
        level: float,
        detected_at_ms: float,
        recording_triggered: bool = False,
        notification_sent: bool = False,
    ) -> str:
        ev = MotionEvent(
            id=str(uuid.uuid4()),
            motion_level=float(level),
            detected_at_ms=float(detected_at_ms),
            recording_triggered=bool(recording_triggered),
            notification_sent=bool(notification_sent),
            camera_id=self._camera_id,
        )
        if self._open is not None:
            self._log.warning("Motion event %s still open when a new one started", self._open.id)
        self._open = ev
        self._log.info("Motion event %s started level=%.2f%%", ev.id, ev.motion_level)
        self._store.append(ev)
        return ev.id

    def record_cleared(self, event_id: str, cleared_at_ms: float) -> Optional[MotionEvent]:
        if self._open is None or self._open.id != event_id:
            self._log.warning("No open motion event with id=%s to clear", event_id)
            return None
        ev = self._open.finalize(cleared_at_ms)
        self._open = None
        self._log.info("Motion event %s cleared duration_ms=%.0f", ev.id, ev.duration_ms or 0.0)
        self._store.replace(ev)
        return ev

    def recent(self, limit: int = MAX_EVENTS) -> List[MotionEvent]:
        return self._store.list_recent(limit)


class DailyRollover:
    """Fire ``on_rollover`` at the next local midnight, then every 24 hours."""

    def __init__(
        self,
        scheduler: Scheduler,
        clock: Clock,
        on_rollover: Callable[[], None],
    ) -> None:
        self._scheduler = scheduler
        self._clock = clock
        self._on_rollover = on_rollover
        self._handle: Optional[TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        self.cancel()
        delay_ms = self._clock.ms_until_midnight(self._clock.now_ms())
        _LOG.debug("Daily counter rollover in %.0f ms", delay_ms)
        self._handle = self._scheduler.call_later(delay_ms / 1000.0, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = self._scheduler.call_later(DAY_MS / 1000.0, self._fire)
        _LOG.info("Local midnight: resetting daily motion event counter")
        self._on_rollover()
