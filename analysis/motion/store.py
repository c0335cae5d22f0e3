"""Persistence sinks for motion events.

Both stores keep events newest-first and bounded to ``limit`` entries; the
oldest events fall off the end as new ones are appended.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Protocol

from sidecar.reader import read_all
from sidecar.writer import write_atomic

from .model import MotionEvent

_LOG = logging.getLogger(__name__)

MAX_EVENTS = 100


class PersistenceError(RuntimeError):
    """An event could not be written to (or read from) its store."""


class EventStore(Protocol):
    def append(self, event: MotionEvent) -> None: ...
    def replace(self, event: MotionEvent) -> None: ...
    def list_recent(self, limit: int = MAX_EVENTS) -> List[MotionEvent]: ...


class MemoryEventStore:
    def __init__(self, limit: int = MAX_EVENTS) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self.limit = int(limit)
        self._events: List[MotionEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def append(self, event: MotionEvent) -> None:
        self._events.insert(0, event)
        del self._events[self.limit :]

    def replace(self, event: MotionEvent) -> None:
        """Swap in the stored event with the same id; unknown ids are appended."""
        for i, ev in enumerate(self._events):
            if ev.id == event.id:
                self._events[i] = event
                return
        self.append(event)

    def list_recent(self, limit: int = MAX_EVENTS) -> List[MotionEvent]:
        return list(self._events[: max(0, int(limit))])


class JsonlEventStore:
    """
    File-backed store: one JSON object per line, newest first.

    API:
        store = JsonlEventStore("events.jsonl")
        store.append(event); store.replace(finalized)
        store.list_recent(20)

    The file is rewritten atomically on every change. Rows that fail to parse
    are skipped with a warning when the file is loaded.
    """

    def __init__(self, path: str | Path, limit: int = MAX_EVENTS) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self.path = Path(path)
        self._mem = MemoryEventStore(limit)
        self._loaded = False

    @property
    def limit(self) -> int:
        return self._mem.limit

    # ---- EventStore ---- #

    def append(self, event: MotionEvent) -> None:
        self._load()
        self._mem.append(event)
        self._flush()

    def replace(self, event: MotionEvent) -> None:
        self._load()
        self._mem.replace(event)
        self._flush()

    def list_recent(self, limit: int = MAX_EVENTS) -> List[MotionEvent]:
        self._load()
        return self._mem.list_recent(limit)

    # ---- internals ---- #

    def _load(self) -> None:
        if self._loaded:
            return
        try:
            rows = read_all(self.path)
        except OSError as e:
            raise PersistenceError(f"cannot read {self.path}: {e}") from e

        events: List[MotionEvent] = []
        for row in rows:
            ev = _parse_row(row)
            if ev is not None:
                events.append(ev)
        # File order is newest first; rebuild oldest -> newest so append() keeps it.
        for ev in reversed(events[: self._mem.limit]):
            self._mem.append(ev)
        self._loaded = True
        _LOG.debug("Loaded %d motion events from %s", len(self._mem), self.path)

    def _flush(self) -> None:
        try:
            write_atomic(self.path, (ev.to_dict() for ev in self._mem.list_recent(self._mem.limit)))
        except OSError as e:
            raise PersistenceError(f"cannot write {self.path}: {e}") from e


def _parse_row(row: dict) -> Optional[MotionEvent]:
    try:
        return MotionEvent.from_dict(row)
    except (KeyError, TypeError, ValueError) as e:
        _LOG.warning("Skipping unreadable motion event row: %s", e)
        return None
