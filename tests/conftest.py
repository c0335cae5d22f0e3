# tests/conftest.py
import heapq
import itertools
import os
import sys
from datetime import datetime, timezone

import pytest

# pytest-dotenv has already loaded .env at this point
pp = os.getenv("PYTHONPATH")
if pp:
    for p in pp.split(os.pathsep):
        if p:
            sys.path.insert(0, p)

from common.time import SystemClock  # noqa: E402

# 2024-03-05 10:00:00 UTC
BASE_MS = datetime(2024, 3, 5, 10, 0, 0, tzinfo=timezone.utc).timestamp() * 1000.0


class _Handle:
    def __init__(self, callback, args):
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Deterministic stand-in for an asyncio loop: time only moves on advance()."""

    def __init__(self):
        self._now = 0.0
        self._seq = itertools.count()
        self._heap = []

    def time(self):
        return self._now

    def call_later(self, delay, callback, *args):
        h = _Handle(callback, args)
        heapq.heappush(self._heap, (self._now + max(0.0, delay), next(self._seq), h))
        return h

    @property
    def pending(self):
        return sum(1 for _, _, h in self._heap if not h.cancelled)

    def advance(self, seconds):
        target = self._now + seconds
        while self._heap and self._heap[0][0] <= target:
            when, _, h = heapq.heappop(self._heap)
            self._now = when
            if not h.cancelled:
                h.callback(*h.args)
        self._now = target


class ManualClock(SystemClock):
    """Epoch-ms clock driven by a ManualScheduler, with hours computed in UTC."""

    def __init__(self, scheduler, base_ms=BASE_MS):
        super().__init__(tz=timezone.utc)
        self._scheduler = scheduler
        self.base_ms = base_ms

    def now_ms(self):
        return self.base_ms + self._scheduler.time() * 1000.0


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def clock(scheduler):
    return ManualClock(scheduler)
