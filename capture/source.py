from __future__ import annotations

from collections import deque
from typing import Deque, Iterable, Optional, Protocol

import numpy as np


class FrameSource(Protocol):
    """Live frame producer polled once per detection tick."""

    def is_ready(self) -> bool: ...
    def current_frame(self) -> Optional[np.ndarray]: ...


class ArrayFrameSource:
    """
    In-memory FrameSource fed with numpy frames.

    Each ``current_frame()`` call consumes one pending frame; once the queue
    drains the last frame keeps being returned, like a paused live feed.
    """

    def __init__(self, frames: Optional[Iterable[np.ndarray]] = None) -> None:
        self._pending: Deque[np.ndarray] = deque(frames or ())
        self._last: Optional[np.ndarray] = None
        self.closed = False

    def push(self, frame: np.ndarray) -> None:
        self._pending.append(frame)

    def is_ready(self) -> bool:
        return not self.closed and (bool(self._pending) or self._last is not None)

    def current_frame(self) -> Optional[np.ndarray]:
        if self._pending:
            self._last = self._pending.popleft()
        return self._last

    def close(self) -> None:
        self.closed = True
