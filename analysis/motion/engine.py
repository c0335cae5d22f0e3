"""Frame-differencing motion estimator.

Scores motion between two consecutive downsampled luminance buffers as the
percentage of pixels whose luminance changed by more than a threshold. The
threshold combines the sensitivity slider and a noise floor with ``max()``:
at low sensitivity the floor never masks the slider, and at high sensitivity
the floor still suppresses sensor-level jitter.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from common.frame import FrameBuffer

from .model import DetectionConfig


def estimate(current: FrameBuffer, previous: FrameBuffer, config: DetectionConfig) -> float:
    """Return the motion score in percent (0..100) between two buffers."""
    cur = np.asarray(current.luma, dtype=np.float32)
    prev = np.asarray(previous.luma, dtype=np.float32)
    if cur.shape != prev.shape:
        raise ValueError(f"frame buffer shapes differ: {cur.shape} vs {prev.shape}")

    total_px = int(cur.size)
    if total_px == 0:
        return 0.0

    diff = np.abs(cur - prev)
    changed_px = int(np.count_nonzero(diff > config.pixel_threshold))
    return float(changed_px) / float(total_px) * 100.0


class MotionEstimator:
    """Keeps the previous buffer and scores each new one against it.

    The first buffer after construction or :meth:`reset` only establishes the
    baseline; :meth:`step` returns ``None`` for it.
    """

    def __init__(self) -> None:
        self._previous: Optional[FrameBuffer] = None

    @property
    def has_baseline(self) -> bool:
        return self._previous is not None

    def reset(self) -> None:
        self._previous = None

    def step(self, buffer: FrameBuffer, config: DetectionConfig) -> Optional[float]:
        previous, self._previous = self._previous, buffer
        if previous is None:
            return None
        return estimate(buffer, previous, config)
