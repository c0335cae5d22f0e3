from __future__ import annotations

from dataclasses import dataclass

import numpy as np

# Fixed analysis resolution; bounds per-tick CPU regardless of camera size.
DETECTION_WIDTH = 160
DETECTION_HEIGHT = 120


@dataclass(frozen=True)
class FrameBuffer:
    luma: np.ndarray  # (DETECTION_HEIGHT, DETECTION_WIDTH), float32 channel mean
    captured_ms: float  # epoch ms (float)

    @property
    def size(self) -> int:
        return int(self.luma.size)
