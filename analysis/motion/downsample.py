"""Downsampling of live frames into fixed-size luminance buffers.

Every tick draws the current frame into a small, fixed-resolution buffer
(160x120) so that the per-tick cost of motion estimation does not depend on
the camera resolution. A single scratch array is reused across ticks as the
resize target.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import cv2
import numpy as np

from capture.source import FrameSource
from common.frame import DETECTION_HEIGHT, DETECTION_WIDTH, FrameBuffer

_LOG = logging.getLogger(__name__)


def luminance(img: np.ndarray) -> np.ndarray:
    """Per-pixel luminance as the mean of the colour channels (alpha ignored)."""
    if img.ndim == 2:
        return img.astype(np.float32)
    channels = img.shape[2]
    color = img[:, :, :3] if channels >= 3 else img[:, :, :1]
    return color.mean(axis=2, dtype=np.float32)


class Downsampler:
    def __init__(self, width: int = DETECTION_WIDTH, height: int = DETECTION_HEIGHT) -> None:
        self._width = int(width)
        self._height = int(height)
        self._scratch: Optional[np.ndarray] = None

    @property
    def shape(self) -> tuple[int, int]:
        return self._height, self._width

    def sample(self, source: Optional[FrameSource], captured_ms: float) -> Optional[FrameBuffer]:
        """Return the source's current frame as a FrameBuffer, or None if unavailable.

        A source that is missing, not ready, or yields an empty frame is a
        transient gap, not an error.
        """
        if source is None or not source.is_ready():
            return None
        return self.from_array(source.current_frame(), captured_ms)

    def from_array(self, img: Any, captured_ms: float) -> Optional[FrameBuffer]:
        if img is None:
            return None
        arr = np.asarray(img)
        if arr.ndim not in (2, 3) or arr.shape[0] == 0 or arr.shape[1] == 0:
            return None
        if arr.ndim == 3 and arr.shape[2] == 0:
            return None
        if arr.dtype != np.uint8:
            arr = np.clip(arr, 0, 255).astype(np.uint8)

        if arr.shape[:2] != self.shape:
            arr = self._resize(arr)

        return FrameBuffer(luma=luminance(arr), captured_ms=float(captured_ms))

    def _resize(self, arr: np.ndarray) -> np.ndarray:
        # cv2 drops a trailing singleton channel axis, so size the scratch buffer
        # to whatever layout resize produces.
        if arr.ndim == 3 and arr.shape[2] == 1:
            arr = arr[:, :, 0]
        arr = np.ascontiguousarray(arr)
        want = self.shape if arr.ndim == 2 else (*self.shape, arr.shape[2])
        if self._scratch is None or self._scratch.shape != want:
            self._scratch = np.empty(want, dtype=np.uint8)
            _LOG.debug("Allocated %s downsample scratch buffer", want)
        cv2.resize(
            arr,
            (self._width, self._height),
            dst=self._scratch,
            interpolation=cv2.INTER_AREA,
        )
        return self._scratch
