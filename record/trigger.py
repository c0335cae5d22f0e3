"""Adapters plugging recording and notifications into the detection loop.

Both are plain callables taking the motion level and returning whether the
action happened, which is what ``DetectionLoop`` records on the event.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from common.time import Clock, SystemClock

from .webhook import WebhookClient, WebhookError

_LOG = logging.getLogger(__name__)

# A recording is not re-attempted within this window after the last attempt.
RECORDING_MIN_INTERVAL_MS = 10_000


class RecordingTrigger:
    def __init__(
        self,
        start_recording: Callable[[float], object],
        clock: Optional[Clock] = None,
        min_interval_ms: float = RECORDING_MIN_INTERVAL_MS,
    ) -> None:
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must be >= 0")
        self._start_recording = start_recording
        self._clock = clock or SystemClock()
        self._min_interval_ms = float(min_interval_ms)
        self._last_attempt_ms: Optional[float] = None

    @property
    def last_attempt_ms(self) -> Optional[float]:
        return self._last_attempt_ms

    def __call__(self, level: float) -> bool:
        now = self._clock.now_ms()
        last = self._last_attempt_ms
        if last is not None and now - last < self._min_interval_ms:
            _LOG.debug("Recording attempted %.0f ms ago; skipping", now - last)
            return False
        # The attempt counts even if it fails, so a broken recorder is not hammered.
        self._last_attempt_ms = now
        result = self._start_recording(level)
        _LOG.info("Recording triggered by motion %.2f%%", level)
        return result is not False


class WebhookNotifier:
    """Forward motion transitions to Home Assistant; failures are logged, not raised."""

    def __init__(
        self,
        client: WebhookClient,
        camera_name: str = "Camera",
        entity_id: Optional[str] = None,
    ) -> None:
        self._client = client
        self.camera_name = camera_name
        self.entity_id = entity_id

    def __call__(self, level: float) -> bool:
        try:
            return self._client.motion_detected(self.camera_name, level)
        except WebhookError as e:
            _LOG.warning("motion_detected webhook failed: %s", e)
            return False

    def cleared(self) -> bool:
        try:
            return self._client.motion_cleared(self.camera_name)
        except WebhookError as e:
            _LOG.warning("motion_cleared webhook failed: %s", e)
            return False

    def start_recording(self, level: float) -> bool:
        """Usable as ``RecordingTrigger(notifier.start_recording)``."""
        try:
            return self._client.start_recording(self.camera_name, entity_id=self.entity_id)
        except WebhookError as e:
            _LOG.warning("start_recording webhook failed (motion %.2f%%): %s", level, e)
            return False
