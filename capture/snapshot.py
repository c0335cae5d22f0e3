from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np
import requests

_LOG = logging.getLogger(__name__)


class SnapshotError(RuntimeError):
    """A snapshot could not be fetched or decoded."""


@dataclass
class SnapshotConfig:
    # Still-image endpoint (JPEG/PNG), e.g. a camera's /snapshot.jpg.
    url: str
    interval_s: float = 1.0
    timeout_s: float = 5.0
    close_timeout_s: float = 0.75


class SnapshotFrameSource:
    """
    FrameSource that polls a still-image URL in a worker thread.

    API:
        src = SnapshotFrameSource(SnapshotConfig(url="http://cam/snapshot.jpg"))
        src.start()
        src.is_ready(); src.current_frame()   # newest decoded BGR frame
        src.close()

    The worker keeps only the newest decoded frame; the detection tick never
    blocks on the network.
    """

    def __init__(self, cfg: SnapshotConfig, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.session = session or requests.Session()
        self._frame: Optional[np.ndarray] = None
        self._stop = threading.Event()
        self._thr: Optional[threading.Thread] = None
        self.failures = 0

    # ---- FrameSource ---- #

    def is_ready(self) -> bool:
        return self._frame is not None

    def current_frame(self) -> Optional[np.ndarray]:
        return self._frame

    # ---- lifecycle ---- #

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = threading.Thread(target=self._worker, name="snapshot-poll", daemon=True)
        self._thr.start()

    def close(self) -> None:
        self._stop.set()
        if self._thr:
            self._thr.join(timeout=self.cfg.close_timeout_s)
            self._thr = None
        with contextlib.suppress(Exception):
            self.session.close()

    def fetch_once(self) -> np.ndarray:
        """Fetch and decode a single snapshot; the result becomes the current frame."""
        try:
            r = self.session.get(self.cfg.url, timeout=self.cfg.timeout_s)
        except requests.RequestException as e:
            raise SnapshotError(f"GET {self.cfg.url} failed: {e}") from e
        if not (200 <= r.status_code < 300):
            raise SnapshotError(f"GET {self.cfg.url} -> HTTP {r.status_code}")
        buf = np.frombuffer(r.content or b"", dtype=np.uint8)
        img = cv2.imdecode(buf, cv2.IMREAD_COLOR) if buf.size else None
        if img is None:
            raise SnapshotError(f"GET {self.cfg.url} returned an undecodable image")
        self._frame = img
        return img

    def _worker(self) -> None:
        while not self._stop.is_set():
            try:
                self.fetch_once()
            except SnapshotError as e:
                self.failures += 1
                _LOG.warning("Snapshot fetch failed (%d so far): %s", self.failures, e)
            # doubles as the poll interval; close() wakes it early
            self._stop.wait(self.cfg.interval_s)
