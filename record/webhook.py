from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import requests

from common.time import now_ms, to_iso_utc

_LOG = logging.getLogger(__name__)

MOTION_DETECTED = "motion_detected"
MOTION_CLEARED = "motion_cleared"
START_RECORDING = "start_recording"
STOP_RECORDING = "stop_recording"


@dataclass
class WebhookConfig:
    """Home Assistant webhook target.

    Parameters
    ----------
    base_url:
        Home Assistant base URL (e.g. ``"http://homeassistant.local:8123"``).
    webhook_id:
        Webhook id configured in the Home Assistant automation.
    enabled:
        When false, :meth:`WebhookClient.send` is a no-op returning False.
    recording_location:
        Forwarded with every event so the automation knows where to record
        (``"sd_card"``, ``"nas"`` or ``"local_media"``).
    timeout_s:
        Per-request timeout.
    """

    base_url: str = ""
    webhook_id: str = ""
    enabled: bool = True
    recording_location: str = "sd_card"
    timeout_s: float = 5.0

    @property
    def configured(self) -> bool:
        return bool(self.enabled and self.base_url and self.webhook_id)

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/api/webhook/{self.webhook_id}"


class WebhookError(Exception):
    """HTTP or network failure while delivering a webhook event."""


class WebhookClient:
    """Posts camera events to a Home Assistant webhook.

    API:
        client = WebhookClient(WebhookConfig(base_url=..., webhook_id=...))
        client.motion_detected("Porch", 12.5)
        client.motion_cleared("Porch")
        client.start_recording("Porch", entity_id="camera.porch")
    """

    def __init__(
        self,
        cfg: WebhookConfig,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._cfg = cfg
        self._session = session or requests.Session()
        self._log = logger or _LOG

    @property
    def config(self) -> WebhookConfig:
        return self._cfg

    def send(
        self,
        event_type: str,
        camera_name: Optional[str] = None,
        motion_level: Optional[float] = None,
        entity_id: Optional[str] = None,
        timestamp_ms: Optional[float] = None,
    ) -> bool:
        """Deliver one event. Returns False without a request when not configured.

        Raises WebhookError when the request fails or Home Assistant answers
        with a non-2xx status.
        """
        if not self._cfg.configured:
            self._log.debug("Webhook not configured; dropping %s", event_type)
            return False

        body: dict[str, Any] = {"type": event_type}
        if camera_name is not None:
            body["camera_name"] = camera_name
        if motion_level is not None:
            body["motion_level"] = float(motion_level)
        if entity_id is not None:
            body["entity_id"] = entity_id
        body["source"] = "camera_stream"
        body["timestamp"] = to_iso_utc(timestamp_ms if timestamp_ms is not None else now_ms())
        body["recording_location"] = self._cfg.recording_location

        self._post_json(self._cfg.url, body)
        self._log.info("Webhook %s delivered for camera=%s", event_type, camera_name)
        return True

    def motion_detected(self, camera_name: str, motion_level: float) -> bool:
        return self.send(MOTION_DETECTED, camera_name=camera_name, motion_level=motion_level)

    def motion_cleared(self, camera_name: str) -> bool:
        return self.send(MOTION_CLEARED, camera_name=camera_name)

    def start_recording(self, camera_name: str, entity_id: Optional[str] = None) -> bool:
        return self.send(START_RECORDING, camera_name=camera_name, entity_id=entity_id)

    def stop_recording(self, camera_name: str, entity_id: Optional[str] = None) -> bool:
        return self.send(STOP_RECORDING, camera_name=camera_name, entity_id=entity_id)

    # ------------------------------------------------------------------ internals

    def _post_json(self, url: str, body: Mapping[str, Any]) -> None:
        # Home Assistant webhooks answer with an empty body; only the status matters.
        try:
            resp = self._session.post(url, json=body, timeout=self._cfg.timeout_s)
        except requests.RequestException as exc:
            raise WebhookError(f"POST {url!r} failed: {exc}") from exc

        if not (200 <= resp.status_code < 300):
            raise WebhookError(f"POST {url!r} returned HTTP {resp.status_code}: {resp.text!r}")
