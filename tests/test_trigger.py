from __future__ import annotations

from datetime import date
from typing import Any

from record.trigger import RecordingTrigger, WebhookNotifier
from record.webhook import WebhookConfig, WebhookError


class _StepClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def now_ms(self) -> float:
        return self.now

    def local_hour(self, ts_ms: float) -> int:
        return 0

    def local_date(self, ts_ms: float) -> date:
        return date(1970, 1, 1)

    def ms_until_midnight(self, ts_ms: float) -> float:
        return 1.0


class _FakeClient:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[Any, ...]] = []
        self.config = WebhookConfig(base_url="http://ha", webhook_id="x")

    def _do(self, *call: Any) -> bool:
        self.calls.append(call)
        if self.fail:
            raise WebhookError("HTTP 500")
        return True

    def motion_detected(self, camera_name: str, motion_level: float) -> bool:
        return self._do("motion_detected", camera_name, motion_level)

    def motion_cleared(self, camera_name: str) -> bool:
        return self._do("motion_cleared", camera_name)

    def start_recording(self, camera_name: str, entity_id: Any = None) -> bool:
        return self._do("start_recording", camera_name, entity_id)


def test_recording_trigger_throttles_attempts():
    clock = _StepClock(1_000.0)
    started: list[float] = []
    trig = RecordingTrigger(started.append, clock=clock)

    assert trig(12.0) is True
    clock.now = 1_000.0 + 9_999.0
    assert trig(13.0) is False
    clock.now = 1_000.0 + 10_000.0
    assert trig(14.0) is True
    assert started == [12.0, 14.0]
    assert trig.last_attempt_ms == 11_000.0


def test_recording_trigger_reports_explicit_failure():
    clock = _StepClock()
    trig = RecordingTrigger(lambda level: False, clock=clock, min_interval_ms=0)
    assert trig(5.0) is False
    # The attempt still counts for throttling.
    assert trig.last_attempt_ms == 0.0


def test_webhook_notifier_forwards_camera_name():
    client = _FakeClient()
    notifier = WebhookNotifier(client, camera_name="Garage", entity_id="camera.garage")  # type: ignore[arg-type]
    assert notifier(20.0) is True
    assert notifier.cleared() is True
    assert notifier.start_recording(20.0) is True
    assert client.calls == [
        ("motion_detected", "Garage", 20.0),
        ("motion_cleared", "Garage"),
        ("start_recording", "Garage", "camera.garage"),
    ]


def test_webhook_notifier_swallows_delivery_errors():
    notifier = WebhookNotifier(_FakeClient(fail=True))  # type: ignore[arg-type]
    assert notifier(20.0) is False
    assert notifier.cleared() is False
    assert notifier.start_recording(20.0) is False
