from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from common.time import from_iso, to_iso_utc


class ConfigError(ValueError):
    """Detection configuration is out of range (raised at start time)."""


@dataclass(frozen=True)
class DetectionConfig:
    """
    Immutable detection settings for one detector run.

    Defaults mirror the dashboard's per-camera defaults. To change any value
    mid-run, build a new config and call ``DetectionLoop.start()`` again.
    """

    # Pixel-level sensitivity (0..100); higher => smaller luminance delta counts.
    sensitivity: float = 70.0
    # Minimum motion score (% of changed pixels) that counts as motion.
    threshold: float = 0.5
    noise_reduction: bool = True

    # Schedule window in local hours; wraps past midnight when start > end.
    schedule_enabled: bool = False
    start_hour: int = 22
    end_hour: int = 6

    # Minimum spacing between two alerts, in seconds.
    cooldown_period_s: int = 30

    # Accepted and carried, but not used by scoring or gating.
    min_motion_duration_ms: int = 500
    detection_zones_enabled: bool = False

    enabled: bool = True

    # Cadence knobs.
    tick_interval_ms: int = 1000
    clear_delay_ms: int = 3000

    @property
    def noise_floor(self) -> float:
        return 15.0 if self.noise_reduction else 5.0

    @property
    def pixel_threshold(self) -> float:
        """Per-pixel luminance delta a pixel must exceed to count as changed."""
        return max(self.noise_floor, 255.0 - float(self.sensitivity) * 2.55)

    def validate(self) -> DetectionConfig:
        """Return ``self`` if every field is in range, else raise ConfigError."""
        if not 0.0 <= float(self.sensitivity) <= 100.0:
            raise ConfigError(f"sensitivity must be within 0..100, got {self.sensitivity!r}")
        if not 0.0 <= float(self.threshold) <= 100.0:
            raise ConfigError(f"threshold must be within 0..100, got {self.threshold!r}")
        for name in ("start_hour", "end_hour"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 23:
                raise ConfigError(f"{name} must be an integer hour within 0..23, got {value!r}")
        if self.cooldown_period_s < 0:
            raise ConfigError(f"cooldown_period_s must be >= 0, got {self.cooldown_period_s!r}")
        if self.min_motion_duration_ms < 0:
            raise ConfigError(
                f"min_motion_duration_ms must be >= 0, got {self.min_motion_duration_ms!r}"
            )
        if self.tick_interval_ms <= 0:
            raise ConfigError(f"tick_interval_ms must be > 0, got {self.tick_interval_ms!r}")
        if self.clear_delay_ms <= 0:
            raise ConfigError(f"clear_delay_ms must be > 0, got {self.clear_delay_ms!r}")
        return self

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> DetectionConfig:
        """Build a config from a stored camera-settings mapping.

        Keys follow the persisted settings schema (``motion_sensitivity``,
        ``motion_threshold``, ``cooldown_period`` ...). Missing keys fall back to
        the defaults above. The result is validated.
        """
        d = cls()

        def _get(key: str, default: Any) -> Any:
            value = settings.get(key)
            return default if value is None else value

        try:
            cfg = cls(
                sensitivity=float(_get("motion_sensitivity", d.sensitivity)),
                threshold=float(_get("motion_threshold", d.threshold)),
                noise_reduction=bool(_get("noise_reduction", d.noise_reduction)),
                schedule_enabled=bool(_get("schedule_enabled", d.schedule_enabled)),
                start_hour=int(_get("start_hour", d.start_hour)),
                end_hour=int(_get("end_hour", d.end_hour)),
                cooldown_period_s=int(_get("cooldown_period", d.cooldown_period_s)),
                min_motion_duration_ms=int(_get("min_motion_duration", d.min_motion_duration_ms)),
                detection_zones_enabled=bool(
                    _get("detection_zones_enabled", d.detection_zones_enabled)
                ),
                enabled=bool(_get("motion_enabled", d.enabled)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid camera settings: {exc}") from exc
        return cfg.validate()


@dataclass
class MotionState:
    """Mutable detector state; written only by the temporal gate."""

    is_active: bool = False
    current_level: float = 0.0
    last_alert_ms: Optional[float] = None
    events_today: int = 0
    open_event_id: Optional[str] = None

    def snapshot(self) -> MotionState:
        return dataclasses.replace(self)


@dataclass(frozen=True)
class MotionEvent:
    """
    One motion episode, from the "started" transition to the matching "cleared".

    Created open (``cleared_at_ms is None``) and finalised exactly once via
    :meth:`finalize`, which returns a new instance.
    """

    id: str
    motion_level: float
    detected_at_ms: float

    cleared_at_ms: Optional[float] = None
    duration_ms: Optional[float] = None

    recording_triggered: bool = False
    notification_sent: bool = False

    camera_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.cleared_at_ms is None

    def finalize(self, cleared_at_ms: float) -> MotionEvent:
        return dataclasses.replace(
            self,
            cleared_at_ms=float(cleared_at_ms),
            duration_ms=max(0.0, float(cleared_at_ms) - self.detected_at_ms),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise with the dashboard's field names (``email_sent``, ISO times)."""
        return {
            "id": self.id,
            "camera_id": self.camera_id,
            "motion_level": float(self.motion_level),
            "detected_at": to_iso_utc(self.detected_at_ms),
            "detected_at_ms": float(self.detected_at_ms),
            "cleared_at": (
                to_iso_utc(self.cleared_at_ms) if self.cleared_at_ms is not None else None
            ),
            "cleared_at_ms": self.cleared_at_ms,
            "duration_ms": self.duration_ms,
            "recording_triggered": bool(self.recording_triggered),
            "email_sent": bool(self.notification_sent),
            "detection_zone": None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MotionEvent:
        """Inverse of :meth:`to_dict`; accepts rows that only carry ISO timestamps."""
        detected = data.get("detected_at_ms")
        if detected is None:
            detected = from_iso(str(data["detected_at"]))
        cleared = data.get("cleared_at_ms")
        if cleared is None and data.get("cleared_at"):
            cleared = from_iso(str(data["cleared_at"]))
        duration = data.get("duration_ms")
        return cls(
            id=str(data["id"]),
            motion_level=float(data["motion_level"]),
            detected_at_ms=float(detected),
            cleared_at_ms=float(cleared) if cleared is not None else None,
            duration_ms=float(duration) if duration is not None else None,
            recording_triggered=bool(data.get("recording_triggered", False)),
            notification_sent=bool(data.get("email_sent", data.get("notification_sent", False))),
            camera_id=data.get("camera_id"),
        )
