from __future__ import annotations

import math

import pytest

from analysis.motion.model import ConfigError, DetectionConfig


def test_defaults_match_camera_defaults():
    cfg = DetectionConfig()
    assert cfg.sensitivity == 70.0
    assert cfg.threshold == 0.5
    assert cfg.noise_reduction is True
    assert (cfg.start_hour, cfg.end_hour) == (22, 6)
    assert cfg.cooldown_period_s == 30
    assert cfg.min_motion_duration_ms == 500
    assert (cfg.tick_interval_ms, cfg.clear_delay_ms) == (1000, 3000)
    assert cfg.validate() is cfg


def test_from_settings_maps_stored_keys():
    cfg = DetectionConfig.from_settings(
        {
            "motion_enabled": True,
            "motion_sensitivity": 55,
            "motion_threshold": 1.5,
            "schedule_enabled": True,
            "start_hour": 20,
            "end_hour": 7,
            "cooldown_period": 10,
            "min_motion_duration": 800,
            "noise_reduction": False,
            "detection_zones_enabled": True,
        }
    )
    assert cfg.sensitivity == 55.0 and cfg.threshold == 1.5
    assert cfg.schedule_enabled and (cfg.start_hour, cfg.end_hour) == (20, 7)
    assert cfg.cooldown_period_s == 10
    assert cfg.min_motion_duration_ms == 800
    assert cfg.detection_zones_enabled is True
    assert math.isclose(cfg.pixel_threshold, 255 - 55 * 2.55)
    assert cfg.noise_floor == 5.0


def test_from_settings_fills_missing_and_null_keys():
    cfg = DetectionConfig.from_settings({"motion_sensitivity": None})
    assert cfg == DetectionConfig()


@pytest.mark.parametrize(
    "settings",
    [
        {"start_hour": 24},
        {"cooldown_period": -1},
        {"motion_threshold": "lots"},
        {"motion_sensitivity": 150},
    ],
)
def test_from_settings_rejects_bad_values(settings):
    with pytest.raises(ConfigError):
        DetectionConfig.from_settings(settings)


def test_config_error_is_a_value_error():
    with pytest.raises(ValueError):
        DetectionConfig(end_hour=True).validate()
