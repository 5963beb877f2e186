"""Tests for loading and validating SlamConfig."""

import json

import pytest

from ranging_slam.config import (
    EKFConfig,
    LoopClosureConfig,
    ProcessorConfig,
    SlamConfig,
    ValidatorConfig,
)
from ranging_slam.sensors.types import RangingType


def test_defaults():
    config = SlamConfig()
    assert config.ekf.mahalanobis_threshold == 9.0
    assert config.validator.max_speed == 10.0
    assert config.loop_closure.min_confidence == 0.75
    assert config.reconstruction.grid_resolution == 0.1
    assert config.processor.priority(RangingType.ACOUSTIC_FMCW) == 1.0
    assert config.validator.max_accuracy(RangingType.BLUETOOTH_CS) == 5.0


def test_from_dict_overrides_only_given_keys():
    config = SlamConfig.from_dict({"ekf": {"acoustic_fmcw_variance": 0.02}})
    assert config.ekf.acoustic_fmcw_variance == 0.02
    assert config.ekf.wifi_rtt_variance == 1.0
    assert config.validator == ValidatorConfig()


def test_unknown_section_raises():
    with pytest.raises(ValueError, match="sections"):
        SlamConfig.from_dict({"lidar": {}})


def test_unknown_key_raises():
    with pytest.raises(ValueError, match="ekf"):
        SlamConfig.from_dict({"ekf": {"bogus": 1.0}})


def test_json_round_trip(tmp_path):
    path = tmp_path / "slam.json"
    original = SlamConfig.from_dict(
        {"reconstruction": {"grid_resolution": 0.2}, "loop_closure": {"location_threshold": 1.5}}
    )
    path.write_text(json.dumps(original.to_dict()))
    assert SlamConfig.from_json(path) == original


@pytest.mark.parametrize(
    "factory",
    [
        lambda: EKFConfig(acoustic_fmcw_variance=0.0),
        lambda: EKFConfig(min_dt=0.5, max_dt=0.1),
        lambda: ValidatorConfig(min_distance=5.0, max_distance=1.0),
        lambda: ValidatorConfig(consistency_window=20),
        lambda: LoopClosureConfig(min_confidence=1.5),
        lambda: ProcessorConfig(confidence_normalizer=0.0),
    ],
)
def test_invalid_values_raise(factory):
    with pytest.raises(ValueError):
        factory()
