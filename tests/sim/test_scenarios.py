"""Tests for the synthetic SLAM scenarios."""

import numpy as np
import pytest

from ranging_slam.sensors.types import RangingType
from ranging_slam.sim.scenarios import (
    DEFAULT_LOOP_LANDMARKS,
    revisit_loop_scenario,
    stationary_reflector_scenario,
)
from ranging_slam.slam.processor import SlamProcessor


class TestStationaryReflector:

    def test_layout(self):
        scenario = stationary_reflector_scenario()
        assert len(scenario.imu) == 3
        assert len(scenario.ranging) == 20
        assert all(len(batch) == 1 for batch in scenario.ranging)
        np.testing.assert_array_equal(scenario.landmarks["refl_1"], [0.0, 0.0, 2.0])
        np.testing.assert_array_equal(scenario.truth_at(500), np.zeros(3))

    def test_ranges_follow_jitter_pattern(self):
        scenario = stationary_reflector_scenario()
        distances = [batch[0].distance for batch in scenario.ranging[:4]]
        assert distances == pytest.approx([2.0, 2.01, 2.0, 1.99])
        assert all(batch[0].measurement_type is RangingType.ACOUSTIC_FMCW for batch in scenario.ranging)

    def test_ranging_starts_after_imu(self):
        scenario = stationary_reflector_scenario()
        last_imu = scenario.imu[-1].timestamp
        assert scenario.ranging[0][0].timestamp > last_imu
        ts = [batch[0].timestamp for batch in scenario.ranging]
        assert ts == sorted(ts)

    def test_corrupted_range(self):
        scenario = stationary_reflector_scenario(corrupted_index=10)
        assert scenario.corrupted_index == 10
        assert scenario.ranging[10][0].distance == 15.0
        assert scenario.ranging[9][0].distance != 15.0


class TestRevisitLoop:

    def test_loop_is_closed_at_rest(self):
        scenario = revisit_loop_scenario()
        np.testing.assert_allclose(scenario.truth_positions[0], np.zeros(3))
        np.testing.assert_allclose(scenario.truth_positions[-1], np.zeros(3), atol=1e-9)
        assert np.max(np.linalg.norm(scenario.truth_positions, axis=1)) > 1.0

    def test_rates_and_batches(self):
        scenario = revisit_loop_scenario(duration_s=10.0, imu_rate_hz=50.0, ranging_rate_hz=5.0)
        assert len(scenario.imu) == 501
        assert len(scenario.ranging) == 50
        assert all(len(batch) == len(DEFAULT_LOOP_LANDMARKS) for batch in scenario.ranging)

    def test_seed_reproducibility(self):
        a = revisit_loop_scenario(seed=3)
        b = revisit_loop_scenario(seed=3)
        c = revisit_loop_scenario(seed=4)
        assert a.ranging[5][0].distance == b.ranging[5][0].distance
        assert a.ranging[5][0].distance != c.ranging[5][0].distance

    def test_processor_runs_end_to_end(self):
        scenario = revisit_loop_scenario(duration_s=10.0)
        processor = SlamProcessor()
        state = processor.replay(scenario.imu, scenario.ranging)
        assert state is not None
        assert processor.get_statistics().landmark_count == len(DEFAULT_LOOP_LANDMARKS)
        assert np.linalg.norm(processor.ekf.orientation) == pytest.approx(1.0)
