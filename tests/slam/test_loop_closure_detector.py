"""Unit tests for ranging_slam.slam.loop_closure."""

import numpy as np
import pytest

from ranging_slam.config import LoopClosureConfig
from ranging_slam.sensors.types import RangingMeasurement, RangingType
from ranging_slam.slam.loop_closure import LoopClosureDetector
from ranging_slam.slam.types import DevicePose, Point3D


def _pose(x, y=0.0, z=0.0, t=0):
    return DevicePose(Point3D(x, y, z), (1.0, 0.0, 0.0, 0.0), t)


def _meas(source="ap_1", accuracy=0.2, t=0):
    return RangingMeasurement(source, 3.0, accuracy, t, RangingType.WIFI_RTT)


def _trajectory(detector, source_ids):
    """Walk out 10 m and back, ranging each listed source at every step."""
    closures = []
    xs = list(np.arange(0.0, 10.0, 1.0)) + list(np.arange(10.0, -0.1, -1.0))
    for k, x in enumerate(xs):
        for source in source_ids(k):
            result = detector.detect(_meas(source, t=k), _pose(x, t=k))
            if result is not None:
                closures.append((k, result))
    return closures


class TestDetection:

    def test_revisit_with_shared_landmark_is_detected(self):
        detector = LoopClosureDetector()
        assert detector.detect(_meas("ap_1"), _pose(0.0)) is None

        # Walk away
        for k, x in enumerate([3.0, 6.0, 9.0], start=1):
            assert detector.detect(_meas("ap_2", t=k), _pose(x, t=k)) is None

        # Return within 0.3 m, same landmark, displacement <= 3 * 0.2
        closure = detector.detect(_meas("ap_1", t=10), _pose(0.3, t=10))
        assert closure is not None
        assert closure.landmark_id == "ap_1"
        assert closure.confidence > 0.75
        assert closure.historic_pose.position == Point3D(0.0, 0.0, 0.0)
        assert closure.current_pose.timestamp == 10

    def test_revisit_without_shared_landmark_is_not_detected(self):
        detector = LoopClosureDetector()
        detector.detect(_meas("ap_1"), _pose(0.0))
        detector.detect(_meas("ap_2", t=1), _pose(5.0, t=1))
        assert detector.detect(_meas("ap_3", t=2), _pose(0.3, t=2)) is None

    def test_geometric_inconsistency_blocks_closure(self):
        detector = LoopClosureDetector()
        detector.detect(_meas("ap_1", accuracy=0.1), _pose(0.0))
        # 1.5 m is inside the location threshold but beyond 3 * 0.1
        assert detector.detect(_meas("ap_1", accuracy=0.1, t=1), _pose(1.5, t=1)) is None

    def test_low_confidence_blocks_closure(self):
        detector = LoopClosureDetector()
        detector.detect(_meas("ap_1", accuracy=0.5), _pose(0.0))
        # Consistent (1.4 <= 1.5) but confidence 0.09 + 0.2 + 0.4 = 0.69
        assert detector.detect(_meas("ap_1", accuracy=0.5, t=1), _pose(1.4, t=1)) is None

    def test_outside_threshold_is_not_a_revisit(self):
        detector = LoopClosureDetector()
        detector.detect(_meas("ap_1", accuracy=1.0), _pose(0.0))
        assert detector.detect(_meas("ap_1", accuracy=1.0, t=1), _pose(2.0, t=1)) is None

    def test_identical_replay_is_deterministic(self):
        def run():
            detector = LoopClosureDetector()
            return [
                (k, c.landmark_id, c.confidence)
                for k, c in _trajectory(detector, lambda k: ["ap_2"])
            ]

        first, second = run(), run()
        assert first
        assert first == second


class TestConfidence:

    def test_weighted_blend(self):
        detector = LoopClosureDetector()
        c = detector.compute_confidence(distance=0.5, accuracy=0.25, matching_landmarks=1, total_landmarks=2)
        expected = 0.3 * (1.5 / 2.0) + 0.3 / 1.25 + 0.4 * 0.5
        assert c == pytest.approx(expected)

    def test_clamped_to_unit_interval(self):
        detector = LoopClosureDetector(LoopClosureConfig(similarity_weight=5.0))
        assert detector.compute_confidence(0.0, 0.0, 1, 1) == 1.0


class TestHistory:

    def test_nearby_observations_merge_into_one_location(self):
        detector = LoopClosureDetector()
        detector.detect(_meas("ap_1", accuracy=0.01), _pose(0.0))
        detector.detect(_meas("ap_2", accuracy=0.01, t=1), _pose(0.5, t=1))
        detector.detect(_meas("ap_3", accuracy=0.01, t=2), _pose(5.0, t=2))
        visited = detector.visited_locations
        assert len(visited) == 2
        assert visited[0].landmark_ids == ["ap_1", "ap_2"]
        assert visited[1].landmark_ids == ["ap_3"]

    def test_closure_merges_into_matched_location(self):
        detector = LoopClosureDetector()
        detector.detect(_meas("ap_1"), _pose(0.0))
        assert detector.detect(_meas("ap_1", t=1), _pose(0.1, t=1)) is not None
        assert len(detector.visited_locations) == 1
        assert detector.visited_locations[0].landmark_ids == ["ap_1"]

    def test_reset_clears_history(self):
        detector = LoopClosureDetector()
        detector.detect(_meas("ap_1"), _pose(0.0))
        detector.reset()
        assert detector.visited_locations == []
        assert detector.detect(_meas("ap_1", t=1), _pose(0.1, t=1)) is None
