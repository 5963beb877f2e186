"""Tests for incremental point cloud and mesh reconstruction."""

import numpy as np
import pytest

from ranging_slam.config import ReconstructionConfig
from ranging_slam.reconstruction.module import ReconstructionModule
from ranging_slam.slam.feed import Feed
from ranging_slam.slam.types import DevicePose, Point3D, SlamState


def _state(landmarks, confidence=0.9, position=(0.0, 0.0, 0.0), timestamp=0):
    return SlamState(
        device_pose=DevicePose(Point3D(*position), (1.0, 0.0, 0.0, 0.0), timestamp),
        landmarks=tuple(Point3D(*lm) for lm in landmarks),
        covariance=np.eye(10),
        confidence=confidence,
    )


class TestLandmarkAccumulation:

    def test_nearby_landmarks_merge_and_average_confidence(self):
        module = ReconstructionModule()
        module.process_state(_state([(1.0, 0.0, 0.0)], confidence=0.9))
        module.process_state(_state([(1.05, 0.0, 0.0)], confidence=0.5))
        confidences = module.landmark_confidences()
        assert len(confidences) == 1
        position, confidence = confidences[0]
        assert position == Point3D(1.0, 0.0, 0.0)
        assert confidence == pytest.approx(0.7)

    def test_distant_landmarks_are_kept_apart(self):
        module = ReconstructionModule()
        cloud = module.process_state(_state([(1.0, 0.0, 0.0), (1.5, 0.0, 0.0)]))
        assert len(cloud) == 2

    def test_same_landmark_every_state_stays_single(self):
        module = ReconstructionModule()
        for k in range(20):
            module.process_state(_state([(2.0, 1.0, 0.0)], timestamp=k))
        assert module.get_statistics().landmark_count == 1


class TestPruning:

    def test_out_of_range_landmark_is_dropped(self):
        module = ReconstructionModule()
        cloud = module.process_state(_state([(30.0, 0.0, 0.0), (3.0, 0.0, 0.0)]))
        assert cloud == [Point3D(3.0, 0.0, 0.0)]
        assert module.get_statistics().landmark_count == 1

    def test_range_follows_device(self):
        module = ReconstructionModule()
        module.process_state(_state([(1.0, 0.0, 0.0)]))
        module.process_state(_state([], position=(25.0, 0.0, 0.0)))
        assert module.get_statistics().landmark_count == 0

    def test_low_confidence_is_pruned(self):
        module = ReconstructionModule()
        module.process_state(_state([(1.0, 0.0, 0.0)], confidence=0.1))
        assert module.get_statistics().landmark_count == 0

    def test_medium_confidence_is_kept_but_not_in_cloud(self):
        module = ReconstructionModule()
        cloud = module.process_state(_state([(1.0, 0.0, 0.0)], confidence=0.2))
        assert cloud == []
        assert module.get_statistics().landmark_count == 1

    def test_empty_cloud_is_not_published(self):
        module = ReconstructionModule()
        received = []
        module.point_clouds.subscribe(received.append)
        module.process_state(_state([(1.0, 0.0, 0.0)], confidence=0.2))
        assert received == []


class TestParameters:

    def test_out_of_range_values_are_clamped_with_warning(self):
        module = ReconstructionModule()
        with pytest.warns(UserWarning, match="grid_resolution"):
            module.update_parameters(0.01, 20.0, 0.3)
        assert module.grid_resolution == 0.05

        with pytest.warns(UserWarning):
            module.update_parameters(0.1, 100.0, 0.95)
        assert module.max_range == 50.0
        assert module.min_confidence == 0.9

    def test_config_values_are_clamped_at_construction(self):
        with pytest.warns(UserWarning, match="max_range"):
            module = ReconstructionModule(ReconstructionConfig(max_range=1.0))
        assert module.max_range == 5.0

    def test_valid_values_do_not_warn(self, recwarn):
        module = ReconstructionModule()
        module.update_parameters(0.2, 10.0, 0.5)
        assert len(recwarn) == 0
        assert (module.grid_resolution, module.max_range, module.min_confidence) == (0.2, 10.0, 0.5)


class TestTrajectory:

    def test_poses_recorded_at_minimum_spacing(self):
        module = ReconstructionModule()
        for k, x in enumerate([0.0, 0.05, 0.12, 0.15, 0.3]):
            module.process_state(_state([], position=(x, 0.0, 0.0), timestamp=k))
        xs = [p.position.x for p in module.trajectory()]
        assert xs == pytest.approx([0.0, 0.12, 0.3])


class TestMesh:

    def test_mesh_waits_for_enough_landmarks(self):
        module = ReconstructionModule()
        module.process_state(_state([(float(i), 0.0, 0.0) for i in range(9)]))
        assert module.mesh().is_empty

    def test_mesh_generated_and_published(self):
        module = ReconstructionModule()
        meshes = module.meshes.subscribe_queue()
        module.process_state(_state([(float(i), 0.0, 0.0) for i in range(10)]))
        mesh = module.mesh()
        assert len(mesh.vertices) == 80
        assert len(mesh.triangles) == 120
        assert len(mesh.normals) == 120
        assert meshes.poll() == mesh

    def test_mesh_cleared_when_landmarks_drop_below_minimum(self):
        module = ReconstructionModule()
        module.process_state(_state([(float(i), 0.0, 0.0) for i in range(10)]))
        assert not module.mesh().is_empty
        # Moving 25 m along x puts the first five landmarks beyond max_range
        module.process_state(_state([], position=(25.0, 0.0, 0.0), timestamp=1))
        assert module.get_statistics().landmark_count == 5
        assert module.mesh().is_empty


class TestLifecycle:

    def test_reset_then_replay_is_idempotent(self):
        states = [
            _state([(float(i), 1.0, 0.0) for i in range(k + 1)], timestamp=k)
            for k in range(12)
        ]
        module = ReconstructionModule()
        for s in states:
            module.process_state(s)
        first = (module.point_cloud(), module.mesh(), module.trajectory())

        module.reset()
        assert module.point_cloud() == []
        assert module.mesh().is_empty
        assert module.point_clouds.latest is None

        for s in states:
            module.process_state(s)
        assert (module.point_cloud(), module.mesh(), module.trajectory()) == first

    def test_background_consumer(self):
        feed = Feed("states")
        module = ReconstructionModule()
        module.start(feed, timeout=0.01)
        assert module.is_reconstructing
        for k in range(5):
            feed.publish(_state([(1.0 + k, 0.0, 0.0)], timestamp=k))
        module.stop()

        assert not module.is_reconstructing
        assert module.get_statistics().landmark_count == 5
        assert len(module.point_cloud()) == 5
