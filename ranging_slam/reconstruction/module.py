"""Incremental point cloud and voxel mesh reconstruction from SLAM states.

The module consumes SlamState snapshots only, so it can run on its own
thread behind a Feed subscription without sharing mutable state with the
processor.

Per state:
    1. Trajectory: append the device pose if it moved >= trajectory_spacing
       from the last recorded point.
    2. Merge: each landmark joins its nearest accumulated landmark closer than
       grid_resolution (confidence becomes the running average with the
       state's confidence), otherwise it is added with the state's confidence.
    3. Prune: drop landmarks with confidence < 0.5 * min_confidence or farther
       than max_range from the current pose.
    4. Point cloud: landmarks with confidence >= min_confidence within
       max_range. Published when non-empty.
    5. Mesh: once at least min_landmarks_for_mesh landmarks are accumulated,
       regenerate the voxel surface mesh from the point cloud; below that
       count the mesh is empty.

Out-of-range tuning values are clamped, never rejected.
"""

import logging
import threading
import warnings
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ranging_slam.config import ReconstructionConfig
from ranging_slam.reconstruction.voxels import EnvironmentMesh, build_voxel_mesh
from ranging_slam.slam.feed import Feed, FeedSubscription
from ranging_slam.slam.types import DevicePose, Point3D, SlamState

logger = logging.getLogger(__name__)

RESOLUTION_BOUNDS = (0.05, 1.0)
RANGE_BOUNDS = (5.0, 50.0)
CONFIDENCE_BOUNDS = (0.1, 0.9)


@dataclass(frozen=True)
class ReconstructionStatistics:
    """Summary of the accumulated reconstruction."""

    landmark_count: int
    pose_count: int
    is_reconstructing: bool
    grid_resolution: float


@dataclass
class _AccumulatedLandmark:
    position: Point3D
    confidence: float


def _clamp(name: str, value: float, bounds) -> float:
    lo, hi = bounds
    clamped = float(np.clip(value, lo, hi))
    if clamped != value:
        msg = f"{name}={value} outside [{lo}, {hi}], clamped to {clamped}"
        warnings.warn(msg, UserWarning, stacklevel=3)
        logger.warning(msg)
    return clamped


class ReconstructionModule:
    """Accumulates landmarks and poses into a point cloud and voxel mesh.

    Attributes:
        grid_resolution: Merge radius and voxel size (m).
        max_range: Landmarks farther than this from the device are dropped (m).
        min_confidence: Point cloud confidence threshold.
        point_clouds: Feed of point cloud snapshots.
        meshes: Feed of EnvironmentMesh snapshots.
    """

    def __init__(self, config: Optional[ReconstructionConfig] = None, feed_maxlen: int = 16):
        self.config = config if config is not None else ReconstructionConfig()
        self.grid_resolution = RESOLUTION_BOUNDS[0]
        self.max_range = RANGE_BOUNDS[0]
        self.min_confidence = CONFIDENCE_BOUNDS[0]
        self.update_parameters(
            self.config.grid_resolution, self.config.max_range, self.config.min_confidence
        )

        self.point_clouds: Feed[List[Point3D]] = Feed("point_cloud", feed_maxlen)
        self.meshes: Feed[EnvironmentMesh] = Feed("mesh", feed_maxlen)

        self._lock = threading.Lock()
        self._landmarks: List[_AccumulatedLandmark] = []
        self._trajectory: List[DevicePose] = []
        self._current_pose: Optional[DevicePose] = None
        self._mesh = EnvironmentMesh()

        self._subscription: Optional[FeedSubscription[SlamState]] = None
        self._worker: Optional[threading.Thread] = None
        self._running = threading.Event()

    def update_parameters(self, resolution: float, max_range: float, min_confidence: float) -> None:
        """Set tuning values, clamping each into its allowed range."""
        self.grid_resolution = _clamp("grid_resolution", resolution, RESOLUTION_BOUNDS)
        self.max_range = _clamp("max_range", max_range, RANGE_BOUNDS)
        self.min_confidence = _clamp("min_confidence", min_confidence, CONFIDENCE_BOUNDS)
        logger.debug(
            "Reconstruction parameters: resolution=%.3f, range=%.1f, confidence=%.2f",
            self.grid_resolution,
            self.max_range,
            self.min_confidence,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, states: Feed[SlamState], timeout: float = 0.1) -> None:
        """Consume a SlamState feed on a background thread.

        The subscription buffer drops the oldest state when this module falls
        behind; every state fully supersedes the previous one.
        """
        if self._running.is_set():
            logger.warning("Reconstruction already running")
            return

        logger.info("Starting reconstruction")
        self._subscription = states.subscribe_queue()
        self._running = threading.Event()
        self._running.set()
        self._worker = threading.Thread(
            target=self._worker_loop,
            args=(self._subscription, self._running, timeout),
            name="reconstruction",
            daemon=True,
        )
        self._worker.start()

    def stop(self, timeout: float = 1.5) -> None:
        """Stop the background consumer, processing whatever is still buffered."""
        self._running.clear()
        if self._worker is not None:
            self._worker.join(timeout=timeout)
            self._worker = None
        if self._subscription is not None:
            for state in self._subscription.drain():
                self.process_state(state)
            self._subscription.close()
            self._subscription = None
            logger.info("Stopped reconstruction")

    def _worker_loop(self, subscription, running: threading.Event, timeout: float) -> None:
        while running.is_set():
            state = subscription.poll(timeout=timeout)
            if state is not None:
                self.process_state(state)

    def reset(self) -> None:
        """Clear accumulated landmarks, trajectory and mesh."""
        with self._lock:
            self._landmarks = []
            self._trajectory = []
            self._current_pose = None
            self._mesh = EnvironmentMesh()
        self.point_clouds.clear()
        self.meshes.clear()
        logger.debug("Reconstruction reset")

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_state(self, state: SlamState) -> List[Point3D]:
        """Fold one SlamState into the reconstruction.

        Returns:
            The point cloud after this state.
        """
        with self._lock:
            self._current_pose = state.device_pose
            self._record_pose(state.device_pose)
            for landmark in state.landmarks:
                self._merge_landmark(landmark, state.confidence)
            self._prune()

            cloud = self._point_cloud()
            mesh = None
            if cloud and len(self._landmarks) >= self.config.min_landmarks_for_mesh:
                mesh = build_voxel_mesh(cloud, self.grid_resolution)
                self._mesh = mesh
                logger.debug(
                    "Mesh regenerated: %d vertices, %d triangles",
                    len(mesh.vertices),
                    len(mesh.triangles),
                )
            else:
                self._mesh = EnvironmentMesh()

        if cloud:
            self.point_clouds.publish(cloud)
        if mesh is not None and not mesh.is_empty:
            self.meshes.publish(mesh)
        return cloud

    def _record_pose(self, pose: DevicePose) -> None:
        if not self._trajectory:
            self._trajectory.append(pose)
            return
        moved = pose.position.distance_to(self._trajectory[-1].position)
        if moved >= self.config.trajectory_spacing:
            self._trajectory.append(pose)

    def _merge_landmark(self, landmark: Point3D, confidence: float) -> None:
        nearest = None
        nearest_distance = np.inf
        for existing in self._landmarks:
            d = existing.position.distance_to(landmark)
            if d < nearest_distance:
                nearest, nearest_distance = existing, d

        if nearest is not None and nearest_distance < self.grid_resolution:
            nearest.confidence = (nearest.confidence + confidence) / 2.0
        else:
            self._landmarks.append(_AccumulatedLandmark(landmark, confidence))

    def _within_range(self, point: Point3D) -> bool:
        if self._current_pose is None:
            return True
        return self._current_pose.position.distance_to(point) <= self.max_range

    def _prune(self) -> None:
        floor = self.min_confidence * 0.5
        kept = [
            lm
            for lm in self._landmarks
            if lm.confidence >= floor and self._within_range(lm.position)
        ]
        if len(kept) != len(self._landmarks):
            logger.debug("Pruned %d landmarks", len(self._landmarks) - len(kept))
        self._landmarks = kept

    def _point_cloud(self) -> List[Point3D]:
        return [
            lm.position
            for lm in self._landmarks
            if lm.confidence >= self.min_confidence and self._within_range(lm.position)
        ]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_reconstructing(self) -> bool:
        return self._running.is_set()

    def point_cloud(self) -> List[Point3D]:
        with self._lock:
            return self._point_cloud()

    def mesh(self) -> EnvironmentMesh:
        with self._lock:
            return self._mesh

    def trajectory(self) -> List[DevicePose]:
        with self._lock:
            return list(self._trajectory)

    def landmark_confidences(self) -> List[tuple]:
        """(position, confidence) pairs of every accumulated landmark."""
        with self._lock:
            return [(lm.position, lm.confidence) for lm in self._landmarks]

    def get_statistics(self) -> ReconstructionStatistics:
        with self._lock:
            return ReconstructionStatistics(
                landmark_count=len(self._landmarks),
                pose_count=len(self._trajectory),
                is_reconstructing=self.is_reconstructing,
                grid_resolution=self.grid_resolution,
            )
