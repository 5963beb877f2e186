"""Value types emitted by the SLAM processor.

Everything that leaves the processor is an immutable snapshot: consumers on
other threads may hold on to a SlamState indefinitely without seeing it
change underneath them.

Author: Navigation Engineer
"""

from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np


def _f32(value: float) -> float:
    return float(np.float32(value))


@dataclass(frozen=True)
class Point3D:
    """Single-precision 3D point.

    Coordinates are rounded to float32 on construction so that equality and
    hashing are value-based at the stored precision.

    Example:
        >>> Point3D(1.0, 2.0, 3.0) == Point3D.from_array(np.array([1.0, 2.0, 3.0]))
        True
    """

    x: float
    y: float
    z: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", _f32(self.x))
        object.__setattr__(self, "y", _f32(self.y))
        object.__setattr__(self, "z", _f32(self.z))

    @classmethod
    def from_array(cls, arr) -> "Point3D":
        arr = np.asarray(arr, dtype=float)
        if arr.shape != (3,):
            raise ValueError(f"Point3D needs a (3,) array, got shape {arr.shape}")
        return cls(arr[0], arr[1], arr[2])

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def distance_to(self, other: "Point3D") -> float:
        return float(np.linalg.norm(self.to_array() - other.to_array()))


@dataclass(frozen=True)
class DevicePose:
    """Device position, attitude quaternion [qw, qx, qy, qz] and time (ms)."""

    position: Point3D
    orientation: Tuple[float, float, float, float]
    timestamp: int

    def __post_init__(self) -> None:
        q = tuple(_f32(c) for c in self.orientation)
        if len(q) != 4:
            raise ValueError(f"orientation must have 4 components, got {len(q)}")
        object.__setattr__(self, "orientation", q)


@dataclass(frozen=True, eq=False)
class SlamState:
    """Snapshot of the SLAM estimate.

    Attributes:
        device_pose: Current pose estimate.
        landmarks: Landmark positions, ordered by first observation.
        covariance: Read-only copy of the 10×10 state covariance.
        confidence: 1 - trace(P_pos)/normalizer, clamped to [0, 1].
    """

    device_pose: DevicePose
    landmarks: Tuple[Point3D, ...]
    covariance: np.ndarray
    confidence: float

    def __post_init__(self) -> None:
        cov = np.array(self.covariance, dtype=float)
        cov.setflags(write=False)
        object.__setattr__(self, "covariance", cov)
        object.__setattr__(self, "landmarks", tuple(self.landmarks))

    def __eq__(self, other) -> bool:
        if not isinstance(other, SlamState):
            return NotImplemented
        return (
            self.device_pose == other.device_pose
            and self.landmarks == other.landmarks
            and self.confidence == other.confidence
            and np.array_equal(self.covariance, other.covariance)
        )


@dataclass
class VisitedLocation:
    """A place the device has been, with the landmark ids observed there."""

    pose: DevicePose
    landmark_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class LoopClosure:
    """A detected revisit of a previously observed location.

    Attributes:
        landmark_id: Shared landmark that triggered the match.
        historic_pose: Pose recorded on the earlier visit.
        current_pose: Pose at detection time.
        confidence: Blended score in [0, 1].
    """

    landmark_id: str
    historic_pose: DevicePose
    current_pose: DevicePose
    confidence: float


@dataclass(frozen=True)
class ProcessingStatistics:
    """Counters exposed by the SLAM processor.

    Attributes:
        measurement_count: Ranging measurements that reached the filter.
        rejected_measurement_count: Measurements failing validation.
        outlier_count: Measurements the filter gated out or skipped.
        loop_closure_count: Loop closures detected.
        landmark_count: Landmarks currently in the map.
        is_processing: True while stream workers are running.
    """

    measurement_count: int = 0
    rejected_measurement_count: int = 0
    outlier_count: int = 0
    loop_closure_count: int = 0
    landmark_count: int = 0
    is_processing: bool = False
