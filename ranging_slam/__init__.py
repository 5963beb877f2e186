"""
Ranging SLAM: EKF-based localization and mapping from heterogeneous range sensors.

Subpackages:
    coords: quaternion algebra (scalar-first, body to world)
    sensors: measurement records and the measurement validator
    fusion: Mahalanobis / chi-square gating
    estimators: the 10-state ranging EKF
    slam: processor, loop-closure detector, snapshot types and feeds
    reconstruction: point cloud accumulation and voxel surface mesh
    eval: error and consistency metrics
    sim: deterministic synthetic scenarios
"""

from ranging_slam.config import SlamConfig
from ranging_slam.reconstruction import ReconstructionModule
from ranging_slam.sensors import IMUMeasurement, RangingMeasurement, RangingType
from ranging_slam.slam import SlamProcessor

__version__ = "0.1.0"

__all__ = [
    "IMUMeasurement",
    "RangingMeasurement",
    "RangingType",
    "ReconstructionModule",
    "SlamConfig",
    "SlamProcessor",
]
