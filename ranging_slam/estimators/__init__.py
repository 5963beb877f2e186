"""State estimators for ranging SLAM."""

from ranging_slam.estimators.base import StateEstimator
from ranging_slam.estimators.slam_ekf import (
    STATE_DIM,
    LandmarkEstimate,
    RangingSlamEKF,
    UpdateOutcome,
    UpdateResult,
)

__all__ = [
    "STATE_DIM",
    "StateEstimator",
    "LandmarkEstimate",
    "RangingSlamEKF",
    "UpdateOutcome",
    "UpdateResult",
]
