"""Accuracy and consistency metrics for ranging SLAM runs."""

from ranging_slam.eval.metrics import (
    compute_error_stats,
    compute_landmark_errors,
    compute_nis,
    compute_position_errors,
    compute_rmse,
    is_covariance_consistent,
)

__all__ = [
    "compute_error_stats",
    "compute_landmark_errors",
    "compute_nis",
    "compute_position_errors",
    "compute_rmse",
    "is_covariance_consistent",
]
