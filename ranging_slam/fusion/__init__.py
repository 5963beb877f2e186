"""Statistical gating helpers shared by the filter and evaluation code."""

from ranging_slam.fusion.gating import (
    chi_square_bounds,
    chi_square_threshold,
    mahalanobis_distance_squared,
    passes_gate,
)

__all__ = [
    "chi_square_bounds",
    "chi_square_threshold",
    "mahalanobis_distance_squared",
    "passes_gate",
]
