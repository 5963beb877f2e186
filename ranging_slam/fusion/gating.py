"""Innovation gating utilities for the ranging EKF.

Ranging measurements corrupted by multipath tend to be consistent with the
sensor's own accuracy report yet wildly inconsistent with the filter's
prediction. The squared Mahalanobis distance of the innovation,

    d² = yᵀ S⁻¹ y

follows a chi-square distribution with m degrees of freedom when the
measurement agrees with the predicted state, so thresholding d² rejects
outliers at a known false-alarm rate.

The filter's default threshold 9.0 for a scalar range corresponds to the
"3-sigma" rule: chi_square_threshold(dof=1, confidence=0.9973) ≈ 9.0.
"""

import numpy as np
from scipy import stats


def mahalanobis_distance_squared(
    y: np.ndarray,
    S: np.ndarray
) -> float:
    """Compute squared Mahalanobis distance of an innovation.

        d² = yᵀ S⁻¹ y

    This is the same quantity as the Normalized Innovation Squared (NIS)
    computed in ranging_slam.eval.metrics.compute_nis.

    Args:
        y: Innovation vector (m,).
        S: Innovation covariance matrix (m × m), must be positive definite.

    Returns:
        Squared Mahalanobis distance d² (scalar).

    Raises:
        ValueError: If dimensions are incompatible, S contains non-finite
            values, or S is singular.

    Example:
        >>> y = np.array([3.0, 4.0])
        >>> S = np.diag([1.0, 1.0])
        >>> np.allclose(mahalanobis_distance_squared(y, S), 25.0)
        True
    """
    y = np.atleast_1d(np.asarray(y, dtype=float))
    S = np.atleast_2d(np.asarray(S, dtype=float))

    if y.ndim != 1:
        raise ValueError(f"Innovation y must be 1D, got shape {y.shape}")

    m = len(y)
    if S.shape != (m, m):
        raise ValueError(
            f"Innovation dimension {m} incompatible with S shape {S.shape}"
        )
    if not np.all(np.isfinite(S)):
        raise ValueError("Innovation covariance S contains non-finite values")

    try:
        S_inv = np.linalg.inv(S)
    except np.linalg.LinAlgError as e:
        raise ValueError(f"Innovation covariance S is singular: {e}")

    d_squared = float(y @ S_inv @ y)
    if not np.isfinite(d_squared):
        raise ValueError("Mahalanobis distance is not finite; S is ill-conditioned")

    return d_squared


def passes_gate(d_squared: float, threshold: float) -> bool:
    """Accept a measurement whose squared Mahalanobis distance is within threshold.

    The boundary is inclusive: d² == threshold is accepted.
    """
    return bool(d_squared <= threshold)


def chi_square_threshold(dof: int, confidence: float = 0.95) -> float:
    """Chi-square critical value χ²(m, α) for gating.

    Args:
        dof: Degrees of freedom m (measurement dimension).
        confidence: Confidence level α in (0, 1).

    Returns:
        Critical value such that P(d² <= value) = confidence.

    Raises:
        ValueError: If dof < 1 or confidence is outside (0, 1).

    Example:
        >>> np.allclose(chi_square_threshold(dof=1, confidence=0.95), 3.841, atol=0.01)
        True
        >>> round(chi_square_threshold(dof=1, confidence=0.9973), 1)
        9.0
    """
    if dof < 1:
        raise ValueError(f"Degrees of freedom must be positive, got {dof}")
    if not (0 < confidence < 1):
        raise ValueError(f"Confidence level must be in (0, 1), got {confidence}")

    return float(stats.chi2.ppf(confidence, dof))


def chi_square_bounds(dof: int, confidence: float = 0.95) -> tuple[float, float]:
    """Two-sided chi-square interval for NIS consistency monitoring.

    Args:
        dof: Degrees of freedom m.
        confidence: Central probability mass covered by the interval.

    Returns:
        Tuple (lower_bound, upper_bound).
    """
    if dof < 1:
        raise ValueError(f"Degrees of freedom must be positive, got {dof}")
    if not (0 < confidence < 1):
        raise ValueError(f"Confidence level must be in (0, 1), got {confidence}")

    lower = float(stats.chi2.ppf((1.0 - confidence) / 2.0, dof))
    upper = float(stats.chi2.ppf((1.0 + confidence) / 2.0, dof))
    return lower, upper
