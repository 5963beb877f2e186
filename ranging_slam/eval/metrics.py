"""
Evaluation metrics for ranging SLAM runs.

Error metrics compare estimated trajectories and landmark maps against
ground truth; consistency checks verify that a covariance matrix is still a
valid covariance (symmetric, positive semi-definite) and that innovations
are statistically compatible with their predicted covariance (NIS).

Author: Navigation Engineering Team
"""

from typing import Dict, Mapping, Optional, Union

import numpy as np


def compute_position_errors(
    truth: np.ndarray, estimated: np.ndarray
) -> np.ndarray:
    """
    Compute position errors between true and estimated positions.

    Args:
        truth: True positions, shape (N, 3)
        estimated: Estimated positions, shape (N, 3)

    Returns:
        errors: Position error vectors (estimated - truth), shape (N, 3)

    Raises:
        ValueError: If inputs have incompatible shapes
    """
    truth = np.asarray(truth, dtype=float)
    estimated = np.asarray(estimated, dtype=float)

    if truth.shape != estimated.shape:
        raise ValueError(
            f"Shape mismatch: truth {truth.shape} vs estimated {estimated.shape}"
        )

    return estimated - truth


def compute_rmse(errors: np.ndarray, axis: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Compute Root Mean Square Error (RMSE).

    Args:
        errors: Error vectors, shape (N, d) or (N,)
        axis: None for a scalar over all entries, 0 per dimension, 1 per sample

    Returns:
        rmse: RMSE value(s)
    """
    errors = np.asarray(errors, dtype=float)

    if axis is None:
        return float(np.sqrt(np.mean(errors**2)))
    return np.sqrt(np.mean(errors**2, axis=axis))


def compute_error_stats(errors: np.ndarray) -> Dict[str, float]:
    """
    Summary statistics of error magnitudes.

    Args:
        errors: Error vectors, shape (N, d) or (N,)

    Returns:
        Dictionary with 'mean', 'median', 'std', 'rmse', 'p95' and 'max'.
    """
    errors = np.asarray(errors, dtype=float)
    if errors.ndim > 1:
        magnitudes = np.linalg.norm(errors, axis=1)
    else:
        magnitudes = np.abs(errors)

    return {
        "mean": float(np.mean(magnitudes)),
        "median": float(np.median(magnitudes)),
        "std": float(np.std(magnitudes)),
        "rmse": float(np.sqrt(np.mean(magnitudes**2))),
        "p95": float(np.percentile(magnitudes, 95)),
        "max": float(np.max(magnitudes)),
    }


def compute_landmark_errors(
    truth: Mapping[str, np.ndarray], estimated: Mapping[str, np.ndarray]
) -> Dict[str, float]:
    """
    Euclidean error per landmark id present in both maps.

    Args:
        truth: Landmark id -> true position (3,)
        estimated: Landmark id -> estimated position (3,)

    Returns:
        Landmark id -> position error in meters. Ids missing from either
        map are skipped.
    """
    return {
        landmark_id: float(
            np.linalg.norm(np.asarray(estimated[landmark_id]) - np.asarray(position))
        )
        for landmark_id, position in truth.items()
        if landmark_id in estimated
    }


def compute_nis(innovation: np.ndarray, S: np.ndarray) -> np.ndarray:
    """
    Compute Normalized Innovation Squared (NIS).

        NIS = nu^T S^{-1} nu

    For a consistent filter NIS follows a chi-squared distribution with m
    degrees of freedom. Range updates are scalar, so innovation may be
    given as shape (N,) with S of shape (N,).

    Args:
        innovation: Innovation vectors, shape (N, m) or (N,)
        S: Innovation covariances, shape (N, m, m) or (N,) for m = 1

    Returns:
        nis: NIS values, shape (N,); NaN where S is singular

    Raises:
        ValueError: If inputs have incompatible shapes
    """
    innovation = np.asarray(innovation, dtype=float)
    S = np.asarray(S, dtype=float)

    if innovation.ndim == 1:
        innovation = innovation.reshape(-1, 1)
    N, m = innovation.shape
    if m == 1 and S.shape == (N,):
        S = S.reshape(N, 1, 1)

    if S.shape != (N, m, m):
        raise ValueError(f"S must have shape ({N}, {m}, {m}), got {S.shape}")

    nis = np.zeros(N)
    for i in range(N):
        try:
            S_inv = np.linalg.inv(S[i])
            nis[i] = innovation[i] @ S_inv @ innovation[i]
        except np.linalg.LinAlgError:
            nis[i] = np.nan

    return nis


def is_covariance_consistent(P: np.ndarray, atol: float = 1e-9) -> bool:
    """
    Check that P is symmetric and positive semi-definite.

    Args:
        P: Square covariance matrix.
        atol: Tolerance on asymmetry and on negative eigenvalues, scaled by
            the largest diagonal entry.

    Returns:
        True if P is a valid covariance within tolerance.
    """
    P = np.asarray(P, dtype=float)
    if P.ndim != 2 or P.shape[0] != P.shape[1]:
        return False
    if not np.all(np.isfinite(P)):
        return False

    scale = max(1.0, float(np.max(np.abs(np.diag(P)))))
    if not np.allclose(P, P.T, atol=atol * scale, rtol=0.0):
        return False

    eigvals = np.linalg.eigvalsh(0.5 * (P + P.T))
    return bool(np.all(eigvals >= -atol * scale))
