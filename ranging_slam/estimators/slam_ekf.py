"""
Extended Kalman Filter for range-only SLAM with an inertial motion model.

State vector (10):
    x = [px, py, pz, vx, vy, vz, qw, qx, qy, qz]

    - position p in the world frame (m)
    - velocity v in the world frame (m/s)
    - attitude q, scalar-first unit quaternion rotating body into world

Landmarks are kept outside the state vector: each one is a world position
plus a scalar variance, created the first time its source id is observed
and refined after every applied update. The filter never deletes landmarks.

Prediction (IMU driven):
    p_k = p_{k-1} + v_{k-1} dt
    a_w = q ⊗ [0, f_b] ⊗ q*,  a_w[z] -= g
    v_k = v_{k-1} + a_w dt
    q_k = normalize(q_{k-1} ⊗ δq(ω_b, dt))
    P_k = F P_{k-1} Fᵀ + Q,   F = I + dt·(∂p/∂v)

Update (one scalar range to one landmark L):
    h(x) = ||p - L||
    H    = [(p - L)ᵀ / h, 0, ..., 0]           (1 × 10)
    S    = H P Hᵀ + R(sensor type)
    gate: y² / S <= threshold, else reject with no state change
    K    = P Hᵀ S⁻¹
    x   += K y
    P    = (I - KH) P (I - KH)ᵀ + K R Kᵀ       (Joseph form)

Noisy input never raises: every update reports an UpdateOutcome instead.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import numpy as np

from ranging_slam.config import EKFConfig
from ranging_slam.coords.rotations import (
    IDENTITY_QUAT,
    quat_integrate,
    quat_normalize,
    quat_rotate,
)
from ranging_slam.estimators.base import StateEstimator
from ranging_slam.fusion.gating import mahalanobis_distance_squared, passes_gate
from ranging_slam.sensors.types import IMUMeasurement, RangingMeasurement

logger = logging.getLogger(__name__)

STATE_DIM = 10

# State index slices
POS = slice(0, 3)
VEL = slice(3, 6)
QUAT = slice(6, 10)

# Body axis along which a newly observed landmark is assumed to lie
FORWARD_AXIS_BODY = np.array([0.0, 0.0, 1.0])


class UpdateOutcome(Enum):
    """What an update call did to the filter."""

    APPLIED = "applied"
    REJECTED_OUTLIER = "rejected_outlier"
    SKIPPED_DEGENERATE = "skipped_degenerate"
    SKIPPED_SINGULAR = "skipped_singular"


@dataclass(frozen=True)
class UpdateResult:
    """Report of a single range update.

    Attributes:
        outcome: Whether the update was applied, gated out or skipped.
        source_id: Landmark the measurement referred to.
        innovation: Observed minus predicted distance (m). NaN if not computed.
        mahalanobis: Squared Mahalanobis distance y²/S. NaN if not computed.
        new_landmark: True when this measurement created the landmark.
    """

    outcome: UpdateOutcome
    source_id: str
    innovation: float = float("nan")
    mahalanobis: float = float("nan")
    new_landmark: bool = False

    @property
    def applied(self) -> bool:
        return self.outcome is UpdateOutcome.APPLIED


@dataclass(frozen=True)
class LandmarkEstimate:
    """Snapshot of one landmark: world position (3,) and scalar variance (m²)."""

    position: np.ndarray
    uncertainty: float


class RangingSlamEKF(StateEstimator):
    """
    10-state EKF fusing IMU propagation with scalar range updates.

    Attributes:
        config: Noise model and gating parameters.
        state: Current state x (10,).
        covariance: Current covariance P (10×10).
        timestamp: Timestamp (ms) of the last consumed measurement, or None.

    Example:
        >>> ekf = RangingSlamEKF()
        >>> imu = IMUMeasurement(np.array([0.0, 0.0, 9.81]), np.zeros(3), 10)
        >>> ekf.predict(imu, 0.1)
        0.1
        >>> m = RangingMeasurement("refl_1", 2.0, 0.05, 20, RangingType.ACOUSTIC_FMCW)
        >>> ekf.update(m).outcome
        <UpdateOutcome.APPLIED: 'applied'>
    """

    def __init__(self, config: Optional[EKFConfig] = None):
        super().__init__(STATE_DIM)
        self.config = config if config is not None else EKFConfig()
        self.Q = np.diag(
            [self.config.position_process_var] * 3
            + [self.config.velocity_process_var] * 3
            + [self.config.orientation_process_var] * 4
        )
        self._landmarks: Dict[str, np.ndarray] = {}
        self._landmark_var: Dict[str, float] = {}
        self.timestamp: Optional[int] = None
        self.reset()

    def reset(self) -> None:
        """Origin position, zero velocity, identity attitude, P = σ₀² I, no landmarks."""
        self.state = np.zeros(STATE_DIM)
        self.state[QUAT] = IDENTITY_QUAT
        self.covariance = self.config.initial_covariance * np.eye(STATE_DIM)
        self._landmarks.clear()
        self._landmark_var.clear()
        self.timestamp = None

    @property
    def position(self) -> np.ndarray:
        return self.state[POS].copy()

    @property
    def velocity(self) -> np.ndarray:
        return self.state[VEL].copy()

    @property
    def orientation(self) -> np.ndarray:
        return self.state[QUAT].copy()

    def clamp_dt(self, dt: float) -> float:
        """Clamp a predict interval to [min_dt, max_dt]."""
        return float(np.clip(dt, self.config.min_dt, self.config.max_dt))

    def predict(self, u: IMUMeasurement, dt: float) -> float:
        """
        Propagate state and covariance with one IMU sample.

        Args:
            u: IMU sample; acceleration is specific force in the body frame,
                angular velocity is the body rate.
            dt: Elapsed time in seconds, clamped to [min_dt, max_dt].

        Returns:
            The clamped dt actually used.
        """
        dt = self.clamp_dt(dt)
        x = self.state
        q = x[QUAT]

        accel_world = quat_rotate(q, u.acceleration)
        accel_world[2] -= self.config.gravity

        x_new = x.copy()
        x_new[POS] = x[POS] + x[VEL] * dt
        x_new[VEL] = x[VEL] + accel_world * dt
        x_new[QUAT] = quat_integrate(q, u.angular_velocity, dt)

        F = np.eye(STATE_DIM)
        F[0, 3] = F[1, 4] = F[2, 5] = dt

        self.state = x_new
        self.covariance = F @ self.covariance @ F.T + self.Q
        self.timestamp = u.timestamp
        return dt

    def update(self, z: RangingMeasurement) -> UpdateResult:
        """
        Correct the state with one range to a (possibly new) landmark.

        Args:
            z: Ranging measurement. Its source id selects the landmark.

        Returns:
            UpdateResult describing the outcome. State and covariance are
            untouched unless the outcome is APPLIED. A first sighting seeds
            its landmark whatever the outcome; an existing landmark is only
            refined when APPLIED.
        """
        source_id = z.source_id
        is_new = source_id not in self._landmarks
        if is_new:
            self._landmarks[source_id] = self._seed_landmark(z.distance)
            self._landmark_var[source_id] = self.config.new_landmark_uncertainty
            logger.debug(
                "New landmark %s at %s", source_id, np.round(self._landmarks[source_id], 3)
            )
        self.timestamp = z.timestamp

        landmark = self._landmarks[source_id]
        p = self.state[POS]
        delta = p - landmark
        predicted = float(np.linalg.norm(delta))

        if predicted < self.config.min_predicted_distance:
            logger.warning(
                "Skipping update for %s: predicted distance %.2e m is degenerate",
                source_id,
                predicted,
            )
            return UpdateResult(UpdateOutcome.SKIPPED_DEGENERATE, source_id, new_landmark=is_new)

        innovation = z.distance - predicted
        R = self.config.measurement_variance(z.measurement_type)

        H = np.zeros((1, STATE_DIM))
        H[0, POS] = delta / predicted

        S = H @ self.covariance @ H.T + R
        try:
            d_sq = mahalanobis_distance_squared(np.array([innovation]), S)
        except ValueError as e:
            logger.warning("Skipping update for %s: %s", source_id, e)
            return UpdateResult(
                UpdateOutcome.SKIPPED_SINGULAR, source_id, innovation, new_landmark=is_new
            )

        if not passes_gate(d_sq, self.config.mahalanobis_threshold):
            logger.warning(
                "Outlier rejected for %s (%s): innovation=%.3f m, mahalanobis=%.2f",
                source_id,
                z.measurement_type.name,
                innovation,
                d_sq,
            )
            return UpdateResult(
                UpdateOutcome.REJECTED_OUTLIER, source_id, innovation, d_sq, is_new
            )

        K = self.covariance @ H.T / S[0, 0]

        self.state = self.state + K[:, 0] * innovation
        self.state[QUAT] = quat_normalize(self.state[QUAT])

        I_KH = np.eye(STATE_DIM) - K @ H
        P_new = I_KH @ self.covariance @ I_KH.T + R * (K @ K.T)
        self.covariance = 0.5 * (P_new + P_new.T)

        self._refine_landmark(source_id, z.distance, R)

        logger.debug(
            "Updated with %s from %s: innovation=%.4f m, mahalanobis=%.3f",
            z.measurement_type.name,
            source_id,
            innovation,
            d_sq,
        )
        return UpdateResult(UpdateOutcome.APPLIED, source_id, innovation, d_sq, is_new)

    def get_landmarks(self) -> Dict[str, LandmarkEstimate]:
        """Copy of the landmark map keyed by source id."""
        return {
            source_id: LandmarkEstimate(pos.copy(), self._landmark_var[source_id])
            for source_id, pos in self._landmarks.items()
        }

    @property
    def landmark_count(self) -> int:
        return len(self._landmarks)

    def _seed_landmark(self, distance: float) -> np.ndarray:
        """Project the measured distance along the body forward axis."""
        direction = quat_rotate(self.state[QUAT], FORWARD_AXIS_BODY)
        return self.state[POS] + direction * distance

    def _refine_landmark(self, source_id: str, distance: float, R: float) -> None:
        """Move the landmark along the line of sight by the post-update residual.

        Scalar Kalman step on the landmark alone: gain u / (u + R), variance
        shrinks to u R / (u + R).
        """
        landmark = self._landmarks[source_id]
        offset = landmark - self.state[POS]
        current = float(np.linalg.norm(offset))
        if current < self.config.min_predicted_distance:
            return

        u = self._landmark_var[source_id]
        gain = u / (u + R)
        residual = distance - current
        self._landmarks[source_id] = landmark + (offset / current) * residual * gain
        self._landmark_var[source_id] = u * R / (u + R)
