"""Quaternion algebra for body-to-world attitude propagation.

This module provides the small set of quaternion operations the ranging
EKF needs to carry orientation in its state vector:
- Hamilton product, conjugate and normalization
- Rotation of body-frame vectors into the world frame
- Axis-angle exponential map for gyro integration
- Conversions to rotation matrix and Euler angles (for reporting)

Conventions:
- Quaternions: [qw, qx, qy, qz] where qw is the scalar part
- q rotates body-frame vectors into the world frame: v_w = q ⊗ v_b ⊗ q*
- Identity quaternion [1, 0, 0, 0] means body axes aligned with world axes
- Euler angles: [roll, pitch, yaw] in radians (ZYX/3-2-1 convention)
"""

import numpy as np
from numpy.typing import NDArray

# Angular speeds below this are treated as "no rotation" by quat_from_angular_velocity.
MIN_ANGULAR_SPEED = 1e-8

IDENTITY_QUAT = np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)


def _as_quat(q) -> NDArray[np.float64]:
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"Expected 4-element quaternion, got shape {q.shape}")
    return q


def quat_normalize(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Normalize quaternion to unit norm.

    A zero quaternion cannot be normalized; the identity quaternion is
    returned instead so that callers never propagate NaNs into a filter state.

    Args:
        q: Quaternion [qw, qx, qy, qz].

    Returns:
        Unit quaternion with the same direction as q.

    Example:
        >>> quat_normalize(np.array([2.0, 0.0, 0.0, 0.0]))
        array([1., 0., 0., 0.])
    """
    q = _as_quat(q)
    norm = np.linalg.norm(q)
    if norm <= 0.0 or not np.isfinite(norm):
        return IDENTITY_QUAT.copy()
    return q / norm


def quat_multiply(
    q1: NDArray[np.float64],
    q2: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Hamilton product q1 ⊗ q2.

    Args:
        q1: Left quaternion [qw, qx, qy, qz].
        q2: Right quaternion [qw, qx, qy, qz].

    Returns:
        Product quaternion (not renormalized).

    Example:
        >>> q = np.array([0.0, 1.0, 0.0, 0.0])  # 180° about x
        >>> quat_multiply(q, q)
        array([-1.,  0.,  0.,  0.])
    """
    w1, x1, y1, z1 = _as_quat(q1)
    w2, x2, y2, z2 = _as_quat(q2)

    return np.array(
        [
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        ],
        dtype=np.float64,
    )


def quat_conjugate(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Quaternion conjugate [qw, -qx, -qy, -qz]."""
    q = _as_quat(q)
    return np.array([q[0], -q[1], -q[2], -q[3]], dtype=np.float64)


def quat_rotate(
    q: NDArray[np.float64],
    v_body: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Rotate a body-frame vector into the world frame.

    Computes v_w = q ⊗ [0, v_b] ⊗ q* and returns its vector part.

    Args:
        q: Unit quaternion (body to world).
        v_body: Vector in body frame, shape (3,).

    Returns:
        Vector in world frame, shape (3,).

    Example:
        >>> q = np.array([np.cos(np.pi/4), 0.0, 0.0, np.sin(np.pi/4)])  # 90° yaw
        >>> np.round(quat_rotate(q, np.array([1.0, 0.0, 0.0])), 6)
        array([0., 1., 0.])
    """
    v_body = np.asarray(v_body, dtype=np.float64)
    if v_body.shape != (3,):
        raise ValueError(f"v_body must have shape (3,), got {v_body.shape}")

    v_quat = np.array([0.0, v_body[0], v_body[1], v_body[2]], dtype=np.float64)
    rotated = quat_multiply(quat_multiply(q, v_quat), quat_conjugate(q))
    return rotated[1:]


def quat_from_angular_velocity(
    omega_b: NDArray[np.float64],
    dt: float,
) -> NDArray[np.float64]:
    """Delta quaternion for a constant body rate held over dt.

    Exponential map of the rotation vector ω·dt:

        θ = |ω| dt
        δq = [cos(θ/2), (ω/|ω|) sin(θ/2)]

    When |ω| < MIN_ANGULAR_SPEED the identity quaternion is returned, which
    avoids dividing by a vanishing angular speed.

    Args:
        omega_b: Angular velocity in body frame, shape (3,). Units: rad/s.
        dt: Integration interval in seconds.

    Returns:
        Unit delta quaternion, to be right-multiplied onto the attitude.
    """
    omega_b = np.asarray(omega_b, dtype=np.float64)
    if omega_b.shape != (3,):
        raise ValueError(f"omega_b must have shape (3,), got {omega_b.shape}")

    speed = np.linalg.norm(omega_b)
    if speed < MIN_ANGULAR_SPEED:
        return IDENTITY_QUAT.copy()

    half_angle = 0.5 * speed * dt
    axis = omega_b / speed
    return np.array(
        [
            np.cos(half_angle),
            axis[0] * np.sin(half_angle),
            axis[1] * np.sin(half_angle),
            axis[2] * np.sin(half_angle),
        ],
        dtype=np.float64,
    )


def quat_integrate(
    q_prev: NDArray[np.float64],
    omega_b: NDArray[np.float64],
    dt: float,
) -> NDArray[np.float64]:
    """Propagate attitude by a body rate over dt.

    q_k = normalize(q_{k-1} ⊗ δq(ω, dt))

    Args:
        q_prev: Previous attitude quaternion (body to world).
        omega_b: Angular velocity in body frame, shape (3,). Units: rad/s.
        dt: Time step in seconds.

    Returns:
        Updated unit quaternion.
    """
    dq = quat_from_angular_velocity(omega_b, dt)
    return quat_normalize(quat_multiply(q_prev, dq))


def quat_to_rotation_matrix(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert quaternion to rotation matrix.

    Args:
        q: Unit quaternion as numpy array [qw, qx, qy, qz].

    Returns:
        3x3 rotation matrix R such that v_world = R @ v_body.

    Raises:
        ValueError: If q is not a 4-element array.

    Example:
        >>> q = np.array([1.0, 0.0, 0.0, 0.0])  # Identity rotation
        >>> np.allclose(quat_to_rotation_matrix(q), np.eye(3))
        True
    """
    qw, qx, qy, qz = _as_quat(q)

    R = np.array(
        [
            [
                1.0 - 2.0 * (qy * qy + qz * qz),
                2.0 * (qx * qy - qw * qz),
                2.0 * (qx * qz + qw * qy),
            ],
            [
                2.0 * (qx * qy + qw * qz),
                1.0 - 2.0 * (qx * qx + qz * qz),
                2.0 * (qy * qz - qw * qx),
            ],
            [
                2.0 * (qx * qz - qw * qy),
                2.0 * (qy * qz + qw * qx),
                1.0 - 2.0 * (qx * qx + qy * qy),
            ],
        ],
        dtype=np.float64,
    )

    return R


def quat_to_euler(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert quaternion to Euler angles [roll, pitch, yaw] (ZYX).

    Args:
        q: Unit quaternion as numpy array [qw, qx, qy, qz].

    Returns:
        Euler angles as numpy array [roll, pitch, yaw] in radians.
    """
    qw, qx, qy, qz = _as_quat(q)

    roll = np.arctan2(2.0 * (qw * qx + qy * qz), 1.0 - 2.0 * (qx * qx + qy * qy))

    # Clamp to avoid numerical issues with arcsin
    sin_pitch = np.clip(2.0 * (qw * qy - qz * qx), -1.0, 1.0)
    pitch = np.arcsin(sin_pitch)

    yaw = np.arctan2(2.0 * (qw * qz + qx * qy), 1.0 - 2.0 * (qy * qy + qz * qz))

    return np.array([roll, pitch, yaw], dtype=np.float64)


def euler_to_quat(roll: float, pitch: float, yaw: float) -> NDArray[np.float64]:
    """Convert Euler angles (ZYX convention) to a unit quaternion.

    Args:
        roll: Roll angle in radians (rotation about x-axis).
        pitch: Pitch angle in radians (rotation about y-axis).
        yaw: Yaw angle in radians (rotation about z-axis).

    Returns:
        Unit quaternion as numpy array [qw, qx, qy, qz].
    """
    cr = np.cos(roll / 2.0)
    sr = np.sin(roll / 2.0)
    cp = np.cos(pitch / 2.0)
    sp = np.sin(pitch / 2.0)
    cy = np.cos(yaw / 2.0)
    sy = np.sin(yaw / 2.0)

    qw = cr * cp * cy + sr * sp * sy
    qx = sr * cp * cy - cr * sp * sy
    qy = cr * sp * cy + sr * cp * sy
    qz = cr * cp * sy - sr * sp * cy

    return np.array([qw, qx, qy, qz], dtype=np.float64)
