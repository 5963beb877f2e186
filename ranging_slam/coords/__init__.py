"""Attitude representations for the ranging SLAM filter.

Quaternions are scalar-first [qw, qx, qy, qz] and rotate body-frame
vectors into the world frame.
"""

from ranging_slam.coords.rotations import (
    IDENTITY_QUAT,
    MIN_ANGULAR_SPEED,
    euler_to_quat,
    quat_conjugate,
    quat_from_angular_velocity,
    quat_integrate,
    quat_multiply,
    quat_normalize,
    quat_rotate,
    quat_to_euler,
    quat_to_rotation_matrix,
)

__all__ = [
    "IDENTITY_QUAT",
    "MIN_ANGULAR_SPEED",
    "euler_to_quat",
    "quat_conjugate",
    "quat_from_angular_velocity",
    "quat_integrate",
    "quat_multiply",
    "quat_normalize",
    "quat_rotate",
    "quat_to_euler",
    "quat_to_rotation_matrix",
]
