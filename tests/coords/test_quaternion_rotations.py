"""Unit tests for ranging_slam.coords.rotations."""

import unittest

import numpy as np

from ranging_slam.coords.rotations import (
    IDENTITY_QUAT,
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


class TestQuaternionAlgebra(unittest.TestCase):
    """Hamilton product, conjugate and normalization."""

    def test_identity_is_neutral(self) -> None:
        q = quat_normalize(np.array([0.7, 0.1, -0.3, 0.2]))
        np.testing.assert_allclose(quat_multiply(IDENTITY_QUAT, q), q)
        np.testing.assert_allclose(quat_multiply(q, IDENTITY_QUAT), q)

    def test_product_with_conjugate_is_identity(self) -> None:
        q = quat_normalize(np.array([0.5, 0.5, -0.5, 0.1]))
        np.testing.assert_allclose(
            quat_multiply(q, quat_conjugate(q)), IDENTITY_QUAT, atol=1e-12
        )

    def test_half_turns_about_x_compose_to_full_turn(self) -> None:
        q = np.array([0.0, 1.0, 0.0, 0.0])
        np.testing.assert_allclose(quat_multiply(q, q), [-1.0, 0.0, 0.0, 0.0])

    def test_product_is_not_commutative(self) -> None:
        qx = euler_to_quat(np.pi / 2, 0.0, 0.0)
        qz = euler_to_quat(0.0, 0.0, np.pi / 2)
        self.assertFalse(np.allclose(quat_multiply(qx, qz), quat_multiply(qz, qx)))

    def test_normalize_gives_unit_norm(self) -> None:
        q = quat_normalize(np.array([2.0, 1.0, -1.0, 3.0]))
        self.assertAlmostEqual(np.linalg.norm(q), 1.0, places=12)

    def test_normalize_zero_returns_identity(self) -> None:
        np.testing.assert_array_equal(quat_normalize(np.zeros(4)), IDENTITY_QUAT)

    def test_wrong_shape_raises(self) -> None:
        with self.assertRaises(ValueError):
            quat_multiply(np.zeros(3), IDENTITY_QUAT)


class TestVectorRotation(unittest.TestCase):
    """Body-to-world rotation of vectors."""

    def test_yaw_90_maps_x_to_y(self) -> None:
        q = euler_to_quat(0.0, 0.0, np.pi / 2)
        np.testing.assert_allclose(quat_rotate(q, [1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)

    def test_rotate_matches_rotation_matrix(self) -> None:
        rng = np.random.default_rng(3)
        for _ in range(10):
            q = quat_normalize(rng.normal(size=4))
            v = rng.normal(size=3)
            np.testing.assert_allclose(
                quat_rotate(q, v), quat_to_rotation_matrix(q) @ v, atol=1e-12
            )

    def test_rotation_preserves_length(self) -> None:
        q = quat_normalize(np.array([0.3, -0.2, 0.9, 0.1]))
        v = np.array([1.0, -2.0, 0.5])
        self.assertAlmostEqual(np.linalg.norm(quat_rotate(q, v)), np.linalg.norm(v), places=12)

    def test_euler_round_trip(self) -> None:
        angles = np.array([0.1, -0.4, 2.0])
        np.testing.assert_allclose(quat_to_euler(euler_to_quat(*angles)), angles, atol=1e-12)


class TestAngularVelocityIntegration(unittest.TestCase):
    """Axis-angle exponential map used by the EKF predict step."""

    def test_tiny_rate_returns_identity(self) -> None:
        dq = quat_from_angular_velocity(np.array([1e-9, 0.0, 0.0]), 0.1)
        np.testing.assert_array_equal(dq, IDENTITY_QUAT)

    def test_zero_rate_returns_identity(self) -> None:
        np.testing.assert_array_equal(quat_from_angular_velocity(np.zeros(3), 1.0), IDENTITY_QUAT)

    def test_constant_yaw_rate(self) -> None:
        """π/2 rad/s about z for 1 s is a 90° yaw."""
        dq = quat_from_angular_velocity(np.array([0.0, 0.0, np.pi / 2]), 1.0)
        np.testing.assert_allclose(dq, euler_to_quat(0.0, 0.0, np.pi / 2), atol=1e-12)

    def test_delta_quaternion_is_unit(self) -> None:
        dq = quat_from_angular_velocity(np.array([0.3, -1.2, 2.5]), 0.05)
        self.assertAlmostEqual(np.linalg.norm(dq), 1.0, places=12)

    def test_integration_keeps_unit_norm(self) -> None:
        q = IDENTITY_QUAT.copy()
        omega = np.array([0.4, 0.2, -0.7])
        for _ in range(500):
            q = quat_integrate(q, omega, 0.01)
        self.assertAlmostEqual(np.linalg.norm(q), 1.0, places=10)


if __name__ == "__main__":
    unittest.main()
