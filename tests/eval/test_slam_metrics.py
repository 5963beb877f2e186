"""Unit tests for ranging_slam.eval.metrics."""

import unittest

import numpy as np

from ranging_slam.eval.metrics import (
    compute_error_stats,
    compute_landmark_errors,
    compute_nis,
    compute_position_errors,
    compute_rmse,
    is_covariance_consistent,
)


class TestErrorMetrics(unittest.TestCase):

    def test_position_errors_are_estimate_minus_truth(self) -> None:
        truth = np.zeros((2, 3))
        est = np.array([[1.0, 0.0, 0.0], [0.0, -2.0, 0.0]])
        np.testing.assert_array_equal(compute_position_errors(truth, est), est)

    def test_shape_mismatch_raises(self) -> None:
        with self.assertRaises(ValueError):
            compute_position_errors(np.zeros((2, 3)), np.zeros((3, 3)))

    def test_rmse(self) -> None:
        errors = np.array([[3.0, 4.0], [0.0, 0.0]])
        self.assertAlmostEqual(compute_rmse(errors), np.sqrt(25.0 / 4.0))
        np.testing.assert_allclose(compute_rmse(errors, axis=0), [np.sqrt(4.5), np.sqrt(8.0)])

    def test_error_stats_use_magnitudes(self) -> None:
        errors = np.array([[3.0, 4.0, 0.0], [0.0, 0.0, 1.0]])
        stats = compute_error_stats(errors)
        self.assertAlmostEqual(stats["mean"], 3.0)
        self.assertAlmostEqual(stats["max"], 5.0)
        self.assertAlmostEqual(stats["rmse"], np.sqrt(13.0))

    def test_landmark_errors_skip_unknown_ids(self) -> None:
        truth = {"a": np.array([0.0, 0.0, 2.0]), "b": np.array([1.0, 1.0, 1.0])}
        est = {"a": np.array([0.0, 0.1, 2.0]), "c": np.zeros(3)}
        errors = compute_landmark_errors(truth, est)
        self.assertEqual(list(errors), ["a"])
        self.assertAlmostEqual(errors["a"], 0.1)


class TestConsistency(unittest.TestCase):

    def test_scalar_nis(self) -> None:
        nis = compute_nis(np.array([1.0, 2.0]), np.array([1.0, 4.0]))
        np.testing.assert_allclose(nis, [1.0, 1.0])

    def test_vector_nis(self) -> None:
        nu = np.array([[1.0, 1.0]])
        S = np.array([np.diag([1.0, 4.0])])
        np.testing.assert_allclose(compute_nis(nu, S), [1.25])

    def test_singular_innovation_covariance_gives_nan(self) -> None:
        nis = compute_nis(np.array([1.0]), np.array([0.0]))
        self.assertTrue(np.isnan(nis[0]))

    def test_bad_shape_raises(self) -> None:
        with self.assertRaises(ValueError):
            compute_nis(np.ones((3, 2)), np.ones((3, 3, 3)))

    def test_valid_covariance(self) -> None:
        A = np.random.default_rng(1).normal(size=(10, 10))
        self.assertTrue(is_covariance_consistent(A @ A.T))
        self.assertTrue(is_covariance_consistent(np.zeros((3, 3))))

    def test_asymmetric_matrix_is_inconsistent(self) -> None:
        P = np.eye(3)
        P[0, 1] = 0.1
        self.assertFalse(is_covariance_consistent(P))

    def test_negative_eigenvalue_is_inconsistent(self) -> None:
        self.assertFalse(is_covariance_consistent(np.diag([1.0, -0.01, 1.0])))

    def test_non_finite_or_non_square_is_inconsistent(self) -> None:
        self.assertFalse(is_covariance_consistent(np.full((2, 2), np.nan)))
        self.assertFalse(is_covariance_consistent(np.ones((2, 3))))


if __name__ == "__main__":
    unittest.main()
