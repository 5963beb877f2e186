"""
Base class for recursive state estimators.

Estimators own their state vector and covariance exclusively. Callers only
ever see copies, so a snapshot taken between steps cannot be mutated by a
later predict/update.
"""

from abc import ABC, abstractmethod
from typing import Any, Tuple

import numpy as np


class StateEstimator(ABC):
    """Abstract base class for predict/update state estimators."""

    def __init__(self, state_dim: int):
        """
        Initialize state estimator.

        Args:
            state_dim: Dimension of the state vector.
        """
        self.state_dim = state_dim
        self.state = np.zeros(state_dim)
        self.covariance = np.eye(state_dim)

    @abstractmethod
    def predict(self, u: Any, dt: float) -> Any:
        """
        Perform prediction step (time update).

        Args:
            u: Control/proprioceptive input driving the motion model.
            dt: Time step in seconds.
        """

    @abstractmethod
    def update(self, z: Any) -> Any:
        """
        Perform measurement update (correction step).

        Args:
            z: Measurement.
        """

    @abstractmethod
    def reset(self) -> None:
        """Return the estimator to its initial state."""

    def get_state(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get current state estimate and covariance.

        Returns:
            Tuple of (state_vector, covariance_matrix), both copies.
        """
        return self.state.copy(), self.covariance.copy()
