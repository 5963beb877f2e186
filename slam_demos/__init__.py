"""Ranging SLAM demos.

Examples:
    - example_ranging_slam.py: EKF ranging SLAM on a synthetic dataset or an
      in-memory scenario, with reconstruction, evaluation and plots

Dependencies:
    - ranging_slam: processor, reconstruction, metrics, scenarios
    - matplotlib: Visualization
    - numpy: Numerical operations
"""

__all__ = []
