"""Synthetic input streams for tests, demos and dataset generation."""

from ranging_slam.sim.scenarios import (
    DEFAULT_LOOP_LANDMARKS,
    Scenario,
    revisit_loop_scenario,
    stationary_reflector_scenario,
)

__all__ = [
    "DEFAULT_LOOP_LANDMARKS",
    "Scenario",
    "revisit_loop_scenario",
    "stationary_reflector_scenario",
]
