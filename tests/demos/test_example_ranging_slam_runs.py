"""Smoke tests for the ranging SLAM demo and dataset generator.

Uses the Agg backend to avoid display requirements.
"""

import importlib.util
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import pytest

from ranging_slam.sim import stationary_reflector_scenario
from slam_demos.example_ranging_slam import (
    evaluate_results,
    load_dataset,
    plot_results,
    run_slam,
)

WORKSPACE_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture(scope="module")
def generator():
    path = WORKSPACE_ROOT / "scripts" / "generate_ranging_slam_dataset.py"
    spec = importlib.util.spec_from_file_location("generate_ranging_slam_dataset", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_demo_pipeline_on_stationary_reflector(tmp_path):
    scenario = stationary_reflector_scenario()
    results = run_slam(scenario)
    metrics = evaluate_results(scenario, results)

    assert metrics["statistics"].measurement_count == 20
    assert metrics["landmark_errors"]["refl_1"] < 0.1
    assert metrics["covariance_consistent"]
    assert metrics["error_stats"]["max"] < 0.1

    output = tmp_path / "figs" / "result.png"
    plot_results(scenario, results, metrics, output)
    assert output.exists()


def test_generated_dataset_loads_back(tmp_path, generator):
    original = generator.generate_dataset(
        str(tmp_path / "reflector"), scenario="stationary_reflector", corrupted_index=5
    )
    for name in ("imu.npz", "ranging.npz", "truth.npz", "config.json"):
        assert (tmp_path / "reflector" / name).exists()

    loaded = load_dataset(str(tmp_path / "reflector"))
    assert len(loaded.imu) == len(original.imu)
    assert len(loaded.ranging) == len(original.ranging)
    assert loaded.ranging[5][0] == original.ranging[5][0]
    assert list(loaded.landmarks) == ["refl_1"]


def test_generated_loop_dataset_runs(tmp_path, generator):
    generator.generate_dataset(str(tmp_path / "loop"), duration_s=5.0, seed=1)
    scenario = load_dataset(str(tmp_path / "loop"))
    results = run_slam(scenario)
    metrics = evaluate_results(scenario, results)
    assert metrics["statistics"].landmark_count == 4
    assert metrics["covariance_consistent"]
