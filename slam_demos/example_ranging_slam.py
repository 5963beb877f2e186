"""Ranging SLAM Example: EKF with WiFi-RTT, Bluetooth CS and acoustic ranges.

This example demonstrates the full pipeline:
    1. Load a generated dataset (or build a scenario in memory)
    2. Replay IMU and ranging streams through the SLAM processor
    3. Accumulate landmarks into a point cloud and voxel surface mesh
    4. Evaluate trajectory/landmark accuracy and filter consistency
    5. Visualize results

Can run with:
    - Inline scenario (default): python -m slam_demos.example_ranging_slam
    - Stationary reflector:      python -m slam_demos.example_ranging_slam --scenario stationary_reflector
    - Pre-generated dataset:     python -m slam_demos.example_ranging_slam --data ranging_slam_loop

Author: Navigation Engineer
Date: 2024
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np

from ranging_slam import (
    IMUMeasurement,
    RangingMeasurement,
    RangingType,
    ReconstructionModule,
    SlamConfig,
    SlamProcessor,
)
from ranging_slam.eval import (
    compute_error_stats,
    compute_landmark_errors,
    compute_position_errors,
    is_covariance_consistent,
)
from ranging_slam.sim import Scenario, revisit_loop_scenario, stationary_reflector_scenario


def load_dataset(data_dir: str) -> Scenario:
    """Load a dataset written by scripts/generate_ranging_slam_dataset.py.

    Args:
        data_dir: Path to dataset directory (e.g., 'data/sim/ranging_slam_loop')

    Returns:
        Scenario rebuilt from the stored arrays
    """
    path = Path(data_dir)
    imu_npz = np.load(path / "imu.npz")
    ranging_npz = np.load(path / "ranging.npz")
    truth_npz = np.load(path / "truth.npz")

    imu = [
        IMUMeasurement(accel, gyro, int(ts))
        for ts, accel, gyro in zip(imu_npz["timestamps"], imu_npz["accel"], imu_npz["gyro"])
    ]

    batches: Dict[int, List[RangingMeasurement]] = {}
    for b, ts, sid, kind, d, acc in zip(
        ranging_npz["batch"],
        ranging_npz["timestamps"],
        ranging_npz["source_ids"],
        ranging_npz["types"],
        ranging_npz["distances"],
        ranging_npz["accuracies"],
    ):
        batches.setdefault(int(b), []).append(
            RangingMeasurement(str(sid), float(d), float(acc), int(ts), RangingType(str(kind)))
        )

    landmarks = {
        str(k): np.asarray(p, dtype=float)
        for k, p in zip(truth_npz["landmark_ids"], truth_npz["landmark_positions"])
    }
    return Scenario(
        name=path.name,
        imu=imu,
        ranging=[batches[b] for b in sorted(batches)],
        truth_timestamps=truth_npz["timestamps"],
        truth_positions=truth_npz["positions"],
        landmarks=landmarks,
    )


def run_slam(scenario: Scenario, config: Optional[SlamConfig] = None) -> Dict:
    """Replay a scenario through processor and reconstruction.

    Returns:
        Dictionary with the processor, reconstruction module, the estimated
        trajectory (timestamps, positions, confidences) and final state.
    """
    processor = SlamProcessor(config)
    reconstruction = ReconstructionModule(processor.config.reconstruction)

    timestamps, positions, confidences = [], [], []

    def record(state) -> None:
        timestamps.append(state.device_pose.timestamp)
        positions.append(state.device_pose.position.to_array())
        confidences.append(state.confidence)

    processor.states.subscribe(record)
    reconstruction.start(processor.states)
    try:
        final_state = processor.replay(scenario.imu, scenario.ranging)
    finally:
        reconstruction.stop()

    return {
        "processor": processor,
        "reconstruction": reconstruction,
        "timestamps": np.array(timestamps, dtype=np.int64),
        "positions": np.array(positions).reshape(-1, 3),
        "confidences": np.array(confidences),
        "final_state": final_state,
    }


def evaluate_results(scenario: Scenario, results: Dict) -> Dict:
    """Trajectory and landmark accuracy plus covariance consistency."""
    processor = results["processor"]
    truth = np.array([scenario.truth_at(t) for t in results["timestamps"]]).reshape(-1, 3)
    errors = compute_position_errors(truth, results["positions"])

    estimated = {k: v.position for k, v in processor.get_landmark_estimates().items()}
    landmark_errors = compute_landmark_errors(scenario.landmarks, estimated)

    final_state = results["final_state"]
    return {
        "truth": truth,
        "errors": errors,
        "error_stats": compute_error_stats(errors) if len(errors) else {},
        "landmark_errors": landmark_errors,
        "covariance_consistent": (
            final_state is not None and is_covariance_consistent(final_state.covariance)
        ),
        "statistics": processor.get_statistics(),
    }


def plot_results(
    scenario: Scenario,
    results: Dict,
    metrics: Dict,
    output_file: Path,
    show: bool = False,
) -> None:
    """Trajectory/map, position error, confidence and voxel mesh (top view)."""
    processor = results["processor"]
    reconstruction = results["reconstruction"]
    t = (results["timestamps"] - results["timestamps"][0]) / 1000.0

    fig, axes = plt.subplots(2, 2, figsize=(14, 11))

    # Trajectory and landmarks
    ax1 = axes[0, 0]
    truth_xy = scenario.truth_positions[:, :2]
    ax1.plot(truth_xy[:, 0], truth_xy[:, 1], "g-", linewidth=2, label="Ground Truth", alpha=0.7)
    est_xy = results["positions"][:, :2]
    ax1.plot(est_xy[:, 0], est_xy[:, 1], "b-", linewidth=1.5, label="EKF Estimate", alpha=0.8)

    true_lm = np.array(list(scenario.landmarks.values())).reshape(-1, 3)
    ax1.scatter(true_lm[:, 0], true_lm[:, 1], c="gray", marker="x", s=80, label="True Landmarks")
    est_lm = np.array(
        [lm.position for lm in processor.get_landmark_estimates().values()]
    ).reshape(-1, 3)
    ax1.scatter(est_lm[:, 0], est_lm[:, 1], c="red", marker="o", s=40, label="Estimated Landmarks")

    for closure in processor.get_loop_closures():
        p = closure.current_pose.position
        ax1.scatter(p.x, p.y, c="magenta", marker="*", s=60, alpha=0.5)

    ax1.set_xlabel("X [m]", fontsize=12)
    ax1.set_ylabel("Y [m]", fontsize=12)
    ax1.set_title("Trajectory and Landmark Map", fontsize=14, fontweight="bold")
    ax1.legend(fontsize=10)
    ax1.grid(True, alpha=0.3)
    ax1.axis("equal")

    # Position error
    ax2 = axes[0, 1]
    ax2.plot(t, np.linalg.norm(metrics["errors"], axis=1), "b-", linewidth=1.5)
    ax2.set_xlabel("Time [s]", fontsize=12)
    ax2.set_ylabel("Position Error [m]", fontsize=12)
    ax2.set_title("Position Error Over Time", fontsize=14, fontweight="bold")
    ax2.grid(True, alpha=0.3)

    # Confidence
    ax3 = axes[1, 0]
    ax3.plot(t, results["confidences"], "k-", linewidth=1.5)
    ax3.set_ylim(-0.05, 1.05)
    ax3.set_xlabel("Time [s]", fontsize=12)
    ax3.set_ylabel("Confidence", fontsize=12)
    ax3.set_title("SLAM Confidence (1 - tr(P_pos)/10)", fontsize=14, fontweight="bold")
    ax3.grid(True, alpha=0.3)

    # Voxel mesh, top view
    ax4 = axes[1, 1]
    mesh = reconstruction.mesh()
    cloud = reconstruction.point_cloud()
    if not mesh.is_empty:
        verts = np.array([v.to_array() for v in mesh.vertices])
        ax4.scatter(verts[:, 0], verts[:, 1], c=verts[:, 2], cmap="viridis", s=4, label="Mesh Vertices")
    if cloud:
        pts = np.array([p.to_array() for p in cloud])
        ax4.scatter(pts[:, 0], pts[:, 1], c="red", marker="o", s=30, label="Point Cloud")
    ax4.set_xlabel("X [m]", fontsize=12)
    ax4.set_ylabel("Y [m]", fontsize=12)
    ax4.set_title(
        f"Reconstruction ({len(cloud)} points, {len(mesh.triangles)} triangles)",
        fontsize=14,
        fontweight="bold",
    )
    ax4.grid(True, alpha=0.3)
    ax4.axis("equal")
    if mesh.vertices or cloud:
        ax4.legend(fontsize=10)

    plt.tight_layout()
    output_file.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_file, dpi=150, bbox_inches="tight")
    print(f"\n[OK] Saved figure: {output_file}")

    if show:
        plt.show()
    plt.close(fig)


def run_example(scenario: Scenario, config: Optional[SlamConfig], output_file: Path, show: bool) -> Dict:
    print("\n" + "=" * 70)
    print(f"Ranging SLAM: {scenario.name}")
    print("=" * 70)
    print(f"  IMU samples: {len(scenario.imu)}")
    print(f"  Ranging batches: {len(scenario.ranging)}")
    print(f"  True landmarks: {len(scenario.landmarks)}")

    print("\nRunning processor + reconstruction...")
    results = run_slam(scenario, config)
    metrics = evaluate_results(scenario, results)

    stats = metrics["statistics"]
    print("\n" + "-" * 70)
    print("Results")
    print("-" * 70)
    print(f"  Measurements applied/gated: {stats.measurement_count}")
    print(f"  Rejected by validator:      {stats.rejected_measurement_count}")
    print(f"  Filter outliers/skips:      {stats.outlier_count}")
    print(f"  Loop closures:              {stats.loop_closure_count}")
    print(f"  Landmarks:                  {stats.landmark_count}")
    if metrics["error_stats"]:
        es = metrics["error_stats"]
        print(f"  Position RMSE:              {es['rmse']:.3f} m (p95 {es['p95']:.3f} m)")
    for landmark_id, err in metrics["landmark_errors"].items():
        print(f"  Landmark {landmark_id:12s} error: {err:.3f} m")
    consistent = "yes" if metrics["covariance_consistent"] else "NO"
    print(f"  Final covariance valid:     {consistent}")

    plot_results(scenario, results, metrics, output_file, show=show)

    print("\n" + "=" * 70)
    print("RANGING SLAM COMPLETE!")
    print("=" * 70)
    return metrics


def main():
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Ranging SLAM Example",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the figure-of-eight scenario built in memory (default)
  python -m slam_demos.example_ranging_slam

  # Stationary device with a multipath range
  python -m slam_demos.example_ranging_slam --scenario stationary_reflector --corrupted-index 10

  # Run with pre-generated dataset and custom tuning
  python -m slam_demos.example_ranging_slam --data ranging_slam_loop --config my_slam.json
        """,
    )
    parser.add_argument(
        "--data", type=str, default=None,
        help="Dataset name or path (e.g., 'ranging_slam_loop' or full path)",
    )
    parser.add_argument(
        "--scenario",
        type=str,
        choices=["revisit_loop", "stationary_reflector"],
        default="revisit_loop",
        help="In-memory scenario when --data is not given (default: revisit_loop)",
    )
    parser.add_argument(
        "--corrupted-index", type=int, default=None,
        help="Multipath range batch for the stationary_reflector scenario",
    )
    parser.add_argument("--config", type=str, default=None, help="SlamConfig JSON file")
    parser.add_argument(
        "--output", type=str, default="slam_demos/figs/ranging_slam_results.png",
        help="Output figure path",
    )
    parser.add_argument("--show", action="store_true", help="Show the figure window")
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = SlamConfig.from_json(args.config) if args.config else None

    if args.data:
        data_path = Path(args.data)
        if not data_path.exists():
            data_path = Path("data/sim") / args.data
        if not data_path.exists():
            print(f"Error: Dataset not found at '{args.data}' or 'data/sim/{args.data}'")
            print("\nGenerate one with: python scripts/generate_ranging_slam_dataset.py --preset baseline")
            return
        scenario = load_dataset(str(data_path))
    elif args.scenario == "stationary_reflector":
        scenario = stationary_reflector_scenario(corrupted_index=args.corrupted_index)
    else:
        scenario = revisit_loop_scenario()

    run_example(scenario, config, Path(args.output), show=args.show)


if __name__ == "__main__":
    main()
