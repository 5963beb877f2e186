"""
Generate Ranging SLAM Dataset.

This script generates synthetic IMU + ranging datasets for the EKF ranging
SLAM engine. The device traces a closed figure-of-eight (or stays at rest in
front of one reflector) while ranging to WiFi-RTT access points, Bluetooth
channel-sounding tags and acoustic FMCW reflectors.

Key Learning Objectives:
    - See how heterogeneous ranging sensors constrain one 3D position
    - Observe revisits of the starting point being flagged as loop closures
    - Compare sensor accuracies (acoustic cm-level vs. WiFi m-level)
    - Study the effect of a multipath-corrupted range on the outlier gate

Files written:
    imu.npz       timestamps (ms), accel (N, 3), gyro (N, 3)
    ranging.npz   batch index, timestamps, source ids, types, distances,
                  accuracies (one row per measurement)
    truth.npz     truth timestamps/positions, landmark ids/positions
    config.json   generation parameters

Author: Navigation Engineer
Date: 2024
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ranging_slam.sim import (
    Scenario,
    revisit_loop_scenario,
    stationary_reflector_scenario,
)

PRESETS: Dict[str, Dict] = {
    "baseline": {
        "scenario": "revisit_loop",
        "duration_s": 20.0,
        "amplitude": 0.2,
        "accel_noise_std": 0.05,
        "gyro_noise_std": 0.002,
        "output_dir": "data/sim/ranging_slam_loop",
    },
    "noisy_imu": {
        "scenario": "revisit_loop",
        "duration_s": 20.0,
        "amplitude": 0.2,
        "accel_noise_std": 0.2,
        "gyro_noise_std": 0.01,
        "output_dir": "data/sim/ranging_slam_noisy_imu",
    },
    "reflector": {
        "scenario": "stationary_reflector",
        "output_dir": "data/sim/ranging_slam_reflector",
    },
    "multipath": {
        "scenario": "stationary_reflector",
        "corrupted_index": 10,
        "output_dir": "data/sim/ranging_slam_multipath",
    },
}


def save_dataset(output_dir: Path, scenario: Scenario, config: Dict) -> None:
    """Save a scenario to disk."""
    output_dir.mkdir(parents=True, exist_ok=True)

    # IMU stream
    np.savez_compressed(
        output_dir / "imu.npz",
        timestamps=np.array([s.timestamp for s in scenario.imu], dtype=np.int64),
        accel=np.array([s.acceleration for s in scenario.imu]),
        gyro=np.array([s.angular_velocity for s in scenario.imu]),
    )

    # Ranging batches, flattened to one row per measurement
    rows = [(b, m) for b, batch in enumerate(scenario.ranging) for m in batch]
    np.savez_compressed(
        output_dir / "ranging.npz",
        batch=np.array([b for b, _ in rows], dtype=np.int64),
        timestamps=np.array([m.timestamp for _, m in rows], dtype=np.int64),
        source_ids=np.array([m.source_id for _, m in rows], dtype=str),
        types=np.array([m.measurement_type.value for _, m in rows], dtype=str),
        distances=np.array([m.distance for _, m in rows]),
        accuracies=np.array([m.accuracy for _, m in rows]),
    )

    # Ground truth
    landmark_ids = list(scenario.landmarks)
    np.savez_compressed(
        output_dir / "truth.npz",
        timestamps=scenario.truth_timestamps,
        positions=scenario.truth_positions,
        landmark_ids=np.array(landmark_ids, dtype=str),
        landmark_positions=np.array([scenario.landmarks[k] for k in landmark_ids]).reshape(-1, 3),
    )

    with open(output_dir / "config.json", "w") as f:
        json.dump(config, f, indent=2)

    print(f"\n  Saved dataset to: {output_dir}")
    print("    Files: 4 files (imu, ranging, truth, config)")
    print(f"    IMU samples: {len(scenario.imu)}")
    print(f"    Ranging batches: {len(scenario.ranging)} ({len(rows)} measurements)")
    print(f"    Landmarks: {len(landmark_ids)}")


def generate_dataset(
    output_dir: str,
    preset: str = None,
    scenario: str = "revisit_loop",
    duration_s: float = 20.0,
    amplitude: float = 0.2,
    accel_noise_std: float = 0.05,
    gyro_noise_std: float = 0.002,
    corrupted_index: int = None,
    seed: int = 42,
) -> Scenario:
    """
    Generate a ranging SLAM dataset.

    Args:
        output_dir: Output directory path.
        preset: Preset configuration name (overrides the other parameters).
        scenario: 'revisit_loop' or 'stationary_reflector'.
        duration_s: Loop period (s), revisit_loop only.
        amplitude: Acceleration amplitude (m/s²), revisit_loop only.
        accel_noise_std: Accelerometer noise (m/s²), revisit_loop only.
        gyro_noise_std: Gyro noise (rad/s), revisit_loop only.
        corrupted_index: Corrupted batch index, stationary_reflector only.
        seed: Random seed.

    Returns:
        The generated Scenario.
    """
    if preset is not None:
        settings = dict(PRESETS[preset])
        output_dir = settings.pop("output_dir")
        scenario = settings.pop("scenario")
        duration_s = settings.get("duration_s", duration_s)
        amplitude = settings.get("amplitude", amplitude)
        accel_noise_std = settings.get("accel_noise_std", accel_noise_std)
        gyro_noise_std = settings.get("gyro_noise_std", gyro_noise_std)
        corrupted_index = settings.get("corrupted_index", corrupted_index)

    print("\n" + "=" * 70)
    print(f"Generating Ranging SLAM Dataset: {Path(output_dir).name}")
    print("=" * 70)

    print("\nStep 1: Simulating IMU and ranging streams...")
    if scenario == "stationary_reflector":
        data = stationary_reflector_scenario(corrupted_index=corrupted_index)
        params = {"corrupted_index": corrupted_index}
        print("  Device at rest, one acoustic reflector 2 m ahead")
        if corrupted_index is not None:
            print(f"  Multipath range injected at batch {corrupted_index}")
    elif scenario == "revisit_loop":
        data = revisit_loop_scenario(
            duration_s=duration_s,
            amplitude=amplitude,
            accel_noise_std=accel_noise_std,
            gyro_noise_std=gyro_noise_std,
            seed=seed,
        )
        params = {
            "duration_s": duration_s,
            "amplitude_mps2": amplitude,
            "accel_noise_std_mps2": accel_noise_std,
            "gyro_noise_std_radps": gyro_noise_std,
        }
        extent = np.max(np.linalg.norm(data.truth_positions, axis=1))
        print(f"  Figure-of-eight, period {duration_s}s, max excursion {extent:.2f}m")
        print(f"  IMU noise: {accel_noise_std} m/s², {gyro_noise_std} rad/s")
    else:
        raise ValueError(f"Unknown scenario: {scenario}")

    print("\nStep 2: Summarizing landmarks...")
    for source_id, position in data.landmarks.items():
        print(f"  {source_id:12s} at {np.round(position, 2)}")

    config = {
        "dataset": "ranging_slam",
        "preset": preset,
        "scenario": data.name,
        "parameters": params,
        "imu": {"samples": len(data.imu)},
        "ranging": {
            "batches": len(data.ranging),
            "measurements": sum(len(b) for b in data.ranging),
        },
        "landmarks": {k: v.tolist() for k, v in data.landmarks.items()},
        "seed": seed,
    }

    print("\nStep 3: Saving dataset...")
    save_dataset(Path(output_dir), data, config)

    print("\n" + "=" * 70)
    print("Dataset generation complete!")
    print("=" * 70)
    return data


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Generate Ranging SLAM Dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Presets:
  baseline      Figure-of-eight loop, WiFi + Bluetooth + acoustic landmarks
  noisy_imu     Same loop with 4x accelerometer and 5x gyro noise
  reflector     Stationary device, single acoustic reflector
  multipath     Stationary device, one corrupted 15 m range

Examples:
  # Generate baseline dataset
  python scripts/generate_ranging_slam_dataset.py --preset baseline

  # Generate with custom parameters
  python scripts/generate_ranging_slam_dataset.py \\
      --output data/sim/my_loop \\
      --duration 30 --accel-noise 0.1
        """,
    )

    parser.add_argument(
        "--preset",
        type=str,
        choices=sorted(PRESETS),
        help="Use preset configuration (overrides other parameters)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="data/sim/ranging_slam_loop",
        help="Output directory (default: data/sim/ranging_slam_loop)",
    )
    parser.add_argument(
        "--scenario",
        type=str,
        choices=["revisit_loop", "stationary_reflector"],
        default="revisit_loop",
        help="Scenario type (default: revisit_loop)",
    )

    loop_group = parser.add_argument_group("Loop Parameters")
    loop_group.add_argument(
        "--duration", type=float, default=20.0, help="Loop period in seconds (default: 20.0)"
    )
    loop_group.add_argument(
        "--amplitude", type=float, default=0.2, help="Acceleration amplitude m/s² (default: 0.2)"
    )

    noise_group = parser.add_argument_group("Noise Parameters")
    noise_group.add_argument(
        "--accel-noise", type=float, default=0.05, help="Accelerometer noise std m/s² (default: 0.05)"
    )
    noise_group.add_argument(
        "--gyro-noise", type=float, default=0.002, help="Gyro noise std rad/s (default: 0.002)"
    )
    noise_group.add_argument(
        "--corrupted-index",
        type=int,
        default=None,
        help="Inject a multipath range at this batch (stationary_reflector only)",
    )

    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")

    args = parser.parse_args()

    generate_dataset(
        output_dir=args.output,
        preset=args.preset,
        scenario=args.scenario,
        duration_s=args.duration,
        amplitude=args.amplitude,
        accel_noise_std=args.accel_noise,
        gyro_noise_std=args.gyro_noise,
        corrupted_index=args.corrupted_index,
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
