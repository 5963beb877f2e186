"""
Deterministic synthetic IMU and ranging streams.

Two scenarios are provided:

stationary_reflector_scenario
    Device at rest at the origin with identity attitude. A short burst of
    gravity-only IMU samples is followed by acoustic ranges to one reflector
    2 m ahead along the body forward (+Z) axis. Range jitter follows a fixed
    pattern, so there is no randomness at all. Optionally one range is
    replaced by a corrupted (multipath-like) value.

revisit_loop_scenario
    Device starts at rest, traces a closed figure-of-eight in the horizontal
    plane and comes back to rest at its starting point, ranging to WiFi,
    Bluetooth and acoustic landmarks on the way. Noise is drawn from a seeded
    numpy Generator.

All timestamps are integer milliseconds.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from ranging_slam.sensors.types import IMUMeasurement, RangingMeasurement, RangingType

GRAVITY = 9.81

# Repeating jitter pattern in units of the half-amplitude
_JITTER_PATTERN = np.array([0.0, 1.0, 0.0, -1.0])


@dataclass
class Scenario:
    """Recorded input streams plus ground truth.

    Attributes:
        name: Scenario identifier.
        imu: IMU samples in time order.
        ranging: Ranging batches in time order.
        truth_timestamps: Timestamps (ms) of truth samples, shape (N,).
        truth_positions: True device positions, shape (N, 3).
        landmarks: Landmark id -> true world position (3,).
        corrupted_index: Index of the corrupted ranging batch, if any.
    """

    name: str
    imu: List[IMUMeasurement]
    ranging: List[List[RangingMeasurement]]
    truth_timestamps: np.ndarray
    truth_positions: np.ndarray
    landmarks: Dict[str, np.ndarray] = field(default_factory=dict)
    corrupted_index: Optional[int] = None

    def truth_at(self, timestamp: int) -> np.ndarray:
        """Truth position at the latest truth sample not after timestamp."""
        idx = int(np.searchsorted(self.truth_timestamps, timestamp, side="right")) - 1
        return self.truth_positions[max(idx, 0)].copy()


def stationary_reflector_scenario(
    n_measurements: int = 20,
    distance: float = 2.0,
    jitter: float = 0.02,
    accuracy: float = 0.05,
    n_imu: int = 3,
    imu_interval_ms: int = 10,
    ranging_interval_ms: int = 100,
    source_id: str = "refl_1",
    corrupted_index: Optional[int] = None,
    corrupted_distance: float = 15.0,
) -> Scenario:
    """
    Stationary device ranging to a single acoustic reflector.

    Args:
        n_measurements: Number of acoustic ranges (one per batch).
        distance: True range to the reflector (m).
        jitter: Peak-to-peak deterministic range jitter (m).
        accuracy: Reported 1-sigma accuracy (m).
        n_imu: Gravity-only IMU samples before the first range.
        imu_interval_ms: IMU sample spacing (ms).
        ranging_interval_ms: Spacing of the ranging batches (ms).
        source_id: Reflector identifier.
        corrupted_index: If given, this batch carries corrupted_distance.
        corrupted_distance: Range reported by the corrupted batch (m).

    Returns:
        Scenario with truth position fixed at the origin.
    """
    imu = [
        IMUMeasurement(
            acceleration=np.array([0.0, 0.0, GRAVITY]),
            angular_velocity=np.zeros(3),
            timestamp=i * imu_interval_ms,
        )
        for i in range(n_imu)
    ]

    start = n_imu * imu_interval_ms
    ranging = []
    for k in range(n_measurements):
        d = distance + 0.5 * jitter * _JITTER_PATTERN[k % len(_JITTER_PATTERN)]
        if corrupted_index is not None and k == corrupted_index:
            d = corrupted_distance
        ranging.append(
            [
                RangingMeasurement(
                    source_id=source_id,
                    distance=float(d),
                    accuracy=accuracy,
                    timestamp=start + (k + 1) * ranging_interval_ms,
                    measurement_type=RangingType.ACOUSTIC_FMCW,
                )
            ]
        )

    end = start + (n_measurements + 1) * ranging_interval_ms
    return Scenario(
        name="stationary_reflector",
        imu=imu,
        ranging=ranging,
        truth_timestamps=np.array([0, end], dtype=np.int64),
        truth_positions=np.zeros((2, 3)),
        landmarks={source_id: np.array([0.0, 0.0, distance])},
        corrupted_index=corrupted_index,
    )


DEFAULT_LOOP_LANDMARKS = {
    "ap_kitchen": (np.array([4.0, 3.0, 2.5]), RangingType.WIFI_RTT, 1.0),
    "ap_hall": (np.array([-3.0, 4.0, 2.5]), RangingType.WIFI_RTT, 1.0),
    "tag_desk": (np.array([2.0, -2.0, 0.8]), RangingType.BLUETOOTH_CS, 0.5),
    "wall_north": (np.array([0.5, 1.0, 3.0]), RangingType.ACOUSTIC_FMCW, 0.05),
}


def revisit_loop_scenario(
    duration_s: float = 20.0,
    amplitude: float = 0.2,
    imu_rate_hz: float = 50.0,
    ranging_rate_hz: float = 5.0,
    accel_noise_std: float = 0.05,
    gyro_noise_std: float = 0.002,
    landmarks: Optional[Dict[str, tuple]] = None,
    seed: int = 42,
) -> Scenario:
    """
    Closed figure-of-eight that returns to its starting point at rest.

    World acceleration (attitude stays identity):
        a_x(t) = A cos(2π t / T)
        a_y(t) = A cos(4π t / T)

    which integrates from rest to
        p_x(t) = A (T/2π)² (1 - cos(2π t / T))
        p_y(t) = A (T/4π)² (1 - cos(4π t / T))

    so p(T) = p(0) = 0 with zero velocity.

    Args:
        duration_s: Loop period T (s).
        amplitude: Acceleration amplitude A (m/s²).
        imu_rate_hz: IMU sample rate.
        ranging_rate_hz: Ranging batch rate.
        accel_noise_std: Accelerometer white noise (m/s²).
        gyro_noise_std: Gyro white noise (rad/s).
        landmarks: id -> (position, RangingType, accuracy); defaults to
            DEFAULT_LOOP_LANDMARKS.
        seed: Random seed for the noise generator.

    Returns:
        Scenario with analytic truth at IMU rate.
    """
    rng = np.random.default_rng(seed)
    landmarks = landmarks if landmarks is not None else DEFAULT_LOOP_LANDMARKS
    T = duration_s

    def truth(t: np.ndarray) -> np.ndarray:
        w1 = 2.0 * np.pi / T
        w2 = 4.0 * np.pi / T
        px = amplitude / w1**2 * (1.0 - np.cos(w1 * t))
        py = amplitude / w2**2 * (1.0 - np.cos(w2 * t))
        return np.column_stack([px, py, np.zeros_like(t)])

    t_imu = np.arange(0.0, T + 1e-9, 1.0 / imu_rate_hz)
    imu_ts = np.round(t_imu * 1000.0).astype(np.int64)
    accel_world = np.column_stack(
        [
            amplitude * np.cos(2.0 * np.pi * t_imu / T),
            amplitude * np.cos(4.0 * np.pi * t_imu / T),
            np.zeros_like(t_imu),
        ]
    )
    # Identity attitude: body specific force = world acceleration + gravity reaction
    specific_force = accel_world + np.array([0.0, 0.0, GRAVITY])
    specific_force += rng.normal(0.0, accel_noise_std, specific_force.shape)
    gyro = rng.normal(0.0, gyro_noise_std, (len(t_imu), 3))

    imu = [
        IMUMeasurement(specific_force[i], gyro[i], int(imu_ts[i]))
        for i in range(len(t_imu))
    ]

    t_rng = np.arange(1.0 / ranging_rate_hz, T + 1e-9, 1.0 / ranging_rate_hz)
    positions = truth(t_rng)
    ranging = []
    for t, p in zip(t_rng, positions):
        ts = int(round(t * 1000.0))
        batch = []
        for source_id, (position, kind, accuracy) in landmarks.items():
            true_range = float(np.linalg.norm(position - p))
            measured = max(true_range + rng.normal(0.0, 0.5 * accuracy), 0.2)
            batch.append(RangingMeasurement(source_id, measured, accuracy, ts, kind))
        ranging.append(batch)

    return Scenario(
        name="revisit_loop",
        imu=imu,
        ranging=ranging,
        truth_timestamps=imu_ts,
        truth_positions=truth(t_imu),
        landmarks={k: np.asarray(v[0], dtype=float) for k, v in landmarks.items()},
    )
