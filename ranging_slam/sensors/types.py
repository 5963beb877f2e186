"""Measurement records consumed by the ranging SLAM core.

The core never talks to hardware. Acquisition layers (radio ranging APIs,
acoustic echo capture, IMU drivers) decode their readings into the frozen
records below and hand them over by value.

Timestamps are integer milliseconds on a monotonic clock.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np


class RangingType(Enum):
    """Physical ranging technology that produced a distance."""

    WIFI_RTT = "wifi_rtt"
    BLUETOOTH_CS = "bluetooth_cs"
    ACOUSTIC_FMCW = "acoustic_fmcw"


def _as_vec3(name: str, value) -> np.ndarray:
    if value is None:
        raise TypeError(f"{name} must be a 3-vector, got None")
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite, got {arr}")
    return arr


@dataclass(frozen=True)
class IMUMeasurement:
    """One inertial sample in the body frame.

    Attributes:
        acceleration: Specific force [ax, ay, az] in m/s² (gravity included).
        angular_velocity: Body rate [wx, wy, wz] in rad/s.
        timestamp: Monotonic time in milliseconds.
        magnetic_field: Optional magnetometer reading [mx, my, mz] in µT.
            Carried for completeness; the filter does not consume it.

    Example:
        >>> imu = IMUMeasurement(
        ...     acceleration=np.array([0.0, 0.0, 9.81]),
        ...     angular_velocity=np.zeros(3),
        ...     timestamp=1000,
        ... )
    """

    acceleration: np.ndarray
    angular_velocity: np.ndarray
    timestamp: int
    magnetic_field: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        """Coerce vectors to float arrays and check their shapes and finiteness."""
        object.__setattr__(self, "acceleration", _as_vec3("acceleration", self.acceleration))
        object.__setattr__(
            self, "angular_velocity", _as_vec3("angular_velocity", self.angular_velocity)
        )
        if self.magnetic_field is not None:
            object.__setattr__(
                self, "magnetic_field", _as_vec3("magnetic_field", self.magnetic_field)
            )
        if not isinstance(self.timestamp, (int, np.integer)):
            raise TypeError(f"timestamp must be integer milliseconds, got {type(self.timestamp)}")


@dataclass(frozen=True)
class RangingMeasurement:
    """Distance from the device to one physical landmark.

    Attributes:
        source_id: Stable identifier of the landmark/reflector (e.g. BSSID).
        distance: Measured range in meters. Must be finite and > 0.
        accuracy: Reported 1-sigma accuracy in meters. Must be finite and >= 0.
        timestamp: Monotonic time in milliseconds.
        measurement_type: Ranging technology that produced the distance.
    """

    source_id: str
    distance: float
    accuracy: float
    timestamp: int
    measurement_type: RangingType

    def __post_init__(self) -> None:
        """Validate the record invariants."""
        if not isinstance(self.source_id, str) or not self.source_id:
            raise ValueError(f"source_id must be a non-empty string, got {self.source_id!r}")
        if not isinstance(self.measurement_type, RangingType):
            raise TypeError(
                f"measurement_type must be a RangingType, got {type(self.measurement_type)}"
            )
        if not isinstance(self.timestamp, (int, np.integer)):
            raise TypeError(f"timestamp must be integer milliseconds, got {type(self.timestamp)}")

        distance = float(self.distance)
        accuracy = float(self.accuracy)
        if not np.isfinite(distance) or distance <= 0.0:
            raise ValueError(f"distance must be finite and > 0, got {self.distance}")
        if not np.isfinite(accuracy) or accuracy < 0.0:
            raise ValueError(f"accuracy must be finite and >= 0, got {self.accuracy}")
        object.__setattr__(self, "distance", distance)
        object.__setattr__(self, "accuracy", accuracy)
