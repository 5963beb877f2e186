"""Tuning parameters for the ranging SLAM pipeline.

Every component takes a frozen config dataclass whose defaults reproduce the
reference calibration (noise constants, gates, thresholds). The values are
magic constants without a formal derivation, so they are kept configurable
rather than recomputed.

SlamConfig bundles the per-component configs and can be loaded from a plain
JSON file:

    {
        "ekf": {"acoustic_fmcw_variance": 0.05},
        "reconstruction": {"grid_resolution": 0.2}
    }

Missing sections/keys keep their defaults; unknown keys raise ValueError.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union


@dataclass(frozen=True)
class EKFConfig:
    """Noise model and gating for the 10-state ranging EKF.

    Attributes:
        position_process_var: Q diagonal for px, py, pz.
        velocity_process_var: Q diagonal for vx, vy, vz.
        orientation_process_var: Q diagonal for qw..qz.
        wifi_rtt_variance: R for WiFi-RTT ranges (m²).
        bluetooth_cs_variance: R for Bluetooth channel sounding ranges (m²).
        acoustic_fmcw_variance: R for acoustic FMCW ranges (m²).
        mahalanobis_threshold: Gate on innovation²/S (χ²₁ ≈ 99.7 %).
        initial_covariance: Scale of the identity initial covariance.
        new_landmark_uncertainty: Variance assigned to a freshly seeded landmark.
        gravity: Gravity magnitude removed along world +Z (m/s²).
        min_dt: Lower clamp for the predict interval (s).
        max_dt: Upper clamp for the predict interval (s).
        min_predicted_distance: Below this the range Jacobian is degenerate (m).
    """

    position_process_var: float = 0.1
    velocity_process_var: float = 0.5
    orientation_process_var: float = 0.01
    wifi_rtt_variance: float = 1.0
    bluetooth_cs_variance: float = 3.0
    acoustic_fmcw_variance: float = 0.05
    mahalanobis_threshold: float = 9.0
    initial_covariance: float = 1.0
    new_landmark_uncertainty: float = 10.0
    gravity: float = 9.81
    min_dt: float = 0.01
    max_dt: float = 1.0
    min_predicted_distance: float = 1e-6

    def __post_init__(self) -> None:
        for name in (
            "position_process_var",
            "velocity_process_var",
            "orientation_process_var",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        for name in (
            "wifi_rtt_variance",
            "bluetooth_cs_variance",
            "acoustic_fmcw_variance",
            "mahalanobis_threshold",
            "initial_covariance",
            "new_landmark_uncertainty",
            "min_dt",
            "min_predicted_distance",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.max_dt < self.min_dt:
            raise ValueError(f"max_dt ({self.max_dt}) must be >= min_dt ({self.min_dt})")

    def measurement_variance(self, kind) -> float:
        """Measurement noise variance R for a RangingType."""
        return getattr(self, f"{kind.value}_variance")


@dataclass(frozen=True)
class ValidatorConfig:
    """Plausibility limits for single ranging measurements.

    Attributes:
        min_distance: Shortest plausible range (m).
        max_distance: Longest plausible range (m).
        max_speed: Largest plausible range rate between readings (m/s).
        history_size: Readings kept per source.
        consistency_window: Readings used by the n-sigma consistency gate.
        consistency_sigma: Width of the consistency gate in standard deviations.
        wifi_rtt_max_accuracy: Accuracy ceiling for WiFi-RTT (m).
        bluetooth_cs_max_accuracy: Accuracy ceiling for Bluetooth (m).
        acoustic_fmcw_max_accuracy: Accuracy ceiling for acoustic (m).
    """

    min_distance: float = 0.10
    max_distance: float = 50.0
    max_speed: float = 10.0
    history_size: int = 10
    consistency_window: int = 5
    consistency_sigma: float = 3.0
    wifi_rtt_max_accuracy: float = 10.0
    bluetooth_cs_max_accuracy: float = 5.0
    acoustic_fmcw_max_accuracy: float = 1.0

    def __post_init__(self) -> None:
        if self.min_distance <= 0 or self.max_distance <= self.min_distance:
            raise ValueError(
                f"Need 0 < min_distance < max_distance, got "
                f"{self.min_distance}, {self.max_distance}"
            )
        if self.max_speed <= 0:
            raise ValueError(f"max_speed must be positive, got {self.max_speed}")
        if self.history_size < 1:
            raise ValueError(f"history_size must be >= 1, got {self.history_size}")
        if not 1 <= self.consistency_window <= self.history_size:
            raise ValueError(
                f"consistency_window must be in [1, history_size], got {self.consistency_window}"
            )
        if self.consistency_sigma <= 0:
            raise ValueError(f"consistency_sigma must be positive, got {self.consistency_sigma}")

    def max_accuracy(self, kind) -> float:
        """Largest reported accuracy still plausible for a sensor type."""
        return getattr(self, f"{kind.value}_max_accuracy")


@dataclass(frozen=True)
class LoopClosureConfig:
    """Revisit detection parameters.

    Attributes:
        location_threshold: Radius for treating two poses as the same place (m).
        min_confidence: Confidence a closure must exceed to be reported.
        distance_weight: Weight of the proximity factor.
        accuracy_weight: Weight of the measurement accuracy factor.
        similarity_weight: Weight of the shared-landmark factor.
        consistency_factor: Allowed displacement in multiples of accuracy.
    """

    location_threshold: float = 2.0
    min_confidence: float = 0.75
    distance_weight: float = 0.3
    accuracy_weight: float = 0.3
    similarity_weight: float = 0.4
    consistency_factor: float = 3.0

    def __post_init__(self) -> None:
        if self.location_threshold <= 0:
            raise ValueError(
                f"location_threshold must be positive, got {self.location_threshold}"
            )
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError(f"min_confidence must be in [0, 1], got {self.min_confidence}")
        if min(self.distance_weight, self.accuracy_weight, self.similarity_weight) < 0:
            raise ValueError("Confidence weights must be non-negative")
        if self.consistency_factor <= 0:
            raise ValueError(
                f"consistency_factor must be positive, got {self.consistency_factor}"
            )


@dataclass(frozen=True)
class ReconstructionConfig:
    """Point cloud and voxel mesh parameters.

    grid_resolution, max_range and min_confidence are clamped into their
    allowed ranges by the reconstruction module instead of being rejected.
    """

    grid_resolution: float = 0.1
    max_range: float = 20.0
    min_confidence: float = 0.3
    min_landmarks_for_mesh: int = 10
    trajectory_spacing: float = 0.1

    def __post_init__(self) -> None:
        if self.min_landmarks_for_mesh < 1:
            raise ValueError(
                f"min_landmarks_for_mesh must be >= 1, got {self.min_landmarks_for_mesh}"
            )
        if self.trajectory_spacing < 0:
            raise ValueError(
                f"trajectory_spacing must be non-negative, got {self.trajectory_spacing}"
            )


@dataclass(frozen=True)
class ProcessorConfig:
    """Orchestration parameters.

    Attributes:
        wifi_rtt_priority: Batch ordering weight for WiFi-RTT.
        bluetooth_cs_priority: Batch ordering weight for Bluetooth.
        acoustic_fmcw_priority: Batch ordering weight for acoustic.
        confidence_normalizer: Position covariance trace mapped to zero confidence.
        feed_buffer_size: Queue depth for pull-style feed subscribers.
    """

    wifi_rtt_priority: float = 2.0
    bluetooth_cs_priority: float = 3.0
    acoustic_fmcw_priority: float = 1.0
    confidence_normalizer: float = 10.0
    feed_buffer_size: int = 64

    def __post_init__(self) -> None:
        if self.confidence_normalizer <= 0:
            raise ValueError(
                f"confidence_normalizer must be positive, got {self.confidence_normalizer}"
            )
        if self.feed_buffer_size < 1:
            raise ValueError(f"feed_buffer_size must be >= 1, got {self.feed_buffer_size}")

    def priority(self, kind) -> float:
        """Ordering weight for a sensor type (lower is applied first)."""
        return getattr(self, f"{kind.value}_priority")


_SECTIONS = {
    "ekf": EKFConfig,
    "validator": ValidatorConfig,
    "loop_closure": LoopClosureConfig,
    "reconstruction": ReconstructionConfig,
    "processor": ProcessorConfig,
}


@dataclass(frozen=True)
class SlamConfig:
    """All tuning parameters of the pipeline."""

    ekf: EKFConfig = field(default_factory=EKFConfig)
    validator: ValidatorConfig = field(default_factory=ValidatorConfig)
    loop_closure: LoopClosureConfig = field(default_factory=LoopClosureConfig)
    reconstruction: ReconstructionConfig = field(default_factory=ReconstructionConfig)
    processor: ProcessorConfig = field(default_factory=ProcessorConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SlamConfig":
        """Build a config from nested dictionaries.

        Args:
            data: Mapping of section name to a mapping of field overrides.

        Returns:
            SlamConfig with overrides applied on top of the defaults.

        Raises:
            ValueError: If a section or field name is unknown, or a value
                fails validation.
        """
        unknown = set(data) - set(_SECTIONS)
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")

        sections = {}
        for name, section_cls in _SECTIONS.items():
            overrides = data.get(name, {}) or {}
            allowed = {f.name for f in fields(section_cls)}
            bad = set(overrides) - allowed
            if bad:
                raise ValueError(f"Unknown keys in '{name}': {sorted(bad)}")
            sections[name] = section_cls(**overrides)
        return cls(**sections)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "SlamConfig":
        """Load a config from a JSON file."""
        with open(Path(path), "r") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Plain nested dictionary, suitable for json.dump."""
        return {name: asdict(getattr(self, name)) for name in _SECTIONS}
