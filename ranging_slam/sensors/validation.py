"""Pre-filter for ranging measurements before they reach the EKF.

The validator applies four cheap, per-source checks:

1. Physical plausibility: min_distance <= d <= max_distance and
   0 <= accuracy < d.
2. Sensor accuracy ceiling: a reported accuracy larger than the sensor class
   can plausibly deliver indicates a malfunctioning sensor.
3. Temporal consistency: n-sigma gate against the mean of the last few
   readings from the same source.
4. Rate of change: |Δd| / Δt against the immediately preceding reading must
   not exceed the maximum plausible device speed.

Every call, pass or fail, is appended to the bounded per-source history so
that subsequent checks see the full sequence.

These checks are coarse. Multipath readings that slip through are caught by
the Mahalanobis gate inside the filter.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

import numpy as np

from ranging_slam.config import ValidatorConfig
from ranging_slam.sensors.types import RangingMeasurement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one measurement.

    Attributes:
        is_valid: True when every check passed.
        errors: Human-readable reason per failed check (empty when valid).
    """

    is_valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ValidationStatistics:
    """Summary of the validator history."""

    total_sources: int
    total_measurements: int


@dataclass(frozen=True)
class _Record:
    distance: float
    accuracy: float
    timestamp: int


class MeasurementValidator:
    """Per-source plausibility filter for ranging measurements.

    Attributes:
        config: Validation limits.

    Example:
        >>> validator = MeasurementValidator()
        >>> m = RangingMeasurement("ap_1", 3.2, 0.5, 1000, RangingType.WIFI_RTT)
        >>> validator.validate(m).is_valid
        True
    """

    def __init__(self, config: Optional[ValidatorConfig] = None):
        self.config = config if config is not None else ValidatorConfig()
        self._history: Dict[str, Deque[_Record]] = {}

    def validate(self, measurement: RangingMeasurement) -> ValidationResult:
        """Run all checks and record the measurement.

        Args:
            measurement: Ranging observation to check.

        Returns:
            ValidationResult listing every failed check.
        """
        errors: List[str] = []
        cfg = self.config

        if not self._is_physically_plausible(measurement):
            errors.append(
                f"Distance {measurement.distance}m (accuracy {measurement.accuracy}m) "
                f"outside physical bounds [{cfg.min_distance}, {cfg.max_distance}]"
            )

        max_accuracy = cfg.max_accuracy(measurement.measurement_type)
        if measurement.accuracy > max_accuracy:
            errors.append(
                f"Accuracy {measurement.accuracy}m exceeds {max_accuracy}m "
                f"threshold for {measurement.measurement_type.name}"
            )

        reason = self._check_temporal_consistency(measurement)
        if reason is not None:
            errors.append(f"Temporal inconsistency: {reason}")

        if not self._is_rate_of_change_reasonable(measurement):
            errors.append("Rate of change exceeds maximum expected speed")

        self._record(measurement)

        if errors:
            logger.warning(
                "Measurement validation failed for %s: %s",
                measurement.source_id,
                "; ".join(errors),
            )
        else:
            logger.debug("Measurement from %s passed validation", measurement.source_id)

        return ValidationResult(is_valid=not errors, errors=errors)

    def reset(self) -> None:
        """Forget all per-source history."""
        self._history.clear()
        logger.debug("Measurement validator reset")

    def get_statistics(self) -> ValidationStatistics:
        """Number of tracked sources and recorded measurements."""
        return ValidationStatistics(
            total_sources=len(self._history),
            total_measurements=sum(len(h) for h in self._history.values()),
        )

    def _is_physically_plausible(self, measurement: RangingMeasurement) -> bool:
        cfg = self.config
        return (
            cfg.min_distance <= measurement.distance <= cfg.max_distance
            and 0.0 <= measurement.accuracy < measurement.distance
        )

    def _check_temporal_consistency(self, measurement: RangingMeasurement) -> Optional[str]:
        """Return a failure reason, or None if consistent."""
        history = self._history.get(measurement.source_id)
        if not history:
            return None

        recent = np.array(
            [r.distance for r in list(history)[-self.config.consistency_window:]]
        )
        if len(recent) < 2:
            return None

        mean = float(np.mean(recent))
        std = float(np.std(recent))
        deviation = abs(measurement.distance - mean)
        limit = self.config.consistency_sigma * std

        # A perfectly constant history gives no spread to gate against
        if std == 0.0 or deviation <= limit:
            return None
        return f"Deviation {deviation:.3f}m exceeds {limit:.3f}m threshold"

    def _is_rate_of_change_reasonable(self, measurement: RangingMeasurement) -> bool:
        history = self._history.get(measurement.source_id)
        if not history:
            return True

        last = history[-1]
        dt = (measurement.timestamp - last.timestamp) / 1000.0
        if dt <= 0.0:
            return True

        rate = abs(measurement.distance - last.distance) / dt
        return rate <= self.config.max_speed

    def _record(self, measurement: RangingMeasurement) -> None:
        history = self._history.get(measurement.source_id)
        if history is None:
            history = deque(maxlen=self.config.history_size)
            self._history[measurement.source_id] = history
        history.append(
            _Record(
                distance=measurement.distance,
                accuracy=measurement.accuracy,
                timestamp=measurement.timestamp,
            )
        )
