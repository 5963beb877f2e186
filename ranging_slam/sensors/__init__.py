"""
Measurement records and pre-filtering for ranging SLAM.

Modules:
    types: IMUMeasurement, RangingMeasurement and the RangingType enum
    validation: MeasurementValidator (plausibility, accuracy ceiling,
        temporal consistency and rate-of-change checks)

Example:
    >>> from ranging_slam.sensors import (
    ...     MeasurementValidator, RangingMeasurement, RangingType
    ... )
    >>> validator = MeasurementValidator()
    >>> m = RangingMeasurement("refl_1", 2.0, 0.05, 0, RangingType.ACOUSTIC_FMCW)
    >>> validator.validate(m).is_valid
    True
"""

from ranging_slam.sensors.types import IMUMeasurement, RangingMeasurement, RangingType
from ranging_slam.sensors.validation import (
    MeasurementValidator,
    ValidationResult,
    ValidationStatistics,
)

__all__ = [
    "IMUMeasurement",
    "RangingMeasurement",
    "RangingType",
    "MeasurementValidator",
    "ValidationResult",
    "ValidationStatistics",
]
