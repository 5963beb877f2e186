"""Revisit detection from shared ranging landmarks.

A loop closure is flagged when the device comes back within
location_threshold of a previously visited place that observed the same
landmark id, and the displacement between the two poses is small enough to
be explained by the measurement accuracy.

Confidence blends three factors:

    c = w_d (τ - d)/τ + w_a / (1 + σ) + w_s · matches / total

where τ is the location threshold, d the distance between poses, σ the
measurement accuracy, and matches/total the share of the historic
location's landmark ids equal to the measured source id.

The detector only flags closures. It never corrects the filter state.
"""

import logging
from typing import List, Optional

import numpy as np

from ranging_slam.config import LoopClosureConfig
from ranging_slam.sensors.types import RangingMeasurement
from ranging_slam.slam.types import DevicePose, LoopClosure, VisitedLocation

logger = logging.getLogger(__name__)


class LoopClosureDetector:
    """Flags revisits of previously observed locations.

    Attributes:
        config: Thresholds and confidence weights.
    """

    def __init__(self, config: Optional[LoopClosureConfig] = None):
        self.config = config if config is not None else LoopClosureConfig()
        self._visited: List[VisitedLocation] = []

    @property
    def visited_locations(self) -> List[VisitedLocation]:
        """Copy of the visited-location history."""
        return [VisitedLocation(v.pose, list(v.landmark_ids)) for v in self._visited]

    def detect(
        self,
        measurement: RangingMeasurement,
        current_pose: DevicePose,
    ) -> Optional[LoopClosure]:
        """Check one measurement against the visited-location history.

        The (pose, source id) association is always recorded afterwards,
        merged into the first visited location within the threshold or
        appended as a new one.

        Args:
            measurement: Ranging measurement being processed.
            current_pose: Pose estimate at the time of the measurement.

        Returns:
            LoopClosure with the first matching historic location whose
            confidence exceeds min_confidence, or None.
        """
        closure = self._find_closure(measurement, current_pose)
        self._record(current_pose, measurement.source_id)
        return closure

    def _find_closure(
        self,
        measurement: RangingMeasurement,
        current_pose: DevicePose,
    ) -> Optional[LoopClosure]:
        cfg = self.config
        here = current_pose.position

        for visited in self._visited:
            distance = here.distance_to(visited.pose.position)
            if distance >= cfg.location_threshold:
                continue

            matches = visited.landmark_ids.count(measurement.source_id)
            if matches == 0:
                continue

            if not self._is_geometrically_consistent(distance, measurement.accuracy):
                logger.debug(
                    "Geometric consistency failed for %s: displacement %.2f m",
                    measurement.source_id,
                    distance,
                )
                continue

            confidence = self.compute_confidence(
                distance, measurement.accuracy, matches, len(visited.landmark_ids)
            )
            if confidence > cfg.min_confidence:
                logger.debug(
                    "Loop closure on %s: %d matching landmarks, confidence=%.3f",
                    measurement.source_id,
                    matches,
                    confidence,
                )
                return LoopClosure(
                    landmark_id=measurement.source_id,
                    historic_pose=visited.pose,
                    current_pose=current_pose,
                    confidence=confidence,
                )
        return None

    def compute_confidence(
        self,
        distance: float,
        accuracy: float,
        matching_landmarks: int,
        total_landmarks: int,
    ) -> float:
        """Weighted closure confidence, clamped to [0, 1]."""
        cfg = self.config
        distance_factor = (cfg.location_threshold - distance) / cfg.location_threshold
        accuracy_factor = 1.0 / (1.0 + accuracy)
        similarity = matching_landmarks / total_landmarks if total_landmarks > 0 else 0.0

        confidence = (
            cfg.distance_weight * distance_factor
            + cfg.accuracy_weight * accuracy_factor
            + cfg.similarity_weight * similarity
        )
        return float(np.clip(confidence, 0.0, 1.0))

    def reset(self) -> None:
        self._visited.clear()
        logger.debug("Loop closure history cleared")

    def _is_geometrically_consistent(self, displacement: float, accuracy: float) -> bool:
        return displacement <= self.config.consistency_factor * accuracy

    def _record(self, pose: DevicePose, landmark_id: str) -> None:
        for visited in self._visited:
            if pose.position.distance_to(visited.pose.position) < self.config.location_threshold:
                if landmark_id not in visited.landmark_ids:
                    visited.landmark_ids.append(landmark_id)
                return
        self._visited.append(VisitedLocation(pose, [landmark_id]))
