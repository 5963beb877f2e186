"""SLAM processor: drives validator, filter and loop-closure detector.

Data flow per input:

    IMU sample      -> dt from previous sample -> EKF.predict -> emit pose, state
    ranging batch   -> validator (drop invalid)
                    -> sort by type_priority × accuracy (ascending)
                    -> for each: loop-closure check, EKF.update
                    -> emit pose, state

All filter access goes through one lock, so IMU and ranging producers on
different threads are serialized against the shared state. A batch is always
processed to completion under that lock; stopping takes effect between
inputs, never in the middle of an update.

Emitted values are immutable snapshots published on Feed objects:
    poses          DevicePose after every predict/batch
    states         SlamState after every predict/batch
    loop_closures  LoopClosure whenever one is detected
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ranging_slam.config import SlamConfig
from ranging_slam.estimators.slam_ekf import (
    LandmarkEstimate,
    RangingSlamEKF,
    UpdateOutcome,
    UpdateResult,
)
from ranging_slam.sensors.types import IMUMeasurement, RangingMeasurement
from ranging_slam.sensors.validation import MeasurementValidator
from ranging_slam.slam.feed import Feed
from ranging_slam.slam.loop_closure import LoopClosureDetector
from ranging_slam.slam.types import (
    DevicePose,
    LoopClosure,
    Point3D,
    ProcessingStatistics,
    SlamState,
)

logger = logging.getLogger(__name__)


class SlamProcessor:
    """Orchestrates ranging SLAM over asynchronous IMU and ranging streams.

    Attributes:
        config: Full pipeline configuration.
        ekf: State estimator (owned, accessed only under the processor lock).
        validator: Measurement pre-filter.
        loop_closure_detector: Revisit detector.
        poses: Feed of DevicePose snapshots.
        states: Feed of SlamState snapshots.
        loop_closures: Feed of detected LoopClosure records.

    Example:
        >>> processor = SlamProcessor()
        >>> sub = processor.states.subscribe_queue()
        >>> pose = processor.process_imu(IMUMeasurement([0, 0, 9.81], [0, 0, 0], 0))
        >>> state = sub.poll()
        >>> 0.0 <= state.confidence <= 1.0
        True
    """

    def __init__(self, config: Optional[SlamConfig] = None):
        self.config = config if config is not None else SlamConfig()
        self.ekf = RangingSlamEKF(self.config.ekf)
        self.validator = MeasurementValidator(self.config.validator)
        self.loop_closure_detector = LoopClosureDetector(self.config.loop_closure)

        buffer_size = self.config.processor.feed_buffer_size
        self.poses: Feed[DevicePose] = Feed("poses", buffer_size)
        self.states: Feed[SlamState] = Feed("states", buffer_size)
        self.loop_closures: Feed[LoopClosure] = Feed("loop_closures", buffer_size)

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self._processing = False

        self._last_imu_timestamp: Optional[int] = None
        self._measurement_count = 0
        self._rejected_count = 0
        self._outlier_count = 0
        self._detected_closures: List[LoopClosure] = []

    # ------------------------------------------------------------------
    # Per-input processing
    # ------------------------------------------------------------------

    def process_imu(self, imu: IMUMeasurement) -> DevicePose:
        """Run one prediction step and emit the resulting pose and state.

        The first sample after start/reset has no predecessor and uses the
        minimum time step.
        """
        with self._lock:
            if self._last_imu_timestamp is None:
                dt = self.config.ekf.min_dt
            else:
                dt = (imu.timestamp - self._last_imu_timestamp) / 1000.0
            self._last_imu_timestamp = imu.timestamp

            self.ekf.predict(imu, dt)
            return self._emit()

    def process_ranging_batch(
        self, measurements: Sequence[RangingMeasurement]
    ) -> List[UpdateResult]:
        """Validate, prioritize and apply a batch of ranging measurements.

        Args:
            measurements: Near-simultaneous observations, any sensor mix.

        Returns:
            One UpdateResult per measurement that reached the filter, in the
            order they were applied.
        """
        with self._lock:
            valid = []
            for m in measurements:
                result = self.validator.validate(m)
                if result.is_valid:
                    valid.append(m)
                else:
                    self._rejected_count += 1

            if not valid:
                logger.debug("No valid measurements in batch of %d", len(measurements))
                return []

            results = []
            for m in self.prioritize(valid):
                closure = self.loop_closure_detector.detect(m, self._current_pose())
                if closure is not None:
                    self._handle_loop_closure(closure)

                result = self.ekf.update(m)
                self._measurement_count += 1
                if result.outcome is not UpdateOutcome.APPLIED:
                    self._outlier_count += 1
                results.append(result)

            self._emit()
            return results

    def prioritize(
        self, measurements: Iterable[RangingMeasurement]
    ) -> List[RangingMeasurement]:
        """Sort by type priority × accuracy, most trustworthy first.

        The sort is stable, so ties keep their batch order.
        """
        priority = self.config.processor.priority
        return sorted(measurements, key=lambda m: priority(m.measurement_type) * m.accuracy)

    def compute_confidence(self, covariance: np.ndarray) -> float:
        """Map position covariance trace to a [0, 1] confidence."""
        trace = float(np.trace(covariance[0:3, 0:3]))
        confidence = 1.0 - trace / self.config.processor.confidence_normalizer
        return float(np.clip(confidence, 0.0, 1.0))

    # ------------------------------------------------------------------
    # Stream control
    # ------------------------------------------------------------------

    def start(
        self,
        imu_stream: Iterable[IMUMeasurement],
        ranging_stream: Iterable[Sequence[RangingMeasurement]],
    ) -> None:
        """Consume both streams on background threads until stop() or exhaustion.

        Every session gets its own stop event, so workers left blocked in a
        stream by an earlier stop() never feed the new session.

        Raises:
            RuntimeError: If processing is already running.
        """
        if self.is_processing:
            raise RuntimeError("SlamProcessor is already processing")

        logger.info("Starting SLAM processing")
        self._stop_event.set()
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._processing = True
        self._threads = [
            threading.Thread(
                target=self._consume,
                args=(imu_stream, self.process_imu, stop_event),
                name="slam-imu",
                daemon=True,
            ),
            threading.Thread(
                target=self._consume,
                args=(ranging_stream, self.process_ranging_batch, stop_event),
                name="slam-ranging",
                daemon=True,
            ),
        ]
        for t in self._threads:
            t.start()

    def stop(self, timeout: float = 1.5) -> None:
        """Stop consuming streams and join the worker threads."""
        self._stop_event.set()
        for t in self._threads:
            if t is not threading.current_thread():
                t.join(timeout=timeout)
                if t.is_alive():
                    logger.warning("%s still blocked in its stream after stop", t.name)
        self._threads = []
        if self._processing:
            self._processing = False
            stats = self.get_statistics()
            logger.info(
                "Stopped SLAM processing: measurements=%d, rejected=%d, outliers=%d, "
                "loop closures=%d, landmarks=%d",
                stats.measurement_count,
                stats.rejected_measurement_count,
                stats.outlier_count,
                stats.loop_closure_count,
                stats.landmark_count,
            )

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait until both input streams are exhausted (or stopped)."""
        for t in list(self._threads):
            t.join(timeout=timeout)

    def _consume(self, stream, handler, stop_event: threading.Event) -> None:
        for item in stream:
            if stop_event.is_set():
                break
            handler(item)

    def replay(
        self,
        imu: Iterable[IMUMeasurement],
        ranging_batches: Iterable[Sequence[RangingMeasurement]],
    ) -> Optional[SlamState]:
        """Process two recorded streams synchronously in timestamp order.

        A ranging batch is stamped with its earliest measurement. On equal
        timestamps the IMU sample is processed first.

        Returns:
            The last emitted SlamState, or None if nothing was emitted.
        """
        events: List[Tuple[int, int, int, object]] = []
        for i, sample in enumerate(imu):
            events.append((sample.timestamp, 0, i, sample))
        for i, batch in enumerate(ranging_batches):
            batch = list(batch)
            if batch:
                events.append((min(m.timestamp for m in batch), 1, i, batch))
        events.sort(key=lambda e: e[:3])

        for _, kind, _, payload in events:
            if kind == 0:
                self.process_imu(payload)
            else:
                self.process_ranging_batch(payload)
        return self.states.latest

    def reset(self) -> None:
        """Reinitialize filter, loop-closure history, validator and counters."""
        with self._lock:
            self.ekf.reset()
            self.loop_closure_detector.reset()
            self.validator.reset()
            self._last_imu_timestamp = None
            self._measurement_count = 0
            self._rejected_count = 0
            self._outlier_count = 0
            self._detected_closures = []
            self.poses.clear()
            self.states.clear()
            self.loop_closures.clear()
        logger.info("SLAM processor reset")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        """True while a started session still has a live stream worker."""
        return self._processing and any(t.is_alive() for t in self._threads)

    def get_statistics(self) -> ProcessingStatistics:
        with self._lock:
            return ProcessingStatistics(
                measurement_count=self._measurement_count,
                rejected_measurement_count=self._rejected_count,
                outlier_count=self._outlier_count,
                loop_closure_count=len(self._detected_closures),
                landmark_count=self.ekf.landmark_count,
                is_processing=self.is_processing,
            )

    def get_current_pose(self) -> DevicePose:
        with self._lock:
            return self._current_pose()

    def get_current_state(self) -> SlamState:
        with self._lock:
            return self._current_state()

    def get_current_map(self) -> List[Point3D]:
        """Landmark positions, in order of first observation."""
        with self._lock:
            return [Point3D.from_array(lm.position) for lm in self.ekf.get_landmarks().values()]

    def get_landmark_estimates(self) -> Dict[str, LandmarkEstimate]:
        with self._lock:
            return self.ekf.get_landmarks()

    def get_loop_closures(self) -> List[LoopClosure]:
        with self._lock:
            return list(self._detected_closures)

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _current_pose(self) -> DevicePose:
        timestamp = self.ekf.timestamp if self.ekf.timestamp is not None else 0
        return DevicePose(
            position=Point3D.from_array(self.ekf.position),
            orientation=tuple(self.ekf.orientation),
            timestamp=int(timestamp),
        )

    def _current_state(self) -> SlamState:
        _, covariance = self.ekf.get_state()
        return SlamState(
            device_pose=self._current_pose(),
            landmarks=tuple(self.get_current_map()),
            covariance=covariance,
            confidence=self.compute_confidence(covariance),
        )

    def _emit(self) -> DevicePose:
        state = self._current_state()
        self.poses.publish(state.device_pose)
        self.states.publish(state)
        return state.device_pose

    def _handle_loop_closure(self, closure: LoopClosure) -> None:
        # Flag only: no pose-graph correction is applied
        self._detected_closures.append(closure)
        logger.info(
            "Loop closure detected on %s with confidence %.3f",
            closure.landmark_id,
            closure.confidence,
        )
        self.loop_closures.publish(closure)
