"""Ranging SLAM orchestration.

Main components:
    - Point3D, DevicePose, SlamState: immutable snapshots emitted downstream
    - Feed: one-producer / many-consumer broadcast with drop-oldest buffers
    - LoopClosureDetector: flags revisits that share a landmark id
    - SlamProcessor: validator -> EKF -> loop-closure pipeline over two
      asynchronous input streams

Example usage:
    >>> from ranging_slam.slam import SlamProcessor
    >>> processor = SlamProcessor()
    >>> states = processor.states.subscribe_queue()
    >>> processor.start(imu_stream, ranging_stream)
    >>> processor.join()
    >>> processor.stop()
    >>> print(processor.get_statistics())
"""

from ranging_slam.slam.feed import Feed, FeedSubscription
from ranging_slam.slam.loop_closure import LoopClosureDetector
from ranging_slam.slam.processor import SlamProcessor
from ranging_slam.slam.types import (
    DevicePose,
    LoopClosure,
    Point3D,
    ProcessingStatistics,
    SlamState,
    VisitedLocation,
)

__all__ = [
    "DevicePose",
    "Feed",
    "FeedSubscription",
    "LoopClosure",
    "LoopClosureDetector",
    "Point3D",
    "ProcessingStatistics",
    "SlamProcessor",
    "SlamState",
    "VisitedLocation",
]
