"""One-producer / many-consumer feed for immutable snapshots.

Two kinds of consumers are supported:
- callbacks, invoked synchronously on the producer's thread
- pull subscriptions, each with its own bounded buffer that drops the oldest
  entry when the consumer falls behind

Dropping is safe because every snapshot fully supersedes the previous one.
"""

import logging
import threading
from collections import deque
from typing import Callable, Deque, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FeedSubscription(Generic[T]):
    """Bounded buffer attached to a Feed."""

    def __init__(self, feed: "Feed[T]", maxlen: int):
        self._feed = feed
        self._buffer: Deque[T] = deque(maxlen=maxlen)
        self._lock = threading.Lock()
        self._ready = threading.Condition(self._lock)
        self.dropped = 0

    def _push(self, value: T) -> None:
        with self._lock:
            if len(self._buffer) == self._buffer.maxlen:
                self.dropped += 1
            self._buffer.append(value)
            self._ready.notify_all()

    def poll(self, timeout: Optional[float] = None) -> Optional[T]:
        """Pop the oldest buffered value.

        Args:
            timeout: Seconds to wait for a value. None returns immediately.

        Returns:
            The value, or None if nothing arrived in time.
        """
        with self._lock:
            if not self._buffer and timeout is not None:
                self._ready.wait_for(lambda: bool(self._buffer), timeout=timeout)
            if not self._buffer:
                return None
            return self._buffer.popleft()

    def drain(self) -> List[T]:
        """Pop every buffered value, oldest first."""
        with self._lock:
            items = list(self._buffer)
            self._buffer.clear()
            return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def close(self) -> None:
        self._feed._remove_subscription(self)


class Feed(Generic[T]):
    """Broadcast channel with drop-oldest back-pressure.

    Example:
        >>> feed = Feed[int]()
        >>> received = []
        >>> unsubscribe = feed.subscribe(received.append)
        >>> sub = feed.subscribe_queue(maxlen=2)
        >>> for i in range(3):
        ...     feed.publish(i)
        >>> received, sub.drain()
        ([0, 1, 2], [1, 2])
    """

    def __init__(self, name: str = "feed", maxlen: int = 64):
        self.name = name
        self.maxlen = maxlen
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[T], None]] = []
        self._subscriptions: List[FeedSubscription[T]] = []
        self._latest: Optional[T] = None

    @property
    def latest(self) -> Optional[T]:
        """Most recently published value, or None."""
        with self._lock:
            return self._latest

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def subscribe_queue(self, maxlen: Optional[int] = None) -> FeedSubscription[T]:
        """Attach a pull subscription with its own bounded buffer."""
        sub = FeedSubscription(self, maxlen if maxlen is not None else self.maxlen)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def _remove_subscription(self, sub: FeedSubscription[T]) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def publish(self, value: T) -> None:
        """Deliver a value to every consumer.

        A failing callback is logged and does not stop delivery to the others.
        """
        with self._lock:
            self._latest = value
            callbacks = list(self._callbacks)
            subscriptions = list(self._subscriptions)

        for sub in subscriptions:
            sub._push(value)
        for callback in callbacks:
            try:
                callback(value)
            except Exception:
                logger.exception("Subscriber of %s feed raised", self.name)

    def clear(self) -> None:
        """Forget the latest value (subscribers stay attached)."""
        with self._lock:
            self._latest = None
