"""Event queue between filesystem watchers and the dispatcher.

This module provides:
- EventQueue: Thread-safe FIFO with a blocking pop

Every watcher pushes into the same queue and the dispatcher is its only
consumer. Events come out in exactly the order they went in, across all
monitored paths: a RENAME or DELETE must never overtake an earlier CREATE
for the same object. There is no deduplication and no prioritization.

The queue never holds more events than the EventPool can hand out, so the
pool is the real memory bound.

Usage with FileWatcher:
    queue = EventQueue()
    watcher = FileWatcher(monitor, pool, queue)
    watcher.start()
    event = queue.pop(timeout=1.0)  # None when nothing arrived
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from filesync.pipeline.types import ChangeEvent

logger = logging.getLogger(__name__)


class EventQueue:
    """Thread-safe FIFO of change events.

    push() wakes the consumer immediately, so the dispatcher never needs to
    poll on a fixed interval.
    """

    def __init__(self) -> None:
        """Initialize the event queue."""
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._events: deque[ChangeEvent] = deque()
        self._closed = False

    def push(self, event: ChangeEvent) -> None:
        """Append an event. O(1).

        Args:
            event: The event to append; the queue now owns it

        Raises:
            RuntimeError: If queue is closed
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Queue is closed")
            self._events.append(event)
            self._not_empty.notify()

        logger.debug("Queued event: %s", event)

    def pop(self, timeout: float | None = None) -> ChangeEvent | None:
        """Remove and return the oldest event.

        Blocks until an event is available, the timeout expires, or the
        queue is closed.

        Args:
            timeout: Maximum seconds to wait (None = wait forever)

        Returns:
            The oldest event, or None if the queue stayed empty
        """
        with self._not_empty:
            deadline = None if timeout is None else time.monotonic() + timeout

            while not self._events and not self._closed:
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    self._not_empty.wait(timeout=remaining)
                else:
                    self._not_empty.wait()

            if not self._events:
                return None

            return self._events.popleft()

    def pop_nowait(self) -> ChangeEvent | None:
        """Get the oldest event without blocking.

        Returns:
            The oldest event, or None if queue is empty
        """
        with self._lock:
            if not self._events:
                return None
            return self._events.popleft()

    def drain(self) -> list[ChangeEvent]:
        """Remove and return every queued event, oldest first."""
        with self._lock:
            events = list(self._events)
            self._events.clear()
            return events

    def close(self) -> None:
        """Close the queue and wake up waiting threads.

        Events already queued can still be popped.
        """
        with self._lock:
            self._closed = True
            self._not_empty.notify_all()
        logger.debug("Event queue closed")

    @property
    def is_closed(self) -> bool:
        """Check if queue is closed."""
        return self._closed

    def __len__(self) -> int:
        """Get number of pending events."""
        with self._lock:
            return len(self._events)

    def __bool__(self) -> bool:
        """Check if queue has events."""
        with self._lock:
            return bool(self._events)

    def __iter__(self) -> Iterator[ChangeEvent]:
        """Iterate over a snapshot of pending events in FIFO order."""
        with self._lock:
            return iter(list(self._events))
