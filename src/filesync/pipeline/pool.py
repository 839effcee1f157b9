"""Fixed-capacity pool of reusable change events.

Bursts of filesystem activity (a build writing hundreds of files) must not
grow memory without bound. The pool creates all of its records up front;
watchers check records out with allocate() and the dispatcher hands them back
with free(). When every record is checked out, allocate() fails immediately
with PoolExhausted and the caller decides whether to back off or drop.

Usage:
    pool = EventPool(capacity=1024)
    event = pool.allocate().fill(ObjectKind.FILE, EventCommand.CREATE, 0, "a.txt")
    queue.push(event)
    ...
    pool.free(event)
"""

from __future__ import annotations

import logging
import threading

from filesync.core.errors import PoolExhausted
from filesync.pipeline.types import ChangeEvent

logger = logging.getLogger(__name__)


class EventPool:
    """Thread-safe arena of ChangeEvent records.

    Attributes:
        capacity: Number of records owned by the pool
    """

    def __init__(self, capacity: int) -> None:
        """Initialize the pool.

        Args:
            capacity: Number of event records to preallocate (must be > 0)
        """
        if capacity <= 0:
            raise ValueError(f"Pool capacity must be positive, got {capacity}")

        self._capacity = capacity
        self._lock = threading.Lock()
        self._slots = [ChangeEvent(slot=i) for i in range(capacity)]
        # LIFO free list keeps recently used records warm
        self._free: list[int] = list(range(capacity - 1, -1, -1))
        self._checked_out = [False] * capacity

    @property
    def capacity(self) -> int:
        """Get the number of records owned by the pool."""
        return self._capacity

    @property
    def in_use(self) -> int:
        """Get the number of records currently checked out."""
        with self._lock:
            return self._capacity - len(self._free)

    @property
    def available(self) -> int:
        """Get the number of free records."""
        with self._lock:
            return len(self._free)

    def allocate(self) -> ChangeEvent:
        """Check out a free record.

        Never blocks.

        Returns:
            A cleared ChangeEvent owned by the caller

        Raises:
            PoolExhausted: If every record is checked out
        """
        with self._lock:
            if not self._free:
                raise PoolExhausted(self._capacity)
            slot = self._free.pop()
            self._checked_out[slot] = True
            return self._slots[slot]

    def free(self, event: ChangeEvent) -> None:
        """Return a record to the pool.

        Freeing a record twice, or one this pool did not hand out, violates
        the pool's contract; it is only checked by assertions.

        Args:
            event: A record previously returned by allocate()
        """
        slot = event.slot
        assert 0 <= slot < self._capacity and self._slots[slot] is event, (
            f"Record {event!r} does not belong to this pool"
        )
        event.clear()
        with self._lock:
            assert self._checked_out[slot], f"Record in slot {slot} freed twice"
            self._checked_out[slot] = False
            self._free.append(slot)

    def __repr__(self) -> str:
        return f"EventPool(capacity={self._capacity}, in_use={self.in_use})"
