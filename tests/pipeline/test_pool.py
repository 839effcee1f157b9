"""Tests for the event pool."""

from __future__ import annotations

import threading

import pytest

from filesync.core.errors import PoolExhausted
from filesync.pipeline.pool import EventPool
from filesync.pipeline.types import ChangeEvent, EventCommand, ObjectKind


class TestEventPool:
    """Tests for EventPool class."""

    def test_invalid_capacity(self) -> None:
        """Capacity must be positive."""
        with pytest.raises(ValueError):
            EventPool(0)

    def test_allocate_returns_cleared_event(self) -> None:
        """Allocated records start with empty payload."""
        pool = EventPool(2)
        event = pool.allocate()

        assert isinstance(event, ChangeEvent)
        assert event.object_name == ""
        assert event.object_old_name == ""
        assert event.monitor_id == -1
        assert pool.in_use == 1
        assert pool.available == 1

    def test_capacity_plus_one_fails(self) -> None:
        """The (capacity+1)-th allocation raises PoolExhausted."""
        pool = EventPool(3)
        events = [pool.allocate() for _ in range(3)]

        with pytest.raises(PoolExhausted) as exc_info:
            pool.allocate()

        assert exc_info.value.capacity == 3
        assert len({id(e) for e in events}) == 3

    def test_free_allows_exactly_one_more(self) -> None:
        """Freeing one slot makes exactly one more allocation succeed."""
        pool = EventPool(2)
        first = pool.allocate()
        pool.allocate()

        pool.free(first)
        again = pool.allocate()

        assert again is first
        with pytest.raises(PoolExhausted):
            pool.allocate()

    def test_free_clears_payload(self) -> None:
        """Freed records are reset before reuse."""
        pool = EventPool(1)
        event = pool.allocate().fill(
            ObjectKind.DIRECTORY, EventCommand.RENAME, 4, "new", "old"
        )

        pool.free(event)
        reused = pool.allocate()

        assert reused.object_kind == ObjectKind.FILE
        assert reused.object_name == ""
        assert reused.object_old_name == ""
        assert reused.monitor_id == -1

    def test_memory_is_fixed(self) -> None:
        """Records are recycled, never created after construction."""
        pool = EventPool(4)
        seen = set()
        for _ in range(100):
            event = pool.allocate()
            seen.add(id(event))
            pool.free(event)

        assert len(seen) <= 4

    def test_double_free_is_asserted(self) -> None:
        """Freeing a record twice violates the contract."""
        pool = EventPool(1)
        event = pool.allocate()
        pool.free(event)

        with pytest.raises(AssertionError):
            pool.free(event)

    def test_foreign_record_is_asserted(self) -> None:
        """Freeing a record from another pool violates the contract."""
        pool = EventPool(1)
        other = EventPool(1)
        foreign = other.allocate()

        with pytest.raises(AssertionError):
            pool.free(foreign)

    def test_concurrent_allocation_never_exceeds_capacity(self) -> None:
        """Concurrent allocations hand out each slot at most once."""
        pool = EventPool(50)
        taken: list[ChangeEvent] = []
        failures: list[int] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(20):
                try:
                    event = pool.allocate()
                except PoolExhausted:
                    with lock:
                        failures.append(1)
                    continue
                with lock:
                    taken.append(event)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(taken) == 50
        assert len({id(e) for e in taken}) == 50
        assert len(failures) == 50
        assert pool.in_use == 50
