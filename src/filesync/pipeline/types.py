"""Shared types for the event pipeline.

This module provides:
- ObjectKind, EventCommand: What changed and how
- ChangeEvent: A pooled, reusable change record
- DispatcherState, DispatcherStats: Dispatcher lifecycle and counters
- CommandResult: Outcome of a remote shell command
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, auto


class ObjectKind(IntEnum):
    """Kind of filesystem object an event refers to."""

    FILE = auto()
    DIRECTORY = auto()


class EventCommand(IntEnum):
    """Filesystem mutation carried by an event."""

    CREATE = auto()
    DELETE = auto()
    RENAME = auto()
    MODIFY = auto()


@dataclass(eq=False)
class ChangeEvent:
    """A change record handed from a watcher to the dispatcher.

    Instances are owned by an EventPool and recycled; only the pool creates
    them. Between allocate() and free() exactly one component owns the
    record: the watcher that filled it, then the queue, then the dispatcher.

    Attributes:
        slot: Index of this record in its pool (fixed for its lifetime)
        object_kind: File or directory
        command: Create, delete, rename or modify
        monitor_id: Index of the monitored path that produced the change
        object_name: Path relative to the local root, using the local separator
        object_old_name: Previous relative path (RENAME only)
    """

    slot: int
    object_kind: ObjectKind = ObjectKind.FILE
    command: EventCommand = EventCommand.MODIFY
    monitor_id: int = -1
    object_name: str = ""
    object_old_name: str = ""

    def fill(
        self,
        object_kind: ObjectKind,
        command: EventCommand,
        monitor_id: int,
        object_name: str,
        object_old_name: str = "",
    ) -> ChangeEvent:
        """Set every payload field at once and return self."""
        self.object_kind = object_kind
        self.command = command
        self.monitor_id = monitor_id
        self.object_name = object_name
        self.object_old_name = object_old_name
        return self

    def clear(self) -> None:
        """Reset payload fields before the slot goes back to the pool."""
        self.fill(ObjectKind.FILE, EventCommand.MODIFY, -1, "", "")

    def __repr__(self) -> str:
        """Human-readable representation."""
        if self.command == EventCommand.RENAME:
            name = f"{self.object_old_name!r} -> {self.object_name!r}"
        else:
            name = repr(self.object_name)
        return (
            f"ChangeEvent({self.command.name} {self.object_kind.name} {name}, "
            f"monitor={self.monitor_id})"
        )


class DispatcherState(IntEnum):
    """State of the dispatcher."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()


@dataclass
class DispatcherStats:
    """Statistics for the dispatcher."""

    events_processed: int = 0
    commands_succeeded: int = 0
    commands_failed: int = 0
    events_dropped: int = 0
    events_ignored: int = 0


@dataclass(frozen=True)
class CommandResult:
    """Result of a remote shell command."""

    status: int
    output: str = ""

    @property
    def ok(self) -> bool:
        """Check if the command exited with status 0."""
        return self.status == 0
