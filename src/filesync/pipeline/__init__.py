"""Event pipeline: local changes in, remote operations out.

Architecture:
    FileWatcher (one per monitored path) → EventPool / EventQueue → CommandDispatcher → RemoteSession

Components:
- **EventPool**: Fixed-capacity arena of reusable ChangeEvent records
- **EventQueue**: Thread-safe FIFO shared by every watcher
- **FileWatcher**: watchdog observer filtering and emitting changes
- **CommandDispatcher**: Single consumer mapping events to remote operations
"""

from filesync.pipeline.dispatcher import (
    CommandDispatcher,
    FilePush,
    RemoteOperation,
    ShellCommand,
    build_operation,
    local_path,
    remote_path,
)
from filesync.pipeline.filters import PathFilter
from filesync.pipeline.pool import EventPool
from filesync.pipeline.queue import EventQueue
from filesync.pipeline.retry import backoff_delays, retry_with_backoff, run_with_policy
from filesync.pipeline.types import (
    ChangeEvent,
    CommandResult,
    DispatcherState,
    DispatcherStats,
    EventCommand,
    ObjectKind,
)
from filesync.pipeline.watcher import FileWatcher, MonitorEventHandler

__all__ = [
    # Types
    "ChangeEvent",
    "CommandResult",
    "DispatcherState",
    "DispatcherStats",
    "EventCommand",
    "ObjectKind",
    # Pool & queue
    "EventPool",
    "EventQueue",
    # Watcher
    "FileWatcher",
    "MonitorEventHandler",
    "PathFilter",
    # Dispatcher
    "CommandDispatcher",
    "FilePush",
    "RemoteOperation",
    "ShellCommand",
    "build_operation",
    "local_path",
    "remote_path",
    # Retry
    "backoff_delays",
    "retry_with_backoff",
    "run_with_policy",
]
