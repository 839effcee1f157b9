"""Command dispatcher: turns queued change events into remote operations.

This module provides:
- CommandDispatcher: Single consumer of the EventQueue
- ShellCommand, FilePush: The two kinds of remote operation
- build_operation / remote_path: Event-to-operation mapping

The dispatcher owns the remote side of the pipeline:
1. Pops the oldest event from the queue
2. Maps it to exactly one remote operation
3. Runs it on the session bound to the event's monitored path
4. Frees the event back to the pool, whatever the outcome

Mapping:
    | Command | Kind      | Remote effect                         |
    |---------|-----------|---------------------------------------|
    | CREATE  | DIRECTORY | mkdir -p <path>                       |
    | CREATE  | FILE      | > <path> (empty file, content follows)|
    | DELETE  | any       | rm -rf <path> (succeeds if absent)    |
    | RENAME  | any       | mv -f <old path> <path>               |
    | MODIFY  | FILE      | full content push over SFTP           |
    | MODIFY  | DIRECTORY | nothing                               |

Operations run strictly one after another, even across sessions. A failed
operation is logged and its event dropped: the queue keeps draining and the
remote side may diverge from the local one.
"""

from __future__ import annotations

import logging
import shlex
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from filesync.core.config import LOCAL_SEP, REMOTE_SEP, MonitoredPath, RetryPolicy
from filesync.core.errors import RemoteCommandError, SessionError
from filesync.pipeline.retry import run_with_policy
from filesync.pipeline.types import (
    ChangeEvent,
    CommandResult,
    DispatcherState,
    DispatcherStats,
    EventCommand,
    ObjectKind,
)

if TYPE_CHECKING:
    from filesync.pipeline.pool import EventPool
    from filesync.pipeline.queue import EventQueue

logger = logging.getLogger(__name__)

# Command templates; {path} and {old_path} receive "<remote root><object name>"
MKDIR_TEMPLATE = "mkdir -p {path}"
TOUCH_TEMPLATE = "> {path}"
REMOVE_TEMPLATE = "rm -rf {path}"
MOVE_TEMPLATE = "mv -f {old_path} {path}"


class SessionProtocol(Protocol):
    """What the dispatcher needs from a remote session."""

    @property
    def address(self) -> str: ...

    @property
    def broken(self) -> bool: ...

    def execute(self, command: str) -> CommandResult: ...

    def push_file(self, local_path: Path, remote_path: str) -> int: ...


@dataclass(frozen=True)
class ShellCommand:
    """A shell command run on the remote host."""

    command: str

    def describe(self) -> str:
        """Get a one-line description for logs."""
        return self.command


@dataclass(frozen=True)
class FilePush:
    """Full upload of a local file to a remote path."""

    local_path: Path
    remote_path: str

    def describe(self) -> str:
        """Get a one-line description for logs."""
        return f"push {self.local_path} -> {self.remote_path}"


# A single remote operation derived from one event
RemoteOperation = ShellCommand | FilePush


def to_remote(text: str) -> str:
    """Rewrite local separators to remote separators."""
    return text.replace(LOCAL_SEP, REMOTE_SEP)


def remote_path(monitor: MonitoredPath, object_name: str) -> str:
    """Translate an object name to its path on the remote host.

    Example:
        ``a\\b\\c.txt`` under remote root ``/srv/app/`` -> ``/srv/app/a/b/c.txt``
    """
    return to_remote(monitor.remote_root + object_name)


def local_path(monitor: MonitoredPath, object_name: str) -> Path:
    """Get the native local path of an object."""
    parts = [p for p in object_name.split(LOCAL_SEP) if p]
    return monitor.local_dir.joinpath(*parts)


def _render(template: str, monitor: MonitoredPath, event: ChangeEvent) -> str:
    """Substitute root and names into a template, then rewrite separators."""
    command = template.format(
        path=shlex.quote(monitor.remote_root + event.object_name),
        old_path=shlex.quote(monitor.remote_root + event.object_old_name),
    )
    return to_remote(command)


def build_operation(event: ChangeEvent, monitor: MonitoredPath) -> RemoteOperation | None:
    """Map an event to the remote operation it requires.

    Args:
        event: The change event
        monitor: The monitored path the event belongs to

    Returns:
        The operation, or None if the event has no remote effect
    """
    if event.command == EventCommand.CREATE:
        template = MKDIR_TEMPLATE if event.object_kind == ObjectKind.DIRECTORY else TOUCH_TEMPLATE
        return ShellCommand(_render(template, monitor, event))

    if event.command == EventCommand.DELETE:
        return ShellCommand(_render(REMOVE_TEMPLATE, monitor, event))

    if event.command == EventCommand.RENAME:
        return ShellCommand(_render(MOVE_TEMPLATE, monitor, event))

    if event.command == EventCommand.MODIFY and event.object_kind == ObjectKind.FILE:
        return FilePush(
            local_path=local_path(monitor, event.object_name),
            remote_path=remote_path(monitor, event.object_name),
        )

    return None


class CommandDispatcher:
    """Single-threaded consumer that applies events to remote sessions.

    Usage:
        dispatcher = CommandDispatcher(queue, pool, monitors, sessions)
        dispatcher.start()
        # ... watchers push events ...
        dispatcher.stop()
    """

    def __init__(
        self,
        queue: EventQueue,
        pool: EventPool,
        monitors: Sequence[MonitoredPath],
        sessions: Sequence[SessionProtocol],
        retry_policy: RetryPolicy | None = None,
        poll_timeout: float = 0.5,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            queue: Event queue to consume from
            pool: Pool the consumed events are returned to
            monitors: Monitored path table, indexed by monitor id
            sessions: Remote sessions, indexed by session index
            retry_policy: Retries for failed operations (default: none)
            poll_timeout: Seconds between stop checks while the queue is empty
        """
        self._queue = queue
        self._pool = pool
        self._monitors = monitors
        self._sessions = sessions
        self._retry_policy = retry_policy or RetryPolicy()
        self._poll_timeout = poll_timeout

        # State
        self._state = DispatcherState.STOPPED
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        # Stats
        self._stats = DispatcherStats()

        # Callbacks
        self._on_failure: Callable[[str], None] | None = None

    @property
    def state(self) -> DispatcherState:
        """Get current dispatcher state."""
        return self._state

    @property
    def stats(self) -> DispatcherStats:
        """Get dispatcher statistics."""
        return self._stats

    def set_on_failure(self, callback: Callable[[str], None]) -> None:
        """Set callback invoked with an error message when an operation fails."""
        self._on_failure = callback

    def start(self) -> None:
        """Start the dispatcher thread."""
        with self._lock:
            if self._state != DispatcherState.STOPPED:
                logger.warning("Dispatcher already running")
                return

            self._state = DispatcherState.RUNNING
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                name="CommandDispatcher",
                daemon=True,
            )
            self._thread.start()
            logger.info("Dispatcher started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the dispatcher.

        The operation in flight, if any, completes first. Events still queued
        afterwards are discarded and returned to the pool.

        Args:
            timeout: Maximum time to wait for thread to stop
        """
        with self._lock:
            if self._state == DispatcherState.STOPPED:
                return

            self._state = DispatcherState.STOPPING
            self._stop_event.set()
            self._queue.close()
            logger.info("Dispatcher stopping...")

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

        leftover = self._queue.drain()
        for event in leftover:
            self._pool.free(event)
        if leftover:
            logger.warning("Discarded %d queued event(s) on shutdown", len(leftover))

        with self._lock:
            self._state = DispatcherState.STOPPED
            self._thread = None
            logger.info("Dispatcher stopped")

    def _run(self) -> None:
        """Main processing loop."""
        logger.debug("Dispatcher loop started")

        while not self._stop_event.is_set():
            event = self._queue.pop(timeout=self._poll_timeout)
            if event is None:
                if self._queue.is_closed:
                    break
                continue

            try:
                self.process_one(event)
            except Exception:
                logger.exception("Error processing event")

        logger.debug("Dispatcher loop ended")

    def process_one(self, event: ChangeEvent) -> bool:
        """Apply one event to its remote session, then free it.

        Failures are logged and swallowed.

        Args:
            event: The event to process; the dispatcher owns it

        Returns:
            True if the remote operation succeeded or none was needed
        """
        self._stats.events_processed += 1
        try:
            return self._apply(event)
        finally:
            self._pool.free(event)

    def _apply(self, event: ChangeEvent) -> bool:
        logger.debug("Processing event: %s", event)

        if not 0 <= event.monitor_id < len(self._monitors):
            logger.error("Dropping %s: unknown monitor %d", event, event.monitor_id)
            self._stats.events_dropped += 1
            return False

        monitor = self._monitors[event.monitor_id]
        session = self._sessions[monitor.session_index]

        if session.broken:
            logger.warning("Dropping %s: session %s is broken", event, session.address)
            self._stats.events_dropped += 1
            return False

        operation = build_operation(event, monitor)
        if operation is None:
            logger.debug("No remote action for %s", event)
            self._stats.events_ignored += 1
            return True

        try:
            run_with_policy(
                lambda: self._execute(session, operation),
                self._retry_policy,
                retryable_exceptions=(RemoteCommandError,),
            )
        except RemoteCommandError as e:
            self._fail(f"{session.address}: {e}")
            return False
        except SessionError as e:
            self._fail(f"{session.address}: {e}; later events for this session are dropped")
            return False

        self._stats.commands_succeeded += 1
        logger.info("%s: %s", session.address, operation.describe())
        return True

    def _execute(self, session: SessionProtocol, operation: RemoteOperation) -> None:
        """Run one operation; raise RemoteCommandError on failure status."""
        if isinstance(operation, FilePush):
            status = session.push_file(operation.local_path, operation.remote_path)
            if status != 0:
                raise RemoteCommandError(operation.describe(), status)
            return

        result = session.execute(operation.command)
        if not result.ok:
            raise RemoteCommandError(operation.command, result.status, result.output)

    def _fail(self, message: str) -> None:
        self._stats.commands_failed += 1
        logger.error("Remote operation failed, event dropped: %s", message)
        if self._on_failure:
            self._on_failure(message)
