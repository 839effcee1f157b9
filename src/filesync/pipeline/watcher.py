"""Filesystem watcher feeding the event pipeline.

This module provides:
- MonitorEventHandler: Converts watchdog events into pooled ChangeEvents
- FileWatcher: Watches one monitored path with a watchdog observer

Each change is filtered, written into a record taken from the EventPool and
pushed onto the shared EventQueue in the order watchdog reports it. There is
no debouncing: coalescing events would reorder them.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from filesync.core.config import LOCAL_SEP, MonitoredPath
from filesync.core.errors import ConfigError, PoolExhausted
from filesync.pipeline.filters import PathFilter
from filesync.pipeline.types import ChangeEvent, EventCommand, ObjectKind

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from filesync.pipeline.pool import EventPool
    from filesync.pipeline.queue import EventQueue

logger = logging.getLogger(__name__)

DEFAULT_ALLOC_RETRIES = 3
DEFAULT_ALLOC_BACKOFF = 0.05  # seconds


def _decode(path: str | bytes) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class MonitorEventHandler(FileSystemEventHandler):
    """Event handler that turns watchdog events into ChangeEvents."""

    def __init__(
        self,
        monitor: MonitoredPath,
        pool: EventPool,
        queue: EventQueue,
        path_filter: PathFilter | None = None,
        alloc_retries: int = DEFAULT_ALLOC_RETRIES,
        alloc_backoff: float = DEFAULT_ALLOC_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the handler.

        Args:
            monitor: The monitored path this handler serves.
            pool: Pool to allocate event records from.
            queue: Queue to push filled records into.
            path_filter: Whitelist/blacklist (default: the monitor's lists).
            alloc_retries: Allocation attempts after the first when the pool is full.
            alloc_backoff: Seconds to wait between allocation attempts.
            sleep: Sleep function, replaceable in tests.
        """
        super().__init__()
        self._monitor = monitor
        self._base_path = monitor.local_dir.resolve()
        self._pool = pool
        self._queue = queue
        self._filter = path_filter or PathFilter(monitor.whitelist, monitor.blacklist)
        self._alloc_retries = alloc_retries
        self._alloc_backoff = alloc_backoff
        self._sleep = sleep
        self._dropped = 0

    @property
    def dropped(self) -> int:
        """Get the number of changes dropped because the pool was exhausted."""
        return self._dropped

    def object_name(self, path: str | bytes) -> str | None:
        """Get the object name of a path, or None if it is outside the root.

        The object name is relative to the monitored root and joined with the
        local separator.
        """
        raw = Path(_decode(path))
        try:
            rel = raw.resolve().relative_to(self._base_path)
        except ValueError:
            try:
                rel = raw.relative_to(self._base_path)
            except ValueError:
                return None
        if not rel.parts:
            return None
        return LOCAL_SEP.join(rel.parts)

    def _allocate(self) -> ChangeEvent | None:
        for attempt in range(self._alloc_retries + 1):
            try:
                return self._pool.allocate()
            except PoolExhausted:
                if attempt < self._alloc_retries:
                    self._sleep(self._alloc_backoff)
        return None

    def _emit(
        self,
        kind: ObjectKind,
        command: EventCommand,
        name: str,
        old_name: str = "",
    ) -> bool:
        """Allocate, fill and queue one event."""
        event = self._allocate()
        if event is None:
            self._dropped += 1
            logger.warning(
                "Event pool exhausted, dropping %s %s %s",
                command.name,
                kind.name,
                name,
            )
            return False

        event.fill(kind, command, self._monitor.id, name, old_name)
        try:
            self._queue.push(event)
        except RuntimeError:
            self._pool.free(event)
            logger.debug("Queue closed, dropping %s", name)
            return False
        return True

    def _accepted_name(self, path: str | bytes, kind: ObjectKind) -> str | None:
        """Get the object name of a path if it passes the filters."""
        name = self.object_name(path)
        if name is None or not self._filter.accepts(
            name, is_directory=kind == ObjectKind.DIRECTORY
        ):
            return None
        return name

    def _emit_created(self, kind: ObjectKind, name: str, path: Path) -> None:
        self._emit(kind, EventCommand.CREATE, name)
        # Content of a copied or moved-in file may never produce a modify event
        if kind == ObjectKind.FILE:
            try:
                has_content = path.stat().st_size > 0
            except OSError:
                has_content = False
            if has_content:
                self._emit(kind, EventCommand.MODIFY, name)

    @staticmethod
    def _kind(event: FileSystemEvent) -> ObjectKind:
        return ObjectKind.DIRECTORY if event.is_directory else ObjectKind.FILE

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        kind = self._kind(event)
        name = self._accepted_name(event.src_path, kind)
        if name is not None:
            self._emit_created(kind, name, Path(_decode(event.src_path)))

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deleted event."""
        kind = self._kind(event)
        name = self._accepted_name(event.src_path, kind)
        if name is not None:
            self._emit(kind, EventCommand.DELETE, name)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event. Directory modifications are ignored."""
        if event.is_directory:
            return
        name = self._accepted_name(event.src_path, ObjectKind.FILE)
        if name is not None:
            self._emit(ObjectKind.FILE, EventCommand.MODIFY, name)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event.

        A move within the root is a rename. Moving out of the root (or to a
        filtered name) deletes the remote object; moving in creates it.
        Synthetic moves of a renamed directory's content are skipped: the
        directory rename already carries them.
        """
        if getattr(event, "is_synthetic", False):
            return

        kind = self._kind(event)
        old_name = self._accepted_name(event.src_path, kind)
        dest = _decode(getattr(event, "dest_path", "") or "")
        new_name = self._accepted_name(dest, kind) if dest else None

        if old_name is not None and new_name is not None:
            self._emit(kind, EventCommand.RENAME, new_name, old_name)
        elif old_name is not None:
            self._emit(kind, EventCommand.DELETE, old_name)
        elif new_name is not None:
            self._emit_created(kind, new_name, Path(dest))


class FileWatcher:
    """Watches one monitored path and feeds the event pipeline."""

    def __init__(
        self,
        monitor: MonitoredPath,
        pool: EventPool,
        queue: EventQueue,
        alloc_retries: int = DEFAULT_ALLOC_RETRIES,
        alloc_backoff: float = DEFAULT_ALLOC_BACKOFF,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        """Initialize the file watcher.

        Args:
            monitor: Monitored path to watch.
            pool: Pool to allocate event records from.
            queue: Queue to push events into.
            alloc_retries: Allocation attempts after the first when the pool is full.
            alloc_backoff: Seconds to wait between allocation attempts.
            observer_factory: Builds the watchdog observer.

        Raises:
            ConfigError: If the local root is not a directory.
        """
        self._monitor = monitor
        self._watch_path = monitor.local_dir.resolve()
        if not self._watch_path.is_dir():
            raise ConfigError(
                f"monitor[{monitor.id}] local path is not a directory: {monitor.local_root}"
            )

        self._handler = MonitorEventHandler(
            monitor=monitor,
            pool=pool,
            queue=queue,
            alloc_retries=alloc_retries,
            alloc_backoff=alloc_backoff,
        )
        self._observer: BaseObserver = observer_factory()
        self._running = False

    @property
    def monitor(self) -> MonitoredPath:
        """Get the monitored path."""
        return self._monitor

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def handler(self) -> MonitorEventHandler:
        """Get the event handler."""
        return self._handler

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def start(self) -> None:
        """Start watching for changes."""
        if self._running:
            return

        self._observer.schedule(self._handler, str(self._watch_path), recursive=True)
        self._observer.start()
        self._running = True
        logger.info(
            "Watching %s -> %s",
            self._watch_path,
            self._monitor.remote_root,
        )

    def stop(self) -> None:
        """Stop watching for changes."""
        if not self._running:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._running = False

    def __enter__(self) -> FileWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
