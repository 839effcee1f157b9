"""Application context: builds and owns every pipeline component.

There is no module-level state; the CLI constructs one AppContext from the
loaded configuration and hands it around.

Startup order:
    sessions connect → dispatcher starts → watchers start
Shutdown order:
    watchers stop → dispatcher stops (queue closed, leftovers freed) → sessions close
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from filesync.pipeline.dispatcher import CommandDispatcher, SessionProtocol
from filesync.pipeline.pool import EventPool
from filesync.pipeline.queue import EventQueue
from filesync.pipeline.watcher import FileWatcher
from filesync.remote.session import RemoteSession

if TYPE_CHECKING:
    from filesync.core.config import AppConfig, MonitoredPath, SessionConfig

logger = logging.getLogger(__name__)


class ManagedSession(SessionProtocol, Protocol):
    """A session the application connects and closes."""

    def connect(self) -> None: ...

    def close(self) -> None: ...


class AppContext:
    """Everything one filesync process runs.

    Usage:
        ctx = AppContext(load_config(path))
        ctx.start()
        ctx.wait()   # until stop() is called, e.g. from the tray
        ctx.stop()
    """

    def __init__(
        self,
        config: AppConfig,
        session_factory: Callable[[SessionConfig], ManagedSession] = RemoteSession,
        watcher_factory: Callable[..., FileWatcher] = FileWatcher,
    ) -> None:
        """Build the pipeline (nothing is started or connected).

        Args:
            config: Validated configuration
            session_factory: Builds a session per configured server
            watcher_factory: Builds a watcher per monitored path
        """
        self._config = config
        self._watcher_factory = watcher_factory

        pipeline = config.pipeline
        self.pool = EventPool(pipeline.pool_capacity)
        self.queue = EventQueue()
        self.sessions: list[ManagedSession] = [session_factory(s) for s in config.sessions]
        self.dispatcher = CommandDispatcher(
            self.queue,
            self.pool,
            config.monitors,
            self.sessions,
            retry_policy=pipeline.retry,
        )
        self.watchers: list[FileWatcher] = []

        self._stopped = threading.Event()
        self._started = False

    @property
    def config(self) -> AppConfig:
        """Get the configuration."""
        return self._config

    @property
    def monitors(self) -> tuple[MonitoredPath, ...]:
        """Get the monitored path table."""
        return self._config.monitors

    @property
    def is_running(self) -> bool:
        """Check if the pipeline is running."""
        return self._started and not self._stopped.is_set()

    def connect(self) -> None:
        """Connect every session.

        Raises:
            SessionError: If a server cannot be reached or refuses the login
        """
        for session in self.sessions:
            session.connect()
        logger.info("Connected %d session(s)", len(self.sessions))

    def start(self) -> None:
        """Start the dispatcher, then one watcher per monitored path.

        Raises:
            ConfigError: If a monitored local path is not a directory
        """
        if self._started:
            return

        self.dispatcher.start()
        try:
            for monitor in self.monitors:
                watcher = self._watcher_factory(
                    monitor,
                    self.pool,
                    self.queue,
                    alloc_retries=self._config.pipeline.alloc_retries,
                    alloc_backoff=self._config.pipeline.alloc_backoff,
                )
                watcher.start()
                self.watchers.append(watcher)
        except Exception:
            self._shutdown()
            raise

        self._started = True
        self._stopped.clear()
        logger.info("Watching %d monitored path(s)", len(self.watchers))

    def wait(self, timeout: float | None = None) -> bool:
        """Block until stop() is called.

        Returns:
            True if stopped, False on timeout
        """
        return self._stopped.wait(timeout)

    def _shutdown(self) -> None:
        for watcher in self.watchers:
            watcher.stop()
        self.watchers.clear()
        self.dispatcher.stop()
        for session in self.sessions:
            session.close()

    def stop(self) -> None:
        """Stop watchers, drain the dispatcher and close sessions."""
        if self._stopped.is_set():
            return
        logger.info("Stopping filesync")
        self._shutdown()
        self._stopped.set()

    def broken_sessions(self) -> list[str]:
        """Get the addresses of sessions that failed at transport level."""
        return [s.address for s in self.sessions if s.broken]
