"""Tests for the application context."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from filesync.app import AppContext
from filesync.core.config import (
    AppConfig,
    LogConfig,
    MonitoredPath,
    PipelineConfig,
    SessionConfig,
)
from filesync.core.errors import ConfigError, SessionError
from filesync.pipeline.types import CommandResult, DispatcherState


class FakeSession:
    """Session recording its lifecycle calls."""

    def __init__(self, config: SessionConfig) -> None:
        self.config = config
        self.calls: list[str] = []
        self.broken = False
        self.fail_connect = False

    @property
    def address(self) -> str:
        return self.config.address

    def connect(self) -> None:
        self.calls.append("connect")
        if self.fail_connect:
            raise SessionError("refused")

    def close(self) -> None:
        self.calls.append("close")

    def execute(self, command: str) -> CommandResult:
        self.calls.append(command)
        return CommandResult(0)

    def push_file(self, local_path: Path, remote_path: str) -> int:
        self.calls.append(f"push {remote_path}")
        return 0


class FakeWatcher:
    """Watcher recording start and stop."""

    instances: list[FakeWatcher] = []

    def __init__(self, monitor: MonitoredPath, pool: Any, queue: Any, **kwargs: Any) -> None:
        self.monitor = monitor
        self.kwargs = kwargs
        self.running = False
        FakeWatcher.instances.append(self)

    def start(self) -> None:
        if not self.monitor.local_root.startswith("/"):
            raise ConfigError("not a directory")
        self.running = True

    def stop(self) -> None:
        self.running = False


@pytest.fixture(autouse=True)
def reset_watchers() -> None:
    FakeWatcher.instances.clear()


def make_config(*local_roots: str) -> AppConfig:
    roots = local_roots or ("/home/me/a\\",)
    return AppConfig(
        log=LogConfig(filename="filesync.log"),
        sessions=(SessionConfig(addr="host", port=22, user="root", password="pw"),),
        monitors=tuple(
            MonitoredPath(id=i, local_root=root, remote_root=f"/srv/{i}/", session_index=0)
            for i, root in enumerate(roots)
        ),
        pipeline=PipelineConfig(pool_capacity=8, alloc_retries=1, alloc_backoff=0.0),
    )


def make_context(config: AppConfig | None = None) -> AppContext:
    return AppContext(
        config or make_config(),
        session_factory=FakeSession,
        watcher_factory=FakeWatcher,
    )


class TestAppContext:
    """Tests for AppContext class."""

    def test_builds_pipeline_from_config(self) -> None:
        """Should size the pool and create one session per server."""
        ctx = make_context()

        assert ctx.pool.capacity == 8
        assert len(ctx.sessions) == 1
        assert ctx.dispatcher.state == DispatcherState.STOPPED
        assert not ctx.is_running

    def test_start_and_stop(self) -> None:
        """Should start one watcher per monitored path and tear everything down."""
        ctx = make_context(make_config("/a\\", "/b\\"))
        ctx.connect()
        ctx.start()

        assert ctx.is_running
        assert ctx.dispatcher.state == DispatcherState.RUNNING
        assert [w.running for w in FakeWatcher.instances] == [True, True]
        assert FakeWatcher.instances[0].kwargs == {"alloc_retries": 1, "alloc_backoff": 0.0}

        ctx.stop()

        assert not ctx.is_running
        assert ctx.wait(timeout=0)
        assert ctx.dispatcher.state == DispatcherState.STOPPED
        assert [w.running for w in FakeWatcher.instances] == [False, False]
        assert ctx.sessions[0].calls == ["connect", "close"]

    def test_stop_is_idempotent(self) -> None:
        """Calling stop twice closes sessions once."""
        ctx = make_context()
        ctx.start()

        ctx.stop()
        ctx.stop()

        assert ctx.sessions[0].calls == ["close"]

    def test_wait_times_out_while_running(self) -> None:
        """wait() returns False while the pipeline runs."""
        ctx = make_context()
        ctx.start()
        try:
            assert ctx.wait(timeout=0.01) is False
        finally:
            ctx.stop()

    def test_connect_failure_propagates(self) -> None:
        """Unreachable servers abort startup."""
        ctx = make_context()
        ctx.sessions[0].fail_connect = True

        with pytest.raises(SessionError):
            ctx.connect()

    def test_watcher_failure_rolls_back(self) -> None:
        """A bad monitored path stops what was already started."""
        ctx = make_context(make_config("/ok\\", "C:\\missing\\"))

        with pytest.raises(ConfigError):
            ctx.start()

        assert ctx.dispatcher.state == DispatcherState.STOPPED
        assert not FakeWatcher.instances[0].running
        assert ctx.watchers == []

    def test_broken_sessions(self) -> None:
        """Should list the addresses of broken sessions."""
        ctx = make_context()
        assert ctx.broken_sessions() == []

        ctx.sessions[0].broken = True
        assert ctx.broken_sessions() == ["root@host:22"]
