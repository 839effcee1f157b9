"""Core module - Configuration, errors, and logging setup."""

from filesync.core.config import (
    LOCAL_SEP,
    REMOTE_SEP,
    AppConfig,
    LogConfig,
    MonitoredPath,
    PipelineConfig,
    RetryPolicy,
    SessionCommand,
    SessionConfig,
    load_config,
    parse_config,
)
from filesync.core.errors import (
    ConfigError,
    FileSyncError,
    PoolExhausted,
    RemoteCommandError,
    SessionError,
)
from filesync.core.logs import setup_logging

__all__ = [
    # Config
    "LOCAL_SEP",
    "REMOTE_SEP",
    "AppConfig",
    "LogConfig",
    "MonitoredPath",
    "PipelineConfig",
    "RetryPolicy",
    "SessionCommand",
    "SessionConfig",
    "load_config",
    "parse_config",
    # Errors
    "ConfigError",
    "FileSyncError",
    "PoolExhausted",
    "RemoteCommandError",
    "SessionError",
    # Logging
    "setup_logging",
]
