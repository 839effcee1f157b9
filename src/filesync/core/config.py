"""Configuration loading and validation for filesync.

The configuration is a JSON document with three required sections
(``log``, ``ssh``, ``monitor``) and two optional ones (``pipeline``,
``limits``). The document is parsed with pydantic schemas, then turned into
immutable runtime objects:

- LogConfig: Log file name, level, rotation cycle and backup count
- SessionConfig: One remote server and its startup commands
- MonitoredPath: One local root mirrored onto a remote root
- RetryPolicy / PipelineConfig: Pool and dispatcher tuning
- AppConfig: Everything above, built once at startup

Any problem raises ConfigError before the pipeline starts.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from filesync.core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "filesync.json"

# Separator used in configured local roots and in event object names
LOCAL_SEP = "\\"
# Separator used on the remote hosts
REMOTE_SEP = "/"

DEFAULT_POOL_CAPACITY = 1024


# === File schemas ===


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LogSection(_Section):
    """``log`` node."""

    name: str = Field(min_length=1)
    level: Literal["debug", "info", "warn", "error"]
    cycle: Literal["minute", "hour", "day", "week"]
    backup: int = Field(ge=0)
    clean_log: bool = False
    clean_file: bool = False


class CommandSection(_Section):
    """One entry of ``ssh[i].cmd``."""

    cmd: str
    sleep: int = Field(default=0, ge=0)


class SshSection(_Section):
    """One entry of the ``ssh`` array."""

    addr: str = Field(min_length=1)
    port: int = Field(gt=0, lt=65536)
    user: str
    password: str = Field(alias="pass")
    cmd: list[CommandSection]


class MonitorSection(_Section):
    """One entry of the ``monitor`` array."""

    ssh: int
    localpath: str = Field(min_length=1)
    remotepath: str = Field(min_length=1)
    whitelist: list[str]
    blacklist: list[str]


class RetrySection(_Section):
    """``pipeline.retry`` node."""

    max_retries: int = Field(default=0, ge=0)
    initial_backoff: float = Field(default=1.0, ge=0)
    max_backoff: float = Field(default=60.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)


class PipelineSection(_Section):
    """``pipeline`` node."""

    pool_capacity: int = Field(default=DEFAULT_POOL_CAPACITY, gt=0)
    alloc_retries: int = Field(default=3, ge=0)
    alloc_backoff: float = Field(default=0.05, ge=0)
    retry: RetrySection = Field(default_factory=RetrySection)


class LimitsSection(_Section):
    """``limits`` node. Defaults match the historical fixed table sizes."""

    max_sessions: int = Field(default=8, gt=0)
    max_monitors: int = Field(default=8, gt=0)
    max_commands: int = Field(default=8, ge=0)
    max_whitelist: int = Field(default=16, ge=0)
    max_blacklist: int = Field(default=16, ge=0)


class ConfigFile(_Section):
    """Root of the configuration document."""

    log: LogSection
    ssh: list[SshSection] = Field(min_length=1)
    monitor: list[MonitorSection] = Field(min_length=1)
    pipeline: PipelineSection = Field(default_factory=PipelineSection)
    limits: LimitsSection = Field(default_factory=LimitsSection)


# === Runtime configuration ===


@dataclass(frozen=True)
class LogConfig:
    """Logging settings.

    Attributes:
        filename: Log file name, relative to the configuration directory.
        level: One of debug, info, warn, error.
        cycle: Rotation period: minute, hour, day or week.
        backup: Number of rotated files to keep.
        clean_log: Truncate the current log file at startup.
        clean_file: Delete rotated log files at startup.
    """

    filename: str
    level: str = "info"
    cycle: str = "day"
    backup: int = 7
    clean_log: bool = False
    clean_file: bool = False


@dataclass(frozen=True)
class SessionCommand:
    """Shell command run once after a session connects."""

    cmd: str
    sleep_ms: int = 0


@dataclass(frozen=True)
class SessionConfig:
    """Connection settings for one remote server.

    The password is kept in plaintext, as read from the configuration file.
    """

    addr: str
    port: int
    user: str
    password: str = field(repr=False)
    commands: tuple[SessionCommand, ...] = ()

    @property
    def address(self) -> str:
        """Get ``user@addr:port`` for log messages."""
        return f"{self.user}@{self.addr}:{self.port}"


@dataclass(frozen=True)
class MonitoredPath:
    """A local directory mirrored onto a remote directory.

    Attributes:
        id: Index of this entry in the monitor table.
        local_root: Local directory, always ending with LOCAL_SEP.
        remote_root: Remote directory, always ending with REMOTE_SEP.
        session_index: Index of the remote session this path syncs to.
        whitelist: Glob patterns; when non-empty, only matches are synced.
        blacklist: Glob patterns excluded from sync.
    """

    id: int
    local_root: str
    remote_root: str
    session_index: int
    whitelist: tuple[str, ...] = ()
    blacklist: tuple[str, ...] = ()

    @property
    def local_dir(self) -> Path:
        """Get the local root as a native Path."""
        return Path(self.local_root.replace(LOCAL_SEP, "/").rstrip("/") or "/")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for remote operations. The default performs one attempt."""

    max_retries: int = 0
    initial_backoff: float = 1.0
    max_backoff: float = 60.0
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class PipelineConfig:
    """Event pipeline tuning."""

    pool_capacity: int = DEFAULT_POOL_CAPACITY
    alloc_retries: int = 3
    alloc_backoff: float = 0.05
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass(frozen=True)
class AppConfig:
    """Complete, validated configuration."""

    log: LogConfig
    sessions: tuple[SessionConfig, ...]
    monitors: tuple[MonitoredPath, ...]
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    base_dir: Path = field(default_factory=Path.cwd)


def normalize_local_root(path: str) -> str:
    """Append the local separator to a local root if missing."""
    return path if path.endswith(LOCAL_SEP) else path + LOCAL_SEP


def normalize_remote_root(path: str) -> str:
    """Append the remote separator to a remote root if missing."""
    return path if path.endswith(REMOTE_SEP) else path + REMOTE_SEP


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def _check_bounds(doc: ConfigFile) -> None:
    """Validate collection sizes and cross references."""
    limits = doc.limits

    if len(doc.ssh) > limits.max_sessions:
        raise ConfigError(f"ssh count {len(doc.ssh)} > {limits.max_sessions}")
    if len(doc.monitor) > limits.max_monitors:
        raise ConfigError(f"monitor count {len(doc.monitor)} > {limits.max_monitors}")

    for i, ssh in enumerate(doc.ssh):
        if len(ssh.cmd) > limits.max_commands:
            raise ConfigError(
                f"ssh[{i}].cmd count {len(ssh.cmd)} > {limits.max_commands}"
            )

    for i, mnt in enumerate(doc.monitor):
        if mnt.ssh < 0 or mnt.ssh >= len(doc.ssh):
            raise ConfigError(
                f"monitor[{i}].ssh index {mnt.ssh} out of range (0..{len(doc.ssh) - 1})"
            )
        if len(mnt.whitelist) > limits.max_whitelist:
            raise ConfigError(
                f"monitor[{i}].whitelist count {len(mnt.whitelist)} > {limits.max_whitelist}"
            )
        if len(mnt.blacklist) > limits.max_blacklist:
            raise ConfigError(
                f"monitor[{i}].blacklist count {len(mnt.blacklist)} > {limits.max_blacklist}"
            )


def parse_config(data: Any, base_dir: Path | None = None) -> AppConfig:
    """Validate a decoded configuration document.

    Args:
        data: Decoded JSON document.
        base_dir: Directory relative log paths are resolved against.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If a required field is missing, a value is invalid,
            a session index is out of range, or a limit is exceeded.
    """
    try:
        doc = ConfigFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_validation_error(e)) from e

    _check_bounds(doc)

    log = LogConfig(
        filename=doc.log.name,
        level=doc.log.level,
        cycle=doc.log.cycle,
        backup=doc.log.backup,
        clean_log=doc.log.clean_log,
        clean_file=doc.log.clean_file,
    )

    sessions = tuple(
        SessionConfig(
            addr=ssh.addr,
            port=ssh.port,
            user=ssh.user,
            password=ssh.password,
            commands=tuple(SessionCommand(c.cmd, c.sleep) for c in ssh.cmd),
        )
        for ssh in doc.ssh
    )

    monitors = tuple(
        MonitoredPath(
            id=i,
            local_root=normalize_local_root(mnt.localpath),
            remote_root=normalize_remote_root(mnt.remotepath),
            session_index=mnt.ssh,
            whitelist=tuple(mnt.whitelist),
            blacklist=tuple(mnt.blacklist),
        )
        for i, mnt in enumerate(doc.monitor)
    )

    retry = doc.pipeline.retry
    pipeline = PipelineConfig(
        pool_capacity=doc.pipeline.pool_capacity,
        alloc_retries=doc.pipeline.alloc_retries,
        alloc_backoff=doc.pipeline.alloc_backoff,
        retry=RetryPolicy(
            max_retries=retry.max_retries,
            initial_backoff=retry.initial_backoff,
            max_backoff=retry.max_backoff,
            backoff_multiplier=retry.backoff_multiplier,
        ),
    )

    return AppConfig(
        log=log,
        sessions=sessions,
        monitors=monitors,
        pipeline=pipeline,
        base_dir=base_dir or Path.cwd(),
    )


def load_config(path: Path) -> AppConfig:
    """Load and validate a configuration file.

    Args:
        path: Path to the JSON configuration file.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Cannot parse config {path}: {e}") from e

    config = parse_config(data, base_dir=path.resolve().parent)
    logger.debug(
        "Loaded config %s: %d session(s), %d monitor(s)",
        path,
        len(config.sessions),
        len(config.monitors),
    )
    return config
