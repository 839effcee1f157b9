"""Logging setup for filesync.

All modules log through ``logging.getLogger(__name__)``; this module only
attaches handlers to the ``filesync`` logger: stdout plus a time-rotated
log file.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from filesync.core.config import LogConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# TimedRotatingFileHandler "when" values per rotation cycle
CYCLES = {
    "minute": "M",
    "hour": "H",
    "day": "D",
    "week": "W0",
}


def _clean(log_path: Path, clean_log: bool, clean_file: bool) -> None:
    """Apply the startup cleanup flags to existing log files."""
    if clean_log and log_path.exists():
        log_path.write_text("", encoding="utf-8")
    if clean_file:
        for old in log_path.parent.glob(log_path.name + ".*"):
            old.unlink(missing_ok=True)


def setup_logging(config: LogConfig, base_dir: Path, stdout: bool = True) -> Path:
    """Configure logging to output to both a rotated file and stdout.

    Args:
        config: Logging section of the configuration.
        base_dir: Directory a relative log file name is resolved against.
        stdout: Also log to stdout.

    Returns:
        Path to the log file.
    """
    log_path = Path(config.filename)
    if not log_path.is_absolute():
        log_path = base_dir / log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)

    _clean(log_path, config.clean_log, config.clean_file)

    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("filesync")
    root_logger.setLevel(LEVELS.get(config.level, logging.INFO))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    if stdout:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setFormatter(formatter)
        root_logger.addHandler(stdout_handler)

    file_handler = TimedRotatingFileHandler(
        log_path,
        when=CYCLES.get(config.cycle, "D"),
        backupCount=config.backup,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # paramiko is chatty at INFO
    logging.getLogger("paramiko").setLevel(logging.WARNING)

    return log_path
