"""Exception hierarchy for filesync.

This module provides:
- FileSyncError: Base class for every filesync error
- ConfigError: Invalid or missing configuration (fatal at startup)
- PoolExhausted: No free event slot left in the event pool
- RemoteCommandError: A remote operation completed with a failure status
- SessionError: Connection-level failure of a remote session
"""

from __future__ import annotations


class FileSyncError(Exception):
    """Base exception for filesync errors."""


class ConfigError(FileSyncError):
    """Configuration file is missing, malformed, or out of bounds."""


class PoolExhausted(FileSyncError):
    """All event slots are checked out."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        super().__init__(f"Event pool exhausted (capacity={capacity})")


class RemoteCommandError(FileSyncError):
    """A remote command or file push failed.

    Attributes:
        command: The command (or push description) that failed
        status: Exit status reported by the remote side (-1 if unknown)
        output: Captured output, if any
    """

    def __init__(self, command: str, status: int, output: str = "") -> None:
        self.command = command
        self.status = status
        self.output = output
        message = f"Remote command failed with status {status}: {command}"
        if output:
            message += f" ({output.strip()})"
        super().__init__(message)


class SessionError(FileSyncError):
    """Transport-level failure of a remote session (connect, auth, channel)."""
