"""SSH session to one remote server.

This module provides:
- RemoteSession: Wraps a paramiko SSHClient and SFTPClient

A session is long-lived: it is connected once at startup and then used by the
dispatcher thread only. It runs one operation at a time and never reconnects;
after a transport failure it is marked broken and every later call raises
SessionError.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path

import paramiko

from filesync.core.config import SessionConfig
from filesync.core.errors import RemoteCommandError, SessionError
from filesync.pipeline.types import CommandResult

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 20.0  # seconds
DEFAULT_KEEPALIVE = 30  # seconds between SSH keep-alive packets
DEFAULT_CLOSE_TIMEOUT = 2.0  # seconds close() waits for the call in flight

# Transport-level failures raised by paramiko or the socket layer
TRANSPORT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    paramiko.SSHException,
    EOFError,
    ConnectionError,
    TimeoutError,
)


class RemoteSession:
    """Authenticated SSH session able to run commands and push files.

    Usage:
        session = RemoteSession(config)
        session.connect()
        result = session.execute("mkdir -p /srv/app/dir")
        session.push_file(Path("C:/proj/a.txt"), "/srv/proj/a.txt")
        session.close()
    """

    def __init__(
        self,
        config: SessionConfig,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        command_timeout: float | None = None,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the session (does not connect).

        Args:
            config: Server address and credentials
            connect_timeout: TCP/banner/auth timeout in seconds
            command_timeout: Channel timeout for commands (None = no timeout)
            close_timeout: Seconds close() waits for a running call before
                closing the connection under it
            client_factory: Builds the SSH client, replaceable in tests
            sleep: Sleep function used between startup commands
        """
        self._config = config
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._close_timeout = close_timeout
        self._client_factory = client_factory
        self._sleep = sleep

        self._lock = threading.Lock()
        self._client: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None
        self._broken = False

    @property
    def config(self) -> SessionConfig:
        """Get the session configuration."""
        return self._config

    @property
    def address(self) -> str:
        """Get ``user@addr:port``."""
        return self._config.address

    @property
    def is_connected(self) -> bool:
        """Check if the session is connected and usable."""
        return self._client is not None and not self._broken

    @property
    def broken(self) -> bool:
        """Check if the session failed at transport level."""
        return self._broken

    def connect(self) -> None:
        """Connect, authenticate, run startup commands and open SFTP.

        Raises:
            SessionError: If the connection or authentication fails
        """
        with self._lock:
            if self._client is not None:
                return

            logger.info("Connecting to %s", self.address)
            client = self._client_factory()
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

            try:
                client.connect(
                    hostname=self._config.addr,
                    port=self._config.port,
                    username=self._config.user,
                    password=self._config.password,
                    timeout=self._connect_timeout,
                    banner_timeout=self._connect_timeout,
                    auth_timeout=self._connect_timeout,
                    look_for_keys=False,
                    allow_agent=False,
                )
                transport = client.get_transport()
                if transport is not None:
                    transport.set_keepalive(DEFAULT_KEEPALIVE)
            except (*TRANSPORT_EXCEPTIONS, OSError) as e:
                client.close()
                self._broken = True
                raise SessionError(f"Cannot connect to {self.address}: {e}") from e

            self._client = client

            try:
                for command in self._config.commands:
                    result = self._exec(command.cmd)
                    if not result.ok:
                        logger.warning(
                            "Startup command on %s exited %d: %s",
                            self.address,
                            result.status,
                            command.cmd,
                        )
                    if command.sleep_ms:
                        self._sleep(command.sleep_ms / 1000)

                self._sftp = client.open_sftp()
            except SessionError:
                self._close_client()
                raise
            except (*TRANSPORT_EXCEPTIONS, OSError) as e:
                self._broken = True
                self._close_client()
                raise SessionError(f"Cannot open SFTP on {self.address}: {e}") from e

            logger.info("Connected to %s", self.address)

    def _require_client(self) -> paramiko.SSHClient:
        if self._broken:
            raise SessionError(f"Session {self.address} is broken")
        if self._client is None:
            raise SessionError(f"Session {self.address} is not connected")
        return self._client

    def _exec(self, command: str) -> CommandResult:
        """Run a command; caller holds the lock."""
        client = self._require_client()
        try:
            _, stdout, stderr = client.exec_command(command, timeout=self._command_timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            status = stdout.channel.recv_exit_status()
        except (*TRANSPORT_EXCEPTIONS, OSError) as e:
            self._broken = True
            raise SessionError(f"Transport failure on {self.address}: {e}") from e
        if self._client is not client:
            self._broken = True
            raise SessionError(f"Session {self.address} was closed during: {command}")
        return CommandResult(status=status, output=out + err)

    def execute(self, command: str) -> CommandResult:
        """Run a shell command and wait for it to exit.

        Args:
            command: Shell command line

        Returns:
            Exit status and combined stdout/stderr

        Raises:
            SessionError: If the session is broken or the transport fails
        """
        with self._lock:
            logger.debug("%s$ %s", self.address, command)
            return self._exec(command)

    def push_file(self, local_path: Path, remote_path: str) -> int:
        """Upload the full content of a local file, overwriting the remote one.

        Args:
            local_path: File to read
            remote_path: Destination path on the server

        Returns:
            0 on success

        Raises:
            RemoteCommandError: If the local file or the remote path is unusable
            SessionError: If the session is broken or the transport fails
        """
        with self._lock:
            self._require_client()
            if self._sftp is None:
                raise SessionError(f"Session {self.address} has no SFTP channel")

            logger.debug("%s push %s -> %s", self.address, local_path, remote_path)
            try:
                self._sftp.put(str(local_path), remote_path)
            except TRANSPORT_EXCEPTIONS as e:
                self._broken = True
                raise SessionError(f"Transport failure on {self.address}: {e}") from e
            except OSError as e:
                if not self._transport_active():
                    self._broken = True
                    raise SessionError(f"Transport failure on {self.address}: {e}") from e
                raise RemoteCommandError(
                    f"push {local_path} -> {remote_path}",
                    e.errno if e.errno is not None else -1,
                    str(e),
                ) from e
            return 0

    def _transport_active(self) -> bool:
        if self._client is None:
            return False
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()

    def _close_client(self) -> None:
        if self._sftp is not None:
            self._sftp.close()
            self._sftp = None
        if self._client is not None:
            self._client.close()
            self._client = None

    def close(self) -> None:
        """Close SFTP and SSH channels.

        A call still running after close_timeout seconds, such as a hung
        remote command, has its connection closed under it and fails with
        SessionError in its own thread.
        """
        acquired = self._lock.acquire(timeout=self._close_timeout)
        try:
            if self._client is None:
                return
            if not acquired:
                logger.warning(
                    "Closing %s with an operation still running", self.address
                )
            self._close_client()
            logger.info("Disconnected from %s", self.address)
        finally:
            if acquired:
                self._lock.release()

    def __repr__(self) -> str:
        state = "broken" if self._broken else ("connected" if self._client else "idle")
        return f"RemoteSession({self.address}, {state})"
