"""
Remote file access on the printer over SSH exec.

Some printers (e.g. the Creality Hi) run an SSH server without SFTP, so all
file access goes through ``sh -c``: ``cat`` to read, ``cat > tmp; mv`` to
write atomically.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import shlex
from dataclasses import dataclass
from typing import Protocol

import asyncssh

from .config import PrinterConfig

logger = logging.getLogger(__name__)


class RemoteError(Exception):
    """Raised when a remote operation fails."""


class RemoteConnectionError(RemoteError):
    """Raised when the SSH connection can't be established."""


class RemoteNotFound(RemoteError):
    """Raised when a remote file does not exist or can't be read."""


class RemoteWriteError(RemoteError):
    """Raised when writing a remote file fails."""


@dataclass
class CommandResult:
    stdout: bytes
    stderr: bytes
    exit_status: int | None

    def message(self) -> str:
        """First useful diagnostic line for error messages."""
        text = (self.stderr or self.stdout or b"").decode("utf-8", errors="replace").strip()
        return text or f"Exit code {self.exit_status}"


class RemoteTransport(Protocol):
    """Protocol for reading and writing files on the printer."""

    async def exec(self, command: str, stdin: bytes | None = None) -> CommandResult: ...
    async def read_file(self, path: str) -> bytes: ...
    async def write_file_atomic(self, path: str, data: bytes) -> None: ...


def read_command(path: str) -> str:
    return f"cat {shlex.quote(path)}"


def write_atomic_command(path: str, umask: str = "022") -> str:
    """Shell snippet that writes stdin to ``path`` via a temp file and rename."""
    directory = posixpath.dirname(path) or "."
    tmp = f"{path}.tmp"
    return (
        f"set -e; umask {umask}; mkdir -p {shlex.quote(directory)}; "
        f"cat > {shlex.quote(tmp)}; mv -f {shlex.quote(tmp)} {shlex.quote(path)};"
    )


class SSHTransport:
    """
    :class:`RemoteTransport` over an asyncssh connection.

    Usage:
        async with SSHTransport(printer) as remote:
            data = await remote.read_file("/mnt/UDISK/creality/userdata/box/material_option.json")
    """

    def __init__(self, printer: PrinterConfig):
        self.printer = printer
        self._conn: asyncssh.SSHClientConnection | None = None

    async def __aenter__(self) -> SSHTransport:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()

    async def connect(self) -> None:
        p = self.printer
        logger.debug("Connecting to %s@%s:%s ...", p.username, p.host, p.port)
        try:
            self._conn = await asyncssh.connect(
                p.host,
                port=p.port,
                username=p.username,
                password=p.password,
                known_hosts=None,
                connect_timeout=p.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError, asyncssh.Error) as e:
            raise RemoteConnectionError(f"Cannot connect to {p.host}:{p.port}: {e}") from e

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            await self._conn.wait_closed()
            self._conn = None

    async def exec(self, command: str, stdin: bytes | None = None) -> CommandResult:
        """Run ``command`` under ``sh -c`` (not a login shell, to avoid banners)."""
        if self._conn is None:
            raise RemoteConnectionError("Not connected")
        try:
            result = await self._conn.run(
                f"sh -c {shlex.quote(command)}",
                input=stdin,
                encoding=None,
                check=False,
            )
        except (OSError, asyncio.TimeoutError, asyncssh.Error) as e:
            raise RemoteError(f"Command failed: {command}: {e}") from e
        return CommandResult(
            stdout=result.stdout or b"",
            stderr=result.stderr or b"",
            exit_status=result.exit_status,
        )

    async def read_file(self, path: str) -> bytes:
        res = await self.exec(read_command(path))
        if res.exit_status != 0:
            raise RemoteNotFound(f"Failed to read remote file: {path}\n{res.message()}")
        return res.stdout

    async def write_file_atomic(self, path: str, data: bytes) -> None:
        res = await self.exec(write_atomic_command(path), stdin=data)
        if res.exit_status != 0:
            raise RemoteWriteError(f"Failed to write remote file: {path}\n{res.message()}")
