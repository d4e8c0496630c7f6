"""Tests for SSHTransport over a stubbed asyncssh connection."""

import asyncio
import shlex
from types import SimpleNamespace

import pytest

from filament_sync.catalog import DATA_DIR, DATABASE_SNAPSHOT, load_baseline, load_bundled
from filament_sync.config import PrinterConfig
from filament_sync.remote import (
    RemoteConnectionError,
    RemoteNotFound,
    RemoteWriteError,
    SSHTransport,
    write_atomic_command,
)

PRINTER = PrinterConfig(host="printer.local", password="pw")


class FakeConnection:
    """Mimics the parts of asyncssh.SSHClientConnection used by SSHTransport."""

    def __init__(self, results=None):
        self.results = results or {}
        self.runs = []
        self.closed = False

    async def run(self, command, input=None, encoding="utf-8", check=True):
        self.runs.append((command, input, encoding, check))
        stdout, stderr, status = self.results.get(command, (b"", b"", 0))
        return SimpleNamespace(stdout=stdout, stderr=stderr, exit_status=status)

    def close(self):
        self.closed = True

    async def wait_closed(self):
        return None


def _sh(command):
    return f"sh -c {shlex.quote(command)}"


@pytest.fixture
def connect(monkeypatch):
    calls = []
    conn = FakeConnection()

    async def fake_connect(host, **kwargs):
        calls.append((host, kwargs))
        return conn

    monkeypatch.setattr("filament_sync.remote.asyncssh.connect", fake_connect)
    return SimpleNamespace(calls=calls, conn=conn)


class TestSSHTransport:
    """Tests for SSHTransport."""

    @pytest.mark.asyncio
    async def test_connect_options_and_close(self, connect):
        async with SSHTransport(PRINTER):
            pass

        host, kwargs = connect.calls[0]
        assert host == "printer.local"
        assert kwargs["port"] == 22
        assert kwargs["username"] == "root"
        assert kwargs["password"] == "pw"
        assert kwargs["known_hosts"] is None
        assert connect.conn.closed

    @pytest.mark.asyncio
    async def test_read_file(self, connect):
        connect.conn.results[_sh("cat /box/a.json")] = (b'{"a": 1}', b"", 0)
        async with SSHTransport(PRINTER) as remote:
            assert await remote.read_file("/box/a.json") == b'{"a": 1}'
        command, _, encoding, check = connect.conn.runs[0]
        assert encoding is None
        assert check is False

    @pytest.mark.asyncio
    async def test_read_missing_file(self, connect):
        connect.conn.results[_sh("cat /box/a.json")] = (b"", b"cat: /box/a.json: No such file", 1)
        async with SSHTransport(PRINTER) as remote:
            with pytest.raises(RemoteNotFound, match="No such file"):
                await remote.read_file("/box/a.json")

    @pytest.mark.asyncio
    async def test_write_sends_data_on_stdin(self, connect):
        async with SSHTransport(PRINTER) as remote:
            await remote.write_file_atomic("/sync/db.json", b"DATA")
        command, stdin, _, _ = connect.conn.runs[0]
        assert command == _sh(write_atomic_command("/sync/db.json"))
        assert stdin == b"DATA"

    @pytest.mark.asyncio
    async def test_write_failure(self, connect):
        connect.conn.results[_sh(write_atomic_command("/sync/db.json"))] = (b"", b"Read-only file system", 1)
        async with SSHTransport(PRINTER) as remote:
            with pytest.raises(RemoteWriteError, match="Read-only"):
                await remote.write_file_atomic("/sync/db.json", b"DATA")

    @pytest.mark.asyncio
    async def test_connection_refused(self, monkeypatch):
        async def refuse(host, **kwargs):
            raise ConnectionRefusedError("refused")

        monkeypatch.setattr("filament_sync.remote.asyncssh.connect", refuse)
        with pytest.raises(RemoteConnectionError, match="printer.local:22"):
            async with SSHTransport(PRINTER):
                pass

    @pytest.mark.asyncio
    async def test_exec_requires_connection(self):
        with pytest.raises(RemoteConnectionError):
            await SSHTransport(PRINTER).exec("true")

    @pytest.mark.asyncio
    async def test_connect_timeout(self, monkeypatch):
        async def time_out(host, **kwargs):
            raise asyncio.TimeoutError()

        monkeypatch.setattr("filament_sync.remote.asyncssh.connect", time_out)
        with pytest.raises(RemoteConnectionError, match="printer.local:22"):
            async with SSHTransport(PRINTER):
                pass


class TestBaselineOverSSH:
    """Tests for load_baseline() with a real SSHTransport factory."""

    @pytest.mark.asyncio
    async def test_unreachable_printer_uses_snapshot(self, monkeypatch):
        async def time_out(host, **kwargs):
            raise asyncio.TimeoutError()

        monkeypatch.setattr("filament_sync.remote.asyncssh.connect", time_out)

        doc, source = await load_baseline(
            "/box/material_database.json", DATABASE_SNAPSHOT, lambda: SSHTransport(PRINTER)
        )

        assert doc == load_bundled(DATABASE_SNAPSHOT)
        assert source == str(DATA_DIR / DATABASE_SNAPSHOT)
