"""Unit tests for uploading documents to the printer."""

from datetime import datetime

import pytest

from filament_sync.remote import CommandResult, RemoteError, read_command, write_atomic_command
from filament_sync.upload import UploadError, backup_remote_files, backup_stamp, upload_files
from tests.helpers import FakeTransport

REMOTE_DIR = "/usr/share/Filament-Sync"


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    (path / "material_database.json").write_bytes(b'{"result": {"list": []}}')
    (path / "material_option.json").write_bytes(b"{}")
    return path


class TestUploadFiles:
    """Tests for upload_files()."""

    @pytest.mark.asyncio
    async def test_uploads_both_documents(self, data_dir, fake_remote):
        uploaded, backup_dir = await upload_files(fake_remote, data_dir, REMOTE_DIR)

        assert uploaded == [
            f"{REMOTE_DIR}/material_database.json",
            f"{REMOTE_DIR}/material_option.json",
        ]
        assert backup_dir is None
        assert fake_remote.files[f"{REMOTE_DIR}/material_option.json"] == b"{}"
        assert fake_remote.commands[0] == f"mkdir -p {REMOTE_DIR}"

    @pytest.mark.asyncio
    async def test_backs_up_existing_files_first(self, data_dir, tmp_path):
        remote = FakeTransport({f"{REMOTE_DIR}/material_option.json": b'{"old": {}}'})

        _, backup_dir = await upload_files(remote, data_dir, REMOTE_DIR, backup_root=tmp_path / "backups")

        assert backup_dir.parent == tmp_path / "backups"
        assert (backup_dir / "material_option.json").read_bytes() == b'{"old": {}}'
        assert not (backup_dir / "material_database.json").exists()
        assert remote.files[f"{REMOTE_DIR}/material_option.json"] == b"{}"

    @pytest.mark.asyncio
    async def test_missing_local_file_fails_before_remote(self, data_dir, fake_remote):
        (data_dir / "material_option.json").unlink()

        with pytest.raises(UploadError, match="material_option.json"):
            await upload_files(fake_remote, data_dir, REMOTE_DIR)

        assert fake_remote.commands == []
        assert fake_remote.files == {}

    @pytest.mark.asyncio
    async def test_mkdir_failure(self, data_dir):
        remote = FakeTransport(fail_mkdir=True)
        with pytest.raises(RemoteError, match="Permission denied"):
            await upload_files(remote, data_dir, REMOTE_DIR)
        assert remote.files == {}


class TestBackup:
    """Tests for backup_remote_files() and backup_stamp()."""

    def test_stamp_format(self):
        assert backup_stamp(datetime(2024, 3, 5, 7, 8, 9)) == "20240305_070809"

    @pytest.mark.asyncio
    async def test_uses_given_stamp(self, tmp_path):
        remote = FakeTransport({"/d/a.json": b"A"})
        out = await backup_remote_files(remote, "/d", ("a.json", "b.json"), tmp_path, stamp="s1")
        assert out == tmp_path / "s1"
        assert (out / "a.json").read_bytes() == b"A"
        assert not (out / "b.json").exists()


class TestRemoteCommands:
    """Tests for the shell snippets used over SSH exec."""

    def test_read_command_quotes_path(self):
        assert read_command("/mnt/my box/db.json") == "cat '/mnt/my box/db.json'"

    def test_write_is_atomic(self):
        cmd = write_atomic_command("/usr/share/Filament-Sync/material_option.json")
        assert cmd.startswith("set -e; umask 022; mkdir -p /usr/share/Filament-Sync;")
        assert "cat > /usr/share/Filament-Sync/material_option.json.tmp;" in cmd
        assert cmd.endswith(
            "mv -f /usr/share/Filament-Sync/material_option.json.tmp "
            "/usr/share/Filament-Sync/material_option.json;"
        )

    def test_command_result_message(self):
        assert CommandResult(b"", b"No such file\n", 1).message() == "No such file"
        assert CommandResult(b"", b"", 2).message() == "Exit code 2"
