"""Unit tests for INI/environment configuration."""

from pathlib import Path

import pytest

from filament_sync.config import (
    DEFAULT_REMOTE_BOX_DIR,
    ConfigError,
    SyncConfig,
    env_flag,
    load_config,
)
from filament_sync.models import SlicerType

INI = """\
[printer]
host = 192.168.1.50
port = 2222
user = admin
password = secret

[slicer]
slicer = Orca
user_id = 987654

[paths]
remote_sync_dir = /opt/sync
data_dir = out
"""


@pytest.fixture
def ini_file(tmp_path):
    path = tmp_path / "filament-sync.ini"
    path.write_text(INI, encoding="utf-8")
    return path


class TestLoadConfig:
    """Tests for load_config()."""

    def test_reads_ini(self, ini_file):
        config = load_config(ini_file, environ={})

        assert config.host == "192.168.1.50"
        assert config.port == 2222
        assert config.username == "admin"
        assert config.password == "secret"
        assert config.slicer is SlicerType.ORCASLICER
        assert config.user_id == "987654"
        assert config.remote_sync_dir == "/opt/sync"
        assert config.data_dir == Path("out")

    def test_environment_overrides_file(self, ini_file):
        environ = {
            "FILAMENT_SYNC_HOST": "10.0.0.9",
            "FILAMENT_SYNC_PASSWORD": "pw",
            "FILAMENT_SYNC_USERID": "111",
            "FILAMENT_SYNC_SLICER": "CREALITY",
        }
        config = load_config(ini_file, environ=environ)

        assert config.host == "10.0.0.9"
        assert config.password == "pw"
        assert config.user_id == "111"
        assert config.slicer is SlicerType.CREALITY

    def test_config_path_from_environment(self, ini_file):
        config = load_config(environ={"FILAMENT_SYNC_CONFIG": str(ini_file)})
        assert config.user_id == "987654"

    def test_missing_default_file_is_fine(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_config(environ={})
        assert config == SyncConfig()

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            load_config(tmp_path / "nope.ini", environ={})

    def test_invalid_slicer(self, tmp_path):
        path = tmp_path / "c.ini"
        path.write_text("[slicer]\nslicer = cura\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path, environ={})

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "c.ini"
        path.write_text("host = no section\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Cannot parse"):
            load_config(path, environ={})

    def test_toggles(self, ini_file):
        config = load_config(ini_file, environ={"FILAMENT_SYNC_BACKUP": "false"})
        assert config.backup is False

        config = load_config(ini_file, environ={})
        assert config.backup is True

    def test_debug_is_not_a_config_field(self, ini_file):
        config = load_config(ini_file, environ={"FILAMENT_SYNC_DEBUG": "1"})
        assert "debug" not in SyncConfig.model_fields
        assert not hasattr(config, "debug")


class TestSyncConfig:
    """Tests for SyncConfig helpers."""

    def test_remote_paths_default_to_box_dir(self):
        config = SyncConfig()
        assert config.remote_db_path == f"{DEFAULT_REMOTE_BOX_DIR}/material_database.json"
        assert config.remote_opt_path == f"{DEFAULT_REMOTE_BOX_DIR}/material_option.json"

    def test_remote_path_overrides(self):
        config = SyncConfig(printer_db_path="/x/db.json", printer_opt_path="/x/opt.json")
        assert config.remote_db_path == "/x/db.json"
        assert config.remote_opt_path == "/x/opt.json"

    def test_printer_config_requires_host_and_password(self):
        assert SyncConfig(host="h").printer_config() is None
        printer = SyncConfig(host="h", password="p").printer_config()
        assert (printer.host, printer.port, printer.username) == ("h", 22, "root")

    def test_require_printer(self):
        with pytest.raises(ConfigError, match="host"):
            SyncConfig(password="p").require_printer()
        with pytest.raises(ConfigError, match="password"):
            SyncConfig(host="h").require_printer()


class TestEnvFlag:
    """Tests for env_flag()."""

    @pytest.mark.parametrize("value, expected", [
        ("1", True), ("TRUE", True), (" true ", True),
        ("0", False), ("False", False),
        ("maybe", None), (None, None),
    ])
    def test_values(self, value, expected):
        environ = {} if value is None else {"FLAG": value}
        for default in (True, False):
            want = default if expected is None else expected
            assert env_flag(environ, "FLAG", default) is want
