"""
User configuration: an INI file plus environment overrides.

Example ``filament-sync.ini``::

    [printer]
    host = 192.168.1.123
    port = 22
    user = root
    password = creality_2024

    [slicer]
    slicer = creality
    user_id = 123456789

    [paths]
    remote_sync_dir = /usr/share/Filament-Sync
    remote_box_dir = /mnt/UDISK/creality/userdata/box
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from iniconfig import IniConfig, ParseError
from pydantic import BaseModel, ValidationError

from .models import SlicerType

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "filament-sync.ini"
DEFAULT_REMOTE_SYNC_DIR = "/usr/share/Filament-Sync"
DEFAULT_REMOTE_BOX_DIR = "/mnt/UDISK/creality/userdata/box"

DATABASE_FILE = "material_database.json"
OPTIONS_FILE = "material_option.json"

_TRUE_VALUES = ("1", "true")
_FALSE_VALUES = ("0", "false")

# (section, key) in the INI file -> SyncConfig field
_INI_FIELDS: dict[tuple[str, str], str] = {
    ("printer", "host"): "host",
    ("printer", "printer_ip"): "host",
    ("printer", "printerip"): "host",
    ("printer", "hostname"): "host",
    ("printer", "port"): "port",
    ("printer", "user"): "username",
    ("printer", "password"): "password",
    ("slicer", "slicer"): "slicer",
    ("slicer", "user_id"): "user_id",
    ("slicer", "userid"): "user_id",
    ("paths", "remote_sync_dir"): "remote_sync_dir",
    ("paths", "remote_box_dir"): "remote_box_dir",
    ("paths", "printer_db_path"): "printer_db_path",
    ("paths", "printer_opt_path"): "printer_opt_path",
    ("paths", "data_dir"): "data_dir",
    ("paths", "backup_dir"): "backup_dir",
}

_ENV_FIELDS: dict[str, str] = {
    "FILAMENT_SYNC_HOST": "host",
    "FILAMENT_SYNC_PASSWORD": "password",
    "FILAMENT_SYNC_USERID": "user_id",
    "FILAMENT_SYNC_SLICER": "slicer",
}


class ConfigError(Exception):
    """Raised when the configuration is missing, malformed, or incomplete."""


class PrinterConfig(BaseModel):
    """SSH connection settings for the printer."""

    host: str
    port: int = 22
    username: str = "root"
    password: str
    connect_timeout: float = 20.0


class SyncConfig(BaseModel):
    host: str | None = None
    port: int = 22
    username: str = "root"
    password: str | None = None

    slicer: SlicerType = SlicerType.CREALITY
    user_id: str = ""

    remote_sync_dir: str = DEFAULT_REMOTE_SYNC_DIR
    remote_box_dir: str = DEFAULT_REMOTE_BOX_DIR
    printer_db_path: str | None = None
    printer_opt_path: str | None = None

    data_dir: Path = Path("data")
    backup_dir: Path = Path("backups")

    backup: bool = True

    @property
    def remote_db_path(self) -> str:
        return self.printer_db_path or f"{self.remote_box_dir}/{DATABASE_FILE}"

    @property
    def remote_opt_path(self) -> str:
        return self.printer_opt_path or f"{self.remote_box_dir}/{OPTIONS_FILE}"

    def printer_config(self) -> PrinterConfig | None:
        """Connection settings, or None when host or password is not configured."""
        if not self.host or not self.password:
            return None
        return PrinterConfig(
            host=self.host, port=self.port, username=self.username, password=self.password
        )

    def require_printer(self) -> PrinterConfig:
        """Like :meth:`printer_config`, but raise when the printer can't be reached."""
        if not self.host:
            raise ConfigError("Missing printer host/IP. Set host in the [printer] section.")
        if not self.password:
            raise ConfigError("Missing printer password. Set password in the [printer] section.")
        return self.printer_config()  # type: ignore[return-value]


def env_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def _read_ini(path: Path) -> dict[str, str]:
    try:
        ini = IniConfig(path)
    except ParseError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e

    values: dict[str, str] = {}
    for section in ini:
        for key, value in section.items():
            field_name = _INI_FIELDS.get((section.name.lower(), key.lower()))
            if field_name is None:
                logger.debug("Ignoring unknown setting [%s] %s in %s", section.name, key, path)
                continue
            values[field_name] = value.strip()
    return values


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SyncConfig:
    """
    Load configuration from an INI file, then apply environment overrides.

    The file is ``path``, else ``$FILAMENT_SYNC_CONFIG``, else
    ``filament-sync.ini`` in the working directory.  A missing default file is
    not an error; a missing explicit file is.

    Raises:
        ConfigError: The file is missing/unparseable or a value is invalid.
    """
    environ = os.environ if environ is None else environ

    explicit = path is not None or bool(environ.get("FILAMENT_SYNC_CONFIG"))
    config_path = path or Path(environ.get("FILAMENT_SYNC_CONFIG") or DEFAULT_CONFIG_FILE)

    values: dict[str, object] = {}
    if config_path.is_file():
        values.update(_read_ini(config_path))
        logger.debug("Loaded config from %s", config_path)
    elif explicit:
        raise ConfigError(f"Config file '{config_path}' does not exist")

    for env_name, field_name in _ENV_FIELDS.items():
        if environ.get(env_name):
            values[field_name] = environ[env_name]

    if "slicer" in values:
        values["slicer"] = str(values["slicer"]).lower()

    values["backup"] = env_flag(environ, "FILAMENT_SYNC_BACKUP", True)

    try:
        return SyncConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
