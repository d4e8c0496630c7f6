"""
Locate and load the user's custom filament presets.

Layouts per slicer (``<config>`` is ``AppData/Roaming`` on Windows,
``Library/Application Support`` on macOS and ``.config`` on Linux)::

    <config>/OrcaSlicer/user/<USERID>/filament/[base/]*.json
    <config>/Creality/Creality Print/<version>/user/<USERID>/filament/[base/]*.json
"""

from __future__ import annotations

import json
import logging
import platform
import re
from pathlib import Path

from .models import LoadedPreset, SlicerType
from .values import wrap_scalars

logger = logging.getLogger(__name__)

CREALITY_PREFERRED_VERSION = "6.0"

# Order in which Creality Print version folders are expanded.
CREALITY_EXPAND_ORDER = ("6.0", "7.0")

_MAJOR_MINOR_RE = re.compile(r"^[0-9]+\.[0-9]+$")
_NUMERIC_VERSION_RE = re.compile(r"^\d+(\.\d+)*$")

_CONFIG_DIRS: dict[str, tuple[str, ...]] = {
    "Windows": ("AppData", "Roaming"),
    "Darwin": ("Library", "Application Support"),
    "Linux": (".config",),
}


class DiscoveryError(Exception):
    """Raised when the preset directory cannot be located or holds no presets."""


def version_key(v: str) -> tuple[int, ...]:
    """Convert a version string to a comparable tuple of ints (non-numeric → 0)."""
    parts: list[int] = []
    for part in re.split(r"[.\-_]", v):
        try:
            parts.append(int(part))
        except ValueError:
            parts.append(0)
    return tuple(parts)


def list_version_dirs(root: Path) -> list[str]:
    """Names of ``<major>.<minor>`` subdirectories of ``root``."""
    if not root.is_dir():
        return []
    return [p.name for p in root.iterdir() if p.is_dir() and _MAJOR_MINOR_RE.match(p.name)]


def sort_versions_preferred(
    versions: list[str],
    preferred: tuple[str, ...] = CREALITY_EXPAND_ORDER,
) -> list[str]:
    """Preferred versions first (in the given order), then the rest ascending."""
    present = set(versions)
    out = [v for v in preferred if v in present]
    rest = sorted((v for v in versions if v not in out), key=version_key)
    return out + rest


def pick_creality_version_dir(creality_print_dir: Path) -> Path | None:
    """Use ``6.0`` when present, otherwise the highest numeric version folder."""
    preferred = creality_print_dir / CREALITY_PREFERRED_VERSION
    if preferred.is_dir():
        return preferred
    if not creality_print_dir.is_dir():
        return None

    candidates = [
        p.name for p in creality_print_dir.iterdir()
        if p.is_dir() and _NUMERIC_VERSION_RE.match(p.name)
    ]
    if not candidates:
        return None
    return creality_print_dir / max(candidates, key=version_key)


def current_os_type() -> str:
    return platform.system()


def slicer_config_dir(os_type: str, home_dir: Path) -> Path:
    """The per-user application config directory for an OS."""
    parts = _CONFIG_DIRS.get(os_type)
    if parts is None:
        raise DiscoveryError(f"Unsupported OS type: {os_type}")
    return home_dir.joinpath(*parts)


def creality_print_dir(os_type: str, home_dir: Path) -> Path:
    return slicer_config_dir(os_type, home_dir) / "Creality" / "Creality Print"


def get_filament_root_dir(
    slicer: SlicerType,
    user_id: str,
    os_type: str,
    home_dir: Path,
) -> Path | None:
    """Resolve ``.../user/<user_id>/filament`` for a slicer, or None if not installed."""
    if slicer == SlicerType.ORCASLICER:
        return slicer_config_dir(os_type, home_dir) / "OrcaSlicer" / "user" / user_id / "filament"

    version_dir = pick_creality_version_dir(creality_print_dir(os_type, home_dir))
    if version_dir is None:
        return None
    return version_dir / "user" / user_id / "filament"


def resolve_custom_filament_dir(filament_root: Path) -> Path | None:
    """Prefer ``filament/base`` (expanded presets), fall back to ``filament``."""
    base_dir = filament_root / "base"
    if base_dir.is_dir():
        return base_dir
    if filament_root.is_dir():
        logger.warning("Base folder not found: %s", base_dir)
        logger.warning("Falling back to: %s", filament_root)
        return filament_root
    return None


def list_json_files(directory: Path) -> list[Path]:
    """Visible ``*.json`` files directly inside ``directory``, sorted by name."""
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and not p.name.startswith(".") and p.name.lower().endswith(".json")
    )


def read_profiles_from_dir(directory: Path) -> tuple[list[LoadedPreset], list[str]]:
    """
    Load every preset file in a directory.

    Returns ``(presets, failures)``.  A file that is not valid JSON or not a
    JSON object is reported in ``failures`` and does not stop the batch.
    """
    files = list_json_files(directory)
    logger.debug("Reading %d profile file(s) from: %s", len(files), directory)

    presets: list[LoadedPreset] = []
    failures: list[str] = []
    for path in files:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, OSError) as e:
            logger.warning("Skipping unreadable preset %s: %s", path.name, e)
            failures.append(path.name)
            continue
        if not isinstance(data, dict):
            logger.warning("Skipping preset %s: not a JSON object", path.name)
            failures.append(path.name)
            continue
        presets.append(LoadedPreset(path=path, data=data))
    return presets, failures


def load_custom_profiles(
    slicer: SlicerType,
    user_id: str,
    os_type: str | None = None,
    home_dir: Path | None = None,
) -> tuple[list[LoadedPreset], list[str]]:
    """
    Locate the slicer's custom filament directory and load its presets.

    Creality presets have their scalar values wrapped into lists.

    Raises:
        DiscoveryError: If the user id is blank or the directory can't be found.
    """
    if not user_id:
        raise DiscoveryError("user_id is blank. Set it in the [slicer] section of the config file.")

    os_type = os_type or current_os_type()
    home_dir = home_dir or Path.home()

    filament_root = get_filament_root_dir(slicer, user_id, os_type, home_dir)
    if filament_root is None:
        raise DiscoveryError(
            f"Could not locate {slicer.value} filament root folder.\n"
            f"OS: {os_type}\nHOME: {home_dir}\nUSERID: {user_id}"
        )

    custom_dir = resolve_custom_filament_dir(filament_root)
    if custom_dir is None:
        raise DiscoveryError(
            f"Filament preset folder not found for {slicer.value}.\n"
            f"Tried:\n  {filament_root / 'base'}\n  {filament_root}"
        )

    logger.debug("Selected slicer: %s", slicer.value)
    logger.debug("Filament root: %s", filament_root)
    logger.debug("Custom dir: %s", custom_dir)

    presets, failures = read_profiles_from_dir(custom_dir)
    if slicer == SlicerType.CREALITY:
        presets = [LoadedPreset(path=p.path, data=wrap_scalars(p.data)) for p in presets]
    return presets, failures
