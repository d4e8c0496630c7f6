"""Builders for slicer preset trees, catalog documents and a fake printer."""

import json
from pathlib import Path
from typing import Any

from filament_sync.remote import CommandResult, RemoteNotFound


class FakeTransport:
    """In-memory printer: a dict of remote path -> file bytes."""

    def __init__(self, files: dict[str, bytes] | None = None, fail_mkdir: bool = False):
        self.files: dict[str, bytes] = dict(files or {})
        self.commands: list[str] = []
        self.fail_mkdir = fail_mkdir
        self.opened = 0
        self.closed = 0

    async def __aenter__(self) -> "FakeTransport":
        self.opened += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed += 1

    async def exec(self, command: str, stdin: bytes | None = None) -> CommandResult:
        self.commands.append(command)
        if command.startswith("mkdir") and self.fail_mkdir:
            return CommandResult(stdout=b"", stderr=b"Permission denied", exit_status=1)
        return CommandResult(stdout=b"", stderr=b"", exit_status=0)

    async def read_file(self, path: str) -> bytes:
        if path not in self.files:
            raise RemoteNotFound(f"Failed to read remote file: {path}")
        return self.files[path]

    async def write_file_atomic(self, path: str, data: bytes) -> None:
        self.files[path] = data


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def creality_version_root(home: Path, version: str = "6.0") -> Path:
    """Linux layout of a Creality Print version folder under ``home``."""
    return home / ".config" / "Creality" / "Creality Print" / version


def creality_filament_dir(home: Path, user_id: str, version: str = "6.0") -> Path:
    return creality_version_root(home, version) / "user" / user_id / "filament"


def orca_filament_dir(home: Path, user_id: str) -> Path:
    return home / ".config" / "OrcaSlicer" / "user" / user_id / "filament"


def notes_json(id: str, vendor: str = "Acme", type: str = "PLA", name: str = "Acme PLA") -> str:
    return json.dumps({"id": id, "vendor": vendor, "type": type, "name": name})


def make_preset(id: str | None = "12345", **fields: Any) -> dict[str, Any]:
    """A small full preset with list-wrapped values and optional notes."""
    preset: dict[str, Any] = {
        "name": fields.pop("name", "Acme PLA"),
        "filament_vendor": [fields.pop("vendor", "Acme")],
        "filament_type": [fields.pop("type", "PLA")],
        "nozzle_temperature": ["215"],
    }
    if id is not None:
        preset["filament_notes"] = [
            notes_json(id, preset["filament_vendor"][0], preset["filament_type"][0], preset["name"])
        ]
    preset.update(fields)
    return preset


def base_database(*materials: dict[str, Any]) -> dict[str, Any]:
    return {"result": {"list": list(materials), "count": len(materials), "version": "1"}}


def truncated_user_preset(inherits: str = "Generic PETG @Creality", **fields: Any) -> dict[str, Any]:
    """A short Creality Print user preset that needs expansion."""
    preset: dict[str, Any] = {
        "from": "User",
        "inherits": inherits,
        "base_id": "GFSG99",
        "name": "PETG-CF Example",
        "nozzle_temperature": ["245"],
    }
    preset.update(fields)
    return preset


def full_template(name: str, inherits: str | None = None, keys: int = 0, **fields: Any) -> dict[str, Any]:
    """A system/root template with ``keys`` padding settings."""
    template: dict[str, Any] = {"name": name, "from": "system", "type": "filament"}
    if inherits is not None:
        template["inherits"] = inherits
    for i in range(keys):
        template[f"setting_{name.replace(' ', '_')}_{i}"] = str(i)
    template.update(fields)
    return template
