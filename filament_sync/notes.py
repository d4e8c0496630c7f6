"""
Filament notes: the identity record that links a slicer preset to a printer
catalog entry.

A preset's ``filament_notes`` holds a JSON string such as
``{"id":"12345","vendor":"Acme","type":"PETG","name":"Acme PETG-CF"}``,
usually wrapped in a one-element list.  Presets without usable notes get a
synthesized record whose id is a stable hash of ``vendor|type|name``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .models import NotesRecord
from .values import first, first_str, to_setting_string

logger = logging.getLogger(__name__)

NOTES_KEY = "filament_notes"

DEFAULT_NAME = "Custom Filament"
DEFAULT_VENDOR = "Custom"
DEFAULT_TYPE = "CUSTOM"

NOTES_HELP_URL = "https://github.com/HurricanePrint/Filament-Sync#creating-custom-filament-presets"

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193

_INHERITS_TYPE_RE = re.compile(r"fdm_filament_([a-z0-9_]+)")


def stable_five_digit_id(text: str) -> str:
    """
    Derive a 5-digit id (``"10000"``..``"99999"``) from a string.

    FNV-1a over the UTF-16 code units of ``text``.  The accumulator is read as
    a signed 32-bit integer before reduction so ids match the ones already
    written to RFID tags.
    """
    h = _FNV_OFFSET
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h ^ unit) * _FNV_PRIME) & 0xFFFFFFFF
    if data and h >= 0x80000000:
        h -= 0x100000000
    return str(abs(h) % 90000 + 10000)


def derive_type_from_inherits(inherits: Any) -> str:
    """``"fdm_filament_petg"`` → ``"PETG"``; ``""`` when the name doesn't match."""
    m = _INHERITS_TYPE_RE.search(str(inherits or "").lower())
    if not m:
        return ""
    return m.group(1).upper()


def get_notes_string(preset: dict[str, Any]) -> str:
    notes = preset.get(NOTES_KEY)
    if isinstance(notes, list):
        head = notes[0] if notes else None
        return "" if head is None else to_setting_string(head)
    if isinstance(notes, str):
        return notes
    return ""


def notes_look_empty(notes: str) -> bool:
    t = (notes or "").strip()
    return t == "" or t == '""'


def has_required_notes(preset: dict[str, Any]) -> bool:
    """True when the notes are non-empty and parse as JSON."""
    notes = get_notes_string(preset)
    if notes_look_empty(notes):
        return False
    try:
        json.loads(notes)
    except ValueError:
        return False
    return True


def parse_notes(preset: dict[str, Any]) -> NotesRecord | None:
    """Parse a preset's notes into a :class:`NotesRecord`, or ``None`` if unusable."""
    raw = get_notes_string(preset).strip()
    if notes_look_empty(raw):
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    fields = {
        key: to_setting_string(data[key])
        for key in ("id", "vendor", "type", "name")
        if data.get(key)
    }
    return NotesRecord(id=fields.pop("id", ""), **fields)


def synthesize_notes(preset: dict[str, Any]) -> NotesRecord:
    """
    Build notes from the preset's own fields and write them back into it.

    ``type`` falls back to the ``fdm_filament_<type>`` part of ``inherits``,
    then to ``CUSTOM``.
    """
    name = first_str(preset.get("name")) or DEFAULT_NAME
    vendor = first_str(preset.get("filament_vendor")) or DEFAULT_VENDOR
    type_ = (
        first_str(preset.get("filament_type"))
        or derive_type_from_inherits(first(preset.get("inherits")))
        or DEFAULT_TYPE
    )
    record = NotesRecord(
        id=stable_five_digit_id(f"{vendor}|{type_}|{name}"),
        vendor=vendor,
        type=type_,
        name=name,
    )
    preset[NOTES_KEY] = [record.dumps()]

    logger.warning(
        'Auto-generated filament_notes for "%s %s" with id=%s. '
        "If you use RFID tags, write this ID down.",
        vendor, name, record.id,
    )
    return record


def ensure_notes(preset: dict[str, Any]) -> tuple[NotesRecord | None, bool]:
    """
    Return the preset's identity, synthesizing it when missing.

    Returns ``(notes, synthesized)``.  ``notes`` is ``None`` when the preset
    still has no usable identity; such presets must be excluded.
    """
    if has_required_notes(preset):
        return parse_notes(preset), False

    synthesize_notes(preset)
    if has_required_notes(preset):
        return parse_notes(preset), True
    return None, True


def describe_profile(preset: dict[str, Any]) -> str:
    vendor = first(preset.get("filament_vendor")) or preset.get("vendor") or "UnknownVendor"
    name = first(preset.get("name")) or preset.get("filament_name") or "UnknownName"
    return f"[{vendor} {name}]"


@dataclass
class NotesInspection:
    """Diagnostic view of one preset's notes field."""

    file_name: str
    kind: str          # "array", "string", "missing", or a JSON type name
    has_notes: bool
    value: Any = None


def _notes_kind(notes: Any) -> str:
    if isinstance(notes, list):
        return "array"
    if isinstance(notes, str):
        return "string"
    if notes is None:
        return "missing"
    if isinstance(notes, dict):
        return "object"
    return type(notes).__name__


def inspect_notes_dir(directory: Path) -> list[NotesInspection]:
    """Report the notes state of every ``*.json`` preset in ``directory``.

    Unreadable files are reported with kind ``"invalid"``.
    """
    rows: list[NotesInspection] = []
    if not directory.is_dir():
        return rows

    for path in sorted(directory.iterdir()):
        if not path.is_file() or path.suffix.lower() != ".json":
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, OSError) as e:
            logger.debug("Cannot read %s: %s", path, e)
            rows.append(NotesInspection(path.name, "invalid", False))
            continue

        notes = data.get(NOTES_KEY) if isinstance(data, dict) else None
        present = isinstance(notes, (list, str)) and not notes_look_empty(
            get_notes_string({NOTES_KEY: notes})
        )
        rows.append(NotesInspection(
            file_name=path.name,
            kind=_notes_kind(notes),
            has_notes=present,
            value=None if present else notes,
        ))
    return rows
