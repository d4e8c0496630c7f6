"""
Value shapes used by slicer preset JSON.

Slicers are inconsistent about whether a setting is stored as a bare scalar
(``"nozzle_temperature": "220"``) or a per-extruder list
(``"nozzle_temperature": ["220"]``).  The printer's catalog expects the list
form everywhere except for a handful of metadata keys.  Every value is
classified into one of three shapes and canonicalized explicitly at the
boundaries where presets enter the system.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ValueShape(str, Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    OBJECT = "object"


# Metadata keys that stay scalar strings when expanding a preset.
# Everything else becomes a one-element list of strings.
METADATA_KEYS = frozenset({
    "type",
    "name",
    "from",
    "instantiation",
    "inherits",
    "filament_id",
    "setting_id",
    "base_id",
    "version",
    "is_custom_defined",
})


def shape_of(value: Any) -> ValueShape | None:
    """Classify a JSON value.  ``None`` (JSON null) has no shape."""
    if value is None:
        return None
    if isinstance(value, list):
        return ValueShape.SEQUENCE
    if isinstance(value, dict):
        return ValueShape.OBJECT
    return ValueShape.SCALAR


def as_sequence(value: Any) -> Any:
    """Wrap a scalar into a one-element list; lists, objects and null pass through."""
    if shape_of(value) is ValueShape.SCALAR:
        return [value]
    return value


def first(value: Any) -> Any:
    """Extract the first element if value is a list, otherwise return as-is."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def first_str(value: Any) -> str:
    """Like :func:`first`, but always returns a string ("" for missing)."""
    v = first(value)
    if v is None:
        return ""
    return to_setting_string(v)


def to_setting_string(value: Any) -> str:
    """Render a scalar the way slicer JSON writes it (``true``, ``1``, ``0.4``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def wrap_scalars(preset: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``preset`` with every scalar wrapped into a list.

    Creality Print exports often store values as scalars while the printer
    catalog expects lists.  Objects and nulls are left alone.
    """
    return {key: as_sequence(value) for key, value in preset.items()}


def normalize_preset_values(preset: dict[str, Any] | None) -> dict[str, Any]:
    """Canonicalize one layer of a preset before merging.

    - Lists and objects pass through unchanged.
    - :data:`METADATA_KEYS` become scalar strings.
    - Any other scalar becomes ``["<value as string>"]``.
    """
    out: dict[str, Any] = {}
    for key, value in (preset or {}).items():
        shape = shape_of(value)
        if shape is not ValueShape.SCALAR:
            out[key] = value
        elif key in METADATA_KEYS:
            out[key] = to_setting_string(value)
        else:
            out[key] = [to_setting_string(value)]
    return out
