"""
Printer catalog documents and their reconciliation with user presets.

Two documents are maintained on the printer:

- ``material_database.json``: ``{"result": {"list": [material, ...], "count": N, "version": "<epoch>"}}``
- ``material_option.json``: ``{vendor: {type: name}}``

Reconciliation is update-or-insert keyed on the id in each preset's notes.
Entries that no preset matches are left untouched and nothing is ever
deleted, so repeated runs are idempotent apart from ``version``.
"""

from __future__ import annotations

import copy
import json
import logging
import time
from pathlib import Path
from typing import Any, AsyncContextManager, Callable, Iterable

from .models import NotesRecord, ReconcileStats
from .notes import NOTES_KEY, parse_notes
from .remote import RemoteError, RemoteTransport
from .values import as_sequence, first, to_setting_string

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"

DATABASE_SNAPSHOT = "material_database.json"
OPTIONS_SNAPSHOT = "material_option.json"
MATERIAL_TEMPLATE = "new_material.json"

TransportFactory = Callable[[], AsyncContextManager[RemoteTransport]]


class DocumentShapeError(Exception):
    """Raised when a catalog document doesn't have the expected structure."""


def load_bundled(name: str) -> dict[str, Any]:
    """Load one of the JSON documents shipped in ``filament_sync/data``."""
    return json.loads((DATA_DIR / name).read_text(encoding="utf-8"))


def dumps_document(doc: Any) -> bytes:
    """Serialize a catalog document the way the printer firmware writes it (tab-indented)."""
    return json.dumps(doc, indent="\t", ensure_ascii=False).encode("utf-8")


def write_document(doc: Any, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(dumps_document(doc))
    return path


async def load_baseline(
    remote_path: str,
    snapshot_name: str,
    transport_factory: TransportFactory | None = None,
) -> tuple[Any, str]:
    """
    Read the printer's current copy of a document, else the bundled snapshot.

    Reading from the printer preserves changes made on the device.  Any
    failure (no printer configured, connection, missing file, bad JSON) falls
    back to the snapshot, which works offline but may be stale.

    Returns:
        ``(document, source)`` where ``source`` is the remote path or the
        snapshot path.
    """
    if transport_factory is not None:
        try:
            async with transport_factory() as remote:
                raw = await remote.read_file(remote_path)
            doc = json.loads(raw)
            logger.debug("Loaded baseline from printer: %s", remote_path)
            return doc, remote_path
        except (RemoteError, ValueError) as e:
            reason = str(e).split("\n")[0]
            logger.debug("WARN: couldn't read %s from printer (%s). Falling back.", remote_path, reason)

    snapshot_path = DATA_DIR / snapshot_name
    doc = load_bundled(snapshot_name)
    logger.debug("Loaded baseline from bundled snapshot: %s", snapshot_path)
    return doc, str(snapshot_path)


# --- material database ---


def get_material_list(doc: Any) -> list[Any]:
    """Return ``doc["result"]["list"]``.

    Raises:
        DocumentShapeError: The path is missing or not a list.
    """
    result = doc.get("result") if isinstance(doc, dict) else None
    materials = result.get("list") if isinstance(result, dict) else None
    if not isinstance(materials, list):
        raise DocumentShapeError(
            "Unexpected material_database.json shape: expected obj.result.list to be an array."
        )
    return materials


def find_by_id(materials: list[Any], material_id: str) -> int:
    """Index of the first material whose ``id`` equals ``material_id``, else -1."""
    for index, material in enumerate(materials):
        if not isinstance(material, dict):
            continue
        value = first(material.get("id"))
        if to_setting_string(value if value is not None else "") == material_id:
            return index
    return -1


def build_material(
    preset: dict[str, Any],
    notes: NotesRecord,
    template: dict[str, Any],
) -> dict[str, Any]:
    """
    Build a catalog material from a preset.

    Starts from a copy of ``template``, copies every preset setting (scalars
    wrapped into lists), then overwrites the identity fields from ``notes`` so
    they are authoritative whatever the preset itself contains.
    """
    material = copy.deepcopy(template)
    for key, value in preset.items():
        material[key] = copy.deepcopy(as_sequence(value))

    material["id"] = [notes.id]
    material["name"] = [notes.name]
    material["filament_id"] = [notes.id]
    material["filament_vendor"] = [notes.vendor]
    material["filament_type"] = [notes.type]
    material["filament_settings_id"] = [notes.name]
    material["from"] = ["User"]
    material["is_custom_defined"] = [0]
    material[NOTES_KEY] = [notes.dumps()]
    return material


def reconcile_database(
    baseline: Any,
    presets: Iterable[dict[str, Any]],
    template: dict[str, Any] | None = None,
    now: float | None = None,
) -> tuple[dict[str, Any], ReconcileStats]:
    """
    Update-or-insert each preset into a copy of the material database.

    ``baseline`` is not modified.  Presets without a notes id are skipped.
    ``result.count`` is set to the new list length and ``result.version`` to
    the current epoch seconds, which the firmware uses as a change marker.

    Raises:
        DocumentShapeError: ``baseline`` has no ``result.list`` array.
    """
    get_material_list(baseline)  # fail before copying
    doc = copy.deepcopy(baseline)
    materials = get_material_list(doc)
    template = template if template is not None else load_bundled(MATERIAL_TEMPLATE)

    starting_count = doc["result"].get("count", len(materials))
    logger.debug("Starting DB list length: %d (count=%s)", len(materials), starting_count)

    stats = ReconcileStats()
    for preset in presets:
        notes = parse_notes(preset)
        if notes is None or not notes.id:
            logger.warning(
                "SKIP: profile missing/invalid filament_notes: %s",
                first(preset.get("name")) or "(unnamed)",
            )
            stats.skipped += 1
            continue

        material = build_material(preset, notes, template)
        index = find_by_id(materials, notes.id)
        if index >= 0:
            materials[index] = material
            stats.updated += 1
            logger.debug("UPDATED material id=%s name=%s", notes.id, notes.name)
        else:
            materials.append(material)
            stats.added += 1
            logger.debug("ADDED material id=%s name=%s", notes.id, notes.name)

    stats.count = len(materials)
    stats.version = str(int(time.time() if now is None else now))
    doc["result"]["count"] = stats.count
    doc["result"]["version"] = stats.version

    logger.debug(
        "Ending DB list length: %d (count=%d, version=%s)",
        len(materials), stats.count, stats.version,
    )
    return doc, stats


# --- material options ---


def reconcile_options(
    baseline: Any,
    presets: Iterable[dict[str, Any]],
) -> tuple[dict[str, Any], ReconcileStats]:
    """
    Set ``doc[vendor][type] = name`` for each preset, on a copy of ``baseline``.

    A vendor entry that is missing or not an object is replaced by an empty
    object first.  ``added`` counts new (vendor, type) pairs, ``updated``
    counts overwrites, ``count`` the presets applied.

    Raises:
        DocumentShapeError: ``baseline`` is not a JSON object.
    """
    if not isinstance(baseline, dict):
        raise DocumentShapeError(
            "Unexpected material_option.json shape: expected a vendor -> type -> name object."
        )
    doc = copy.deepcopy(baseline)

    stats = ReconcileStats()
    for preset in presets:
        notes = parse_notes(preset)
        if notes is None or not notes.is_complete:
            logger.debug(
                "SKIP: invalid notes for profile %s",
                first(preset.get("name")) or "(unnamed)",
            )
            stats.skipped += 1
            continue

        vendor_types = doc.get(notes.vendor)
        if not isinstance(vendor_types, dict):
            vendor_types = doc[notes.vendor] = {}

        if notes.type in vendor_types:
            stats.updated += 1
        else:
            stats.added += 1
        vendor_types[notes.type] = notes.name
        stats.count += 1

    logger.debug("Processed %d note entries into material_option.json", stats.count)
    return doc, stats
