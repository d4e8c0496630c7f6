"""
Expansion of truncated user filament presets.

Creality Print sometimes stores custom filament presets as *truncated* JSON
(only the settings the user changed), while the printer catalog needs the
full preset.  A truncated preset is expanded by merging three layers::

    root template (e.g. fdm_filament_petg)
      <- system preset (e.g. "Generic PETG @Creality Hi 0.4 nozzle")
        <- user preset (e.g. "PETG-CF ExampleBrand")

Later layers win.  After expansion ``inherits`` points at the root template,
which is how the slicer writes full presets.

Key design decisions:
- Classification is a heuristic tied to Creality Print's export format
  (``from == "User"``, string ``inherits`` and ``base_id``, fewer than
  :data:`TRUNCATED_KEY_THRESHOLD` keys).  Anything else is treated as already
  complete and left alone.
- A missing system preset skips that preset; a missing root template only
  produces a warning.
- Existing output files are never overwritten unless ``force`` is set.
"""

from __future__ import annotations

import json
import logging
import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from .discovery import DiscoveryError, list_version_dirs, sort_versions_preferred
from .models import ExpansionReport
from .values import normalize_preset_values

logger = logging.getLogger(__name__)

# Full presets have hundreds of keys; truncated ones have a few dozen.
TRUNCATED_KEY_THRESHOLD = 120

# Maximum directory depth searched below system/ when a template is not in
# one of the usual locations.
TEMPLATE_SEARCH_MAX_DEPTH = 5

_CANDIDATE_DIRS: tuple[tuple[str, ...], ...] = (
    ("Creality", "filament"),
    ("Custom", "filament"),
    ("filament",),
    ("Creality",),
    ("Custom",),
    (),
)

_UNSAFE_FILENAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1F]')

TemplateLookup = Callable[[str], Optional[dict[str, Any]]]


class TemplateNotFound(LookupError):
    """Raised when the system preset a user preset inherits from can't be found."""

    def __init__(self, name: str):
        super().__init__(f'missing base preset "{name}"')
        self.name = name


class TemplateReadError(ValueError):
    """Raised when a template file exists but is not a JSON object."""

    def __init__(self, name: str, path: Path | None = None):
        super().__init__(f'bad base JSON "{name}"')
        self.name = name
        self.path = path


@dataclass
class ResolvedPreset:
    """A fully expanded preset plus the warnings raised while building it."""

    data: dict[str, Any]
    root_name: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def key_count(self) -> int:
        return len(self.data)


def is_truncated_user_preset(preset: Any) -> bool:
    """True when ``preset`` looks like a truncated Creality user preset."""
    if not isinstance(preset, dict):
        return False
    origin = preset.get("from")
    from_user = isinstance(origin, str) and origin.strip().lower() == "user"
    return (
        from_user
        and isinstance(preset.get("inherits"), str)
        and isinstance(preset.get("base_id"), str)
        and len(preset) < TRUNCATED_KEY_THRESHOLD
    )


def find_template_path(
    name: str,
    system_root: Path,
    max_depth: int = TEMPLATE_SEARCH_MAX_DEPTH,
) -> Path | None:
    """
    Locate ``<name>.json`` below a slicer's ``system`` directory.

    The usual locations are probed first, then a breadth-first search down to
    ``max_depth`` levels.
    """
    if not name or not isinstance(name, str):
        return None

    filename = f"{name}.json"
    for parts in _CANDIDATE_DIRS:
        candidate = system_root.joinpath(*parts, filename)
        if candidate.is_file():
            return candidate

    queue: deque[tuple[Path, int]] = deque([(system_root, 0)])
    while queue:
        directory, depth = queue.popleft()
        if depth > max_depth:
            continue
        try:
            entries = sorted(directory.iterdir())
        except OSError:
            continue
        for entry in entries:
            if entry.is_file() and entry.name == filename:
                return entry
            if entry.is_dir():
                queue.append((entry, depth + 1))
    return None


def make_template_lookup(
    system_root: Path,
    max_depth: int = TEMPLATE_SEARCH_MAX_DEPTH,
) -> TemplateLookup:
    """Build a name → template lookup over a ``system`` directory.

    The lookup returns ``None`` when no file matches and raises
    :class:`TemplateReadError` when the file is not a JSON object.
    """

    def lookup(name: str) -> dict[str, Any] | None:
        path = find_template_path(name, system_root, max_depth)
        if path is None:
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, OSError) as e:
            raise TemplateReadError(name, path) from e
        if not isinstance(data, dict):
            raise TemplateReadError(name, path)
        return data

    return lookup


def resolve_preset(
    user_preset: dict[str, Any],
    system_lookup: TemplateLookup,
    root_lookup: TemplateLookup | None = None,
    source_name: str | None = None,
) -> ResolvedPreset | None:
    """
    Expand a truncated user preset into a full one.

    Args:
        user_preset: The preset as read from disk.
        system_lookup: Finds the system preset named by ``inherits``.
        root_lookup: Finds the root template named by the system preset's
            ``inherits``.  Defaults to ``system_lookup``.
        source_name: File name the preset was read from; its stem becomes the
            ``name`` if the merged preset has none.

    Returns:
        The expanded preset, or ``None`` if ``user_preset`` is not a truncated
        user preset (nothing to do).

    Raises:
        TemplateNotFound: The system preset doesn't exist.
        TemplateReadError: The system preset isn't valid JSON.
    """
    if not is_truncated_user_preset(user_preset):
        return None
    root_lookup = root_lookup or system_lookup

    system_name = user_preset["inherits"].strip()
    system_preset = system_lookup(system_name)
    if system_preset is None:
        raise TemplateNotFound(system_name)

    warnings: list[str] = []
    root_name = system_preset.get("inherits")
    root_name = root_name.strip() if isinstance(root_name, str) else None

    root_preset: dict[str, Any] = {}
    if root_name:
        try:
            found = root_lookup(root_name)
        except TemplateReadError:
            warnings.append(
                f'Root template "{root_name}" is not valid JSON (continuing with base only)'
            )
        else:
            if found is None:
                warnings.append(
                    f'Could not find root template "{root_name}" (continuing with base only)'
                )
            else:
                root_preset = found

    merged = {
        **normalize_preset_values(root_preset),
        **normalize_preset_values(system_preset),
        **normalize_preset_values(user_preset),
    }

    if root_name:
        merged["inherits"] = root_name

    name = merged.get("name")
    if not isinstance(name, str) or not name:
        merged["name"] = _strip_json_suffix(source_name or "")

    if len(merged) < TRUNCATED_KEY_THRESHOLD:
        warnings.append(f"Output still looks small ({len(merged)} keys)")

    return ResolvedPreset(data=merged, root_name=root_name or None, warnings=warnings)


def sanitize_filename(name: str) -> str:
    """Replace characters Windows won't accept in file names."""
    return _UNSAFE_FILENAME_RE.sub("_", name).strip()


def expand_directory(
    user_dir: Path,
    system_root: Path,
    out_dir: Path | None = None,
    force: bool = False,
) -> ExpansionReport:
    """
    Expand every truncated preset in ``user_dir`` into ``out_dir``.

    ``out_dir`` defaults to ``user_dir / "base"``.  Source presets are never
    modified.  Per-file problems are counted, logged and skipped.
    """
    out_dir = out_dir or user_dir / "base"
    report = ExpansionReport()

    if not user_dir.is_dir():
        report.messages.append(f"SKIP: filament directory not found: {user_dir}")
        return report
    if not system_root.is_dir():
        report.messages.append(f"SKIP: system directory not found: {system_root}")
        return report

    out_dir.mkdir(parents=True, exist_ok=True)
    json_files = sorted(
        p for p in user_dir.iterdir() if p.is_file() and p.name.lower().endswith(".json")
    )
    if not json_files:
        report.messages.append(f"No .json presets found in {user_dir}")
        return report

    lookup = make_template_lookup(system_root)

    for src in json_files:
        try:
            user_preset = json.loads(src.read_text(encoding="utf-8"))
        except (ValueError, OSError):
            _skip(report, f"SKIP (bad JSON): {src.name}")
            continue

        # Not truncated (or already expanded): nothing to fix.
        if not is_truncated_user_preset(user_preset):
            report.skipped += 1
            continue

        out_name = sanitize_filename(src.name)
        out_path = out_dir / out_name
        if out_path.is_file() and not force:
            _skip(report, f"SKIP (exists): {out_name}")
            continue

        try:
            resolved = resolve_preset(user_preset, lookup, lookup, source_name=src.name)
        except (TemplateNotFound, TemplateReadError) as e:
            _skip(report, f"SKIP ({e}): {out_name}")
            continue
        if resolved is None:
            report.skipped += 1
            continue

        for warning in resolved.warnings:
            report.warnings += 1
            message = f"WARN: {warning}: {out_name}"
            report.messages.append(message)
            logger.warning(message)

        try:
            out_path.write_text(json.dumps(resolved.data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            logger.debug("Write failed for %s: %s", out_path, e)
            _skip(report, f"SKIP (write failed): {out_name}")
            continue

        report.built += 1
        report.written.append(out_path)
        report.messages.append(f"WROTE: {out_name}  ({resolved.key_count} keys)")
        logger.info("Expanded %s (%d keys)", out_name, resolved.key_count)

    return report


def expand_creality_versions(
    creality_print_dir: Path,
    user_id: str,
    force: bool = False,
) -> dict[str, ExpansionReport]:
    """
    Run :func:`expand_directory` for every Creality Print version folder.

    Returns one report per version, in processing order.

    Raises:
        DiscoveryError: No ``<major>.<minor>`` version folder exists.
    """
    versions = sort_versions_preferred(list_version_dirs(creality_print_dir))
    if not versions:
        raise DiscoveryError(
            f"No Creality Print versions found under: {creality_print_dir}\n"
            f"Expected something like: {creality_print_dir / '6.0' / 'user' / user_id / 'filament'}"
        )

    reports: dict[str, ExpansionReport] = {}
    for version in versions:
        version_root = creality_print_dir / version
        user_dir = version_root / "user" / user_id / "filament"
        logger.debug("Expanding presets for Creality Print %s: %s", version, user_dir)
        reports[version] = expand_directory(user_dir, version_root / "system", force=force)
    return reports


def _skip(report: ExpansionReport, message: str) -> None:
    report.skipped += 1
    report.messages.append(message)
    logger.warning(message)


def _strip_json_suffix(file_name: str) -> str:
    name = Path(file_name).name
    return name[: -len(".json")] if name.endswith(".json") else name
