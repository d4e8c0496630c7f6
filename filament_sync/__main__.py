"""
filament_sync CLI — Sync custom slicer filament presets to a Creality printer.

Usage:
    filament-sync <command> [options]
    python -m filament_sync <command> [options]
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from filament_sync.config import env_flag, load_config
from filament_sync.discovery import creality_print_dir, current_os_type
from filament_sync.expand import expand_creality_versions
from filament_sync.models import ExpansionReport, SyncReport
from filament_sync.notes import inspect_notes_dir
from filament_sync.pipeline import SyncPipeline

logger = logging.getLogger(__name__)

DEFAULT_EXPAND_USER_ID = "default"
NOTES_INSPECT_VERSIONS = ("7.0", "6.0")


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="filament-sync",
        description="Sync custom slicer filament presets to a printer's material database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  filament-sync sync
  filament-sync build --json
  filament-sync expand --force
  filament-sync notes

Environment variables:
  FILAMENT_SYNC_CONFIG      Config file (instead of "filament-sync.ini")
  FILAMENT_SYNC_HOST        Printer host/IP (overrides [printer] host)
  FILAMENT_SYNC_PASSWORD    Printer SSH password (overrides [printer] password)
  FILAMENT_SYNC_USERID      Slicer user folder id (overrides [slicer] user_id)
  FILAMENT_SYNC_SLICER      "creality" or "orca" (overrides [slicer] slicer)
  FILAMENT_SYNC_DEBUG       1/true: verbose diagnostics
  FILAMENT_SYNC_BACKUP      0/false: don't back up the printer's files before upload
        """,
    )

    parser.add_argument(
        "--verbose", "-V", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true",
        help="Suppress non-error output (logging only)",
    )
    parser.add_argument(
        "--config", "-c", type=Path, default=None,
        help="Config file path (default: $FILAMENT_SYNC_CONFIG or 'filament-sync.ini')",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        required=True,
        metavar="<command>",
    )

    # --- sync ---
    sync_parser = subparsers.add_parser(
        "sync",
        help="Build material_database.json and material_option.json and upload them",
    )
    sync_parser.add_argument(
        "--json", action="store_true", help="Output report as JSON"
    )
    sync_parser.set_defaults(func=run_sync, upload=True)

    # --- build ---
    build_parser = subparsers.add_parser(
        "build",
        help="Build the two documents into the data directory without uploading",
    )
    build_parser.add_argument(
        "--json", action="store_true", help="Output report as JSON"
    )
    build_parser.set_defaults(func=run_sync, upload=False)

    # --- expand ---
    expand_parser = subparsers.add_parser(
        "expand",
        help="Expand truncated Creality Print presets into filament/base/",
    )
    expand_parser.add_argument(
        "--force", action="store_true",
        help="Overwrite presets that were already expanded",
    )
    expand_parser.add_argument(
        "--user-id", default=None,
        help="Creality Print user folder id (default: from config, else 'default')",
    )
    expand_parser.add_argument(
        "--creality-dir", type=Path, default=None,
        help="Creality Print config directory (default: per-OS location)",
    )
    expand_parser.add_argument(
        "--json", action="store_true", help="Output report as JSON"
    )
    expand_parser.set_defaults(func=run_expand)

    # --- notes ---
    notes_parser = subparsers.add_parser(
        "notes",
        help="Show which expanded presets carry filament notes",
    )
    notes_parser.add_argument(
        "--user-id", default=None,
        help="Creality Print user folder id (default: from config)",
    )
    notes_parser.add_argument(
        "--creality-dir", type=Path, default=None,
        help="Creality Print config directory (default: per-OS location)",
    )
    notes_parser.set_defaults(func=run_notes)

    return parser


def run_sync(args: argparse.Namespace) -> int:
    """Execute the sync/build commands."""
    from filament_sync.progress import NullProgressReporter, RichProgressReporter

    use_json = getattr(args, "json", False)
    config = load_config(args.config)
    reporter = NullProgressReporter() if use_json else RichProgressReporter()

    pipeline = SyncPipeline(config, reporter=reporter)
    report = asyncio.run(pipeline.run(upload=args.upload))

    if use_json:
        print(report.model_dump_json(indent=2))
    else:
        _print_sync_report(report)
    return 0


def _print_sync_report(report: SyncReport) -> None:
    print("\nSync complete:")
    print(f"  Presets loaded:  {report.loaded}")
    print(f"  Presets kept:    {report.kept}")
    print(f"  Notes generated: {len(report.synthesized)}")
    print(f"  Ignored:         {len(report.ignored) + len(report.failed_files)}")
    print(
        f"  Database: {report.database.added} added, {report.database.updated} updated, "
        f"{report.database.skipped} skipped (count={report.database.count})"
    )
    print(
        f"  Options:  {report.options.added} added, {report.options.updated} updated, "
        f"{report.options.skipped} skipped"
    )

    if report.synthesized:
        print("\nGenerated ids (write these down if you use RFID tags):")
        for notes in report.synthesized:
            print(f"  {notes.id}  {notes.vendor} {notes.type} {notes.name}")

    for path in report.outputs:
        print(f"  wrote {path}")
    for remote_path in report.uploaded:
        print(f"  uploaded {remote_path}")
    if report.backup_dir:
        print(f"  backup in {report.backup_dir}")


def _creality_dir(args: argparse.Namespace) -> Path:
    return args.creality_dir or creality_print_dir(current_os_type(), Path.home())


def run_expand(args: argparse.Namespace) -> int:
    """Execute the expand command."""
    config = load_config(args.config)
    user_id = args.user_id or config.user_id or DEFAULT_EXPAND_USER_ID
    root = _creality_dir(args)

    reports = expand_creality_versions(root, user_id, force=args.force)
    total = ExpansionReport()
    for report in reports.values():
        total = total.merge(report)

    if getattr(args, "json", False):
        print(json.dumps({
            "versions": {v: r.model_dump(mode="json") for v, r in reports.items()},
            "built": total.built,
            "skipped": total.skipped,
            "warnings": total.warnings,
        }, indent=2))
        return 0

    for version, report in reports.items():
        print(f"\nCreality Print {version}:")
        for message in report.messages:
            print(f"  {message}")
        print(
            f"  Built {report.built} base presets; skipped {report.skipped}; "
            f"warnings {report.warnings}."
        )

    print(
        f"\nALL DONE. Total built: {total.built}; total skipped: {total.skipped}; "
        f"total warnings: {total.warnings}."
    )
    if total.built == 0:
        print(
            "NOTE: If you expected output, double-check:\n"
            f"  1) user_id is correct ({user_id})\n"
            f"  2) Your custom presets exist under {root / '6.0' / 'user' / user_id / 'filament'}\n"
            "  3) The presets are truncated (short) and include base_id + inherits.\n"
            "  4) Re-run with --force if you already created base files and want to overwrite them."
        )
    return 0


def run_notes(args: argparse.Namespace) -> int:
    """Execute the notes command."""
    config = load_config(args.config)
    user_id = args.user_id or config.user_id
    if not user_id:
        logger.error("No user id: pass --user-id or set user_id in the config file")
        return 1
    root = _creality_dir(args)

    for version in NOTES_INSPECT_VERSIONS:
        base_dir = root / version / "user" / user_id / "filament" / "base"
        print(f"\n=== Creality Print {version} ===")
        print(f"Base dir: {base_dir}")
        if not base_dir.is_dir():
            print("  (missing)")
            continue

        rows = inspect_notes_dir(base_dir)
        print(f"Files: {', '.join(r.file_name for r in rows) if rows else '(none)'}")
        for row in rows:
            print(f"- {row.file_name}")
            print(f"    filament_notes type: {row.kind}")
            print(f"    hasNotes: {str(row.has_notes).lower()}")
            if not row.has_notes:
                print(f"    VALUE: {row.value!r}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    verbose = getattr(args, "verbose", False) or env_flag(os.environ, "FILAMENT_SYNC_DEBUG", False)

    # Configure logging
    if verbose:
        log_level = logging.DEBUG
    elif getattr(args, "quiet", False):
        log_level = logging.ERROR
    else:
        log_level = logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    if hasattr(args, "func"):
        try:
            return args.func(args)
        except KeyboardInterrupt:
            logger.error("Interrupted")
            return 1
        except Exception as e:
            logger.error("%s", e)
            if verbose:
                logger.debug("Traceback:", exc_info=True)
            return 1
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
