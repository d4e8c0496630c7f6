"""
Pipeline orchestrator: discover → identify → reconcile → write → upload.

High-level interface that chains all the filament sync steps.
"""

import logging
from pathlib import Path
from typing import Any

from .catalog import (
    DATABASE_SNAPSHOT,
    OPTIONS_SNAPSHOT,
    TransportFactory,
    load_baseline,
    reconcile_database,
    reconcile_options,
    write_document,
)
from .config import DATABASE_FILE, OPTIONS_FILE, SyncConfig
from .discovery import DiscoveryError, load_custom_profiles
from .models import LoadedPreset, SyncReport
from .notes import NOTES_HELP_URL, describe_profile, ensure_notes
from .progress import NullProgressReporter, ProgressReporter
from .remote import SSHTransport
from .upload import upload_files

logger = logging.getLogger(__name__)


class SyncPipeline:
    """
    Orchestrator that chains: discover → notes → options → database → upload.

    Usage:
        config = load_config()
        pipeline = SyncPipeline(config)

        # Build data/material_database.json and data/material_option.json
        report = asyncio.run(pipeline.run(upload=False))

        # Build and push to the printer
        report = asyncio.run(pipeline.run())
    """

    def __init__(
        self,
        config: SyncConfig,
        reporter: ProgressReporter | None = None,
        transport_factory: TransportFactory | None = None,
        os_type: str | None = None,
        home_dir: Path | None = None,
    ):
        self.config = config
        self.reporter: ProgressReporter = reporter or NullProgressReporter()
        self.os_type = os_type
        self.home_dir = home_dir
        self.transport_factory = transport_factory or self._default_transport_factory()

    def _default_transport_factory(self) -> TransportFactory | None:
        printer = self.config.printer_config()
        if printer is None:
            return None
        return lambda: SSHTransport(printer)

    async def run(self, upload: bool = True) -> SyncReport:
        """
        Full pipeline.

        Args:
            upload: If False, stop after writing the documents to ``data_dir``.

        Returns:
            SyncReport describing what was loaded, kept, reconciled and uploaded.
        """
        report = SyncReport()

        self.reporter.update_status(f"Loading {self.config.slicer.value} filament presets...")
        loaded = self.load_presets(report)

        presets = self.identify_presets(loaded, report)
        await self.build(presets, report)

        if upload:
            await self.upload(report)
        return report

    def load_presets(self, report: SyncReport) -> list[LoadedPreset]:
        """Load presets from the slicer's user directory.

        Raises:
            DiscoveryError: The directory is missing or holds no readable presets.
        """
        loaded, failures = load_custom_profiles(
            self.config.slicer,
            self.config.user_id,
            os_type=self.os_type,
            home_dir=self.home_dir,
        )
        report.failed_files.extend(failures)
        report.loaded = len(loaded)
        if not loaded:
            raise DiscoveryError("No profiles found in the selected custom profile directory.")
        return loaded

    def identify_presets(
        self,
        loaded: list[LoadedPreset],
        report: SyncReport,
    ) -> list[dict[str, Any]]:
        """Keep presets that have (or can be given) valid notes."""
        kept: list[dict[str, Any]] = []
        for preset in loaded:
            notes, synthesized = ensure_notes(preset.data)
            if notes is not None:
                kept.append(preset.data)
                if synthesized:
                    report.synthesized.append(notes)
                continue

            label = describe_profile(preset.data)
            report.ignored.append(label)
            logger.error("Ignoring Filament %s since it's missing required filament notes.", label)
            logger.error("Check the instructions for info on how to add them: %s", NOTES_HELP_URL)

        report.kept = len(kept)
        logger.debug("Filtered profiles kept: %d/%d", len(kept), len(loaded))
        return kept

    async def build(self, presets: list[dict[str, Any]], report: SyncReport) -> None:
        """Reconcile both documents against their baselines and write them locally.

        The options document is built before the database.
        """
        data_dir = self.config.data_dir

        self.reporter.step("Building material_option.json", 1, 2)
        options_base, source = await load_baseline(
            self.config.remote_opt_path, OPTIONS_SNAPSHOT, self.transport_factory
        )
        logger.debug("Options baseline: %s", source)
        options_doc, report.options = reconcile_options(options_base, presets)
        self.reporter.update_status(
            f"Processed {report.options.count} note entries into material_option.json"
        )
        report.outputs.append(write_document(options_doc, data_dir / OPTIONS_FILE))

        self.reporter.step("Building material_database.json", 2, 2)
        db_base, source = await load_baseline(
            self.config.remote_db_path, DATABASE_SNAPSHOT, self.transport_factory
        )
        logger.debug("Database baseline: %s", source)
        db_doc, report.database = reconcile_database(db_base, presets)
        stats = report.database
        self.reporter.update_status(
            f"Starting DB list length: {stats.count - stats.added}"
        )
        self.reporter.update_status(
            f"Ending DB list length: {stats.count} (version={stats.version})"
        )
        report.outputs.append(write_document(db_doc, data_dir / DATABASE_FILE))

    async def upload(self, report: SyncReport) -> None:
        """Push the documents in ``data_dir`` to the printer's sync directory."""
        printer = self.config.require_printer()
        factory = self.transport_factory or (lambda: SSHTransport(printer))

        self.reporter.update_status(
            f"Uploading to {printer.username}@{printer.host}:{self.config.remote_sync_dir}..."
        )
        backup_root = self.config.backup_dir if self.config.backup else None
        async with factory() as remote:
            uploaded, backup_dir = await upload_files(
                remote,
                self.config.data_dir,
                self.config.remote_sync_dir,
                backup_root=backup_root,
            )
        report.uploaded = uploaded
        report.backup_dir = backup_dir
