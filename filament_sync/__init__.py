"""
filament_sync — Filament Preset Sync

Reads custom filament presets from Creality Print or OrcaSlicer, expands
truncated ones, and merges them into the printer's material_database.json
and material_option.json, which are then pushed over SSH.
"""

from .models import (
    SlicerType,
    NotesRecord,
    LoadedPreset,
    ExpansionReport,
    ReconcileStats,
    SyncReport,
)
from .config import SyncConfig, PrinterConfig, ConfigError, load_config
from .notes import stable_five_digit_id, parse_notes, ensure_notes
from .expand import (
    is_truncated_user_preset,
    resolve_preset,
    expand_directory,
    expand_creality_versions,
    TemplateNotFound,
    TemplateReadError,
)
from .discovery import load_custom_profiles, DiscoveryError
from .catalog import reconcile_database, reconcile_options, DocumentShapeError
from .remote import SSHTransport, RemoteError
from .upload import upload_files, UploadError
from .pipeline import SyncPipeline

__all__ = [
    # Enums
    "SlicerType",
    # Models
    "NotesRecord",
    "LoadedPreset",
    "ExpansionReport",
    "ReconcileStats",
    "SyncReport",
    # Config
    "SyncConfig",
    "PrinterConfig",
    "load_config",
    # Notes
    "stable_five_digit_id",
    "parse_notes",
    "ensure_notes",
    # Expansion
    "is_truncated_user_preset",
    "resolve_preset",
    "expand_directory",
    "expand_creality_versions",
    # Discovery & Catalog
    "load_custom_profiles",
    "reconcile_database",
    "reconcile_options",
    # Transport & Upload
    "SSHTransport",
    "upload_files",
    # Pipeline
    "SyncPipeline",
    # Exceptions
    "ConfigError",
    "DiscoveryError",
    "DocumentShapeError",
    "RemoteError",
    "TemplateNotFound",
    "TemplateReadError",
    "UploadError",
]
