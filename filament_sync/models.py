from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class SlicerType(str, Enum):
    CREALITY = "creality"
    ORCASLICER = "orca"


class NotesRecord(BaseModel):
    """
    Identity record embedded in a preset's ``filament_notes`` field.

    The printer keys its catalog on ``id``; ``vendor``/``type``/``name`` drive
    the options document.
    """

    id: str
    vendor: str = ""
    type: str = ""
    name: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.vendor and self.type and self.name)

    def dumps(self) -> str:
        """Serialize the way the slicer stores notes: compact JSON, fixed key order."""
        return json.dumps(
            {"id": self.id, "vendor": self.vendor, "type": self.type, "name": self.name},
            ensure_ascii=False,
            separators=(",", ":"),
        )


class LoadedPreset(BaseModel):
    """One preset file as read from the slicer's user directory."""

    model_config = {"arbitrary_types_allowed": True}

    path: Path | None = None
    data: dict[str, Any]


class ExpansionReport(BaseModel):
    """Result of expanding truncated presets for one (or several) slicer versions."""

    built: int = 0
    skipped: int = 0
    warnings: int = 0
    written: list[Path] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)

    def merge(self, other: ExpansionReport) -> ExpansionReport:
        return ExpansionReport(
            built=self.built + other.built,
            skipped=self.skipped + other.skipped,
            warnings=self.warnings + other.warnings,
            written=self.written + other.written,
            messages=self.messages + other.messages,
        )


class ReconcileStats(BaseModel):
    """Counters from one reconciliation pass over a catalog document."""

    added: int = 0
    updated: int = 0
    skipped: int = 0
    count: int = 0
    version: str | None = None


class SyncReport(BaseModel):
    """Summary of a full sync run."""

    loaded: int = 0
    kept: int = 0
    synthesized: list[NotesRecord] = Field(default_factory=list)
    ignored: list[str] = Field(default_factory=list)
    failed_files: list[str] = Field(default_factory=list)
    database: ReconcileStats = Field(default_factory=ReconcileStats)
    options: ReconcileStats = Field(default_factory=ReconcileStats)
    outputs: list[Path] = Field(default_factory=list)
    uploaded: list[str] = Field(default_factory=list)
    backup_dir: Path | None = None
