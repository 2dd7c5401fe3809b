"""
Detected installation, generated artifacts, and reconcile results.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from mtproxy_installer.core.models.receipt import Receipt


class DetectedInstallation(BaseModel):
    """Every trace of a prior installation found on this host.

    Rebuilt fresh on every run by the locator. Never persisted.
    """

    directories: tuple[Path, ...] = ()
    unit_files: tuple[Path, ...] = ()
    container_present: bool = False
    image_present: bool = False

    @property
    def found(self) -> bool:
        """False only when the host shows no trace of the service."""
        return bool(
            self.directories
            or self.unit_files
            or self.container_present
            or self.image_present
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "found": self.found,
            "directories": [str(d) for d in self.directories],
            "unit_files": [str(u) for u in self.unit_files],
            "container_present": self.container_present,
            "image_present": self.image_present,
        }


class GeneratedFile(BaseModel):
    """A file produced by the renderer or the registrar.

    Attributes:
        path:    Absolute destination path.
        content: Full file content.
        reason:  Why this file was generated.
    """

    path: Path
    content: str
    reason: str = ""


class RenderedArtifacts(BaseModel):
    """Files written by one install run."""

    config_path: Path
    manifest_path: Path
    unit_paths: list[Path] = Field(default_factory=list)

    @property
    def all_paths(self) -> list[Path]:
        return [self.config_path, self.manifest_path, *self.unit_paths]


class ReconcileReport(BaseModel):
    """Outcome of one reconcile pass.

    ``receipts`` holds every command attempted, in order. Failed receipts
    are best-effort failures: they were logged and the pass continued.
    """

    receipts: list[Receipt] = Field(default_factory=list)
    removed_directories: list[Path] = Field(default_factory=list)
    removed_unit_files: list[Path] = Field(default_factory=list)

    @property
    def failures(self) -> list[Receipt]:
        return [r for r in self.receipts if r.failed]

    @property
    def clean(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "clean": self.clean,
            "removed_directories": [str(d) for d in self.removed_directories],
            "removed_unit_files": [str(u) for u in self.removed_unit_files],
            "failures": [r.describe() for r in self.failures],
        }
