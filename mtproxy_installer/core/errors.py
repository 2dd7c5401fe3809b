"""
Installer error taxonomy.

Every fatal condition is an ``InstallerError`` subclass. The CLI catches
the base class, prints a single-line diagnosis and exits non-zero.

Best-effort failures (one container, image or unit removal during a
reconcile pass) are NOT exceptions: they are failed Receipts, logged and
collected in the ReconcileReport.
"""

from __future__ import annotations


class InstallerError(Exception):
    """Base class for all fatal installer errors."""

    exit_code = 1


class PreconditionFailure(InstallerError):
    """Missing privileges or required external tools. Raised before any mutation."""


class ValidationFailure(InstallerError):
    """User input is malformed. Raised before any artifact is written."""


class InvalidUsername(ValidationFailure):
    """Username is empty or contains characters outside ``[A-Za-z0-9_-]``."""


class DuplicateUsername(ValidationFailure):
    """The same username was entered twice in one run."""


class InvalidPort(ValidationFailure):
    """Port is not an integer in 1–65535."""


class TemplateMalformed(InstallerError):
    """A base template lacks, or duplicates, a required declaration."""


class RegistrationFailed(InstallerError):
    """An init-system unit could not be enabled."""


class LaunchFailed(InstallerError):
    """Manifest validation, image pull or container start failed."""


class InstallCancelled(InstallerError):
    """The operator declined to replace an existing installation."""
