"""
Domain models — Pydantic types for the installer.

All models are re-exported here for convenient access:

    from mtproxy_installer.core.models import InstallationPlan, ServiceIdentity
"""

from mtproxy_installer.core.models.identity import ServiceIdentity
from mtproxy_installer.core.models.installation import (
    DetectedInstallation,
    GeneratedFile,
    ReconcileReport,
    RenderedArtifacts,
)
from mtproxy_installer.core.models.plan import (
    InstallAnswers,
    InstallationPlan,
    UserCredential,
)
from mtproxy_installer.core.models.receipt import Receipt

__all__ = [
    # installation.py
    "DetectedInstallation",
    "GeneratedFile",
    # plan.py
    "InstallAnswers",
    "InstallationPlan",
    # receipt.py
    "Receipt",
    "ReconcileReport",
    "RenderedArtifacts",
    # identity.py
    "ServiceIdentity",
    "UserCredential",
]
