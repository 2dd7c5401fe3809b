"""
Uninstall use case — locate, then reconcile to "nothing installed".
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from mtproxy_installer.adapters.base import ContainerRuntime, InitSystem
from mtproxy_installer.core.models.identity import ServiceIdentity
from mtproxy_installer.core.models.installation import DetectedInstallation, ReconcileReport
from mtproxy_installer.core.services.locator import locate_installation
from mtproxy_installer.core.services.reconciler import reconcile
from mtproxy_installer.core.use_cases.preconditions import check_preconditions

logger = logging.getLogger(__name__)


@dataclass
class UninstallResult:
    """Result of the uninstall use case."""

    detected: DetectedInstallation
    report: ReconcileReport | None = None

    @property
    def nothing_found(self) -> bool:
        return not self.detected.found

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"detected": self.detected.to_dict()}
        if self.report is not None:
            result["reconcile"] = self.report.to_dict()
        return result


def run_uninstall(
    runtime: ContainerRuntime,
    init_system: InitSystem,
    identity: ServiceIdentity | None = None,
    *,
    require_root: bool = True,
    sleep: Callable[[float], None] = time.sleep,
) -> UninstallResult:
    """Remove the service, its units, containers, images and directories."""
    identity = identity or ServiceIdentity()

    check_preconditions(runtime, init_system, require_root=require_root, sleep=sleep)

    detected = locate_installation(identity, runtime, init_system)
    if not detected.found:
        logger.info("Nothing to uninstall")
        return UninstallResult(detected=detected)

    report = reconcile(detected, identity, runtime, init_system)
    return UninstallResult(detected=detected, report=report)
