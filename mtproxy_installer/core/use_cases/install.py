"""
Install use case — the orchestrator.

Sequence, failing fast on the first fatal error:

    preconditions → locate → (replace? → reconcile) → collect users
    → collect answers → build plan → render + write → validate manifest
    → register service → register updater → pull → up → summary

Only the reconcile pass is best-effort. There is no rollback: a failed
run is recovered by running the installer again, which detects and
replaces whatever this run left behind.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mtproxy_installer.adapters.base import ContainerRuntime, InitSystem
from mtproxy_installer.core.data import TEMPLATES_DIR
from mtproxy_installer.core.errors import InstallCancelled, LaunchFailed
from mtproxy_installer.core.models.identity import ServiceIdentity
from mtproxy_installer.core.models.installation import (
    DetectedInstallation,
    ReconcileReport,
    RenderedArtifacts,
)
from mtproxy_installer.core.models.plan import InstallAnswers, InstallationPlan, UserCredential
from mtproxy_installer.core.services.lifecycle import LifecycleRegistrar
from mtproxy_installer.core.services.locator import locate_installation
from mtproxy_installer.core.services.planning import build_plan
from mtproxy_installer.core.services.reconciler import reconcile
from mtproxy_installer.core.services.renderer import write_artifacts
from mtproxy_installer.core.use_cases.preconditions import check_preconditions

logger = logging.getLogger(__name__)


class InstallPrompter(ABC):
    """Source of the operator's decisions and answers."""

    @abstractmethod
    def confirm_replace(self, detected: DetectedInstallation) -> bool:
        """Show *detected* and return True to replace it, False to cancel."""

    @abstractmethod
    def collect_users(self) -> tuple[UserCredential, ...]:
        """Return the users, with freshly generated secrets, in entry order."""

    @abstractmethod
    def collect_answers(self) -> InstallAnswers:
        """Return server parameters and service/update choices."""

    def progress(self, message: str) -> None:
        """Report a step to the operator. Silent by default."""


@dataclass
class InstallSummary:
    """What was installed and where."""

    identity: ServiceIdentity
    plan: InstallationPlan
    artifacts: RenderedArtifacts
    replaced: DetectedInstallation | None = None
    reconcile_report: ReconcileReport | None = None
    hints: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        ident = self.identity
        result: dict[str, Any] = {
            "install_dir": str(ident.install_dir),
            "config": str(self.artifacts.config_path),
            "manifest": str(self.artifacts.manifest_path),
            "port_mapping": self.plan.port_mapping,
            "announce_address": self.plan.announce_address,
            "tls_domain": self.plan.tls_domain,
            "users": [{"username": u.username, "secret": u.secret} for u in self.plan.users],
            "units": [str(p) for p in self.artifacts.unit_paths],
            "service_unit": ident.service_unit if self.plan.enable_service else None,
            "updater_timer": ident.updater_timer_unit if self.plan.enable_auto_update else None,
            "hints": self.hints,
        }
        if self.replaced is not None:
            result["replaced"] = self.replaced.to_dict()
        if self.reconcile_report is not None:
            result["reconcile"] = self.reconcile_report.to_dict()
        return result


def _hints(identity: ServiceIdentity, plan: InstallationPlan) -> list[str]:
    hints = []
    if plan.enable_service:
        hints.append(f"Service     : systemctl {{start|stop|status}} {identity.service_name}")
    if plan.enable_auto_update:
        hints.append(f"Auto-update : systemctl list-timers {identity.updater_timer_unit}")
    hints.append(f"Logs        : docker compose -f {identity.manifest_path} logs -f")
    return hints


def _compose_or_fail(runtime: ContainerRuntime, manifest: Path, *args: str,
                     what: str, timeout: int = 300) -> None:
    receipt = runtime.compose(manifest, *args, timeout=timeout)
    if receipt.failed:
        raise LaunchFailed(f"{what} failed: {receipt.error}")


def run_install(
    prompter: InstallPrompter,
    runtime: ContainerRuntime,
    init_system: InitSystem,
    identity: ServiceIdentity | None = None,
    *,
    templates_dir: Path = TEMPLATES_DIR,
    require_root: bool = True,
    sleep: Callable[[float], None] = time.sleep,
) -> InstallSummary:
    """Install (or replace) the proxy service.

    Raises:
        InstallerError: any fatal failure; see ``core.errors``.
    """
    identity = identity or ServiceIdentity()

    check_preconditions(runtime, init_system, require_root=require_root, sleep=sleep)

    detected = locate_installation(identity, runtime, init_system)
    replaced: DetectedInstallation | None = None
    report: ReconcileReport | None = None
    if detected.found:
        if not prompter.confirm_replace(detected):
            raise InstallCancelled("Installation cancelled; the existing installation was left untouched.")
        prompter.progress("Removing the existing installation …")
        report = reconcile(detected, identity, runtime, init_system)
        replaced = detected

    credentials = prompter.collect_users()
    answers = prompter.collect_answers()
    plan = build_plan(answers, credentials)

    prompter.progress(f"Writing {identity.config_file} and {identity.manifest_file} to {identity.install_dir} …")
    artifacts = write_artifacts(identity, plan, templates_dir)
    _compose_or_fail(runtime, artifacts.manifest_path, "config", "-q",
                     what="Manifest validation", timeout=60)

    registrar = LifecycleRegistrar(identity, init_system)
    if plan.enable_service:
        prompter.progress(f"Registering {identity.service_unit} …")
        artifacts.unit_paths.extend(registrar.register_service())
    if plan.enable_auto_update:
        prompter.progress(f"Registering {identity.updater_timer_unit} (daily at ~04:00) …")
        artifacts.unit_paths.extend(registrar.register_updater())

    prompter.progress(f"Pulling {identity.image} …")
    _compose_or_fail(runtime, artifacts.manifest_path, "pull",
                     what="Image pull", timeout=600)
    prompter.progress("Starting container …")
    _compose_or_fail(runtime, artifacts.manifest_path, "up", "-d",
                     what="Container start", timeout=300)

    logger.info("Installation complete: %s", identity.install_dir)
    return InstallSummary(
        identity=identity,
        plan=plan,
        artifacts=artifacts,
        replaced=replaced,
        reconcile_report=report,
        hints=_hints(identity, plan),
    )
