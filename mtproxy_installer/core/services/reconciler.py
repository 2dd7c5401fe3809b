"""
Reconciler — remove every trace of a prior installation.

Order matters and is fixed:

    1. compose down, for each discovered directory holding a manifest
    2. force-remove the canonical container, if it still exists
    3. remove every image of the canonical repository, by ID
    4. disable + delete the unit files, then one daemon reload
    5. delete the discovered directories

Stop before remove, unregister before deleting the directory: a run
interrupted at any point leaves traces the locator still finds, so the
next run finishes the job. Every step is best-effort; a failure is
logged, recorded in the report, and the pass continues.

Running it again after a complete pass is a no-op: each step first
checks that its target still exists.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from mtproxy_installer.adapters.base import ContainerRuntime, InitSystem
from mtproxy_installer.core.models.identity import ServiceIdentity
from mtproxy_installer.core.models.installation import DetectedInstallation, ReconcileReport
from mtproxy_installer.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

# Directories that are never deleted, whatever a unit file claims
PROTECTED_DIRS = frozenset(
    Path(p) for p in (
        "/", "/bin", "/boot", "/dev", "/etc", "/home", "/lib", "/lib64", "/opt",
        "/proc", "/root", "/run", "/sbin", "/srv", "/sys", "/tmp", "/usr", "/var",
    )
)


def _record(report: ReconcileReport, receipt: Receipt) -> Receipt:
    report.receipts.append(receipt)
    if receipt.failed:
        logger.warning("Best-effort step failed: %s", receipt.describe())
    else:
        logger.debug("Done: %s", receipt.describe())
    return receipt


def _stop_manifests(report: ReconcileReport, detected: DetectedInstallation,
                    identity: ServiceIdentity, runtime: ContainerRuntime) -> None:
    for directory in detected.directories:
        manifest = directory / identity.manifest_file
        if not manifest.is_file():
            continue
        logger.info("Stopping containers declared in %s", manifest)
        _record(report, runtime.compose(manifest, "down", "--remove-orphans", timeout=120))


def _remove_containers(report: ReconcileReport, identity: ServiceIdentity,
                       runtime: ContainerRuntime) -> None:
    for container in runtime.find_containers(identity.container_name):
        logger.info("Removing container %s (%s)", container.name, container.state or "unknown state")
        _record(report, runtime.remove_container(container.name))


def _remove_images(report: ReconcileReport, identity: ServiceIdentity,
                   runtime: ContainerRuntime) -> None:
    seen: set[str] = set()
    for image in runtime.find_images(identity.image_repository):
        if not image.id or image.id in seen:
            continue
        seen.add(image.id)
        logger.info("Removing image %s:%s (%s)", image.repository, image.tag, image.id)
        _record(report, runtime.remove_image(image.id))


def _remove_units(report: ReconcileReport, identity: ServiceIdentity,
                  init_system: InitSystem) -> None:
    present = [u for u in identity.unit_names if init_system.unit_exists(u)]
    if not present:
        return

    for unit in present:
        logger.info("Unregistering %s", unit)
        _record(report, init_system.disable(unit, now=True))
        path = init_system.unit_path(unit)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            _record(report, Receipt.failure(
                tool="filesystem", operation="unlink", target=str(path), error=str(e),
            ))
        else:
            report.removed_unit_files.append(path)
            _record(report, Receipt.success(tool="filesystem", operation="unlink", target=str(path)))

    _record(report, init_system.daemon_reload())


def _refusal(directory: Path) -> str | None:
    """Why *directory* must not be deleted, or None when it may be."""
    if not directory.is_absolute():
        return "refusing to delete a relative directory"
    if ".." in directory.parts:
        return "refusing to delete a path with '..' components"
    if directory in PROTECTED_DIRS or directory.resolve() in PROTECTED_DIRS:
        return "refusing to delete a system directory"
    return None


def _remove_directories(report: ReconcileReport, detected: DetectedInstallation) -> None:
    for directory in detected.directories:
        refusal = _refusal(directory)
        if refusal:
            _record(report, Receipt.failure(
                tool="filesystem", operation="rmtree", target=str(directory), error=refusal,
            ))
            continue
        if not directory.exists():
            continue
        logger.info("Deleting %s", directory)
        try:
            shutil.rmtree(directory)
        except OSError as e:
            _record(report, Receipt.failure(
                tool="filesystem", operation="rmtree", target=str(directory), error=str(e),
            ))
        else:
            report.removed_directories.append(directory)
            _record(report, Receipt.success(tool="filesystem", operation="rmtree", target=str(directory)))


def reconcile(
    detected: DetectedInstallation,
    identity: ServiceIdentity,
    runtime: ContainerRuntime,
    init_system: InitSystem,
) -> ReconcileReport:
    """Remove everything *detected* references, in teardown order.

    Containers and images are re-queried rather than taken from the
    snapshot, so anything created since detection is removed too.
    """
    report = ReconcileReport()

    _stop_manifests(report, detected, identity, runtime)
    _remove_containers(report, identity, runtime)
    _remove_images(report, identity, runtime)
    _remove_units(report, identity, init_system)
    _remove_directories(report, detected)

    if report.clean:
        logger.info("Reconcile complete (%d steps)", len(report.receipts))
    else:
        logger.warning(
            "Reconcile finished with %d best-effort failure(s)", len(report.failures)
        )
    return report
