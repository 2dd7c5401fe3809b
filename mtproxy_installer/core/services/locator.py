"""
Installation locator — find every trace of a prior installation.

Read-only. Looks in three places: the canonical install directory, the
``WorkingDirectory`` of the known unit files (which may point elsewhere,
e.g. after a manual move), and the container runtime (containers by name
in any state, images by repository with any tag).
"""

from __future__ import annotations

import logging
from pathlib import Path

from mtproxy_installer.adapters.base import ContainerRuntime, InitSystem
from mtproxy_installer.core.models.identity import ServiceIdentity
from mtproxy_installer.core.models.installation import DetectedInstallation

logger = logging.getLogger(__name__)


def locate_installation(
    identity: ServiceIdentity,
    runtime: ContainerRuntime,
    init_system: InitSystem,
) -> DetectedInstallation:
    """Build a fresh ``DetectedInstallation`` for *identity*.

    Never raises because a probe failed: an unreachable runtime simply
    reports no containers and no images.
    """
    directories: list[Path] = []

    def _add(path: Path) -> None:
        if path not in directories:
            directories.append(path)

    if identity.install_dir.is_dir():
        _add(identity.install_dir)

    unit_files = tuple(
        init_system.unit_path(unit)
        for unit in identity.unit_names
        if init_system.unit_exists(unit)
    )

    for unit in identity.units_with_working_directory:
        workdir = init_system.read_working_directory(unit)
        if workdir is not None:
            logger.debug("%s declares WorkingDirectory=%s", unit, workdir)
            # Recorded even when missing on disk so a re-run can finish cleanup
            _add(workdir)

    containers = runtime.find_containers(identity.container_name)
    images = runtime.find_images(identity.image_repository)

    detected = DetectedInstallation(
        directories=tuple(directories),
        unit_files=unit_files,
        container_present=bool(containers),
        image_present=bool(images),
    )
    if detected.found:
        logger.info(
            "Existing installation: dirs=%s units=%d container=%s image=%s",
            [str(d) for d in detected.directories],
            len(detected.unit_files),
            detected.container_present,
            detected.image_present,
        )
    else:
        logger.info("No existing installation found")
    return detected
