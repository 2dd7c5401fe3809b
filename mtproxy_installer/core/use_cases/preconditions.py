"""
Preconditions — privileges and host tools, checked before any mutation.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable

from mtproxy_installer.adapters.base import ContainerRuntime, InitSystem
from mtproxy_installer.core.errors import PreconditionFailure

logger = logging.getLogger(__name__)

DAEMON_READY_RETRIES = 15
DAEMON_READY_INTERVAL = 2.0


def check_preconditions(
    runtime: ContainerRuntime,
    init_system: InitSystem,
    *,
    require_root: bool = True,
    retries: int = DAEMON_READY_RETRIES,
    interval: float = DAEMON_READY_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Fail fast unless the host can run the installer.

    Raises:
        PreconditionFailure: not root, a required tool is missing, or the
            container daemon did not answer in time.
    """
    if require_root and os.geteuid() != 0:
        raise PreconditionFailure("This installer must be run as root (or with sudo).")

    missing: list[str] = []
    if not runtime.is_available():
        missing.append(runtime.name)
    elif not runtime.compose_available():
        missing.append("docker-compose-plugin")
    if not init_system.is_available():
        missing.append(init_system.name)
    if missing:
        raise PreconditionFailure(
            f"Missing dependencies: {', '.join(missing)}. Install them first, then re-run."
        )

    if not runtime.wait_until_ready(retries=retries, interval=interval, sleep=sleep):
        raise PreconditionFailure(
            f"The {runtime.name} daemon did not respond after {retries} attempts. "
            f"Start it (systemctl enable --now docker) and re-run."
        )
    logger.debug("Preconditions satisfied")
