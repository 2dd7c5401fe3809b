"""
systemd adapter — unit activation through ``systemctl``.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path

from mtproxy_installer.adapters.base import InitSystem
from mtproxy_installer.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

DEFAULT_UNIT_DIR = Path("/etc/systemd/system")


class SystemdInitSystem(InitSystem):
    """systemd, driven by the ``systemctl`` CLI."""

    def __init__(self, unit_dir: Path = DEFAULT_UNIT_DIR, binary: str = "systemctl"):
        super().__init__(unit_dir)
        self._binary = binary

    @property
    def name(self) -> str:
        return "systemctl"

    def is_available(self) -> bool:
        return shutil.which(self._binary) is not None

    def daemon_reload(self) -> Receipt:
        return self._systemctl("daemon-reload")

    def enable(self, unit: str, *, now: bool = False) -> Receipt:
        args = ["enable", "--now", unit] if now else ["enable", unit]
        return self._systemctl(*args, target=unit)

    def disable(self, unit: str, *, now: bool = False) -> Receipt:
        args = ["disable", "--now", unit] if now else ["disable", unit]
        return self._systemctl(*args, target=unit)

    def _systemctl(self, *args: str, target: str = "", timeout: int = 120) -> Receipt:
        cmd = [self._binary, *args]
        operation = args[0]
        logger.debug("Executing: %s", " ".join(cmd))
        start = time.monotonic()
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                tool=self.name,
                operation=operation,
                target=target,
                error=f"Command timed out after {timeout}s",
            )
        except OSError as e:
            return Receipt.failure(
                tool=self.name,
                operation=operation,
                target=target,
                error=f"Cannot execute {self._binary}: {e}",
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if result.returncode == 0:
            return Receipt.success(
                tool=self.name,
                operation=operation,
                target=target,
                output=result.stdout.strip(),
                return_code=0,
                duration_ms=elapsed_ms,
            )
        return Receipt.failure(
            tool=self.name,
            operation=operation,
            target=target,
            error=result.stderr.strip() or f"Exit code {result.returncode}",
            return_code=result.returncode,
            duration_ms=elapsed_ms,
        )
