"""
Docker adapter — container, image and compose operations.

Uses the docker CLI, never the Docker API directly. Queries parse
``--format {{json .}}`` output line by line; commands return Receipts.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import time
from pathlib import Path

from mtproxy_installer.adapters.base import ContainerInfo, ContainerRuntime, ImageInfo
from mtproxy_installer.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class DockerRuntime(ContainerRuntime):
    """Docker and the Docker Compose plugin."""

    def __init__(self, binary: str = "docker"):
        self._binary = binary

    @property
    def name(self) -> str:
        return "docker"

    def is_available(self) -> bool:
        return shutil.which(self._binary) is not None

    def compose_available(self) -> bool:
        return self._run(["compose", "version"], operation="compose version", timeout=15).ok

    def daemon_ready(self) -> bool:
        return self._run(["info"], operation="info", timeout=15).ok

    # ── Queries ─────────────────────────────────────────────────

    def find_containers(self, name: str) -> list[ContainerInfo]:
        receipt = self._run(
            ["ps", "-a", "--filter", f"name=^{name}$", "--format", "{{json .}}"],
            operation="ps",
            target=name,
            timeout=15,
        )
        if receipt.failed:
            logger.debug("Container query failed: %s", receipt.describe())
            return []

        containers = []
        for info in _json_lines(receipt.output):
            # The name filter is a regex; keep exact matches only
            names = [n.strip().lstrip("/") for n in info.get("Names", "").split(",")]
            if name not in names:
                continue
            containers.append(ContainerInfo(
                id=info.get("ID", ""),
                name=name,
                image=info.get("Image", ""),
                state=info.get("State", ""),
            ))
        return containers

    def find_images(self, repository: str) -> list[ImageInfo]:
        receipt = self._run(
            ["images", repository, "--format", "{{json .}}"],
            operation="images",
            target=repository,
            timeout=15,
        )
        if receipt.failed:
            logger.debug("Image query failed: %s", receipt.describe())
            return []

        images = []
        for info in _json_lines(receipt.output):
            if info.get("Repository", "") != repository:
                continue
            images.append(ImageInfo(
                id=info.get("ID", ""),
                repository=repository,
                tag=info.get("Tag", ""),
            ))
        return images

    # ── Commands ────────────────────────────────────────────────

    def remove_container(self, ref: str) -> Receipt:
        return self._run(["rm", "-f", ref], operation="rm", target=ref, timeout=60)

    def remove_image(self, image_id: str) -> Receipt:
        return self._run(["rmi", "-f", image_id], operation="rmi", target=image_id, timeout=60)

    def compose(self, manifest: Path, *args: str, timeout: int = 300) -> Receipt:
        operation = "compose " + (args[0] if args else "")
        return self._run(
            ["compose", "-f", str(manifest), *args],
            operation=operation.strip(),
            target=str(manifest),
            cwd=manifest.parent,
            timeout=timeout,
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _run(
        self,
        args: list[str],
        *,
        operation: str,
        target: str = "",
        cwd: Path | None = None,
        timeout: int = 300,
    ) -> Receipt:
        """Run a docker command and capture the outcome in a Receipt."""
        cmd = [self._binary, *args]
        logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), cwd)
        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
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
            output=result.stdout.strip(),
            return_code=result.returncode,
            duration_ms=elapsed_ms,
        )


def _json_lines(output: str) -> list[dict]:
    """Parse line-delimited JSON, skipping blank and malformed lines."""
    rows = []
    for line in output.splitlines():
        if not line.strip():
            continue
        try:
            row = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(row, dict):
            rows.append(row)
    return rows
