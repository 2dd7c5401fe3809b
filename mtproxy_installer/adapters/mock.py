"""
Mock adapters — in-memory container runtime and init system.

Used by the test suite to exercise the locator, reconciler, registrar
and orchestrator without a Docker daemon or systemd. Both doubles keep
a call log and can be told to fail specific operations.

The fake runtime reads the compose manifest from disk on ``up``,
``pull``, ``config`` and ``down``, so the containers and images it
creates match what the rendered manifest declares.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import yaml

from mtproxy_installer.adapters.base import ContainerInfo, ContainerRuntime, ImageInfo, InitSystem
from mtproxy_installer.core.models.receipt import Receipt


def _fake_id(seed: str) -> str:
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:12]


class FakeContainerRuntime(ContainerRuntime):
    """In-memory container runtime."""

    def __init__(
        self,
        available: bool = True,
        compose: bool = True,
        ready: bool = True,
    ):
        self._available = available
        self._compose = compose
        self._ready = ready
        self.containers: dict[str, ContainerInfo] = {}
        self.images: list[ImageInfo] = []
        self._failures: dict[str, str] = {}
        self._call_log: list[tuple[str, ...]] = []

    @property
    def name(self) -> str:
        return "docker"

    @property
    def call_log(self) -> list[tuple[str, ...]]:
        """Every command this fake has received, in order."""
        return self._call_log

    def is_available(self) -> bool:
        return self._available

    def compose_available(self) -> bool:
        return self._compose

    def daemon_ready(self) -> bool:
        self._call_log.append(("info",))
        return self._ready

    # ── Setup helpers ───────────────────────────────────────────

    def add_container(self, name: str, image: str = "", state: str = "running") -> ContainerInfo:
        container = ContainerInfo(id=_fake_id(f"container:{name}"), name=name, image=image, state=state)
        self.containers[name] = container
        return container

    def add_image(self, repository: str, tag: str = "latest", image_id: str | None = None) -> ImageInfo:
        image = ImageInfo(
            id=image_id or _fake_id(f"image:{repository}:{tag}"),
            repository=repository,
            tag=tag,
        )
        self.images.append(image)
        return image

    def set_failure(self, operation: str, error: str = "Mock failure") -> None:
        """Make every call of *operation* fail (e.g. 'rmi', 'compose up')."""
        self._failures[operation] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    # ── Queries ─────────────────────────────────────────────────

    def find_containers(self, name: str) -> list[ContainerInfo]:
        self._call_log.append(("ps", name))
        container = self.containers.get(name)
        return [container] if container else []

    def find_images(self, repository: str) -> list[ImageInfo]:
        self._call_log.append(("images", repository))
        return [i for i in self.images if i.repository == repository]

    # ── Commands ────────────────────────────────────────────────

    def remove_container(self, ref: str) -> Receipt:
        self._call_log.append(("rm", ref))
        if "rm" in self._failures:
            return Receipt.failure(tool=self.name, operation="rm", target=ref, error=self._failures["rm"])
        for name, container in list(self.containers.items()):
            if ref in (name, container.id):
                del self.containers[name]
                return Receipt.success(tool=self.name, operation="rm", target=ref)
        return Receipt.failure(tool=self.name, operation="rm", target=ref, error=f"No such container: {ref}")

    def remove_image(self, image_id: str) -> Receipt:
        self._call_log.append(("rmi", image_id))
        if "rmi" in self._failures:
            return Receipt.failure(tool=self.name, operation="rmi", target=image_id, error=self._failures["rmi"])
        remaining = [i for i in self.images if i.id != image_id]
        if len(remaining) == len(self.images):
            return Receipt.failure(tool=self.name, operation="rmi", target=image_id, error=f"No such image: {image_id}")
        self.images = remaining
        return Receipt.success(tool=self.name, operation="rmi", target=image_id)

    def compose(self, manifest: Path, *args: str, timeout: int = 300) -> Receipt:
        self._call_log.append(("compose", str(manifest), *args))
        subcommand = args[0] if args else ""
        operation = f"compose {subcommand}".strip()
        if operation in self._failures:
            return Receipt.failure(
                tool=self.name, operation=operation, target=str(manifest), error=self._failures[operation]
            )

        services = self._read_services(manifest)
        if services is None:
            return Receipt.failure(
                tool=self.name, operation=operation, target=str(manifest), error=f"no configuration file provided: {manifest}"
            )

        if subcommand == "pull":
            for svc in services.values():
                repository, _, tag = str(svc.get("image", "")).partition(":")
                if repository and not any(
                    i.repository == repository and i.tag == (tag or "latest") for i in self.images
                ):
                    self.add_image(repository, tag or "latest")
        elif subcommand == "up":
            for key, svc in services.items():
                self.add_container(svc.get("container_name", key), image=str(svc.get("image", "")))
        elif subcommand == "down":
            for key, svc in services.items():
                self.containers.pop(svc.get("container_name", key), None)

        return Receipt.success(tool=self.name, operation=operation, target=str(manifest))

    @staticmethod
    def _read_services(manifest: Path) -> dict | None:
        try:
            data = yaml.safe_load(manifest.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError):
            return None
        if not isinstance(data, dict) or not isinstance(data.get("services"), dict):
            return None
        return data["services"]


class FakeInitSystem(InitSystem):
    """In-memory init system over a real unit directory.

    A unit file only becomes visible (``loaded``) after ``daemon_reload``;
    enabling a unit that is not loaded fails, like a stale systemd cache.
    """

    def __init__(self, unit_dir: Path, available: bool = True):
        super().__init__(unit_dir)
        self._available = available
        self.loaded: set[str] = set()
        self.enabled: set[str] = set()
        self.active: set[str] = set()
        self.reload_count = 0
        self._failures: dict[str, str] = {}
        self._call_log: list[tuple[str, ...]] = []

    @property
    def name(self) -> str:
        return "systemctl"

    @property
    def call_log(self) -> list[tuple[str, ...]]:
        return self._call_log

    def is_available(self) -> bool:
        return self._available

    def set_failure(self, operation: str, error: str = "Mock failure") -> None:
        """Make every call of *operation* fail (e.g. 'enable', 'disable')."""
        self._failures[operation] = error

    def daemon_reload(self) -> Receipt:
        self._call_log.append(("daemon-reload",))
        if "daemon-reload" in self._failures:
            return Receipt.failure(tool=self.name, operation="daemon-reload", error=self._failures["daemon-reload"])
        self.reload_count += 1
        if self.unit_dir.is_dir():
            self.loaded = {p.name for p in self.unit_dir.iterdir() if p.is_file()}
        else:
            self.loaded = set()
        self.enabled &= self.loaded
        self.active &= self.loaded
        return Receipt.success(tool=self.name, operation="daemon-reload")

    def enable(self, unit: str, *, now: bool = False) -> Receipt:
        self._call_log.append(("enable", "--now", unit) if now else ("enable", unit))
        if "enable" in self._failures:
            return Receipt.failure(tool=self.name, operation="enable", target=unit, error=self._failures["enable"])
        if unit not in self.loaded:
            return Receipt.failure(
                tool=self.name, operation="enable", target=unit, error=f"Unit file {unit} does not exist."
            )
        self.enabled.add(unit)
        if now:
            self.active.add(unit)
        return Receipt.success(tool=self.name, operation="enable", target=unit)

    def disable(self, unit: str, *, now: bool = False) -> Receipt:
        self._call_log.append(("disable", "--now", unit) if now else ("disable", unit))
        if "disable" in self._failures:
            return Receipt.failure(tool=self.name, operation="disable", target=unit, error=self._failures["disable"])
        if unit not in self.loaded:
            return Receipt.failure(
                tool=self.name, operation="disable", target=unit, error=f"Unit file {unit} does not exist."
            )
        self.enabled.discard(unit)
        if now:
            self.active.discard(unit)
        return Receipt.success(tool=self.name, operation="disable", target=unit)
