"""
Adapter base — the contract between the installer core and host tools.

The locator, reconciler, registrar and orchestrator only talk to the
container runtime and the init system through these two interfaces,
never directly to ``docker`` or ``systemctl``. Tests inject the
in-memory doubles from ``mtproxy_installer.adapters.mock``.

Queries return typed results. Commands return Receipts and NEVER raise
for a failed command; failures are captured in the Receipt.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel

from mtproxy_installer.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class ContainerInfo(BaseModel):
    """A container as reported by the runtime, in any state."""

    id: str
    name: str
    image: str = ""
    state: str = ""  # created, running, exited, ...


class ImageInfo(BaseModel):
    """A locally stored image."""

    id: str
    repository: str
    tag: str = ""


class ContainerRuntime(ABC):
    """Container runtime and compose-manifest operations."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The tool identifier (e.g. 'docker')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the runtime CLI is installed. Fast, never raises."""

    @abstractmethod
    def compose_available(self) -> bool:
        """Whether the compose plugin is installed."""

    @abstractmethod
    def daemon_ready(self) -> bool:
        """Whether the runtime daemon answers requests."""

    @abstractmethod
    def find_containers(self, name: str) -> list[ContainerInfo]:
        """Containers whose name is exactly *name*, regardless of state.

        Returns an empty list when the runtime cannot be queried.
        """

    @abstractmethod
    def find_images(self, repository: str) -> list[ImageInfo]:
        """Local images of *repository*, any tag.

        Returns an empty list when the runtime cannot be queried.
        """

    @abstractmethod
    def remove_container(self, ref: str) -> Receipt:
        """Force-remove a container by name or ID."""

    @abstractmethod
    def remove_image(self, image_id: str) -> Receipt:
        """Force-remove an image by ID (all of its tags)."""

    @abstractmethod
    def compose(self, manifest: Path, *args: str, timeout: int = 300) -> Receipt:
        """Run a compose subcommand against *manifest*."""

    def wait_until_ready(
        self,
        retries: int = 15,
        interval: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> bool:
        """Poll ``daemon_ready`` up to *retries* times, *interval* seconds apart."""
        for attempt in range(1, retries + 1):
            if self.daemon_ready():
                return True
            logger.debug(
                "%s daemon not ready (attempt %d/%d)", self.name, attempt, retries
            )
            if attempt < retries:
                sleep(interval)
        return False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class InitSystem(ABC):
    """Init-system unit registry operations.

    Unit files live in ``unit_dir``. Reading them is plain file I/O and
    is shared by every implementation; activation is tool-specific.
    """

    def __init__(self, unit_dir: Path):
        self.unit_dir = Path(unit_dir)

    @property
    @abstractmethod
    def name(self) -> str:
        """The tool identifier (e.g. 'systemctl')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the init-system CLI is installed."""

    @abstractmethod
    def daemon_reload(self) -> Receipt:
        """Make unit file changes visible to the init system."""

    @abstractmethod
    def enable(self, unit: str, *, now: bool = False) -> Receipt:
        """Enable *unit* (and start it when *now*)."""

    @abstractmethod
    def disable(self, unit: str, *, now: bool = False) -> Receipt:
        """Disable *unit* (and stop it when *now*)."""

    # ── Unit files ──────────────────────────────────────────────

    def unit_path(self, unit: str) -> Path:
        return self.unit_dir / unit

    def unit_exists(self, unit: str) -> bool:
        return self.unit_path(unit).is_file()

    def read_working_directory(self, unit: str) -> Path | None:
        """Return the ``WorkingDirectory=`` declared by *unit*, if any.

        Returns None when the unit file is missing or unreadable, has no
        such declaration, or declares a relative path or one with ``..``.
        """
        path = self.unit_path(unit)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            return None

        for line in text.splitlines():
            key, sep, value = line.strip().partition("=")
            if sep and key.strip() == "WorkingDirectory":
                value = value.strip().lstrip("-")
                directory = Path(value) if value else None
                if directory and directory.is_absolute() and ".." not in directory.parts:
                    return directory
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} unit_dir={str(self.unit_dir)!r}>"
