"""
Service identity — the fixed logical name of the managed proxy.

One identity per host. Container name, image repository, install
directory and unit names are all derived from it, so every component
(locator, reconciler, renderer, registrar) agrees on what "the service" is.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class ServiceIdentity(BaseModel):
    """Canonical names and locations of the managed service."""

    model_config = ConfigDict(frozen=True)

    container_name: str = "telemt"
    image_repository: str = "whn0thacked/telemt-docker"
    image_tag: str = "latest"
    install_dir: Path = Path("/opt/telemt")
    service_name: str = "telemt-compose"
    config_file: str = "telemt.toml"
    manifest_file: str = "docker-compose.yml"
    description: str = "Telemt MTProto Proxy"
    documentation_url: str = "https://github.com/An0nX/telemt-docker"

    @property
    def image(self) -> str:
        return f"{self.image_repository}:{self.image_tag}"

    @property
    def config_path(self) -> Path:
        return self.install_dir / self.config_file

    @property
    def manifest_path(self) -> Path:
        return self.install_dir / self.manifest_file

    # ── Unit names ──────────────────────────────────────────────

    @property
    def service_unit(self) -> str:
        return f"{self.service_name}.service"

    @property
    def updater_name(self) -> str:
        return f"{self.service_name}-update"

    @property
    def updater_service_unit(self) -> str:
        return f"{self.updater_name}.service"

    @property
    def updater_timer_unit(self) -> str:
        return f"{self.updater_name}.timer"

    @property
    def unit_names(self) -> tuple[str, str, str]:
        """All unit files this service may own, in teardown order."""
        return (self.service_unit, self.updater_timer_unit, self.updater_service_unit)

    @property
    def units_with_working_directory(self) -> tuple[str, str]:
        """Units that declare ``WorkingDirectory`` (timers do not)."""
        return (self.service_unit, self.updater_service_unit)
