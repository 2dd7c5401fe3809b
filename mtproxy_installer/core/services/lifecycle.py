"""
Lifecycle registrar — systemd units for the service and its updater.

Writing a unit and enabling it are separate steps. A written unit is
*pending* until the next daemon reload makes it visible; enabling a
pending unit is a ``RegistrationFailed``, as is any failed enable.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mtproxy_installer.adapters.base import InitSystem
from mtproxy_installer.core.errors import RegistrationFailed
from mtproxy_installer.core.models.identity import ServiceIdentity
from mtproxy_installer.core.models.installation import GeneratedFile
from mtproxy_installer.core.services.renderer import write_file

logger = logging.getLogger(__name__)

# Daemon readiness poll in ExecStartPre
DAEMON_WAIT_RETRIES = 10
DAEMON_WAIT_INTERVAL = 3

RESTART_COOLDOWN = 30
UPDATE_CALENDAR = "*-*-* 04:00:00"
UPDATE_RANDOM_DELAY = 1800

DOCKER = "/usr/bin/docker"


class LifecycleRegistrar:
    """Writes and activates the unit files of one service identity."""

    def __init__(self, identity: ServiceIdentity, init_system: InitSystem):
        self.identity = identity
        self.init_system = init_system
        self._pending: set[str] = set()

    # ── Unit text ───────────────────────────────────────────────

    def service_unit_text(self) -> str:
        ident = self.identity
        tries = " ".join(str(i) for i in range(1, DAEMON_WAIT_RETRIES + 1))
        return f"""\
[Unit]
Description={ident.description} (Docker Compose)
Documentation={ident.documentation_url}
Requires=docker.service
After=docker.service network-online.target
Wants=network-online.target

[Service]
Type=oneshot
WorkingDirectory={ident.install_dir}
# Wait for Docker to be fully ready
ExecStartPre=/bin/sh -c 'for i in {tries}; do docker info >/dev/null 2>&1 && break || sleep {DAEMON_WAIT_INTERVAL}; done'
# Validate {ident.manifest_file}
ExecStartPre={DOCKER} compose config -q
# Pull latest images before starting
ExecStartPre=-{DOCKER} compose pull -q
ExecStart={DOCKER} compose up -d --wait
ExecReload={DOCKER} compose up -d --force-recreate
ExecStop={DOCKER} compose down
# Last 50 log lines after stop, for debugging
ExecStopPost=-{DOCKER} compose logs --tail=50
RemainAfterExit=yes
Restart=on-failure
RestartSec={RESTART_COOLDOWN}
TimeoutStartSec=300
TimeoutStopSec=120
StandardOutput=journal
StandardError=journal
SyslogIdentifier={ident.service_name}
PrivateTmp=yes
NoNewPrivileges=yes
LimitNOFILE=65536
LimitNPROC=512

[Install]
WantedBy=multi-user.target
"""

    def updater_service_text(self) -> str:
        ident = self.identity
        return f"""\
[Unit]
Description=Update {ident.description} Docker image
Requires=docker.service
After=docker.service

[Service]
Type=oneshot
WorkingDirectory={ident.install_dir}
ExecStart=/bin/sh -c 'docker compose pull -q && docker compose up -d --remove-orphans && docker image prune -f'
StandardOutput=journal
StandardError=journal
SyslogIdentifier={ident.updater_name}
"""

    def updater_timer_text(self) -> str:
        return f"""\
[Unit]
Description=Daily update for {self.identity.description} Docker image

[Timer]
OnCalendar={UPDATE_CALENDAR}
RandomizedDelaySec={UPDATE_RANDOM_DELAY}
Persistent=true

[Install]
WantedBy=timers.target
"""

    # ── Steps ───────────────────────────────────────────────────

    def write_unit(self, unit: str, content: str) -> Path:
        """Write *unit* to the unit directory. It stays pending until ``reload``.

        Raises:
            RegistrationFailed: the unit file cannot be written.
        """
        target = self.init_system.unit_path(unit)
        try:
            path = write_file(
                GeneratedFile(path=target, content=content, reason="systemd unit"),
                mode=0o644,
            )
        except OSError as e:
            raise RegistrationFailed(f"Cannot write unit {target}: {e}") from e
        self._pending.add(unit)
        logger.info("Wrote unit %s", path)
        return path

    def reload(self) -> None:
        """Reload unit definitions so written units become visible.

        Raises:
            RegistrationFailed: the reload command failed.
        """
        receipt = self.init_system.daemon_reload()
        if receipt.failed:
            raise RegistrationFailed(f"Cannot reload unit definitions: {receipt.error}")
        self._pending.clear()

    def enable(self, unit: str, *, now: bool = False) -> None:
        """Enable a written, reloaded unit.

        Raises:
            RegistrationFailed: the unit is still pending a reload, or
                the init system refused to enable it.
        """
        if unit in self._pending:
            raise RegistrationFailed(
                f"Cannot enable {unit}: unit definitions were not reloaded after writing it."
            )
        receipt = self.init_system.enable(unit, now=now)
        if receipt.failed:
            raise RegistrationFailed(f"Cannot enable {unit}: {receipt.error}")
        logger.info("Enabled %s%s", unit, " (started)" if now else "")

    def register_service(self) -> list[Path]:
        """Write, reload and enable the main service unit."""
        unit = self.identity.service_unit
        path = self.write_unit(unit, self.service_unit_text())
        self.reload()
        self.enable(unit)
        return [path]

    def register_updater(self) -> list[Path]:
        """Write the updater service + timer, reload, enable and start the timer."""
        paths = [
            self.write_unit(self.identity.updater_service_unit, self.updater_service_text()),
            self.write_unit(self.identity.updater_timer_unit, self.updater_timer_text()),
        ]
        self.reload()
        self.enable(self.identity.updater_timer_unit, now=True)
        return paths
