"""
Shared test fixtures and configuration.

Every test runs against a throwaway install dir and unit dir under
``tmp_path`` and the in-memory container runtime / init system.
"""

import logging
import os
from pathlib import Path

import pytest

from mtproxy_installer.adapters.mock import FakeContainerRuntime, FakeInitSystem
from mtproxy_installer.core.models.identity import ServiceIdentity
from mtproxy_installer.core.models.plan import InstallAnswers, InstallationPlan, UserCredential
from mtproxy_installer.core.use_cases.install import run_install
from mtproxy_installer.ui.cli.prompts import AnswersPrompter


def _no_sleep(_seconds: float) -> None:
    pass


@pytest.fixture
def identity(tmp_path: Path) -> ServiceIdentity:
    """Service identity whose install dir lives under tmp_path."""
    return ServiceIdentity(install_dir=tmp_path / "opt" / "telemt")


@pytest.fixture
def unit_dir(tmp_path: Path) -> Path:
    path = tmp_path / "systemd"
    path.mkdir()
    return path


@pytest.fixture
def runtime() -> FakeContainerRuntime:
    return FakeContainerRuntime()


@pytest.fixture
def init_system(unit_dir: Path) -> FakeInitSystem:
    return FakeInitSystem(unit_dir)


@pytest.fixture
def as_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(os, "geteuid", lambda: 0)


@pytest.fixture
def plan() -> InstallationPlan:
    return InstallationPlan(
        users=(UserCredential(username="u1", secret="0123456789abcdef0123456789abcdef"),),
        listen_port=443,
        announce_address="203.0.113.5",
        tls_domain="example.com",
        host_port=8443,
    )


@pytest.fixture
def answers() -> InstallAnswers:
    return InstallAnswers(
        users=["alice", "bob"],
        port=443,
        announce_ip="203.0.113.5",
        host_port=8443,
    )


@pytest.fixture
def installed(as_root, identity, runtime, init_system, answers):
    """A complete prior installation: files, enabled units, container, image."""
    return run_install(
        AnswersPrompter(answers, echo=False),
        runtime,
        init_system,
        identity,
        sleep=_no_sleep,
    )


@pytest.fixture
def restore_logging():
    """Drop handlers added by setup_logging and restore the root level."""
    root = logging.getLogger()
    before, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
