"""
Tests for domain models — identity, plan, installation, receipt.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from mtproxy_installer.core.models import (
    DetectedInstallation,
    InstallationPlan,
    Receipt,
    ReconcileReport,
    RenderedArtifacts,
    ServiceIdentity,
    UserCredential,
)

# ── Service identity ─────────────────────────────────────────────────


class TestServiceIdentity:
    def test_defaults(self):
        ident = ServiceIdentity()
        assert ident.container_name == "telemt"
        assert ident.image == "whn0thacked/telemt-docker:latest"
        assert ident.install_dir == Path("/opt/telemt")
        assert ident.config_path == Path("/opt/telemt/telemt.toml")
        assert ident.manifest_path == Path("/opt/telemt/docker-compose.yml")

    def test_unit_names(self):
        ident = ServiceIdentity()
        assert ident.service_unit == "telemt-compose.service"
        assert ident.updater_service_unit == "telemt-compose-update.service"
        assert ident.updater_timer_unit == "telemt-compose-update.timer"
        assert set(ident.unit_names) == {
            "telemt-compose.service",
            "telemt-compose-update.service",
            "telemt-compose-update.timer",
        }

    def test_timer_has_no_working_directory(self):
        ident = ServiceIdentity()
        assert ident.updater_timer_unit not in ident.units_with_working_directory

    def test_frozen(self):
        ident = ServiceIdentity()
        with pytest.raises(ValidationError):
            ident.container_name = "other"


# ── Plan ─────────────────────────────────────────────────────────────


class TestPlan:
    def test_port_mapping_is_host_then_container(self, plan):
        assert plan.port_mapping == "8443:443"

    def test_usernames_in_order(self):
        plan = InstallationPlan(
            users=(
                UserCredential(username="b", secret="0" * 32),
                UserCredential(username="a", secret="1" * 32),
            ),
            listen_port=443,
            announce_address="1.2.3.4",
            tls_domain="example.com",
            host_port=443,
        )
        assert plan.usernames == ["b", "a"]

    def test_plan_is_immutable(self, plan):
        with pytest.raises(ValidationError):
            plan.listen_port = 80

    def test_credential_config_line(self):
        cred = UserCredential(username="alice", secret="ab" * 16)
        assert cred.config_line() == f'alice = "{"ab" * 16}"'


# ── Installation ─────────────────────────────────────────────────────


class TestDetectedInstallation:
    def test_empty_is_not_found(self):
        assert not DetectedInstallation().found

    @pytest.mark.parametrize("field, value", [
        ("directories", (Path("/srv/x"),)),
        ("unit_files", (Path("/etc/systemd/system/x.service"),)),
        ("container_present", True),
        ("image_present", True),
    ])
    def test_any_trace_is_found(self, field, value):
        assert DetectedInstallation(**{field: value}).found

    def test_to_dict(self):
        detected = DetectedInstallation(directories=(Path("/srv/x"),), image_present=True)
        d = detected.to_dict()
        assert d["found"] is True
        assert d["directories"] == ["/srv/x"]
        assert d["image_present"] is True
        assert d["container_present"] is False


class TestRenderedArtifacts:
    def test_all_paths(self, tmp_path: Path):
        artifacts = RenderedArtifacts(
            config_path=tmp_path / "a.toml",
            manifest_path=tmp_path / "b.yml",
            unit_paths=[tmp_path / "c.service"],
        )
        assert [p.name for p in artifacts.all_paths] == ["a.toml", "b.yml", "c.service"]


# ── Receipt ──────────────────────────────────────────────────────────


class TestReceipt:
    def test_success(self):
        r = Receipt.success(tool="docker", operation="rm", target="telemt")
        assert r.ok
        assert not r.failed
        assert r.describe() == "docker rm telemt"

    def test_failure(self):
        r = Receipt.failure(tool="docker", operation="rmi", target="abc", error="in use")
        assert r.failed
        assert r.describe() == "docker rmi abc: in use"

    def test_started_at_is_set(self):
        assert Receipt.success(tool="t", operation="o").started_at


class TestReconcileReport:
    def test_clean_when_no_failures(self):
        report = ReconcileReport(receipts=[Receipt.success(tool="docker", operation="rm")])
        assert report.clean
        assert report.failures == []

    def test_failures_collected(self):
        bad = Receipt.failure(tool="docker", operation="rmi", error="busy")
        report = ReconcileReport(receipts=[Receipt.success(tool="docker", operation="rm"), bad])
        assert not report.clean
        assert report.failures == [bad]
        assert report.to_dict()["failures"] == ["docker rmi: busy"]
