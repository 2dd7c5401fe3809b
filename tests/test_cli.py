"""
Tests for the CLI — interactive and unattended install, uninstall, errors.
"""

import json
import os
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from mtproxy_installer import main
from mtproxy_installer.main import cli

pytestmark = pytest.mark.usefixtures("restore_logging")


@pytest.fixture
def host(monkeypatch, identity, runtime, init_system):
    """Point the CLI at the in-memory host instead of docker/systemctl."""
    monkeypatch.setattr(main, "make_identity", lambda: identity)
    monkeypatch.setattr(main, "make_runtime", lambda: runtime)
    monkeypatch.setattr(main, "make_init_system", lambda: init_system)
    monkeypatch.delenv("MTPROXY_LOG_LEVEL", raising=False)
    monkeypatch.delenv("MTPROXY_LOG_FILE", raising=False)


def _answers_file(tmp_path: Path, extra: str = "") -> Path:
    path = tmp_path / "answers.yml"
    path.write_text(textwrap.dedent("""\
        users: [alice, bob]
        announce_ip: 203.0.113.5
        host_port: 8443
    """) + extra)
    return path


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "MTProto proxy" in result.output
        assert "--uninstall" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_answers_with_uninstall_is_usage_error(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["--uninstall", "--answers", str(_answers_file(tmp_path))])
        assert result.exit_code == 2


# ── Interactive install ──────────────────────────────────────────────


class TestInteractiveInstall:
    def test_fresh_install(self, host, as_root, identity, init_system):
        user_input = "alice\nbob\n\n\n203.0.113.5\n\n8443\ny\nn\n"
        result = CliRunner().invoke(cli, [], input=user_input)

        assert result.exit_code == 0, result.output
        assert "✅ MTProto proxy installed" in result.output
        assert "8443:443" in result.output
        assert "online.203.0.113.5.sslip.io" in result.output
        assert str(identity.config_path) in result.output
        assert str(identity.manifest_path) in result.output
        assert str(init_system.unit_path(identity.service_unit)) in result.output
        assert identity.service_unit in init_system.enabled
        assert not init_system.unit_exists(identity.updater_timer_unit)

    def test_invalid_and_duplicate_usernames_reprompt(self, host, as_root, identity):
        user_input = "a b\nalice\nalice\n\n\n203.0.113.5\n\n\n\n\n"
        result = CliRunner().invoke(cli, [], input=user_input)

        assert result.exit_code == 0, result.output
        assert "Invalid username" in result.output
        assert "already added" in result.output
        assert 'show_link = ["alice"]' in identity.config_path.read_text()

    def test_at_least_one_user(self, host, as_root):
        user_input = "\nalice\n\n\n203.0.113.5\n\n\n\n\n"
        result = CliRunner().invoke(cli, [], input=user_input)
        assert result.exit_code == 0, result.output
        assert "At least one user is required." in result.output

    def test_cancel_replace(self, host, installed, identity):
        before = identity.config_path.read_text()
        result = CliRunner().invoke(cli, [], input="cancel\n")

        assert result.exit_code == 1
        assert "An existing installation was found" in result.output
        assert "cancelled" in result.output
        assert identity.config_path.read_text() == before

    def test_replace(self, host, installed, identity, runtime):
        user_input = "replace\ncarol\n\n\n203.0.113.5\n\n\n\n\n"
        result = CliRunner().invoke(cli, [], input=user_input)

        assert result.exit_code == 0, result.output
        assert 'show_link = ["carol"]' in identity.config_path.read_text()
        assert list(runtime.containers) == ["telemt"]


# ── Unattended install ───────────────────────────────────────────────


class TestAnswersInstall:
    def test_json_summary(self, host, as_root, tmp_path: Path):
        result = CliRunner().invoke(cli, ["--answers", str(_answers_file(tmp_path)), "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["port_mapping"] == "8443:443"
        assert [u["username"] for u in data["users"]] == ["alice", "bob"]
        assert all(len(u["secret"]) == 32 for u in data["users"])

    def test_existing_install_without_replace_is_cancelled(self, host, installed, tmp_path: Path):
        result = CliRunner().invoke(cli, ["--answers", str(_answers_file(tmp_path))])
        assert result.exit_code == 1
        assert "cancelled" in result.output

    def test_existing_install_with_replace(self, host, installed, tmp_path: Path):
        path = _answers_file(tmp_path, "replace_existing: true\n")
        result = CliRunner().invoke(cli, ["--answers", str(path)])
        assert result.exit_code == 0, result.output

    def test_invalid_answers(self, host, as_root, tmp_path: Path, runtime):
        path = _answers_file(tmp_path, "port: 70000\n")
        result = CliRunner().invoke(cli, ["--answers", str(path)])

        assert result.exit_code == 1
        assert "❌" in result.output
        assert "70000" in result.output
        assert runtime.call_log == []

    def test_non_ascii_digit_port(self, host, as_root, tmp_path: Path, runtime):
        path = _answers_file(tmp_path, 'port: "²"\n')
        result = CliRunner().invoke(cli, ["--answers", str(path)])

        assert result.exit_code == 1
        assert "Invalid port" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_unwritable_install_dir(self, host, as_root, identity, tmp_path: Path, runtime):
        # The install dir's parent is a regular file
        identity.install_dir.parent.write_text("")
        result = CliRunner().invoke(cli, ["--answers", str(_answers_file(tmp_path))])

        assert isinstance(result.exception, SystemExit)
        assert result.exit_code == 1
        assert "❌ Cannot write artifacts to" in result.output
        assert not any(call[0] == "compose" for call in runtime.call_log)

    def test_missing_answers_file(self, host, as_root, tmp_path: Path):
        result = CliRunner().invoke(cli, ["--answers", str(tmp_path / "nope.yml")])
        assert result.exit_code == 1
        assert "Answers file not found" in result.output

    def test_json_error(self, host, as_root, tmp_path: Path, runtime):
        runtime.set_failure("compose up", "port is already allocated")
        result = CliRunner().invoke(cli, ["--answers", str(_answers_file(tmp_path)), "--json"])

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["type"] == "LaunchFailed"
        assert "port is already allocated" in data["error"]


# ── Uninstall ────────────────────────────────────────────────────────


class TestUninstallCommand:
    def test_nothing_to_uninstall(self, host, as_root):
        result = CliRunner().invoke(cli, ["--uninstall"])
        assert result.exit_code == 0
        assert "Nothing to uninstall" in result.output

    def test_uninstall(self, host, installed, identity):
        result = CliRunner().invoke(cli, ["--uninstall"])

        assert result.exit_code == 0, result.output
        assert "✅ MTProto proxy removed" in result.output
        assert str(identity.install_dir) in result.output
        assert not identity.install_dir.exists()

    def test_uninstall_json(self, host, installed):
        result = CliRunner().invoke(cli, ["--uninstall", "--json"])
        data = json.loads(result.output)
        assert data["detected"]["found"] is True
        assert data["reconcile"]["clean"] is True

    def test_requires_root(self, host, monkeypatch):
        monkeypatch.setattr(os, "geteuid", lambda: 1000)
        result = CliRunner().invoke(cli, ["--uninstall"])
        assert result.exit_code == 1
        assert "must be run as root" in result.output
