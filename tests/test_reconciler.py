"""
Tests for the reconciler — teardown order, best-effort and idempotence.
"""

from pathlib import Path

from mtproxy_installer.core.models.installation import DetectedInstallation
from mtproxy_installer.core.services.locator import locate_installation
from mtproxy_installer.core.services import reconciler
from mtproxy_installer.core.services.reconciler import reconcile


def _assert_nothing_left(identity, runtime, init_system):
    assert runtime.containers == {}
    assert runtime.images == []
    assert not any(init_system.unit_exists(u) for u in identity.unit_names)
    assert not identity.install_dir.exists()


# ── Full removal ─────────────────────────────────────────────────────


class TestReconcileFullInstall:
    def test_removes_everything(self, installed, identity, runtime, init_system):
        detected = locate_installation(identity, runtime, init_system)
        report = reconcile(detected, identity, runtime, init_system)

        assert report.clean
        _assert_nothing_left(identity, runtime, init_system)
        assert identity.install_dir in report.removed_directories
        assert len(report.removed_unit_files) == 3
        assert init_system.enabled == set()
        assert init_system.active == set()

    def test_stops_before_removing(self, installed, identity, runtime, init_system):
        detected = locate_installation(identity, runtime, init_system)
        runtime.call_log.clear()
        report = reconcile(detected, identity, runtime, init_system)

        operations = [r.operation for r in report.receipts]
        assert operations[0] == "compose down"
        assert operations.index("rmi") < operations.index("disable")
        assert operations.index("daemon-reload") < operations.index("rmtree")
        assert operations[-1] == "rmtree"

    def test_single_daemon_reload(self, installed, identity, runtime, init_system):
        detected = locate_installation(identity, runtime, init_system)
        init_system.call_log.clear()
        reconcile(detected, identity, runtime, init_system)
        assert init_system.call_log.count(("daemon-reload",)) == 1
        assert [c for c in init_system.call_log if c[0] == "disable"] == [
            ("disable", "--now", u) for u in identity.unit_names
        ]


# ── Partial leftovers ────────────────────────────────────────────────


class TestReconcileLeftovers:
    def test_stray_container_and_images(self, identity, runtime, init_system):
        runtime.add_container("telemt", state="exited")
        runtime.add_image("whn0thacked/telemt-docker", "latest")
        runtime.add_image("whn0thacked/telemt-docker", "old")
        detected = locate_installation(identity, runtime, init_system)

        report = reconcile(detected, identity, runtime, init_system)

        assert report.clean
        assert runtime.containers == {}
        assert runtime.images == []
        assert ("rm", "telemt") in runtime.call_log

    def test_shared_image_id_removed_once(self, identity, runtime, init_system):
        runtime.add_image("whn0thacked/telemt-docker", "latest", image_id="abc")
        runtime.add_image("whn0thacked/telemt-docker", "stable", image_id="abc")
        report = reconcile(DetectedInstallation(image_present=True), identity, runtime, init_system)
        assert report.clean
        assert runtime.call_log.count(("rmi", "abc")) == 1

    def test_nonstandard_directory(self, identity, runtime, init_system, unit_dir, tmp_path):
        elsewhere = tmp_path / "srv" / "mtproxy"
        elsewhere.mkdir(parents=True)
        (elsewhere / "telemt.toml").write_text("")
        (unit_dir / identity.service_unit).write_text(f"[Service]\nWorkingDirectory={elsewhere}\n")
        init_system.daemon_reload()

        detected = locate_installation(identity, runtime, init_system)
        report = reconcile(detected, identity, runtime, init_system)

        assert report.clean
        assert not elsewhere.exists()
        assert not (unit_dir / identity.service_unit).exists()

    def test_missing_directory_is_skipped(self, identity, runtime, init_system, tmp_path):
        detected = DetectedInstallation(directories=(tmp_path / "gone",))
        report = reconcile(detected, identity, runtime, init_system)
        assert report.clean
        assert report.receipts == []


# ── Best effort ──────────────────────────────────────────────────────


class TestReconcileBestEffort:
    def test_failed_image_removal_continues(self, installed, identity, runtime, init_system):
        runtime.set_failure("rmi", "image is being used")
        detected = locate_installation(identity, runtime, init_system)

        report = reconcile(detected, identity, runtime, init_system)

        assert not report.clean
        assert [f.operation for f in report.failures] == ["rmi"]
        assert "image is being used" in report.failures[0].error
        # Later steps still ran
        assert not any(init_system.unit_exists(u) for u in identity.unit_names)
        assert not identity.install_dir.exists()

    def test_failed_disable_still_deletes_unit(self, installed, identity, runtime, init_system):
        init_system.set_failure("disable")
        detected = locate_installation(identity, runtime, init_system)
        report = reconcile(detected, identity, runtime, init_system)
        assert {f.operation for f in report.failures} == {"disable"}
        assert not any(init_system.unit_exists(u) for u in identity.unit_names)

    def test_refuses_system_directories(self, identity, runtime, init_system):
        detected = DetectedInstallation(directories=(Path("/etc"), Path("relative/dir")))
        report = reconcile(detected, identity, runtime, init_system)
        assert [f.target for f in report.failures] == ["/etc", "relative/dir"]
        assert Path("/etc").is_dir()

    def test_refuses_parent_traversal(self, identity, runtime, init_system, tmp_path, monkeypatch):
        victim = tmp_path / "victim"
        (victim / "telemt").mkdir(parents=True)
        (victim / "precious.txt").write_text("keep")
        monkeypatch.setattr(reconciler, "PROTECTED_DIRS", reconciler.PROTECTED_DIRS | {victim})

        detected = DetectedInstallation(directories=(victim / "telemt" / "..",))
        report = reconcile(detected, identity, runtime, init_system)

        assert [f.operation for f in report.failures] == ["rmtree"]
        assert "'..'" in report.failures[0].error
        assert (victim / "precious.txt").read_text() == "keep"
        assert (victim / "telemt").is_dir()

    def test_refuses_symlink_to_system_directory(self, identity, runtime, init_system, tmp_path, monkeypatch):
        victim = tmp_path / "victim"
        victim.mkdir()
        (victim / "precious.txt").write_text("keep")
        link = tmp_path / "telemt"
        link.symlink_to(victim)
        monkeypatch.setattr(reconciler, "PROTECTED_DIRS", reconciler.PROTECTED_DIRS | {victim.resolve()})

        report = reconcile(DetectedInstallation(directories=(link,)), identity, runtime, init_system)

        assert "system directory" in report.failures[0].error
        assert (victim / "precious.txt").exists()


# ── Idempotence ──────────────────────────────────────────────────────


class TestReconcileIdempotence:
    def test_second_pass_is_a_no_op(self, installed, identity, runtime, init_system):
        detected = locate_installation(identity, runtime, init_system)
        reconcile(detected, identity, runtime, init_system)
        reloads = init_system.reload_count

        again = reconcile(detected, identity, runtime, init_system)

        assert again.clean
        assert again.receipts == []
        assert init_system.reload_count == reloads
        _assert_nothing_left(identity, runtime, init_system)

    def test_nothing_found_after_reconcile(self, installed, identity, runtime, init_system):
        reconcile(locate_installation(identity, runtime, init_system), identity, runtime, init_system)
        assert not locate_installation(identity, runtime, init_system).found
