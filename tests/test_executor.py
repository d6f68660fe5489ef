"""End-to-end tests for the prepare/execute/cleanup sequence."""

from __future__ import annotations

import pytest

from conftest import FakeOps
from w11upgrade.errors import (
    MountResolutionError,
    PendingRebootError,
    PlatformCommandError,
    SourceNotFound,
)
from w11upgrade.executor import UpgradeExecutor, remove_work_dir, should_remove_work_dir

CAPTURED = [
    ("standby-timeout-ac", 30),
    ("standby-timeout-dc", 15),
    ("hibernate-timeout-ac", 180),
    ("hibernate-timeout-dc", 120),
]
DISABLED = [(option, 0) for option, _ in CAPTURED]


class TestWorkDirGuard:
    @pytest.mark.parametrize(
        "path",
        ["/x/Win11Upgrade", "/x/win11upgrade", "/x/WIN11UPGRADE/", "Win11Upgrade"],
    )
    def test_matching_leaf_with_exit_zero(self, path):
        assert should_remove_work_dir(path, "Win11Upgrade", 0)

    @pytest.mark.parametrize("exit_code", [None, 1, 3010, -1])
    def test_non_zero_exit_never_removes(self, exit_code):
        assert not should_remove_work_dir("/x/Win11Upgrade", "Win11Upgrade", exit_code)

    @pytest.mark.parametrize("path", ["/", "/x/Win11Upgrade/data", "/x/Win11Upgrade-old", "/x"])
    def test_other_leaf_never_removed(self, path):
        assert not should_remove_work_dir(path, "Win11Upgrade", 0)

    def test_other_folder_survives_exit_zero(self, tmp_path):
        victim = tmp_path / "Users"
        victim.mkdir()

        assert remove_work_dir(str(victim), "Win11Upgrade", 0) is False
        assert victim.is_dir()

    def test_dry_run_keeps_folder(self, work_dir):
        assert remove_work_dir(str(work_dir), "Win11Upgrade", 0, dry_run=True) is False
        assert work_dir.is_dir()

    def test_missing_folder(self, tmp_path):
        assert remove_work_dir(str(tmp_path / "Win11Upgrade"), "Win11Upgrade", 0) is False


class TestScenarios:
    def test_directory_source_success(self, make_settings, work_dir, tmp_path):
        ops = FakeOps(exit_code=0)

        report = UpgradeExecutor(make_settings(), ops=ops).run()

        assert report.error is None
        assert report.exit_code == 0
        lines = (tmp_path / "status.log").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert lines[0].endswith("ExitCode=0 (DynamicUpdate=Disable)")
        assert report.work_dir_removed
        assert not work_dir.exists()
        assert ops.changes == DISABLED + CAPTURED
        assert report.warnings == []

    def test_missing_source_aborts_before_launch(self, make_settings, work_dir, tmp_path):
        ops = FakeOps(fail_queries={"STANDBYIDLE", "HIBERNATEIDLE"})
        settings = make_settings(source=str(tmp_path / "nowhere" / "Win11.iso"))

        report = UpgradeExecutor(settings, ops=ops).run()

        assert isinstance(report.error, SourceNotFound)
        assert report.exit_code is None
        assert ops.count("setup") == 0
        assert ops.count("mount") == 0
        assert not (tmp_path / "status.log").exists()
        # nothing captured, so only the disabling writes happened
        assert ops.changes == DISABLED
        assert work_dir.is_dir()

    def test_reboot_required_exit_code_keeps_folder(self, make_settings, work_dir, tmp_path):
        ops = FakeOps(exit_code=3010)

        report = UpgradeExecutor(make_settings(), ops=ops).run()

        assert report.exit_code == 3010
        line = (tmp_path / "status.log").read_text(encoding="utf-8").strip()
        assert "ExitCode=3010" in line
        assert not report.work_dir_removed
        assert work_dir.is_dir()
        assert ops.changes == DISABLED + CAPTURED

    def test_two_runs_append_two_lines(self, make_settings, tmp_path):
        settings = make_settings(work_dir_marker="KeepMe")
        UpgradeExecutor(settings, ops=FakeOps(exit_code=0)).run()
        UpgradeExecutor(settings, ops=FakeOps(exit_code=1)).run()

        lines = (tmp_path / "status.log").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert "ExitCode=0" in lines[0]
        assert "ExitCode=1" in lines[1]

    def test_unexpected_work_dir_name_is_never_removed(self, make_settings, tmp_path):
        other = tmp_path / "Documents"
        other.mkdir()

        report = UpgradeExecutor(make_settings(work_dir=str(other)), ops=FakeOps()).run()

        assert report.exit_code == 0
        assert other.is_dir()
        assert not report.work_dir_removed


class TestImageRuns:
    @pytest.fixture
    def image(self, work_dir):
        return work_dir / "Win11.iso"

    @pytest.fixture
    def volume(self, tmp_path):
        root = tmp_path / "E"
        root.mkdir()
        (root / "setup.exe").write_bytes(b"MZ")
        return root

    def test_image_is_dismounted_once_before_folder_removal(self, make_settings, image, volume, work_dir):
        ops = FakeOps(volume_roots=[str(volume)])

        report = UpgradeExecutor(make_settings(source=str(image)), ops=ops).run()

        assert report.exit_code == 0
        assert ops.count("mount") == 1
        assert ops.count("dismount") == 1
        names = [c[0] for c in ops.calls]
        assert names.index("dismount") > names.index("setup")
        assert not work_dir.exists()

    def test_mount_without_volume_still_cleans_up(self, make_settings, image):
        ops = FakeOps(volume_roots=[])

        report = UpgradeExecutor(make_settings(source=str(image)), ops=ops).run()

        assert isinstance(report.error, MountResolutionError)
        assert ops.count("dismount") == 1
        assert ops.count("setup") == 0
        assert ops.changes == DISABLED + CAPTURED

    def test_launch_failure_still_dismounts_and_restores(self, make_settings, image, volume):
        ops = FakeOps(volume_roots=[str(volume)], fail_setup=True)

        report = UpgradeExecutor(make_settings(source=str(image)), ops=ops).run()

        assert report.error is not None
        assert ops.count("dismount") == 1
        assert ops.changes == DISABLED + CAPTURED


class TestBestEffort:
    def test_power_failures_do_not_abort(self, make_settings):
        ops = FakeOps(fail_changes={"standby-timeout-ac", "hibernate-timeout-dc"})

        report = UpgradeExecutor(make_settings(), ops=ops).run()

        assert report.exit_code == 0
        assert any("Could not disable" in w for w in report.warnings)
        assert any("Could not restore" in w for w in report.warnings)

    def test_pending_reboot_check(self, make_settings):
        ops = FakeOps(pending_reboot=True)

        report = UpgradeExecutor(make_settings(check_pending_reboot=True), ops=ops).run()

        assert isinstance(report.error, PendingRebootError)
        assert ops.count("setup") == 0
        assert ops.changes == DISABLED + CAPTURED

    def test_failed_pending_reboot_check_is_reported(self, make_settings, monkeypatch):
        ops = FakeOps()

        def broken():
            raise PlatformCommandError("powershell.exe not found")

        monkeypatch.setattr(ops, "has_pending_reboot", broken)

        report = UpgradeExecutor(make_settings(check_pending_reboot=True), ops=ops).run()

        assert report.exit_code == 0
        assert any("Pending reboot check failed" in w for w in report.warnings)

    def test_pending_reboot_not_checked_by_default(self, make_settings):
        ops = FakeOps(pending_reboot=True)

        UpgradeExecutor(make_settings(), ops=ops).run()

        assert ops.count("pending_reboot") == 0

    def test_dry_run_skips_status_and_folder(self, make_settings, work_dir, tmp_path):
        ops = FakeOps()

        report = UpgradeExecutor(make_settings(dry_run=True), ops=ops).run()

        assert report.exit_code == 0
        assert not (tmp_path / "status.log").exists()
        assert work_dir.is_dir()
