import sys
from pathlib import Path

import pytest

_REPO_ROOT = Path(__file__).resolve().parent.parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from w11upgrade.config import UpgradeSettings  # noqa: E402
from w11upgrade.errors import PlatformCommandError  # noqa: E402

STANDBY_QUERY = """\
Power Scheme GUID: 381b4222-f694-41f0-9685-ff5bb260df2e  (Balanced)
  GUID Alias: SCHEME_BALANCED
  Subgroup GUID: 238c9fa8-0aad-41ed-83f4-97be242c8f20  (Sleep)
    GUID Alias: SUB_SLEEP
    Power Setting GUID: 29f6c1db-86da-48c5-9fdb-f2b67b1f44da  (Sleep after)
      GUID Alias: STANDBYIDLE
      Minimum Possible Setting: 0x00000000
      Maximum Possible Setting: 0xffffffff
      Possible Settings increment: 0x00000001
      Possible Settings units: Seconds
    Current AC Power Setting Index: 0x00000708
    Current DC Power Setting Index: 0x00000384
"""

HIBERNATE_QUERY = """\
Power Scheme GUID: 381b4222-f694-41f0-9685-ff5bb260df2e  (Balanced)
  GUID Alias: SCHEME_BALANCED
  Subgroup GUID: 238c9fa8-0aad-41ed-83f4-97be242c8f20  (Sleep)
    GUID Alias: SUB_SLEEP
    Power Setting GUID: 9d7815a6-7ee4-497e-8888-515a05f02364  (Hibernate after)
      GUID Alias: HIBERNATEIDLE
      Minimum Possible Setting: 0x00000000
      Maximum Possible Setting: 0xffffffff
      Possible Settings increment: 0x00000001
      Possible Settings units: Seconds
    Current AC Power Setting Index: 0x00002a30
    Current DC Power Setting Index: 0x00001c20
"""


class FakeOps:
    """Platform backend double that records every call."""

    def __init__(
        self,
        query_outputs=None,
        fail_queries=(),
        fail_changes=(),
        volume_roots=None,
        attached=False,
        fail_mount=False,
        pending_reboot=False,
        exit_code=0,
        fail_setup=False,
    ):
        if query_outputs is None:
            query_outputs = {"STANDBYIDLE": STANDBY_QUERY, "HIBERNATEIDLE": HIBERNATE_QUERY}
        self.query_outputs = query_outputs
        self.fail_queries = set(fail_queries)
        self.fail_changes = set(fail_changes)
        self.volume_roots = list(volume_roots or [])
        self.attached = attached
        self.fail_mount = fail_mount
        self.pending_reboot = pending_reboot
        self.exit_code = exit_code
        self.fail_setup = fail_setup
        self.calls = []

    @property
    def changes(self):
        return [(c[1], c[2]) for c in self.calls if c[0] == "change"]

    def count(self, name):
        return sum(1 for c in self.calls if c[0] == name)

    def query_power_setting(self, subgroup, setting):
        self.calls.append(("query", subgroup, setting))
        if setting in self.fail_queries:
            raise PlatformCommandError(f"powercfg /query {setting} failed")
        return self.query_outputs.get(setting, "")

    def change_power_timeout(self, option, minutes):
        self.calls.append(("change", option, minutes))
        if option in self.fail_changes:
            raise PlatformCommandError(f"powercfg /change {option} failed")

    def is_image_attached(self, image_path):
        self.calls.append(("attached", image_path))
        return self.attached

    def mount_image(self, image_path):
        self.calls.append(("mount", image_path))
        if self.fail_mount:
            raise PlatformCommandError("Mount-DiskImage failed")

    def image_volume_roots(self, image_path):
        self.calls.append(("volumes", image_path))
        return list(self.volume_roots)

    def dismount_image(self, image_path):
        self.calls.append(("dismount", image_path))

    def has_pending_reboot(self):
        self.calls.append(("pending_reboot",))
        return self.pending_reboot

    def run_setup(self, executable, args):
        self.calls.append(("setup", executable, list(args)))
        if self.fail_setup:
            raise PlatformCommandError(f"Could not start {executable}")
        return self.exit_code


@pytest.fixture
def fake_ops():
    return FakeOps()


@pytest.fixture
def media_dir(tmp_path):
    media = tmp_path / "media"
    media.mkdir()
    (media / "setup.exe").write_bytes(b"MZ")
    return media


@pytest.fixture
def work_dir(tmp_path):
    work = tmp_path / "Win11Upgrade"
    work.mkdir()
    (work / "Win11.iso").write_bytes(b"ISO")
    return work


@pytest.fixture
def make_settings(tmp_path, media_dir, work_dir):
    def _make(**overrides):
        values = dict(
            source=str(media_dir),
            dynamic_update="Disable",
            setup_executable="setup.exe",
            check_pending_reboot=False,
            log_dir=str(tmp_path / "logs"),
            status_file=str(tmp_path / "status.log"),
            work_dir=str(work_dir),
            work_dir_marker="Win11Upgrade",
            dry_run=False,
        )
        values.update(overrides)
        return UpgradeSettings(**values)

    return _make
