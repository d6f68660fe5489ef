"""
POSIX platform operations for w11upgrade
----------------------------------------

The upgrade only makes sense on Windows.  This backend keeps the package
importable on developer machines and CI runners: every request is
logged and then reported as unavailable, so the orchestrator exercises
its best-effort and precondition paths exactly as it would on a machine
where the utilities are missing.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from .errors import PlatformCommandError


class PlatformOps:
    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self.logger = logging.getLogger("w11upgrade.platform.posix")

    def _unavailable(self, what: str) -> PlatformCommandError:
        self.logger.info("[POSIX] %s requested", what)
        return PlatformCommandError(f"{what} requires Windows")

    def query_power_setting(self, subgroup: str, setting: str) -> str:
        raise self._unavailable(f"powercfg /query {subgroup} {setting}")

    def change_power_timeout(self, option: str, minutes: int) -> None:
        if self.dry_run:
            self.logger.info("[DRY-RUN] Would execute: powercfg /change %s %d", option, minutes)
            return
        raise self._unavailable(f"powercfg /change {option}")

    def is_image_attached(self, image_path: str) -> bool:
        raise self._unavailable(f"Get-DiskImage {image_path}")

    def mount_image(self, image_path: str) -> None:
        raise self._unavailable(f"Mount-DiskImage {image_path}")

    def image_volume_roots(self, image_path: str) -> List[str]:
        raise self._unavailable(f"Get-Volume {image_path}")

    def dismount_image(self, image_path: str) -> None:
        raise self._unavailable(f"Dismount-DiskImage {image_path}")

    def has_pending_reboot(self) -> bool:
        raise self._unavailable("Pending reboot check")

    def run_setup(self, executable: str, args: Sequence[str]) -> int:
        if self.dry_run:
            self.logger.info("[DRY-RUN] Would execute: %s %s", executable, " ".join(args))
            return 0
        raise self._unavailable(f"Running {executable}")
