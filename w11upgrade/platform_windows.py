"""
Windows platform operations for w11upgrade
------------------------------------------

This module wraps the Windows utilities the upgrade depends on:

- ``powercfg`` to query and change the sleep/hibernate timeouts of the
  active power scheme
- PowerShell storage cmdlets (``Mount-DiskImage``, ``Get-DiskImage``,
  ``Get-Volume``, ``Dismount-DiskImage``) to attach an ISO
- the registry, through PowerShell, to detect a pending reboot
- the vendor ``setup.exe`` itself

Every helper runs exactly one command and raises
:class:`~w11upgrade.errors.PlatformCommandError` on failure; retries and
best-effort policy are decided by the caller.  In dry-run mode commands
that change the system (``powercfg /change`` and the setup launch) are
logged instead of executed.  Read-only queries and the disk-image mount,
which is always released again, still run so a dry run validates the
source for real.
"""

from __future__ import annotations

import logging
import subprocess
from typing import List, Sequence

from .errors import PlatformCommandError

POWERSHELL = [
    "powershell.exe",
    "-NoProfile",
    "-NonInteractive",
    "-ExecutionPolicy",
    "Bypass",
    "-Command",
]

PENDING_REBOOT_SCRIPT = r"""
$pending = $false
if (Test-Path 'HKLM:\SOFTWARE\Microsoft\Windows\CurrentVersion\WindowsUpdate\Auto Update\RebootRequired') { $pending = $true }
if (Test-Path 'HKLM:\SOFTWARE\Microsoft\Windows\CurrentVersion\Component Based Servicing\RebootPending') { $pending = $true }
if (Get-ItemProperty 'HKLM:\SYSTEM\CurrentControlSet\Control\Session Manager' -Name PendingFileRenameOperations -ErrorAction SilentlyContinue) { $pending = $true }
$pending
"""


def _ps_quote(value: str) -> str:
    """Quote ``value`` as a PowerShell single-quoted string literal."""
    return "'" + value.replace("'", "''") + "'"


class PlatformOps:
    """Windows-specific system operations used by the upgrade."""

    def __init__(self, dry_run: bool = False) -> None:
        """Initialize Windows platform operations.

        Parameters
        ----------
        dry_run : bool
            If True, log system changes without executing them.
        """
        self.dry_run = dry_run
        self.logger = logging.getLogger("w11upgrade.platform.windows")

    def _run(self, cmd: List[str]) -> str:
        """Execute ``cmd`` and return its standard output.

        Raises
        ------
        PlatformCommandError
            If the program is missing or exits with a non-zero status.
        """
        self.logger.debug("Executing: %s", subprocess.list2cmdline(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                encoding="mbcs",
                errors="replace",
            )
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or exc.stdout or "").strip()
            raise PlatformCommandError(
                f"{cmd[0]} exited with status {exc.returncode}: {detail}"
            ) from exc
        except FileNotFoundError as exc:
            raise PlatformCommandError(f"{cmd[0]} not found. Are you running on Windows?") from exc
        return result.stdout

    def _run_powershell(self, script: str) -> str:
        return self._run(POWERSHELL + [script])

    # ------------------------------------------------------------------
    # Power configuration
    # ------------------------------------------------------------------
    def query_power_setting(self, subgroup: str, setting: str) -> str:
        """Return the raw ``powercfg /query`` output for one setting of the active scheme."""
        return self._run(["powercfg", "/query", "SCHEME_CURRENT", subgroup, setting])

    def change_power_timeout(self, option: str, minutes: int) -> None:
        """Run ``powercfg /change <option> <minutes>``."""
        cmd = ["powercfg", "/change", option, str(minutes)]
        if self.dry_run:
            self.logger.info("[DRY-RUN] Would execute: %s", " ".join(cmd))
            return
        self._run(cmd)

    # ------------------------------------------------------------------
    # Disk images
    # ------------------------------------------------------------------
    def is_image_attached(self, image_path: str) -> bool:
        """Return True if ``image_path`` is already mounted."""
        output = self._run_powershell(
            f"(Get-DiskImage -ImagePath {_ps_quote(image_path)}).Attached"
        )
        return output.strip().lower() == "true"

    def mount_image(self, image_path: str) -> None:
        """Attach ``image_path`` with ``Mount-DiskImage``."""
        self.logger.debug("Mounting %s", image_path)
        self._run_powershell(
            f"Mount-DiskImage -ImagePath {_ps_quote(image_path)} -ErrorAction Stop | Out-Null"
        )

    def image_volume_roots(self, image_path: str) -> List[str]:
        """Return the drive roots (``E:\\``) of the volumes of an attached image."""
        output = self._run_powershell(
            f"(Get-DiskImage -ImagePath {_ps_quote(image_path)} | Get-Volume).DriveLetter"
        )
        roots = []
        for line in output.splitlines():
            letter = line.strip()
            if len(letter) == 1 and letter.isalpha():
                roots.append(f"{letter.upper()}:\\")
        return roots

    def dismount_image(self, image_path: str) -> None:
        """Detach ``image_path`` with ``Dismount-DiskImage``."""
        self.logger.debug("Dismounting %s", image_path)
        self._run_powershell(
            f"Dismount-DiskImage -ImagePath {_ps_quote(image_path)} -ErrorAction Stop | Out-Null"
        )

    # ------------------------------------------------------------------
    # System state and setup
    # ------------------------------------------------------------------
    def has_pending_reboot(self) -> bool:
        """Return True if Windows Update or CBS reports a pending reboot."""
        return self._run_powershell(PENDING_REBOOT_SCRIPT).strip().lower() == "true"

    def run_setup(self, executable: str, args: Sequence[str]) -> int:
        """Run the setup program and wait for it without a timeout.

        Returns
        -------
        int
            The exit code of the setup process, unmodified.
        """
        cmd = [executable] + list(args)
        if self.dry_run:
            self.logger.info("[DRY-RUN] Would execute: %s", subprocess.list2cmdline(cmd))
            return 0
        try:
            completed = subprocess.run(cmd, check=False)
        except OSError as exc:
            raise PlatformCommandError(f"Could not start {executable}: {exc}") from exc
        return completed.returncode
