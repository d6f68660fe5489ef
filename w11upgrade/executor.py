"""
Upgrade executor
----------------

This module defines the :class:`UpgradeExecutor`, which runs the
upgrade as three phases, always in this order:

1. **Prepare** - capture the power timeouts, then disable sleep and
   hibernate.  Both steps are best-effort.
2. **Execute** - optionally refuse on a pending reboot, resolve the
   setup source, launch setup and append the result to the status log.
   A precondition error aborts this phase only.
3. **Cleanup** - release the disk-image mount, restore the power
   timeouts and, after a successful run, remove the working folder.
   Every sub-step is best-effort and all of them are attempted.

The power snapshot and the resolved source are passed from one phase to
the next as plain values; nothing is kept in module state.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from typing import List, Optional

from .config import UpgradeSettings
from .errors import PendingRebootError, PreconditionError
from .launcher import UpgradeLauncher
from .platform_ops import create_platform_ops
from .power import PowerTimeoutController, PowerTimeoutSnapshot
from .source import SetupSource, SourceResolver
from .status import RunResult, append_result
from .steps import best_effort

logger = logging.getLogger("w11upgrade.executor")


@dataclass
class RunReport:
    """What happened during one run."""

    result: Optional[RunResult] = None
    error: Optional[PreconditionError] = None
    warnings: List[str] = field(default_factory=list)
    work_dir_removed: bool = False

    @property
    def exit_code(self) -> Optional[int]:
        return self.result.exit_code if self.result is not None else None


def should_remove_work_dir(path: str, marker: str, exit_code: Optional[int]) -> bool:
    """Return True only for exit code 0 and a folder named ``marker``.

    The comparison is made on the last path segment, case-insensitively.
    """
    if exit_code != 0:
        return False
    leaf = os.path.basename(os.path.normpath(path))
    return leaf.lower() == marker.lower()


def remove_work_dir(path: str, marker: str, exit_code: Optional[int], dry_run: bool = False) -> bool:
    """Delete the working folder when :func:`should_remove_work_dir` allows it.

    Returns
    -------
    bool
        True if the folder was removed.
    """
    if exit_code != 0:
        logger.info("Keeping working folder %s (exit code %s)", path, exit_code)
        return False
    if not should_remove_work_dir(path, marker, exit_code):
        logger.warning("Refusing to remove %s: folder name is not %r", path, marker)
        return False
    if not os.path.isdir(path):
        logger.info("Working folder %s does not exist", path)
        return False
    if dry_run:
        logger.info("[DRY-RUN] Would remove working folder %s", path)
        return False
    shutil.rmtree(path)
    logger.info("✓ Working folder removed: %s", path)
    return True


class UpgradeExecutor:
    """Run one in-place upgrade.

    Parameters
    ----------
    settings : UpgradeSettings
        Validated configuration.
    ops : PlatformOps, optional
        Platform backend.  Defaults to the backend for the running
        platform, honouring ``settings.dry_run``.
    """

    def __init__(self, settings: UpgradeSettings, ops=None) -> None:
        self.settings = settings
        self.ops = ops if ops is not None else create_platform_ops(dry_run=settings.dry_run)
        self.power = PowerTimeoutController(self.ops)
        self.resolver = SourceResolver(self.ops, setup_name=settings.setup_executable)
        self.launcher = UpgradeLauncher(self.ops, log_dir=settings.log_dir)
        self.logger = logger

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self) -> RunReport:
        """Run prepare, execute and cleanup, and report the outcome."""
        report = RunReport()
        if self.settings.dry_run:
            self.logger.info("Dry-run mode: system changes are logged, not performed")

        snapshot = self.prepare(report)
        source: Optional[SetupSource] = None
        try:
            self.logger.info("=== Execute ===")
            source = self.resolve_source(report)
            self.execute(source, report)
        except PreconditionError as exc:
            self.logger.error("Upgrade aborted: %s", exc)
            report.error = exc
        finally:
            self.cleanup(report, snapshot, source)
        return report

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def prepare(self, report: RunReport) -> Optional[PowerTimeoutSnapshot]:
        self.logger.info("=== Prepare ===")
        outcome = best_effort("Capture power timeouts", self.power.capture, warnings=report.warnings)
        snapshot = outcome.value
        if snapshot is not None and snapshot.is_empty():
            self._warn(report, "No power timeout could be read; nothing will be restored")

        outcome = best_effort("Disable sleep and hibernate", self.power.disable_all, warnings=report.warnings)
        if outcome.value:
            self._warn(report, "Could not disable: " + ", ".join(outcome.value))
        return snapshot

    def resolve_source(self, report: RunReport) -> SetupSource:
        if self.settings.check_pending_reboot:
            outcome = best_effort("Pending reboot check", self.ops.has_pending_reboot,
                                  warnings=report.warnings)
            if outcome.value:
                raise PendingRebootError("A reboot is pending; restart the machine before upgrading")
        return self.resolver.resolve(self.settings.source)

    def execute(self, source: SetupSource, report: RunReport) -> None:
        exit_code = self.launcher.launch(source.setup_executable, self.settings.dynamic_update)
        report.result = RunResult(exit_code=exit_code, dynamic_update=self.settings.dynamic_update)
        if self.settings.dry_run:
            self.logger.info("[DRY-RUN] Would append to %s: %s",
                             self.settings.status_file, report.result.format_line())
            return
        best_effort(
            "Write status log",
            append_result,
            self.settings.status_file,
            report.result,
            warnings=report.warnings,
        )

    def cleanup(
        self,
        report: RunReport,
        snapshot: Optional[PowerTimeoutSnapshot],
        source: Optional[SetupSource],
    ) -> None:
        self.logger.info("=== Cleanup ===")
        if source is not None and source.mount is not None:
            best_effort("Dismount image", source.release, warnings=report.warnings)

        if snapshot is not None:
            outcome = best_effort("Restore power timeouts", self.power.restore, snapshot,
                                  warnings=report.warnings)
            if outcome.value:
                self._warn(report, "Could not restore: " + ", ".join(outcome.value))
        else:
            self.logger.info("No power snapshot captured; skipping restore")

        outcome = best_effort(
            "Remove working folder",
            remove_work_dir,
            self.settings.work_dir,
            self.settings.work_dir_marker,
            report.exit_code,
            self.settings.dry_run,
            warnings=report.warnings,
        )
        report.work_dir_removed = bool(outcome.value)

    def _warn(self, report: RunReport, message: str) -> None:
        self.logger.warning(message)
        report.warnings.append(message)
