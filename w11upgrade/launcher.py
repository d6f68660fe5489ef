"""
Upgrade launcher
----------------

Runs the vendor setup program with the fixed unattended-upgrade argument
set and waits for it.  The exit code is returned verbatim; 0 is success
and every other value is a vendor code for the caller to record.  There
is no timeout: a feature upgrade routinely takes hours.
"""

from __future__ import annotations

import logging
import os
from typing import List

from .config import DYNAMIC_UPDATE_MODES
from .errors import ConfigError, LaunchError, PlatformCommandError


def build_setup_args(dynamic_update: str, log_dir: str) -> List[str]:
    """Return the setup.exe command line for an unattended in-place upgrade."""
    if dynamic_update not in DYNAMIC_UPDATE_MODES:
        raise ConfigError(f"Invalid dynamic update mode: {dynamic_update!r}")
    return [
        "/Auto", "Upgrade",
        "/Quiet",
        "/EULA", "Accept",
        "/NoReboot",
        "/DynamicUpdate", dynamic_update,
        "/Telemetry", "Disable",
        "/CopyLogs", log_dir,
    ]


class UpgradeLauncher:
    def __init__(self, ops, log_dir: str) -> None:
        self.ops = ops
        self.log_dir = log_dir
        self.logger = logging.getLogger("w11upgrade.launcher")

    def launch(self, setup_executable: str, dynamic_update: str) -> int:
        """Run ``setup_executable`` and block until it exits.

        Raises
        ------
        ConfigError
            If ``dynamic_update`` is not ``Enable`` or ``Disable``.
        LaunchError
            If the process could not be started.
        """
        args = build_setup_args(dynamic_update, self.log_dir)
        try:
            os.makedirs(self.log_dir, exist_ok=True)
        except OSError as exc:
            raise LaunchError(f"Could not create log directory {self.log_dir}: {exc}") from exc
        self.logger.info("Launching %s %s", setup_executable, " ".join(args))
        self.logger.info("Waiting for setup to finish; this can take a long time")
        try:
            exit_code = self.ops.run_setup(setup_executable, args)
        except PlatformCommandError as exc:
            raise LaunchError(str(exc)) from exc
        self.logger.info("Setup finished with exit code %d", exit_code)
        return exit_code
