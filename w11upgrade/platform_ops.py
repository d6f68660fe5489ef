"""
Platform operations abstraction
-------------------------------

This module selects the appropriate platform implementation (Windows or
POSIX) for the system-level operations used by the upgrade: querying
and changing power timeouts, mounting disk images, detecting a pending
reboot and running the vendor setup program.

At runtime, the correct backend is chosen based on ``sys.platform``.
On non-Windows platforms every operation is logged and reported as
unavailable, which lets the orchestrator be exercised in development
and testing environments without modifying the system.
"""

from __future__ import annotations

import sys

if sys.platform.startswith("win"):
    from .platform_windows import PlatformOps  # type: ignore
else:
    from .platform_posix import PlatformOps  # type: ignore


def create_platform_ops(dry_run: bool = False) -> PlatformOps:
    """Return the platform backend for the running interpreter.

    Parameters
    ----------
    dry_run : bool
        If True, system changes are logged without executing them.
    """
    return PlatformOps(dry_run=dry_run)
