"""
Exceptions raised by w11upgrade
-------------------------------

Only :class:`ConfigError` and :class:`PreconditionError` (and its
subclasses) abort a run.  :class:`PlatformCommandError` describes a
failed system utility call; the orchestrator downgrades it to a warning
wherever the step is best-effort.
"""

from __future__ import annotations


class UpgradeError(Exception):
    """Base class for all w11upgrade errors."""


class ConfigError(UpgradeError):
    """Invalid configuration value, detected before any side effect."""


class PlatformCommandError(UpgradeError):
    """A system utility (powercfg, PowerShell, ...) failed or is unavailable."""


class PreconditionError(UpgradeError):
    """A requirement of the execute phase is not met."""


class SourceNotFound(PreconditionError):
    """The configured setup source path does not exist."""


class UnsupportedSource(PreconditionError):
    """The setup source is a file that is not a mountable disk image."""


class MountResolutionError(PreconditionError):
    """A mounted disk image exposed no usable volume."""


class SetupExecutableNotFound(PreconditionError):
    """The setup executable is absent from the resolved source root."""


class PendingRebootError(PreconditionError):
    """Windows reports a pending reboot; setup would refuse to continue."""


class LaunchError(PreconditionError):
    """The setup executable could not be started."""
