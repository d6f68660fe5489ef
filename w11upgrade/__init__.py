"""w11upgrade package initializer.

Unattended in-place Windows 11 upgrade: keep the machine awake, run
setup.exe from an ISO or folder, record the exit code, then restore the
power settings and clean up.  The high-level entry points are
re-exported here for convenience.
"""

# Re-export key modules for convenience
from . import config as config  # noqa: F401
from . import platform_ops as platform_ops  # noqa: F401
from .executor import RunReport, UpgradeExecutor  # noqa: F401
from .power import PowerTimeoutController, PowerTimeoutSnapshot  # noqa: F401
from .source import SetupSource, SourceResolver  # noqa: F401

__version__ = "0.1.0"
