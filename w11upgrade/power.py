"""
Power-timeout controller
------------------------

Captures, disables and restores the four sleep/hibernate timeouts of the
active power scheme.  Each timeout is read and written on its own:
``powercfg`` exposes them independently, so partial success is a
degraded outcome and never a fatal one.

Values are handled in minutes, the unit of ``powercfg /change``.
``powercfg /query`` reports seconds, which are converted on capture.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from typing import List, Optional, Tuple

# field name -> (subgroup alias, setting alias, AC/DC, powercfg /change option)
POWER_SETTINGS = {
    "standby_ac": ("SUB_SLEEP", "STANDBYIDLE", "AC", "standby-timeout-ac"),
    "standby_dc": ("SUB_SLEEP", "STANDBYIDLE", "DC", "standby-timeout-dc"),
    "hibernate_ac": ("SUB_SLEEP", "HIBERNATEIDLE", "AC", "hibernate-timeout-ac"),
    "hibernate_dc": ("SUB_SLEEP", "HIBERNATEIDLE", "DC", "hibernate-timeout-dc"),
}

_CURRENT_INDEX = re.compile(
    r"Current\s+(AC|DC)\s+Power\s+Setting\s+Index:\s*(0x[0-9a-fA-F]+)", re.IGNORECASE
)
_HEX_VALUE = re.compile(r"0x[0-9a-fA-F]+")


@dataclass(frozen=True)
class PowerTimeoutSnapshot:
    """Timeouts in minutes; ``None`` means the value could not be read."""

    standby_ac: Optional[int] = None
    standby_dc: Optional[int] = None
    hibernate_ac: Optional[int] = None
    hibernate_dc: Optional[int] = None

    def present_fields(self) -> List[Tuple[str, int]]:
        return [
            (f.name, getattr(self, f.name))
            for f in fields(self)
            if getattr(self, f.name) is not None
        ]

    def is_empty(self) -> bool:
        return not self.present_fields()


def parse_setting_index(output: str, power_source: str) -> Optional[int]:
    """Extract the AC or DC index, in seconds, from ``powercfg /query`` output.

    The labelled ``Current AC/DC Power Setting Index`` lines are used when
    present.  Localized output lacks the English labels; there the AC and
    DC indexes are the last two hex values of the block.
    """
    for source, value in _CURRENT_INDEX.findall(output):
        if source.upper() == power_source:
            return int(value, 16)
    values = _HEX_VALUE.findall(output)
    if len(values) < 2:
        return None
    return int(values[-2] if power_source == "AC" else values[-1], 16)


class PowerTimeoutController:
    """Read and write the sleep/hibernate timeouts through a platform backend.

    Parameters
    ----------
    ops : PlatformOps
        Backend providing ``query_power_setting`` and ``change_power_timeout``.
    """

    def __init__(self, ops) -> None:
        self.ops = ops
        self.logger = logging.getLogger("w11upgrade.power")

    def _read(self, name: str) -> Optional[int]:
        subgroup, setting, power_source, _ = POWER_SETTINGS[name]
        try:
            output = self.ops.query_power_setting(subgroup, setting)
        except Exception as exc:
            self.logger.warning("Could not read %s: %s", name, exc)
            return None
        seconds = parse_setting_index(output or "", power_source)
        if seconds is None:
            self.logger.warning("Could not parse %s from powercfg output", name)
            return None
        # round up so a sub-minute timeout never becomes 0 (never)
        return -(-seconds // 60)

    def capture(self) -> PowerTimeoutSnapshot:
        """Read all four timeouts; unreadable values are left as ``None``."""
        snapshot = PowerTimeoutSnapshot(**{name: self._read(name) for name in POWER_SETTINGS})
        self.logger.info("Captured power timeouts (minutes): %s", snapshot)
        return snapshot

    def _write(self, name: str, minutes: int) -> bool:
        option = POWER_SETTINGS[name][3]
        try:
            self.ops.change_power_timeout(option, minutes)
        except Exception as exc:
            self.logger.warning("Could not set %s to %d: %s", option, minutes, exc)
            return False
        self.logger.debug("%s set to %d", option, minutes)
        return True

    def disable_all(self) -> List[str]:
        """Set every timeout to 0 (never).

        Returns
        -------
        list of str
            Names of the timeouts that could not be changed.
        """
        failed = [name for name in POWER_SETTINGS if not self._write(name, 0)]
        if not failed:
            self.logger.info("✓ Sleep and hibernate timeouts disabled")
        return failed

    def restore(self, snapshot: PowerTimeoutSnapshot) -> List[str]:
        """Write back the fields present in ``snapshot``; absent fields are left alone.

        Returns
        -------
        list of str
            Names of the timeouts that could not be restored.
        """
        if snapshot.is_empty():
            self.logger.info("No captured power timeouts to restore")
            return []
        failed = [name for name, minutes in snapshot.present_fields() if not self._write(name, minutes)]
        if not failed:
            self.logger.info("✓ Power timeouts restored")
        return failed
