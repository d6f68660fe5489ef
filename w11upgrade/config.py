"""
Configuration utilities for w11upgrade
--------------------------------------

This module provides helper functions to load and merge configuration
files for the upgrade orchestrator.  Configurations may be supplied in
YAML or JSON format.  A default configuration is provided and will be
merged with any user-supplied configuration such that missing values
fall back to the defaults below.

The merged dictionary is then validated into an :class:`UpgradeSettings`
instance.  Validation happens before the orchestrator touches the
system, so an invalid ``dynamic_update`` value never leaves the machine
half-configured.
"""

from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

SYSTEM_DRIVE = os.environ.get("SystemDrive", "C:")

DYNAMIC_UPDATE_MODES = ("Enable", "Disable")
EXECUTOR_MODES = ("dry-run", "real-run")

# ----------------------------------------------------------------------
# Default configuration
# ----------------------------------------------------------------------

DEFAULT_CONFIG: Dict[str, Any] = {
    "upgrade": {
        # Disk image (.iso/.vhd/.vhdx/.img) or a directory holding setup.exe.
        "source": SYSTEM_DRIVE + r"\Provisioning\Win11Upgrade\Win11.iso",
        # Enabling Dynamic Update has been observed to stall setup at a
        # fixed completion percentage.
        "dynamic_update": "Disable",
        # Name of the setup program at the root of the source.
        "setup_executable": "setup.exe",
        # Refuse to start when Windows reports a pending reboot.
        "check_pending_reboot": False,
    },
    "paths": {
        # Destination for the vendor logs (setup.exe /CopyLogs).
        "log_dir": SYSTEM_DRIVE + r"\Win11UpgradeLogs",
        # Append-only status file, one line per run.
        "status_file": SYSTEM_DRIVE + r"\Win11UpgradeStatus.log",
        # Working folder removed after a successful run.
        "work_dir": SYSTEM_DRIVE + r"\Provisioning\Win11Upgrade",
        # The working folder is only removed when its last path segment
        # matches this name (case-insensitive).
        "work_dir_marker": "Win11Upgrade",
    },
    "executor": {
        # 'dry-run' logs every system change instead of performing it.
        "mode": "real-run",
    },
    "logging": {
        # One of 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'.
        "level": "INFO",
        # Optional file name to write logs to.
        "file": None,
    },
}


@dataclass(frozen=True)
class UpgradeSettings:
    """Validated view of the merged configuration."""

    source: str
    dynamic_update: str
    setup_executable: str
    check_pending_reboot: bool
    log_dir: str
    status_file: str
    work_dir: str
    work_dir_marker: str
    dry_run: bool


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries.

    Values in dictionary ``b`` override those in ``a``.  Nested
    dictionaries are merged recursively.  Neither input is modified.
    """
    result: Dict[str, Any] = copy.deepcopy(a)
    for key, value in b.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load a configuration file and merge it with the default config.

    The file may be YAML or JSON.  A missing file yields the default
    configuration; a file that exists but cannot be parsed is a
    configuration error.

    Parameters
    ----------
    path : str or None
        Path to a YAML or JSON configuration file.  If None, only
        the default configuration is returned.

    Returns
    -------
    dict
        The merged configuration.

    Raises
    ------
    ConfigError
        If the file cannot be read or parsed, or is not a mapping.
    """
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if path is None or not os.path.isfile(path):
        return cfg
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        # Detect YAML vs JSON by first character
        if text.lstrip().startswith("{"):
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not parse configuration {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration {path} must contain a mapping")
    return _merge_dicts(cfg, data)


def dump_default_config(path: str) -> None:
    """Write the default configuration to a file in YAML format.

    Parameters
    ----------
    path : str
        Destination path to write the YAML file.
    """
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigError(f"Failed to write config to {path}: {e}") from e


def normalize_dynamic_update(value: Any) -> str:
    """Return the canonical spelling of a dynamic-update mode.

    ``enable``/``DISABLE`` and friends are accepted; anything outside
    the two modes raises :class:`ConfigError`.
    """
    if isinstance(value, str):
        for mode in DYNAMIC_UPDATE_MODES:
            if value.strip().lower() == mode.lower():
                return mode
    raise ConfigError(
        f"Invalid dynamic_update value {value!r}; expected one of "
        + ", ".join(DYNAMIC_UPDATE_MODES)
    )


def _require_str(section: Dict[str, Any], key: str, name: str) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{name}.{key} must be a non-empty string")
    return value.strip()


def load_settings(cfg: Dict[str, Any]) -> UpgradeSettings:
    """Validate a merged configuration dictionary.

    Raises
    ------
    ConfigError
        On the first invalid or missing value.
    """
    upgrade = cfg.get("upgrade") or {}
    paths = cfg.get("paths") or {}
    executor = cfg.get("executor") or {}

    mode = executor.get("mode", "real-run")
    if mode not in EXECUTOR_MODES:
        raise ConfigError(
            f"Invalid executor.mode {mode!r}; expected one of " + ", ".join(EXECUTOR_MODES)
        )

    marker = _require_str(paths, "work_dir_marker", "paths")
    if any(sep in marker for sep in ("/", "\\")):
        raise ConfigError("paths.work_dir_marker must be a single path segment")

    return UpgradeSettings(
        source=_require_str(upgrade, "source", "upgrade"),
        dynamic_update=normalize_dynamic_update(upgrade.get("dynamic_update")),
        setup_executable=_require_str(upgrade, "setup_executable", "upgrade"),
        check_pending_reboot=bool(upgrade.get("check_pending_reboot", False)),
        log_dir=_require_str(paths, "log_dir", "paths"),
        status_file=_require_str(paths, "status_file", "paths"),
        work_dir=_require_str(paths, "work_dir", "paths"),
        work_dir_marker=marker,
        dry_run=(mode == "dry-run"),
    )
